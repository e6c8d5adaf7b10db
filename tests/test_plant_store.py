"""
tests/test_plant_store.py — Tests for the plant record store.

Tests cover:
- Save / get round trip, id and dateAdded assignment
- Ordering (most recent first)
- Partial update, immutable and unknown fields
- Idempotent delete
- Loading older or damaged documents
- Persistence failures
- Search, watering helpers, JSON import/export
"""

import json
import os
import tempfile
import threading
from datetime import datetime, timedelta, timezone

import pytest

from analysis_engine import normalize_record
from database import FileMedium, MemoryMedium, PersistenceError, SqliteMedium, StorageMedium
from plant_store import PlantRecordStore

T0 = datetime(2025, 7, 1, 9, 0, 0, tzinfo=timezone.utc)


class StepClock:
    """Clock that moves forward one second per reading."""

    def __init__(self, start=T0):
        self.current = start

    def __call__(self):
        value = self.current
        self.current += timedelta(seconds=1)
        return value


class FailingMedium(StorageMedium):
    """Reads fine, refuses writes once `fail` is set."""

    def __init__(self):
        self.inner = MemoryMedium()
        self.fail = False

    def read(self):
        return self.inner.read()

    def write(self, data):
        if self.fail:
            raise PersistenceError("disk full")
        self.inner.write(data)


@pytest.fixture
def store():
    return PlantRecordStore(MemoryMedium(), clock=StepClock())


@pytest.fixture
def analysis():
    return normalize_record({
        "plantName": "Ficus lyrata",
        "commonName": "Fiddle Leaf Fig",
        "confidence": 87,
        "healthStatus": "warning",
        "healthScore": 72,
        "careAdvice": ["Rotate monthly"],
    }, now=T0)


@pytest.fixture
def temp_db_path():
    db_fd, db_path = tempfile.mkstemp(suffix='.db')
    os.close(db_fd)
    os.unlink(db_path)

    yield db_path

    for suffix in ('', '-wal', '-shm'):
        try:
            os.unlink(db_path + suffix)
        except OSError:
            pass


# ========================================
# Save / Read
# ========================================

class TestSave:
    """Tests for save, get_all and get_by_id."""

    def test_empty_store(self, store):
        assert store.get_all() == []

    def test_save_assigns_id_and_date(self, store, analysis):
        plant = store.save(analysis.to_draft(image_uri="file:///photos/1.jpg"))
        assert plant.id.startswith("plant_")
        assert len(plant.id.split('_')[-1]) == 9
        assert plant.date_added is not None
        assert plant.image_uri == "file:///photos/1.jpg"

    def test_round_trip(self, store, analysis):
        draft = analysis.to_draft(image_uri="file:///photos/1.jpg")
        plant = store.save(draft)

        found = store.get_by_id(plant.id)
        data = found.to_dict()
        assert data.pop('id') == plant.id
        assert data.pop('dateAdded') is not None
        assert data == draft

    def test_round_trip_through_sqlite(self, temp_db_path, analysis):
        draft = analysis.to_draft(image_uri="file:///photos/1.jpg", notes="Kitchen window")
        plant = PlantRecordStore(SqliteMedium(temp_db_path)).save(draft)

        # A fresh store has no cache and must read the database
        found = PlantRecordStore(SqliteMedium(temp_db_path)).get_by_id(plant.id)
        assert found == plant

    def test_save_analysis_result_directly(self, store, analysis):
        plant = store.save(analysis)
        assert plant.plant_name == "Ficus lyrata"
        assert plant.image_uri == ""

    def test_draft_id_and_date_ignored(self, store, analysis):
        draft = analysis.to_draft(id="chosen", dateAdded="2000-01-01T00:00:00Z")
        plant = store.save(draft)
        assert plant.id != "chosen"
        assert plant.date_added.year == 2025

    def test_draft_scores_clamped(self, store):
        plant = store.save({"plantName": "Fern", "confidence": 500, "healthScore": -3})
        assert plant.confidence == 100
        assert plant.health_score == 1

    def test_snake_case_draft_keys(self, store):
        plant = store.save({"plant_name": "Fern", "custom_name": "Fernando"})
        assert plant.plant_name == "Fern"
        assert plant.custom_name == "Fernando"

    def test_most_recent_first(self, store):
        first = store.save({"plantName": "A"})
        second = store.save({"plantName": "B"})
        third = store.save({"plantName": "C"})
        assert [p.id for p in store.get_all()] == [third.id, second.id, first.id]

    def test_ids_unique_under_same_clock_reading(self):
        frozen = PlantRecordStore(MemoryMedium(), clock=lambda: T0)
        ids = {frozen.save({"plantName": "Same"}).id for _ in range(50)}
        assert len(ids) == 50

    def test_get_by_id_missing(self, store):
        assert store.get_by_id("plant_missing") is None

    def test_returned_records_are_copies(self, store):
        plant = store.save({"plantName": "Fern"})
        plant.care_advice.append("mutated")
        fetched = store.get_all()[0]
        fetched.notes = "mutated"
        assert "mutated" not in store.get_by_id(plant.id).care_advice
        assert store.get_by_id(plant.id).notes is None

    def test_document_is_json_array(self, analysis):
        medium = MemoryMedium()
        store = PlantRecordStore(medium, clock=StepClock())
        store.save(analysis.to_draft())
        document = json.loads(medium.read().decode('utf-8'))
        assert isinstance(document, list)
        assert document[0]['plantName'] == "Ficus lyrata"


# ========================================
# Update
# ========================================

class TestUpdate:
    """Tests for partial update."""

    def test_partial_update_keeps_other_fields(self, store):
        plant = store.save({"plantName": "Fern", "notes": "A"})
        watered = datetime(2025, 7, 10, 8, 30, tzinfo=timezone.utc)

        updated = store.update(plant.id, {"lastWatered": watered})
        assert updated.notes == "A"
        assert updated.last_watered == watered
        assert store.get_by_id(plant.id).notes == "A"
        assert store.get_by_id(plant.id).last_watered == watered

    def test_update_with_iso_string(self, store):
        plant = store.save({"plantName": "Fern"})
        updated = store.update(plant.id, {"lastFertilized": "2025-07-10T08:30:00Z"})
        assert updated.last_fertilized == datetime(2025, 7, 10, 8, 30, tzinfo=timezone.utc)

    def test_update_missing_id(self, store):
        assert store.update("plant_missing", {"notes": "x"}) is None

    def test_update_cannot_change_id_or_date(self, store):
        plant = store.save({"plantName": "Fern"})
        updated = store.update(plant.id, {"id": "other", "dateAdded": "2000-01-01T00:00:00Z", "notes": "B"})
        assert updated.id == plant.id
        assert updated.date_added == plant.date_added
        assert updated.notes == "B"

    def test_unknown_field_rejected(self, store):
        plant = store.save({"plantName": "Fern"})
        with pytest.raises(ValueError):
            store.update(plant.id, {"favouriteColour": "green"})

    def test_update_clamps_scores(self, store):
        plant = store.save({"plantName": "Fern"})
        updated = store.update(plant.id, {"healthScore": 400})
        assert updated.health_score == 100

    def test_none_clears_optional_field(self, store):
        plant = store.save({"plantName": "Fern", "customName": "Fernando"})
        updated = store.update(plant.id, {"customName": None})
        assert updated.custom_name is None
        assert 'customName' not in updated.to_dict()

    def test_unreadable_date_rejected_and_kept(self, store):
        plant = store.save({"plantName": "Fern", "lastWatered": "2025-01-01T00:00:00Z"})
        with pytest.raises(ValueError):
            store.update(plant.id, {"lastWatered": "yesterday"})
        kept = store.get_by_id(plant.id).last_watered
        assert kept == datetime(2025, 1, 1, tzinfo=timezone.utc)

    def test_none_clears_date(self, store):
        plant = store.save({"plantName": "Fern", "lastWatered": "2025-01-01T00:00:00Z"})
        assert store.update(plant.id, {"lastWatered": None}).last_watered is None

    def test_update_keeps_position(self, store):
        first = store.save({"plantName": "A"})
        second = store.save({"plantName": "B"})
        store.update(first.id, {"notes": "edited"})
        assert [p.id for p in store.get_all()] == [second.id, first.id]


# ========================================
# Delete
# ========================================

class TestDelete:
    """Tests for delete."""

    def test_delete_twice(self, store):
        plant = store.save({"plantName": "Fern"})
        assert store.delete(plant.id) is True
        assert store.delete(plant.id) is False
        assert store.get_by_id(plant.id) is None

    def test_delete_missing_on_empty_store(self, store):
        assert store.delete("plant_missing") is False

    def test_delete_leaves_others(self, store):
        keep = store.save({"plantName": "Keep"})
        drop = store.save({"plantName": "Drop"})
        store.delete(drop.id)
        assert [p.id for p in store.get_all()] == [keep.id]


# ========================================
# Loading stored documents
# ========================================

class TestLoad:
    """Tests for decoding what is already on the medium."""

    def test_legacy_record_defaults(self):
        legacy = [{
            "id": "plant_1",
            "name": "Old Fern",
            "commonName": "Boston Fern",
            "confidence": 0,
            "healthScore": 120,
            "healthStatus": "healthy",
            "careAdvice": [],
            "dateAdded": "2024-01-01T10:00:00.000Z",
            "timestamp": "2024-01-01T09:59:00.000Z",
        }]
        medium = MemoryMedium(json.dumps(legacy).encode('utf-8'))
        plant = PlantRecordStore(medium).get_by_id("plant_1")
        assert plant.plant_name == "Old Fern"
        assert plant.confidence == 1
        assert plant.health_score == 100
        assert len(plant.care_advice) == 4
        assert plant.health_insights.strengths == ["Plant appears to be surviving"]
        assert plant.quick_facts.humidity == "40-60%"
        assert plant.last_watered is None

    def test_non_object_entries_skipped(self):
        medium = MemoryMedium(b'[1, "x", {"id": "plant_1", "plantName": "Fern"}]')
        plants = PlantRecordStore(medium).get_all()
        assert [p.id for p in plants] == ["plant_1"]

    def test_duplicate_ids_keep_first(self):
        document = [{"id": "plant_1", "plantName": "First"}, {"id": "plant_1", "plantName": "Second"}]
        medium = MemoryMedium(json.dumps(document).encode('utf-8'))
        plants = PlantRecordStore(medium).get_all()
        assert len(plants) == 1
        assert plants[0].plant_name == "First"

    def test_missing_id_assigned(self):
        medium = MemoryMedium(b'[{"plantName": "Fern"}]')
        plants = PlantRecordStore(medium, clock=StepClock()).get_all()
        assert plants[0].id.startswith("plant_")
        assert plants[0].date_added is not None

    def test_invalid_json_raises(self):
        store = PlantRecordStore(MemoryMedium(b'{not json'))
        with pytest.raises(PersistenceError):
            store.get_all()

    def test_non_array_document_raises(self):
        store = PlantRecordStore(MemoryMedium(b'{"plants": []}'))
        with pytest.raises(PersistenceError):
            store.get_all()

    def test_deeply_nested_document_raises(self):
        depth = 100000
        raw = ('[{"plantName": ' + "[" * depth + "]" * depth + "}]").encode('utf-8')
        store = PlantRecordStore(MemoryMedium(raw))
        with pytest.raises(PersistenceError):
            store.get_all()

    def test_blank_document_is_empty(self):
        assert PlantRecordStore(MemoryMedium(b'   ')).get_all() == []

    def test_missing_file_is_empty(self, tmp_path):
        store = PlantRecordStore(FileMedium(str(tmp_path / "plants.json")))
        assert store.get_all() == []


# ========================================
# Persistence failures
# ========================================

class TestPersistenceFailures:
    """Tests for write failures."""

    def test_failed_save_raises_and_keeps_previous_state(self):
        medium = FailingMedium()
        store = PlantRecordStore(medium, clock=StepClock())
        kept = store.save({"plantName": "Kept"})

        medium.fail = True
        with pytest.raises(PersistenceError):
            store.save({"plantName": "Lost"})

        medium.fail = False
        assert [p.id for p in store.get_all()] == [kept.id]

    def test_failed_delete_raises(self):
        medium = FailingMedium()
        store = PlantRecordStore(medium, clock=StepClock())
        plant = store.save({"plantName": "Fern"})
        medium.fail = True
        with pytest.raises(PersistenceError):
            store.delete(plant.id)

    def test_delete_missing_does_not_write(self):
        medium = FailingMedium()
        store = PlantRecordStore(medium)
        medium.fail = True
        assert store.delete("plant_missing") is False

    def test_check_health(self, store):
        healthy, message = store.check_health()
        assert healthy is True
        assert "0 plants" in message

    def test_check_health_broken_document(self):
        healthy, message = PlantRecordStore(MemoryMedium(b'oops')).check_health()
        assert healthy is False


# ========================================
# Journal helpers
# ========================================

class TestJournalHelpers:
    """Tests for search and care events."""

    def test_search_matches_all_names(self, store):
        store.save({"plantName": "Monstera deliciosa", "commonName": "Swiss Cheese Plant"})
        store.save({"plantName": "Ficus lyrata", "commonName": "Fiddle Leaf Fig", "customName": "Figgy"})
        assert [p.plant_name for p in store.search("MONSTERA")] == ["Monstera deliciosa"]
        assert [p.plant_name for p in store.search("leaf")] == ["Ficus lyrata"]
        assert [p.plant_name for p in store.search("figgy")] == ["Ficus lyrata"]
        assert len(store.search("")) == 2
        assert store.search("cactus") == []

    def test_mark_watered_uses_clock(self):
        store = PlantRecordStore(MemoryMedium(), clock=lambda: T0)
        plant = store.save({"plantName": "Fern"})
        assert store.mark_watered(plant.id).last_watered == T0

    def test_mark_fertilized_explicit_time(self, store):
        plant = store.save({"plantName": "Fern"})
        when = T0 - timedelta(days=3)
        assert store.mark_fertilized(plant.id, when).last_fertilized == when

    def test_mark_watered_missing(self, store):
        assert store.mark_watered("plant_missing") is None

    def test_plants_needing_water(self, store):
        dry = store.save({"plantName": "Dry"})
        fresh = store.save({"plantName": "Fresh"})
        store.update(fresh.id, {"lastWatered": T0 + timedelta(days=1)})
        names = [p.plant_name for p in store.plants_needing_water(now=T0 + timedelta(days=2))]
        assert names == [dry.plant_name]

    def test_get_stats(self, store):
        store.save({"plantName": "A", "healthScore": 90})
        stats = store.get_stats()
        assert stats.total_plants == 1
        assert stats.average_health_score == 90


# ========================================
# JSON Import / Export
# ========================================

class TestImportExport:
    """Tests for export_json and import_json."""

    def test_export_then_replace_import(self, store):
        store.save({"plantName": "A", "notes": "first"})
        store.save({"plantName": "B"})
        exported = store.export_json()
        assert len(exported['plants']) == 2

        other = PlantRecordStore(MemoryMedium(), clock=StepClock())
        other.save({"plantName": "Z"})
        success, message, stats = other.import_json(exported, mode='replace')
        assert success is True
        assert stats == {'added': 2, 'skipped': 0}
        assert [p.plant_name for p in other.get_all()] == ["B", "A"]
        assert other.get_all()[1].notes == "first"

    def test_merge_skips_existing_ids(self, store):
        plant = store.save({"plantName": "A"})
        data = {"plants": [plant.to_dict(), {"plantName": "New", "dateAdded": "2030-01-01T00:00:00Z"}]}
        success, _, stats = store.import_json(data, mode='merge')
        assert success is True
        assert stats == {'added': 1, 'skipped': 1}
        assert [p.plant_name for p in store.get_all()] == ["New", "A"]

    def test_invalid_format(self, store):
        success, message, stats = store.import_json({"items": []})
        assert success is False
        assert stats == {}

    def test_unknown_mode(self, store):
        success, _, _ = store.import_json({"plants": []}, mode='append')
        assert success is False


# ========================================
# Concurrency
# ========================================

class TestConcurrency:
    """Saves from several threads through one store."""

    def test_concurrent_saves_are_all_kept(self):
        store = PlantRecordStore(MemoryMedium())
        threads_count, saves_each = 8, 20

        def worker(n):
            for i in range(saves_each):
                store.save({"plantName": f"Plant {n}-{i}"})

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(threads_count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        plants = store.reload()
        assert len(plants) == threads_count * saves_each
        assert len({p.id for p in plants}) == threads_count * saves_each

    def test_concurrent_updates_do_not_lose_each_other(self):
        store = PlantRecordStore(MemoryMedium())
        ids = [store.save({"plantName": f"Plant {n}"}).id for n in range(8)]

        def worker(plant_id):
            store.update(plant_id, {"notes": f"note for {plant_id}"})

        threads = [threading.Thread(target=worker, args=(plant_id,)) for plant_id in ids]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for plant in store.reload():
            assert plant.notes == f"note for {plant.id}"
