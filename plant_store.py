"""
plant_store.py — The user's saved plants, persisted as one JSON document.

The whole collection lives in a single slot of a storage medium (see
database.py) as a JSON array, most recent first. Each mutation reads the
whole document, applies its change and writes the whole document back.

One PlantRecordStore instance serializes all of its operations with a
lock, so mutations issued through it never lose each other's updates.
Two stores (or two processes) on the same medium are NOT coordinated.

Reads are answered from an in-memory copy refreshed after every successful
write. When a write fails the copy is dropped and the next read reloads.

Provides:
- save / get_all / get_by_id / update / delete
- search, mark_watered, mark_fertilized, plants_needing_water
- get_stats
- export_json / import_json
"""

import copy
import json
import secrets
import string
import threading
from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import structlog

from database import PersistenceError, StorageMedium
from models import (
    IMMUTABLE_FIELDS,
    AnalysisResult,
    SavedPlant,
    canonical_key,
    utc_now,
)
from plant_stats import WATERING_INTERVAL, PlantStats, compute_stats, filter_needing_water
from utils.validators import format_instant, parse_instant

logger = structlog.get_logger(__name__)

_ID_ALPHABET = string.digits + string.ascii_lowercase
_ID_SUFFIX_LENGTH = 9
_EDITABLE_INSTANTS = ('lastWatered', 'lastFertilized')


def _plain(value: Any) -> Any:
    """Turn model objects and datetimes into their JSON form."""
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    if isinstance(value, datetime):
        return format_instant(value)
    return value


def _sort_key(plant: SavedPlant):
    # Undated records sort last
    return (plant.date_added is not None, plant.date_added or datetime.min)


class PlantRecordStore:
    """
    Keyed collection of SavedPlant records over one storage medium.

    Args:
        medium: Where the document is kept.
        clock: Returns the current aware UTC datetime (injectable for tests).
        watering_interval: Age after which a plant needs water.
    """

    def __init__(
        self,
        medium: StorageMedium,
        clock: Optional[Callable[[], datetime]] = None,
        watering_interval: timedelta = WATERING_INTERVAL
    ):
        self.medium = medium
        self._clock = clock or utc_now
        self.watering_interval = watering_interval
        self._lock = threading.RLock()
        self._cache: Optional[List[SavedPlant]] = None

    # ========================================
    # Document I/O
    # ========================================

    def _read_document(self) -> List[SavedPlant]:
        """
        Read and decode the whole collection from the medium.

        Raises:
            PersistenceError: medium failure, or a document that is not a
                JSON array.
        """
        raw = self.medium.read()
        if raw is None or not raw.strip():
            return []

        try:
            data = json.loads(raw.decode('utf-8'))
        except (UnicodeDecodeError, ValueError) as e:
            raise PersistenceError(f"Stored plant document is not valid JSON: {e}") from e
        except RecursionError as e:
            raise PersistenceError("Stored plant document is nested too deeply") from e

        if not isinstance(data, list):
            raise PersistenceError(
                f"Stored plant document must be a JSON array, got {type(data).__name__}"
            )

        plants = []
        seen_ids = set()
        for index, entry in enumerate(data):
            if not isinstance(entry, dict):
                logger.warning("stored_entry_skipped", index=index, reason="not an object")
                continue

            plant = SavedPlant.from_dict(entry)
            if not plant.id:
                plant.id = self._new_id(seen_ids)
                logger.warning("stored_entry_missing_id", index=index, assigned_id=plant.id)
            if plant.id in seen_ids:
                logger.warning("stored_entry_duplicate_id", index=index, plant_id=plant.id)
                continue
            if plant.date_added is None:
                plant.date_added = plant.timestamp or self._clock()

            seen_ids.add(plant.id)
            plants.append(plant)
        return plants

    def _write_document(self, plants: List[SavedPlant]) -> None:
        payload = json.dumps(
            [plant.to_dict() for plant in plants],
            ensure_ascii=False
        ).encode('utf-8')
        try:
            self.medium.write(payload)
        except PersistenceError as e:
            self._cache = None
            logger.error("plant_store_write_failed", medium=self.medium.describe(), error=str(e))
            raise
        self._cache = plants

    def _snapshot(self) -> List[SavedPlant]:
        if self._cache is None:
            self._cache = self._read_document()
        return self._cache

    def _new_id(self, taken) -> str:
        """plant_<epoch ms>_<9 base36 chars>, unique within `taken`."""
        while True:
            millis = int(self._clock().timestamp() * 1000)
            suffix = ''.join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_SUFFIX_LENGTH))
            plant_id = f"plant_{millis}_{suffix}"
            if plant_id not in taken:
                return plant_id

    def reload(self) -> List[SavedPlant]:
        """Drop the in-memory copy and read the medium again."""
        with self._lock:
            self._cache = None
            return copy.deepcopy(self._snapshot())

    # ========================================
    # CRUD
    # ========================================

    def save(self, draft: Union[AnalysisResult, Mapping]) -> SavedPlant:
        """
        Add a plant to the top of the journal.

        Args:
            draft: An AnalysisResult, or a mapping of SavedPlant fields
                (camelCase or snake_case). id and dateAdded are ignored and
                assigned here; unknown keys are ignored.

        Returns:
            The created SavedPlant.

        Raises:
            PersistenceError: the document could not be read or written.
        """
        if isinstance(draft, AnalysisResult):
            data = draft.to_dict()
        elif isinstance(draft, Mapping):
            data = {}
            for name, value in draft.items():
                key = canonical_key(name)
                if key is not None and key not in IMMUTABLE_FIELDS:
                    data[key] = _plain(value)
        else:
            raise TypeError(f"Cannot save a {type(draft).__name__}")

        with self._lock:
            plants = self._read_document()
            now = self._clock()
            data['id'] = self._new_id({p.id for p in plants})
            data['dateAdded'] = format_instant(now)
            # A draft without timestamp takes dateAdded (see SavedPlant.from_dict)
            plant = SavedPlant.from_dict(data)

            self._write_document([plant] + plants)
            logger.info("plant_saved", plant_id=plant.id, plant_name=plant.plant_name)
            return copy.deepcopy(plant)

    def get_all(self) -> List[SavedPlant]:
        """
        All saved plants, most recent first. Empty on first use.

        Raises:
            PersistenceError: the stored document cannot be read or decoded.
        """
        with self._lock:
            return copy.deepcopy(self._snapshot())

    def get_by_id(self, plant_id: str) -> Optional[SavedPlant]:
        """The plant with this id, or None."""
        with self._lock:
            for plant in self._snapshot():
                if plant.id == plant_id:
                    return copy.deepcopy(plant)
        return None

    def update(self, plant_id: str, fields: Mapping) -> Optional[SavedPlant]:
        """
        Merge the given fields into a saved plant.

        Fields not named in `fields` keep their values. Passing None for an
        optional field (customName, notes, lastWatered, lastFertilized)
        clears it. id and dateAdded cannot be changed and are ignored.
        Scores are clamped and lists defaulted exactly as on load.

        Returns:
            The updated plant, or None if no plant has this id.

        Raises:
            ValueError: a field name is not a SavedPlant field, or a date
                field holds a value that is not an ISO-8601 instant.
            PersistenceError: the document could not be read or written.
        """
        changes = {}
        for name, value in fields.items():
            key = canonical_key(name)
            if key is None:
                raise ValueError(f"Unknown plant field: {name}")
            if key in IMMUTABLE_FIELDS:
                logger.warning("immutable_field_ignored", plant_id=plant_id, field=key)
                continue
            if key in _EDITABLE_INSTANTS and value is not None and parse_instant(value) is None:
                raise ValueError(f"Unreadable date for {name}: {value!r}")
            changes[key] = _plain(value)

        with self._lock:
            plants = self._read_document()
            for index, plant in enumerate(plants):
                if plant.id == plant_id:
                    break
            else:
                return None

            if not changes:
                self._cache = plants
                return copy.deepcopy(plant)

            merged = plant.to_dict()
            merged.update(changes)
            updated = SavedPlant.from_dict(merged)

            plants = list(plants)
            plants[index] = updated
            self._write_document(plants)
            logger.info("plant_updated", plant_id=plant_id, fields=sorted(changes))
            return copy.deepcopy(updated)

    def delete(self, plant_id: str) -> bool:
        """
        Remove a plant. Deleting an unknown id is a no-op.

        Returns:
            True if a plant was removed, False if it was not there.

        Raises:
            PersistenceError: the document could not be read or written.
        """
        with self._lock:
            plants = self._read_document()
            remaining = [p for p in plants if p.id != plant_id]
            if len(remaining) == len(plants):
                self._cache = plants
                return False

            self._write_document(remaining)
            logger.info("plant_deleted", plant_id=plant_id)
            return True

    # ========================================
    # Journal helpers
    # ========================================

    def search(self, query: str) -> List[SavedPlant]:
        """Case-insensitive match on scientific, common or custom name."""
        plants = self.get_all()
        needle = (query or '').strip().lower()
        if not needle:
            return plants
        return [
            p for p in plants
            if needle in p.plant_name.lower()
            or needle in p.common_name.lower()
            or (p.custom_name and needle in p.custom_name.lower())
        ]

    def mark_watered(self, plant_id: str, when: Optional[datetime] = None) -> Optional[SavedPlant]:
        return self.update(plant_id, {'lastWatered': when or self._clock()})

    def mark_fertilized(self, plant_id: str, when: Optional[datetime] = None) -> Optional[SavedPlant]:
        return self.update(plant_id, {'lastFertilized': when or self._clock()})

    def plants_needing_water(self, now: Optional[datetime] = None) -> List[SavedPlant]:
        return filter_needing_water(self.get_all(), now or self._clock(), self.watering_interval)

    def get_stats(self, now: Optional[datetime] = None) -> PlantStats:
        return compute_stats(self.get_all(), now or self._clock(), self.watering_interval)

    def check_health(self) -> Tuple[bool, str]:
        """
        Check that the medium is reachable and the document decodes.

        Returns:
            Tuple of (is_healthy, message)
        """
        try:
            plants = self.reload()
        except PersistenceError as e:
            return False, f"Storage error: {e}"
        return True, f"Plant store OK ({len(plants)} plants, {self.medium.describe()})"

    # ========================================
    # JSON Export / Import
    # ========================================

    def export_json(self) -> Dict[str, Any]:
        """
        Export the whole journal.

        Returns:
            Dict with 'exportedAt' and 'plants' (list of plant dicts)
        """
        return {
            'exportedAt': format_instant(self._clock()),
            'plants': [plant.to_dict() for plant in self.get_all()],
        }

    def import_json(
        self,
        data: Any,
        mode: str = 'merge'
    ) -> Tuple[bool, str, Dict[str, int]]:
        """
        Import plants from an export document.

        Args:
            data: Dict with a 'plants' list (as produced by export_json)
            mode: 'merge' adds plants whose id is not already present;
                  'replace' swaps the whole journal for the imported plants

        Returns:
            Tuple of (success, message, stats)
            stats contains: added, skipped

        Raises:
            PersistenceError: the document could not be read or written.
        """
        if not isinstance(data, dict) or not isinstance(data.get('plants'), list):
            return False, "Invalid JSON format: missing 'plants' list.", {}
        if mode not in ('merge', 'replace'):
            return False, f"Unknown import mode: {mode}", {}

        stats = {'added': 0, 'skipped': 0}

        with self._lock:
            existing = [] if mode == 'replace' else self._read_document()
            taken = {p.id for p in existing}
            imported = []

            for entry in data['plants']:
                if not isinstance(entry, dict):
                    stats['skipped'] += 1
                    continue
                plant = SavedPlant.from_dict(entry)
                if plant.id in taken:
                    stats['skipped'] += 1
                    continue
                if not plant.id:
                    plant.id = self._new_id(taken)
                if plant.date_added is None:
                    plant.date_added = plant.timestamp or self._clock()
                taken.add(plant.id)
                imported.append(plant)
                stats['added'] += 1

            plants = sorted(existing + imported, key=_sort_key, reverse=True)
            self._write_document(plants)

        logger.info("plants_imported", mode=mode, **stats)
        return True, f"Import complete: {stats['added']} added, {stats['skipped']} skipped.", stats
