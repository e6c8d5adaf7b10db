"""
routes/plants.py — Plant journal API routes.

Provides:
- GET    /plants/                  — List all plants (optional ?q= search)
- POST   /plants/                  — Save a plant (analysis fields + imageUri)
- GET    /plants/<id>              — Get one plant
- PATCH  /plants/<id>              — Edit some fields of a plant
- DELETE /plants/<id>              — Remove a plant (idempotent)
- POST   /plants/<id>/water        — Record a watering (now, or body 'when')
- POST   /plants/<id>/fertilize    — Record a fertilizing (now, or body 'when')
- GET    /plants/needs-water       — Plants due for watering
- GET    /plants/export            — Export the journal as JSON
- POST   /plants/import            — Import a journal export (?mode=merge|replace)
- GET    /plants/backups           — List journal snapshots, newest first
- POST   /plants/backups           — Create a manual snapshot
- POST   /plants/backups/restore   — Restore a snapshot (body 'filename')

Storage failures are turned into 500 responses by the handler in app.py.
"""

import json

from flask import Blueprint, Response, current_app, jsonify, request

from routes.main import get_store
from utils.backup import backup_store, list_backups, restore_backup
from utils.validators import parse_instant

plants_bp = Blueprint('plants', __name__, url_prefix='/plants')


def _not_found():
    return jsonify({'success': False, 'error': 'NOT_FOUND', 'message': 'Plant not found'}), 404


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


# ========================================
# Plant List and Details
# ========================================

@plants_bp.route('/')
def list_plants():
    """Get all plants, most recent first (JSON API)."""
    query = request.args.get('q', '')
    plants = get_store().search(query)
    return jsonify({'success': True, 'plants': [p.to_dict() for p in plants]})


@plants_bp.route('/<plant_id>')
def get_plant_detail(plant_id):
    """Get a single plant (JSON API)."""
    plant = get_store().get_by_id(plant_id)
    if plant is None:
        return _not_found()
    return jsonify({'success': True, 'plant': plant.to_dict()})


@plants_bp.route('/needs-water')
def needs_water():
    """Plants that were never watered or not in the last interval (JSON API)."""
    plants = get_store().plants_needing_water()
    return jsonify({'success': True, 'plants': [p.to_dict() for p in plants]})


# ========================================
# Plant CRUD
# ========================================

@plants_bp.route('/', methods=['POST'])
def save_plant():
    """Save an analysed plant to the journal."""
    data = _json_body()
    if data is None:
        return jsonify({'success': False, 'error': 'INVALID_REQUEST', 'message': 'JSON object expected'}), 400

    plant = get_store().save(data)
    return jsonify({'success': True, 'plant': plant.to_dict()}), 201


@plants_bp.route('/<plant_id>', methods=['PATCH'])
def edit_plant(plant_id):
    """Merge the posted fields into a plant."""
    data = _json_body()
    if data is None:
        return jsonify({'success': False, 'error': 'INVALID_REQUEST', 'message': 'JSON object expected'}), 400

    try:
        plant = get_store().update(plant_id, data)
    except ValueError as e:
        return jsonify({'success': False, 'error': 'INVALID_FIELD', 'message': str(e)}), 400

    if plant is None:
        return _not_found()
    return jsonify({'success': True, 'plant': plant.to_dict()})


@plants_bp.route('/<plant_id>', methods=['DELETE'])
def remove_plant(plant_id):
    """Delete a plant. Succeeds whether or not it existed."""
    deleted = get_store().delete(plant_id)
    return jsonify({'success': True, 'deleted': deleted})


def _care_event(plant_id, action):
    data = _json_body() or {}
    when = None
    if data.get('when') is not None:
        when = parse_instant(data['when'])
        if when is None:
            return jsonify({'success': False, 'error': 'INVALID_DATE', 'message': 'Unreadable date'}), 400

    plant = action(plant_id, when)
    if plant is None:
        return _not_found()
    return jsonify({'success': True, 'plant': plant.to_dict()})


@plants_bp.route('/<plant_id>/water', methods=['POST'])
def water_plant(plant_id):
    """Record a watering."""
    return _care_event(plant_id, get_store().mark_watered)


@plants_bp.route('/<plant_id>/fertilize', methods=['POST'])
def fertilize_plant(plant_id):
    """Record a fertilizing."""
    return _care_event(plant_id, get_store().mark_fertilized)


# ========================================
# Import / Export
# ========================================

@plants_bp.route('/export')
def export_json():
    """Export the journal as a downloadable JSON file."""
    data = get_store().export_json()
    return Response(
        json.dumps(data, ensure_ascii=False, indent=2),
        mimetype='application/json',
        headers={'Content-Disposition': 'attachment; filename=plant_journal.json'}
    )


@plants_bp.route('/import', methods=['POST'])
def import_json():
    """Import plants from a journal export."""
    mode = request.args.get('mode', 'merge')
    data = request.get_json(silent=True)

    store = get_store()
    if mode == 'replace':
        # Keep a copy of what is about to be replaced
        backup_store(store, 'pre_import', current_app.config['BACKUP_DIR'])

    success, message, stats = store.import_json(data, mode=mode)
    status = 200 if success else 400
    return jsonify({'success': success, 'message': message, 'stats': stats}), status


# ========================================
# Backups
# ========================================

@plants_bp.route('/backups')
def backups():
    """List journal snapshots (JSON API)."""
    return jsonify({'success': True, 'backups': list_backups(current_app.config['BACKUP_DIR'])})


@plants_bp.route('/backups', methods=['POST'])
def backup_create():
    """Create a manual snapshot."""
    filename = backup_store(get_store(), 'manual', current_app.config['BACKUP_DIR'])
    if filename is None:
        return jsonify({'success': False, 'error': 'BACKUP_FAILED', 'message': 'Backup could not be written'}), 500
    return jsonify({'success': True, 'filename': filename}), 201


@plants_bp.route('/backups/restore', methods=['POST'])
def backup_restore():
    """Replace the journal with a snapshot."""
    data = _json_body() or {}
    filename = data.get('filename')
    if not isinstance(filename, str) or not filename.strip():
        return jsonify({'success': False, 'error': 'INVALID_REQUEST', 'message': 'Backup filename not specified'}), 400

    store = get_store()
    backup_dir = current_app.config['BACKUP_DIR']

    # Create a safety backup before restoring
    backup_store(store, 'pre_restore', backup_dir)

    if not restore_backup(store, filename.strip(), backup_dir):
        return jsonify({'success': False, 'error': 'RESTORE_FAILED', 'message': f'Could not restore {filename}'}), 400
    return jsonify({'success': True, 'plants': len(store.get_all())})
