"""
routes/main.py — Service index and health routes.

Provides:
- GET /        — Service description and endpoint list
- GET /health  — Plant store health and last backup
"""

from flask import Blueprint, current_app, jsonify

from plant_store import PlantRecordStore
from utils.backup import list_backups

main_bp = Blueprint('main', __name__)


def get_store() -> PlantRecordStore:
    """The PlantRecordStore built by create_app()."""
    return current_app.extensions['plant_store']


@main_bp.route('/')
def index():
    """Service description (JSON API)."""
    return jsonify({
        'message': 'Plant care journal API',
        'status': 'Active',
        'endpoints': {
            'analyze': 'POST /analyze - Normalize a plant analysis from the model reply',
            'plants': 'GET|POST /plants/ - List or save journal plants',
            'plant': 'GET|PATCH|DELETE /plants/<id> - Read, edit or remove a plant',
            'statistics': 'GET /statistics/ - Journal statistics',
        }
    })


@main_bp.route('/health')
def health():
    """Check plant store health (JSON API)."""
    healthy, message = get_store().check_health()
    backups = list_backups(current_app.config['BACKUP_DIR'])
    return jsonify({
        'success': healthy,
        'message': message,
        'last_backup': backups[0]['timestamp'] if backups else None,
    }), 200 if healthy else 503
