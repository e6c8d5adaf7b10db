"""
routes/statistics.py — Journal statistics.

Provides:
- GET /statistics/        — Totals, health counts, watering, average score
- GET /statistics/excel   — Excel export of the journal and its statistics

Figures are recomputed from the store on every request.
"""

from flask import Blueprint, current_app, jsonify, send_file

from routes.main import get_store
from utils.backup import backup_store
from utils.export import generate_journal_excel

statistics_bp = Blueprint('statistics', __name__, url_prefix='/statistics')


@statistics_bp.route('/')
def index():
    """Journal statistics (JSON API)."""
    stats = get_store().get_stats()
    return jsonify({'success': True, 'stats': stats.to_dict()})


@statistics_bp.route('/excel')
def export_excel():
    """Export the journal and its statistics as an Excel file."""
    store = get_store()

    # Auto-backup before export
    backup_store(store, 'excel_export', current_app.config['BACKUP_DIR'])

    plants = store.get_all()
    stats = store.get_stats()
    buffer, filename = generate_journal_excel(plants, stats)

    return send_file(
        buffer,
        as_attachment=True,
        download_name=filename,
        mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    )
