"""
utils/backup.py — Journal snapshot backup and restore.

Writes the store's JSON export to the backup directory with a timestamped
filename. Backup triggers: before an import in replace mode, before an
Excel export, manual.
Format: plants_YYYYMMDD_HHMMSS_{reason}.json
"""

import json
import os
from datetime import datetime

import structlog

from database import PersistenceError

logger = structlog.get_logger(__name__)

PREFIX = 'plants_'
SUFFIX = '.json'


def backup_store(store, reason='manual', backup_dir='backups'):
    """
    Save a snapshot of the journal to backup_dir.

    Args:
        store: PlantRecordStore to snapshot.
        reason: Short tag for the backup trigger (e.g., 'manual', 'pre_import').
        backup_dir: Target directory (created if needed).

    Returns:
        The filename of the created backup, or None on failure.
    """
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    # Sanitize reason string
    safe_reason = reason.replace(' ', '_').replace('/', '_')[:30]
    filename = f'{PREFIX}{timestamp}_{safe_reason}{SUFFIX}'
    dest = os.path.join(backup_dir, filename)

    try:
        snapshot = store.export_json()
        os.makedirs(backup_dir, exist_ok=True)
        with open(dest, 'w', encoding='utf-8') as f:
            json.dump(snapshot, f, ensure_ascii=False, indent=2)
    except (OSError, PersistenceError) as e:
        logger.error("backup_failed", reason=reason, error=str(e))
        return None

    logger.info("backup_created", filename=filename, plants=len(snapshot['plants']))
    return filename


def list_backups(backup_dir='backups'):
    """
    List all snapshot files in backup_dir.

    Returns:
        List of dicts with keys: filename, timestamp, size_bytes, reason.
        Sorted by timestamp descending (newest first).
    """
    if not os.path.isdir(backup_dir):
        return []

    backups = []
    for f in os.listdir(backup_dir):
        if not (f.startswith(PREFIX) and f.endswith(SUFFIX)):
            continue
        size_bytes = os.stat(os.path.join(backup_dir, f)).st_size

        # Format: plants_YYYYMMDD_HHMMSS_reason.json
        parts = f[len(PREFIX):-len(SUFFIX)].split('_')
        timestamp_str = ''
        reason = ''
        if len(parts) >= 2 and len(parts[0]) == 8 and len(parts[1]) == 6:
            date_part, time_part = parts[0], parts[1]
            timestamp_str = f'{date_part[:4]}-{date_part[4:6]}-{date_part[6:8]} {time_part[:2]}:{time_part[2:4]}:{time_part[4:6]}'
            reason = '_'.join(parts[2:])

        backups.append({
            'filename': f,
            'timestamp': timestamp_str,
            'size_bytes': size_bytes,
            'reason': reason,
        })

    # Sort newest first
    backups.sort(key=lambda b: b['filename'], reverse=True)
    return backups


def restore_backup(store, filename, backup_dir='backups'):
    """
    Replace the journal with the content of a snapshot.

    DANGEROUS: This overwrites the current journal entirely.

    Returns:
        True on success, False on failure.
    """
    # Only plain snapshot names from backup_dir
    if os.path.basename(filename) != filename or not (filename.startswith(PREFIX) and filename.endswith(SUFFIX)):
        return False

    path = os.path.join(backup_dir, filename)
    if not os.path.exists(path):
        return False

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.error("backup_unreadable", filename=filename, error=str(e))
        return False

    success, message, _ = store.import_json(data, mode='replace')
    if not success:
        logger.error("backup_restore_failed", filename=filename, message=message)
    return success
