"""
Backup Routes
Manual JSON backups, backup history and restore (super admin only)
"""

import json
from flask import Blueprint, request, jsonify, send_file, current_app
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError
from cafe_pos.models import BackupHistory
from cafe_pos.services.backup_service import BackupService, BACKUP_TABLES, BACKUP_TABLE_NAMES
from cafe_pos.utils.permissions import role_required
from cafe_pos.utils.validation import ValidationError

bp = Blueprint('backups', __name__)


def history_json(history):
    return {
        'id': history.id,
        'created_by': history.created_by,
        'backup_type': history.backup_type,
        'tables_included': history.tables_included.split(',') if history.tables_included else [],
        'records_count': history.records_count,
        'size_bytes': history.size_bytes,
        'status': history.status,
        'error_message': history.error_message,
        'created_at': history.created_at.isoformat(),
    }


@bp.route('/tables')
@login_required
@role_required('super_admin')
def backup_tables():
    return jsonify({'tables': [{'id': name, 'essential': essential} for name, essential in BACKUP_TABLES]})


@bp.route('/')
@login_required
@role_required('super_admin')
def list_history():
    """Last backups, newest first"""
    history = BackupHistory.query.order_by(BackupHistory.created_at.desc()).limit(10).all()
    return jsonify({'backups': [history_json(h) for h in history]})


@bp.route('/', methods=['POST'])
@login_required
@role_required('super_admin')
def create_backup():
    """Back up the selected tables to a JSON file"""
    data = request.get_json(silent=True) or {}
    tables = data.get('tables') or BACKUP_TABLE_NAMES
    unknown = [name for name in tables if name not in BACKUP_TABLE_NAMES]
    if unknown:
        raise ValidationError(f"Unknown tables: {', '.join(unknown)}")

    history = BackupService(current_app._get_current_object()).create_backup(
        tables=tables,
        created_by=current_user.id,
        created_by_name=current_user.full_name
    )

    if history.status != 'completed':
        return jsonify({'success': False, 'error': 'Backup failed', 'backup': history_json(history)}), 500
    return jsonify({'success': True, 'backup': history_json(history)}), 201


@bp.route('/<int:backup_id>/download')
@login_required
@role_required('super_admin')
def download_backup(backup_id):
    history = BackupHistory.query.get_or_404(backup_id)
    path = BackupService(current_app._get_current_object()).get_backup_path(history)
    if path is None:
        return jsonify({'success': False, 'error': 'Backup file not available'}), 404

    return send_file(
        path,
        mimetype='application/json',
        as_attachment=True,
        download_name=f"backup-{history.created_at.strftime('%Y-%m-%d')}-{history.id}.json"
    )


def _restore(payload, tables):
    try:
        counts = BackupService(current_app._get_current_object()).restore_backup(payload, tables=tables)
    except SQLAlchemyError:
        return jsonify({'success': False, 'error': 'Restore failed, no data was changed'}), 500

    current_app.logger.warning(f"Backup restored by {current_user.username}: {', '.join(counts)}")
    return jsonify({'success': True, 'restored': counts})


@bp.route('/<int:backup_id>/restore', methods=['POST'])
@login_required
@role_required('super_admin')
def restore_backup(backup_id):
    """Overwrite the selected tables with a stored backup"""
    history = BackupHistory.query.get_or_404(backup_id)
    payload = BackupService(current_app._get_current_object()).load_backup(history)
    if payload is None:
        return jsonify({'success': False, 'error': 'Backup file not available'}), 404

    data = request.get_json(silent=True) or {}
    return _restore(payload, data.get('tables'))


@bp.route('/restore', methods=['POST'])
@login_required
@role_required('super_admin')
def restore_upload():
    """Overwrite the database with an uploaded backup file"""
    upload = request.files.get('file')
    if upload is None or not upload.filename:
        raise ValidationError('Backup file is required')

    try:
        payload = json.load(upload.stream)
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise ValidationError('Backup file is not valid JSON')

    tables = request.form.getlist('tables') or None
    return _restore(payload, tables)
