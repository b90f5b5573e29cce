"""
Backup Service
JSON backups of the business tables, backup history and scheduled automatic backups
"""

import os
import json
import logging
from datetime import datetime, date, timedelta
from decimal import Decimal
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import select, text, Date, DateTime, Numeric
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import generate_password_hash

from cafe_pos.models import db, BackupHistory
from cafe_pos.utils.cache import clear_all_cache
from cafe_pos.utils.validation import ValidationError

logger = logging.getLogger(__name__)

BACKUP_VERSION = '1.0'

# Tables offered in the backup manager; essential ones are preselected
BACKUP_TABLES = [
    ('products', True),
    ('categories', True),
    ('product_sizes', True),
    ('orders', True),
    ('order_items', True),
    ('employee_profiles', True),
    ('customers', False),
    ('suppliers', False),
    ('expenses', False),
    ('cash_register_sessions', True),
    ('deleted_orders', False),
    ('role_permissions', True),
    ('company_settings', True),
    ('tables', True),
]

BACKUP_TABLE_NAMES = [name for name, _ in BACKUP_TABLES]

# Credentials never leave the database
EXCLUDED_COLUMNS = {
    'employee_profiles': {'password_hash'},
}

# Parents before children
RESTORE_ORDER = [
    'company_settings',
    'categories',
    'products',
    'product_sizes',
    'employee_profiles',
    'customers',
    'tables',
    'suppliers',
    'role_permissions',
    'cash_register_sessions',
    'orders',
    'order_items',
    'expenses',
    'deleted_orders',
]


def _json_default(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return str(value)


def dump_tables(tables):
    """Rows of each table as plain dicts"""
    data = {}
    for name in tables:
        table = db.metadata.tables.get(name)
        if table is None:
            logger.warning(f"Skipping unknown table in backup: {name}")
            continue
        excluded = EXCLUDED_COLUMNS.get(name, set())
        columns = [column for column in table.columns if column.name not in excluded]
        rows = db.session.execute(select(*columns)).mappings().all()
        data[name] = [dict(row) for row in rows]
    return data


def _coerce(column, value):
    """JSON value back to the column's Python type"""
    if value is None:
        return None
    if isinstance(column.type, DateTime):
        return datetime.fromisoformat(value)
    if isinstance(column.type, Date):
        return date.fromisoformat(value)
    if isinstance(column.type, Numeric):
        return Decimal(str(value))
    return value


def restore_rows(table, rows):
    """Convert backup rows of a table to insertable dicts"""
    excluded = EXCLUDED_COLUMNS.get(table.name, set())
    restored = []
    for row in rows:
        if not isinstance(row, dict):
            raise ValidationError(f'Invalid row in {table.name}')
        try:
            restored.append({
                column.name: _coerce(column, row[column.name])
                for column in table.columns
                if column.name in row and column.name not in excluded
            })
        except (TypeError, ValueError, ArithmeticError) as e:
            raise ValidationError(f'Invalid value in {table.name}: {e}')
    return restored


def _merge_employees(table, rows):
    """
    Update employees in place and insert missing ones.

    Backups carry no password hashes, so existing accounts keep their password
    and new ones get a random password an admin has to reset.
    """
    existing = set(db.session.execute(select(table.c.id)).scalars())
    for row in rows:
        if row.get('id') in existing:
            values = {key: value for key, value in row.items() if key != 'id'}
            if values:
                db.session.execute(table.update().where(table.c.id == row['id']).values(**values))
        else:
            row['password_hash'] = generate_password_hash(os.urandom(24).hex())
            db.session.execute(table.insert().values(**row))


def _reset_sequences(table_names):
    if db.engine.dialect.name != 'postgresql':
        return
    for name in table_names:
        db.session.execute(text(
            f"SELECT setval(pg_get_serial_sequence('{name}', 'id'), "
            f"COALESCE((SELECT MAX(id) FROM {name}), 0) + 1, false)"
        ))


class BackupService:
    """Service for JSON backups"""

    def __init__(self, app):
        self.app = app
        self.scheduler = None

    @property
    def backup_folder(self):
        return self.app.config.get('BACKUP_FOLDER')

    def create_backup(self, tables=None, created_by=None, created_by_name=None, backup_type='manual'):
        """
        Write a JSON backup of the selected tables and record it in backup_history

        Args:
            tables: Table names (defaults to every backup table)
            created_by: Employee id requesting the backup
            created_by_name: Name stored in the backup metadata
            backup_type: 'manual' or 'automatic'

        Returns:
            BackupHistory row (status 'failed' when the backup could not be written)
        """
        tables = list(tables or BACKUP_TABLE_NAMES)
        history = BackupHistory(
            created_by=created_by,
            backup_type=backup_type,
            tables_included=','.join(tables),
        )

        try:
            now = datetime.now()
            table_data = dump_tables(tables)
            payload = {
                'timestamp': now.isoformat(),
                'version': BACKUP_VERSION,
                'tables': table_data,
                'metadata': {
                    'created_by': created_by_name,
                    'created_at': now.isoformat(),
                    'tables_count': len(table_data),
                },
            }
            content = json.dumps(payload, indent=2, default=_json_default, ensure_ascii=False)

            os.makedirs(self.backup_folder, exist_ok=True)
            filename = f"backup_{now.strftime('%Y%m%d_%H%M%S_%f')}.json"
            file_path = os.path.join(self.backup_folder, filename)
            with open(file_path, 'w', encoding='utf-8') as f:
                f.write(content)

            history.records_count = sum(len(rows) for rows in table_data.values())
            history.size_bytes = len(content.encode('utf-8'))
            history.file_path = file_path
            history.status = 'completed'
            logger.info(f"{backup_type.title()} backup created: {filename} "
                        f"({history.records_count} records)")

        except (SQLAlchemyError, OSError) as e:
            db.session.rollback()
            history.status = 'failed'
            history.error_message = str(e)[:2000]
            logger.error(f"Error creating backup: {e}")

        db.session.add(history)
        db.session.commit()

        if history.status == 'completed':
            self.cleanup_old_backups()
        return history

    def load_backup(self, history):
        """Payload of a stored backup"""
        path = self.get_backup_path(history)
        if path is None:
            return None
        with open(path, encoding='utf-8') as f:
            return json.load(f)

    def restore_backup(self, payload, tables=None):
        """
        Load a backup payload back into the database in one transaction

        Every selected table is emptied and refilled from the backup, except
        employee_profiles which is merged row by row. Any error rolls the
        whole restore back.

        Args:
            payload: Parsed backup JSON
            tables: Table names to restore (defaults to every table in the backup)

        Returns:
            Dict of table name to restored row count
        """
        if not isinstance(payload, dict) or not isinstance(payload.get('tables'), dict) \
                or not payload.get('version'):
            raise ValidationError('Invalid backup format')

        backup_tables = payload['tables']
        selected = list(tables or backup_tables)
        unknown = [name for name in selected if name not in RESTORE_ORDER]
        if unknown:
            raise ValidationError(f"Unknown tables: {', '.join(unknown)}")

        order = [name for name in RESTORE_ORDER
                 if name in selected and isinstance(backup_tables.get(name), list)]
        counts = {}

        try:
            for name in reversed(order):
                if name != 'employee_profiles':
                    db.session.execute(db.metadata.tables[name].delete())

            for name in order:
                table = db.metadata.tables[name]
                rows = restore_rows(table, backup_tables[name])
                if name == 'employee_profiles':
                    _merge_employees(table, rows)
                elif rows:
                    db.session.execute(table.insert(), rows)
                counts[name] = len(rows)

            _reset_sequences(order)
            db.session.commit()

        except (SQLAlchemyError, ValidationError) as e:
            db.session.rollback()
            logger.error(f"Restore failed, nothing was changed: {e}")
            raise

        # Bulk statements bypass the change feed
        clear_all_cache()
        logger.info(f"Backup from {payload.get('timestamp')} restored: {counts}")
        return counts

    def run_automatic_backup(self):
        """Scheduled job entry point"""
        with self.app.app_context():
            try:
                return self.create_backup(backup_type='automatic')
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.error(f"Automatic backup failed: {e}")
                return None

    def cleanup_old_backups(self):
        """Remove backup files older than the retention period"""
        backup_folder = self.backup_folder
        retention_days = self.app.config.get('BACKUP_RETENTION_DAYS', 30)
        cutoff_date = datetime.now() - timedelta(days=retention_days)

        removed = 0
        try:
            for filename in os.listdir(backup_folder):
                if filename.startswith('backup_') and filename.endswith('.json'):
                    filepath = os.path.join(backup_folder, filename)
                    file_time = datetime.fromtimestamp(os.path.getmtime(filepath))
                    if file_time < cutoff_date:
                        os.remove(filepath)
                        removed += 1
                        logger.info(f"Deleted old backup: {filename}")
        except OSError as e:
            logger.error(f"Error cleaning up old backups: {e}")
        return removed

    def get_backup_path(self, history):
        """Path of a completed backup file, or None when it no longer exists"""
        if history.status != 'completed' or not history.file_path:
            return None
        path = os.path.abspath(history.file_path)
        if not path.startswith(os.path.abspath(self.backup_folder)) or not os.path.exists(path):
            return None
        return path

    def start_scheduler(self):
        """Start background scheduler for automatic backups"""
        if self.scheduler:
            logger.warning("Backup scheduler already running")
            return

        if not self.app.config.get('BACKUP_ENABLED'):
            logger.info("Automatic backups are disabled")
            return

        self.scheduler = BackgroundScheduler()

        backup_time = self.app.config.get('BACKUP_TIME', '23:00')
        hour, minute = map(int, backup_time.split(':'))

        self.scheduler.add_job(
            func=self.run_automatic_backup,
            trigger='cron',
            hour=hour,
            minute=minute,
            id='daily_backup'
        )

        self.scheduler.start()
        logger.info(f"Backup scheduler started. Daily backups at {backup_time}")

    def stop_scheduler(self):
        """Stop the scheduler"""
        if self.scheduler:
            self.scheduler.shutdown()
            self.scheduler = None
            logger.info("Backup scheduler stopped")
