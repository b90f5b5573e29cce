"""
Tests for the JSON backup service, restore and the backup routes.
"""

import io
import os
import json
import time
import pytest

from cafe_pos.services.backup_service import BackupService, BACKUP_TABLE_NAMES
from cafe_pos.utils.validation import ValidationError


@pytest.mark.integration
class TestBackupService:
    """Backups written to the configured folder."""

    def test_create_backup(self, fresh_app, init_database):
        from cafe_pos.models import BackupHistory

        with fresh_app.app_context():
            history = BackupService(fresh_app).create_backup(tables=['products', 'categories'],
                                                             created_by_name='pytest')

            assert history.status == 'completed'
            assert history.records_count == 6
            assert os.path.exists(history.file_path)
            assert BackupHistory.query.count() == 1

            with open(history.file_path, encoding='utf-8') as f:
                payload = json.load(f)

        assert payload['version'] == '1.0'
        assert set(payload['tables']) == {'products', 'categories'}
        assert payload['metadata']['created_by'] == 'pytest'
        assert {row['name'] for row in payload['tables']['categories']} == {'Coffee', 'Pastry'}

    def test_default_backup_covers_all_tables(self, fresh_app, init_database):
        with fresh_app.app_context():
            history = BackupService(fresh_app).create_backup()
            assert history.tables_included.split(',') == BACKUP_TABLE_NAMES

    def test_unwritable_folder_records_failure(self, fresh_app, init_database, tmp_path):
        blocker = tmp_path / 'not-a-folder'
        blocker.write_text('file in the way')
        fresh_app.config['BACKUP_FOLDER'] = str(blocker)

        with fresh_app.app_context():
            history = BackupService(fresh_app).create_backup(tables=['products'])

        assert history.status == 'failed'
        assert history.error_message

    def test_cleanup_removes_old_files(self, fresh_app, tmp_path):
        folder = tmp_path / 'backups'
        folder.mkdir(exist_ok=True)
        old = folder / 'backup_20200101_000000_000000.json'
        recent = folder / 'backup_20990101_000000_000000.json'
        other = folder / 'notes.json'
        for path in (old, recent, other):
            path.write_text('{}')
        two_months_ago = time.time() - 60 * 24 * 3600
        os.utime(old, (two_months_ago, two_months_ago))
        os.utime(other, (two_months_ago, two_months_ago))

        removed = BackupService(fresh_app).cleanup_old_backups()

        assert removed == 1
        assert not old.exists()
        assert recent.exists()
        assert other.exists()


@pytest.mark.integration
class TestRestore:
    """Backups loaded back into the database."""

    def test_employee_backup_has_no_password_hash(self, fresh_app, init_database):
        with fresh_app.app_context():
            service = BackupService(fresh_app)
            payload = service.load_backup(service.create_backup(tables=['employee_profiles']))

        rows = payload['tables']['employee_profiles']
        assert len(rows) == 4
        assert all('password_hash' not in row for row in rows)
        assert 'username' in rows[0]

    def test_round_trip(self, fresh_app, init_database):
        from cafe_pos.models import db, Supplier, Category

        with fresh_app.app_context():
            service = BackupService(fresh_app)
            payload = service.load_backup(service.create_backup(tables=['suppliers', 'categories']))

            db.session.delete(Supplier.query.filter_by(name='Dairy Fresh').first())
            db.session.add(Supplier(name='Bakery Sur'))
            Category.query.filter_by(name='Coffee').first().name = 'Hot drinks'
            db.session.commit()

            counts = service.restore_backup(payload)

            assert counts == {'categories': 2, 'suppliers': 2}
            assert sorted(s.name for s in Supplier.query.all()) == ['Dairy Fresh', 'Roastery Norte']
            assert sorted(c.name for c in Category.query.all()) == ['Coffee', 'Pastry']
            dairy = Supplier.query.filter_by(name='Dairy Fresh').first()
            assert dairy.contact_person == 'Marta'
            assert dairy.created_at is not None

    def test_restore_only_selected_tables(self, fresh_app, init_database):
        from cafe_pos.models import db, Supplier, Category

        with fresh_app.app_context():
            service = BackupService(fresh_app)
            payload = service.load_backup(service.create_backup(tables=['suppliers', 'categories']))

            db.session.add_all([Supplier(name='Bakery Sur'), Category(name='Tea')])
            db.session.commit()

            assert service.restore_backup(payload, tables=['suppliers']) == {'suppliers': 2}
            assert Supplier.query.count() == 2
            assert Category.query.count() == 3

    def test_employees_keep_their_passwords(self, fresh_app, init_database):
        from cafe_pos.models import db, EmployeeProfile

        with fresh_app.app_context():
            service = BackupService(fresh_app)
            payload = service.load_backup(service.create_backup(tables=['employee_profiles']))

            cashier = EmployeeProfile.query.filter_by(username='cashier').first()
            cashier.full_name = 'Renamed'
            db.session.commit()

            service.restore_backup(payload)

            cashier = EmployeeProfile.query.filter_by(username='cashier').first()
            assert cashier.full_name == 'Carla Cashier'
            assert cashier.check_password('cashier123')
            assert EmployeeProfile.query.count() == 4

    def test_missing_employee_gets_unusable_password(self, fresh_app, init_database):
        from cafe_pos.models import db, EmployeeProfile

        with fresh_app.app_context():
            service = BackupService(fresh_app)
            payload = service.load_backup(service.create_backup(tables=['employee_profiles']))

            db.session.delete(EmployeeProfile.query.filter_by(username='inactive').first())
            db.session.commit()

            service.restore_backup(payload)

            restored = EmployeeProfile.query.filter_by(username='inactive').first()
            assert restored is not None
            assert restored.password_hash
            assert not restored.check_password('inactive123')

    def test_bad_row_rolls_back_everything(self, fresh_app, init_database):
        from cafe_pos.models import Supplier, Expense

        payload = {
            'version': '1.0',
            'tables': {
                'suppliers': [{'id': 1, 'name': 'Only Supplier'}],
                'expenses': [{'id': 1, 'date': 'not-a-date', 'category': 'rent',
                              'description': 'Rent', 'amount': 500}],
            },
        }

        with fresh_app.app_context():
            with pytest.raises(ValidationError):
                BackupService(fresh_app).restore_backup(payload)

            assert sorted(s.name for s in Supplier.query.all()) == ['Dairy Fresh', 'Roastery Norte']
            assert Expense.query.count() == 0

    def test_invalid_format_rejected(self, fresh_app, init_database):
        with fresh_app.app_context():
            with pytest.raises(ValidationError):
                BackupService(fresh_app).restore_backup({'tables': []})
            with pytest.raises(ValidationError):
                BackupService(fresh_app).restore_backup({'version': '1.0', 'tables': {}},
                                                        tables=['error_logs'])


@pytest.mark.integration
class TestBackupRoutes:
    """Backup manager, super admin only."""

    def test_admin_forbidden(self, auth_admin):
        assert auth_admin.get('/backups/').status_code == 403

    def test_list_tables(self, auth_super_admin):
        tables = auth_super_admin.get('/backups/tables').get_json()['tables']
        essential = {t['id']: t['essential'] for t in tables}
        assert essential['orders'] is True
        assert essential['expenses'] is False

    def test_create_and_download(self, auth_super_admin):
        response = auth_super_admin.post('/backups/', json={'tables': ['suppliers']})
        assert response.status_code == 201
        backup = response.get_json()['backup']
        assert backup['tables_included'] == ['suppliers']
        assert backup['records_count'] == 2

        history = auth_super_admin.get('/backups/').get_json()['backups']
        assert history[0]['id'] == backup['id']

        response = auth_super_admin.get(f"/backups/{backup['id']}/download")
        assert response.status_code == 200
        payload = json.loads(response.data)
        assert [row['name'] for row in payload['tables']['suppliers']] == ['Roastery Norte', 'Dairy Fresh']

    def test_unknown_table_rejected(self, auth_super_admin):
        response = auth_super_admin.post('/backups/', json={'tables': ['passwords']})
        assert response.status_code == 400

    def test_download_has_no_password_hash(self, auth_super_admin):
        backup = auth_super_admin.post('/backups/', json={'tables': ['employee_profiles']}).get_json()['backup']

        response = auth_super_admin.get(f"/backups/{backup['id']}/download")
        payload = json.loads(response.data)
        rows = payload['tables']['employee_profiles']
        assert rows
        assert all('password_hash' not in row for row in rows)
        assert b'password_hash' not in response.data

    def test_restore_stored_backup(self, auth_super_admin, fresh_app):
        from cafe_pos.models import db, Supplier

        backup = auth_super_admin.post('/backups/', json={'tables': ['suppliers']}).get_json()['backup']
        with fresh_app.app_context():
            db.session.add(Supplier(name='Bakery Sur'))
            db.session.commit()

        response = auth_super_admin.post(f"/backups/{backup['id']}/restore", json={})
        assert response.status_code == 200
        assert response.get_json()['restored'] == {'suppliers': 2}

        with fresh_app.app_context():
            assert Supplier.query.filter_by(name='Bakery Sur').first() is None

    def test_restore_upload(self, auth_super_admin, fresh_app):
        from cafe_pos.models import Category

        payload = {
            'version': '1.0',
            'timestamp': '2024-03-15T10:00:00',
            'tables': {'categories': [{'id': 7, 'name': 'Tea', 'created_at': '2024-03-01T09:30:00'}]},
        }
        response = auth_super_admin.post(
            '/backups/restore',
            data={'file': (io.BytesIO(json.dumps(payload).encode('utf-8')), 'backup.json')},
            content_type='multipart/form-data'
        )
        assert response.status_code == 200

        with fresh_app.app_context():
            assert [c.name for c in Category.query.all()] == ['Tea']

    def test_upload_not_json(self, auth_super_admin):
        response = auth_super_admin.post(
            '/backups/restore',
            data={'file': (io.BytesIO(b'not json'), 'backup.json')},
            content_type='multipart/form-data'
        )
        assert response.status_code == 400

    def test_admin_cannot_restore(self, auth_admin):
        assert auth_admin.post('/backups/restore').status_code == 403
