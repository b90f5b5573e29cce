"""
Tests for Expense Tracking Routes.

Tests cover:
- Expense CRUD operations
- Amount, category and supplier validation
- Date range and category filters
- CSV export
- Permission checks
"""

import csv
import io
import pytest
from datetime import date, timedelta
from decimal import Decimal


@pytest.fixture
def sample_expenses(fresh_app, init_database):
    """Two expenses this month and one long ago."""
    from cafe_pos.models import db, Expense, Supplier, EmployeeProfile

    with fresh_app.app_context():
        admin = EmployeeProfile.query.filter_by(username='admin').first()
        roastery = Supplier.query.filter_by(name='Roastery Norte').first()
        today = date.today()

        db.session.add_all([
            Expense(date=today, category='supplier', description='Coffee beans',
                    amount=Decimal('1234.50'), supplier_id=roastery.id, employee_id=admin.id),
            Expense(date=today.replace(day=1), category='rent', description='Monthly rent',
                    amount=Decimal('500.00'), employee_id=admin.id),
            Expense(date=today - timedelta(days=400), category='utilities', description='Old bill',
                    amount=Decimal('80.00'), employee_id=admin.id),
        ])
        db.session.commit()
        yield


@pytest.mark.integration
class TestExpensesList:
    """Tests for the expenses list."""

    def test_requires_login(self, client, init_database):
        response = client.get('/expenses/')
        assert response.status_code == 401

    def test_cashier_forbidden(self, auth_cashier):
        response = auth_cashier.get('/expenses/')
        assert response.status_code == 403

    def test_defaults_to_current_month(self, auth_admin, sample_expenses):
        response = auth_admin.get('/expenses/')
        assert response.status_code == 200

        data = response.get_json()
        assert data['start_date'] == date.today().replace(day=1).isoformat()
        assert data['end_date'] == date.today().isoformat()
        assert {e['description'] for e in data['expenses']} == {'Coffee beans', 'Monthly rent'}
        assert data['total'] == 1734.5

    def test_filter_by_category(self, auth_admin, sample_expenses):
        response = auth_admin.get('/expenses/?category=rent')
        data = response.get_json()
        assert [e['description'] for e in data['expenses']] == ['Monthly rent']
        assert data['expenses'][0]['category_label'] == 'Rent'

    def test_invalid_category_rejected(self, auth_admin, sample_expenses):
        response = auth_admin.get('/expenses/?category=travel')
        assert response.status_code == 400

    def test_start_after_end_rejected(self, auth_admin):
        response = auth_admin.get('/expenses/?start_date=2024-02-01&end_date=2024-01-01')
        assert response.status_code == 400


@pytest.mark.integration
class TestAddExpense:
    """Tests for adding expenses."""

    def test_create_expense(self, auth_admin, fresh_app):
        from cafe_pos.models import Expense, Supplier

        with fresh_app.app_context():
            supplier_id = Supplier.query.filter_by(name='Dairy Fresh').first().id

        response = auth_admin.post('/expenses/', json={
            'date': '2024-01-15',
            'category': 'supplier',
            'description': 'Milk delivery',
            'amount': '45,90',
            'supplier_id': supplier_id,
        })
        assert response.status_code == 201
        data = response.get_json()['expense']
        assert data['amount'] == 45.9
        assert data['supplier'] == 'Dairy Fresh'

        with fresh_app.app_context():
            assert Expense.query.count() == 1

    @pytest.mark.parametrize('amount', ['0', '-5', 'abc', ''])
    def test_amount_must_be_positive(self, auth_admin, amount):
        response = auth_admin.post('/expenses/', json={
            'date': '2024-01-15', 'category': 'other', 'description': 'Napkins', 'amount': amount,
        })
        assert response.status_code == 400
        assert response.get_json()['success'] is False

    def test_description_required(self, auth_admin):
        response = auth_admin.post('/expenses/', json={
            'date': '2024-01-15', 'category': 'other', 'description': '  ', 'amount': '5',
        })
        assert response.status_code == 400

    def test_unknown_supplier_rejected(self, auth_admin):
        response = auth_admin.post('/expenses/', json={
            'date': '2024-01-15', 'category': 'supplier', 'description': 'Beans',
            'amount': '5', 'supplier_id': 9999,
        })
        assert response.status_code == 400

    def test_bad_date_rejected(self, auth_admin):
        response = auth_admin.post('/expenses/', json={
            'date': '15/01/2024', 'category': 'other', 'description': 'Napkins', 'amount': '5',
        })
        assert response.status_code == 400


@pytest.mark.integration
class TestEditExpense:

    def test_update_amount(self, auth_admin, sample_expenses, fresh_app):
        from cafe_pos.models import Expense

        with fresh_app.app_context():
            expense_id = Expense.query.filter_by(description='Monthly rent').first().id

        response = auth_admin.put(f'/expenses/{expense_id}', json={'amount': '550'})
        assert response.status_code == 200
        assert response.get_json()['expense']['amount'] == 550.0
        assert response.get_json()['expense']['description'] == 'Monthly rent'

    def test_delete(self, auth_admin, sample_expenses, fresh_app):
        from cafe_pos.models import Expense

        with fresh_app.app_context():
            expense_id = Expense.query.filter_by(description='Old bill').first().id

        response = auth_admin.delete(f'/expenses/{expense_id}')
        assert response.status_code == 200

        with fresh_app.app_context():
            assert Expense.query.filter_by(description='Old bill').first() is None

    def test_missing_expense(self, auth_admin):
        response = auth_admin.delete('/expenses/9999')
        assert response.status_code == 404


@pytest.mark.integration
class TestExportExpenses:
    """CSV export of the filtered expenses."""

    def test_export_csv(self, auth_admin, sample_expenses):
        start = date.today().replace(day=1).isoformat()
        end = date.today().isoformat()
        response = auth_admin.get(f'/expenses/export?start_date={start}&end_date={end}')

        assert response.status_code == 200
        assert response.mimetype == 'text/csv'
        assert f'expenses_{start}_{end}.csv' in response.headers['Content-Disposition']

        rows = list(csv.reader(io.StringIO(response.data.decode('utf-8-sig'))))
        assert rows[0] == ['Date', 'Category', 'Description', 'Amount']
        body = {row[2]: row for row in rows[1:]}
        assert body['Coffee beans'][1] == 'Roastery Norte'
        assert body['Coffee beans'][3] == '1.234,50 €'
        assert body['Monthly rent'] == [start, 'Rent', 'Monthly rent', '500,00 €']
        assert 'Old bill' not in body
