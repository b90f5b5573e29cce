"""
Shared pytest fixtures and configuration for all tests.

Provides common fixtures for Flask application testing, database sessions,
authentication, and test data initialization.
"""

import pytest
import sys
import os
from decimal import Decimal

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cafe_pos import create_app
from cafe_pos.models import db


@pytest.fixture(scope='session')
def app_factory():
    """Factory fixture for creating test app instances."""
    def _create_app(config='testing'):
        app = create_app(config)
        app.config['WTF_CSRF_ENABLED'] = False
        app.config['SERVER_NAME'] = 'localhost'
        app.config['TESTING'] = True
        app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite:///:memory:'
        return app
    return _create_app


@pytest.fixture(scope='function')
def fresh_app(app_factory, tmp_path):
    """Create a fresh application for each test with clean database."""
    app = app_factory()
    app.config['BACKUP_FOLDER'] = str(tmp_path / 'backups')

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(fresh_app):
    """Create a test client for each test."""
    return fresh_app.test_client()


@pytest.fixture(scope='function')
def db_session(fresh_app):
    """Provide a database session for testing."""
    with fresh_app.app_context():
        yield db.session
        db.session.rollback()


@pytest.fixture(scope='function')
def init_database(fresh_app):
    """
    Initialize database with test data.

    Creates:
    - Employees (super admin, admin, cashier, inactive)
    - Categories
    - Products with sizes
    - Suppliers
    - A dining table
    - Company settings
    """
    from cafe_pos.models import (
        EmployeeProfile, Category, Product, ProductSize, Supplier,
        DiningTable, CompanySettings
    )

    with fresh_app.app_context():
        owner = EmployeeProfile(
            username='owner',
            email='owner@test.com',
            full_name='Olivia Owner',
            role='super_admin',
            active=True
        )
        owner.set_password('owner1234')

        admin = EmployeeProfile(
            username='admin',
            email='admin@test.com',
            full_name='Admin User',
            role='admin',
            active=True
        )
        admin.set_password('admin123')

        cashier = EmployeeProfile(
            username='cashier',
            email='cashier@test.com',
            full_name='Carla Cashier',
            role='cashier',
            active=True
        )
        cashier.set_password('cashier123')

        inactive = EmployeeProfile(
            username='inactive',
            email='inactive@test.com',
            full_name='Inactive User',
            role='cashier',
            active=False
        )
        inactive.set_password('inactive123')
        db.session.add_all([owner, admin, cashier, inactive])

        coffee = Category(name='Coffee', description='Espresso drinks')
        pastry = Category(name='Pastry', description='Baked every morning')
        db.session.add_all([coffee, pastry])
        db.session.flush()

        latte = Product(name='Latte', category_id=coffee.id,
                        base_price=Decimal('3.00'), available=True)
        espresso = Product(name='Espresso', category_id=coffee.id,
                           base_price=Decimal('1.50'), available=True)
        croissant = Product(name='Croissant', category_id=pastry.id,
                            base_price=Decimal('2.20'), available=True)
        seasonal = Product(name='Pumpkin Spice', category_id=coffee.id,
                           base_price=Decimal('4.00'), available=False)
        db.session.add_all([latte, espresso, croissant, seasonal])
        db.session.flush()

        db.session.add_all([
            ProductSize(product_id=latte.id, size_name='Small', price_modifier=Decimal('0.00')),
            ProductSize(product_id=latte.id, size_name='Large', price_modifier=Decimal('0.80')),
        ])

        db.session.add_all([
            Supplier(name='Roastery Norte', contact_person='Luis', phone='600111222'),
            Supplier(name='Dairy Fresh', contact_person='Marta', phone='600333444'),
        ])

        db.session.add(DiningTable(name='T1', seats=4, status='available'))

        db.session.add(CompanySettings(
            company_name='Café Central',
            address='Calle Mayor 1, Madrid',
            phone='+34 910 000 000',
            tax_id='B12345678'
        ))

        db.session.commit()
        yield

        # Cleanup is handled by fresh_app fixture


def login(client, username, password):
    return client.post('/auth/login', json={'username': username, 'password': password})


@pytest.fixture
def auth_super_admin(client, init_database):
    """Login as the super admin and return authenticated client."""
    login(client, 'owner', 'owner1234')
    return client


@pytest.fixture
def auth_admin(client, init_database):
    """
    Login as admin user and return authenticated client.
    Admin sees every page except backups.
    """
    login(client, 'admin', 'admin123')
    return client


@pytest.fixture
def auth_cashier(client, init_database):
    """
    Login as cashier user and return authenticated client.
    Cashier has access to the floor, POS, orders and the cash register.
    """
    login(client, 'cashier', 'cashier123')
    return client


def logout_client(client):
    """Helper function to logout a client."""
    client.post('/auth/logout')


# Pytest configuration
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests (no database)"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "auth: marks tests as authentication tests"
    )
