"""
Database Models
SQLAlchemy ORM models for the café POS back-office
"""

from datetime import datetime
from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()


# Navigation pages per section, in display order
SECTIONS = {
    'sales': ['floor', 'pos', 'orders'],
    'inventory': ['products', 'categories', 'users'],
    'finance': ['cash', 'time-tracking', 'suppliers', 'expenses', 'analytics'],
    'system': ['role-management', 'settings', 'backups'],
}

PAGE_LABELS = {
    'floor': 'Floor',
    'pos': 'Point of Sale',
    'orders': 'Orders',
    'products': 'Products',
    'categories': 'Categories',
    'users': 'Users',
    'cash': 'Cash Register',
    'time-tracking': 'Employee Time',
    'suppliers': 'Suppliers',
    'expenses': 'Expenses',
    'analytics': 'Analytics',
    'role-management': 'Role Management',
    'settings': 'Company Settings',
    'backups': 'Backups',
}

# Pages visible to each role until a role_permissions row says otherwise
DEFAULT_ROLE_PAGES = {
    'admin': [page for pages in SECTIONS.values() for page in pages if page != 'backups'],
    'cashier': ['floor', 'pos', 'orders', 'cash'],
    'barista': ['pos', 'orders'],
    'waiter': ['floor', 'orders'],
}

ROLES = ['super_admin', 'admin', 'cashier', 'barista', 'waiter']


class EmployeeProfile(UserMixin, db.Model):
    """Employee account used for authentication and role-based access"""
    __tablename__ = 'employee_profiles'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(128), nullable=False)
    role = db.Column(db.String(32), nullable=False, default='cashier')
    # Roles: super_admin, admin, cashier, barista, waiter
    phone = db.Column(db.String(32))
    active = db.Column(db.Boolean, default=True)
    deleted_at = db.Column(db.DateTime)
    last_login = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    orders = db.relationship('Order', backref='employee', lazy='dynamic',
                             foreign_keys='Order.employee_id')
    cash_sessions = db.relationship('CashRegisterSession', backref='employee', lazy='dynamic')

    @property
    def is_active(self):
        """Soft-deleted or deactivated employees cannot log in"""
        return bool(self.active) and self.deleted_at is None

    @property
    def is_super_admin(self):
        return self.role == 'super_admin'

    def set_password(self, password):
        """Hash and set password"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Verify password"""
        return check_password_hash(self.password_hash, password)

    def can_access(self, page_id):
        """Check if the employee's role can open a navigation page"""
        if self.is_super_admin:
            return True
        return page_id in RolePermission.pages_for_role(self.role)

    def __repr__(self):
        return f'<EmployeeProfile {self.username}>'


class RolePermission(db.Model):
    """Per-role page access matrix"""
    __tablename__ = 'role_permissions'
    __table_args__ = (db.UniqueConstraint('role', 'page_id', name='uq_role_page'),)

    id = db.Column(db.Integer, primary_key=True)
    role = db.Column(db.String(32), nullable=False, index=True)
    section = db.Column(db.String(32), nullable=False)
    page_id = db.Column(db.String(64), nullable=False)
    can_access = db.Column(db.Boolean, default=False)
    can_confirm_order = db.Column(db.Boolean, default=True)
    can_validate_order = db.Column(db.Boolean, default=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @staticmethod
    def pages_for_role(role):
        """
        Pages a role may open, in navigation order

        Stored rows override the built-in defaults page by page.
        """
        stored = {perm.page_id: perm.can_access
                  for perm in RolePermission.query.filter_by(role=role).all()}
        defaults = set(DEFAULT_ROLE_PAGES.get(role, []))

        pages = []
        for section_pages in SECTIONS.values():
            for page_id in section_pages:
                if stored.get(page_id, page_id in defaults):
                    pages.append(page_id)
        return pages

    @staticmethod
    def order_actions(role):
        """Whether a role may confirm (send to preparation) and validate (complete) orders"""
        if role == 'super_admin':
            return {'can_confirm_order': True, 'can_validate_order': True}
        perm = RolePermission.query.filter_by(role=role, page_id='orders').first()
        if perm is None:
            return {'can_confirm_order': True, 'can_validate_order': True}
        return {'can_confirm_order': bool(perm.can_confirm_order),
                'can_validate_order': bool(perm.can_validate_order)}

    def __repr__(self):
        return f'<RolePermission {self.role}:{self.page_id}={self.can_access}>'


class Category(db.Model):
    """Product categories"""
    __tablename__ = 'categories'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    products = db.relationship('Product', backref='category', lazy='dynamic')

    def __repr__(self):
        return f'<Category {self.name}>'


class Product(db.Model):
    """Menu item"""
    __tablename__ = 'products'

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey('categories.id'))
    name = db.Column(db.String(256), nullable=False, index=True)
    description = db.Column(db.Text)
    base_price = db.Column(db.Numeric(10, 2), nullable=False, default=0.00)
    available = db.Column(db.Boolean, default=True)
    image_url = db.Column(db.String(512))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    sizes = db.relationship('ProductSize', backref='product', lazy='dynamic',
                            cascade='all, delete-orphan')
    order_items = db.relationship('OrderItem', backref='product', lazy='dynamic')

    def __repr__(self):
        return f'<Product {self.name}>'


class ProductSize(db.Model):
    """Size variant of a product with a price modifier"""
    __tablename__ = 'product_sizes'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)
    size_name = db.Column(db.String(64), nullable=False)
    price_modifier = db.Column(db.Numeric(10, 2), default=0.00)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    order_items = db.relationship('OrderItem', backref='size', lazy='dynamic')

    def __repr__(self):
        return f'<ProductSize {self.size_name}>'


class Customer(db.Model):
    """Registered customer"""
    __tablename__ = 'customers'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, index=True)
    phone = db.Column(db.String(32))
    email = db.Column(db.String(120))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    orders = db.relationship('Order', backref='customer', lazy='dynamic')

    def __repr__(self):
        return f'<Customer {self.name}>'


class DiningTable(db.Model):
    """Table on the café floor"""
    __tablename__ = 'tables'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    seats = db.Column(db.Integer, default=4)
    status = db.Column(db.String(32), default='available')
    # available, occupied, reserved, dirty
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    orders = db.relationship('Order', backref='table', lazy='dynamic')

    def __repr__(self):
        return f'<DiningTable {self.name}>'


class Order(db.Model):
    """Customer order"""
    __tablename__ = 'orders'

    STATUSES = ['pending', 'preparing', 'ready', 'delivered', 'completed', 'cancelled']
    PAYMENT_METHODS = ['cash', 'card', 'digital']

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employee_profiles.id'), index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'))
    table_id = db.Column(db.Integer, db.ForeignKey('tables.id'))

    status = db.Column(db.String(32), nullable=False, default='pending', index=True)
    total = db.Column(db.Numeric(10, 2), nullable=False, default=0.00)
    payment_method = db.Column(db.String(32), default='cash')
    service_type = db.Column(db.String(32), default='takeaway')  # takeaway, dine_in
    notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.now, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    items = db.relationship('OrderItem', backref='order', lazy='dynamic',
                            cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Order {self.id} {self.status}>'


class OrderItem(db.Model):
    """Line of an order"""
    __tablename__ = 'order_items'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False)
    # Nullable so history survives a product being removed from the menu
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'))
    size_id = db.Column(db.Integer, db.ForeignKey('product_sizes.id'))
    product_name = db.Column(db.String(256))
    size_name = db.Column(db.String(64))

    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    subtotal = db.Column(db.Numeric(10, 2), nullable=False)
    notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def calculate_subtotal(self):
        """Calculate item subtotal"""
        self.subtotal = self.quantity * self.unit_price
        return self.subtotal

    def __repr__(self):
        return f'<OrderItem {self.id}>'


class DeletedOrder(db.Model):
    """Snapshot of an order removed from the orders table"""
    __tablename__ = 'deleted_orders'

    id = db.Column(db.Integer, primary_key=True)
    original_order_id = db.Column(db.Integer, nullable=False, index=True)
    employee_id = db.Column(db.Integer)
    total = db.Column(db.Numeric(10, 2), default=0.00)
    status = db.Column(db.String(32))
    payment_method = db.Column(db.String(32))
    items_json = db.Column(db.Text)
    order_created_at = db.Column(db.DateTime)

    deleted_by = db.Column(db.Integer, db.ForeignKey('employee_profiles.id'))
    reason = db.Column(db.Text)
    deleted_at = db.Column(db.DateTime, default=datetime.now, index=True)

    def __repr__(self):
        return f'<DeletedOrder {self.original_order_id}>'


class Supplier(db.Model):
    """Supplier/Vendor management"""
    __tablename__ = 'suppliers'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True, index=True)
    contact_person = db.Column(db.String(128))
    email = db.Column(db.String(120))
    phone = db.Column(db.String(32))
    address = db.Column(db.Text)
    active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    expenses = db.relationship('Expense', backref='supplier', lazy='dynamic')

    def __repr__(self):
        return f'<Supplier {self.name}>'


EXPENSE_CATEGORIES = {
    'supplier': 'Suppliers',
    'salary': 'Salaries',
    'rent': 'Rent',
    'utilities': 'Utilities',
    'maintenance': 'Maintenance',
    'other': 'Other',
}


class Expense(db.Model):
    """Business expense"""
    __tablename__ = 'expenses'

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False, index=True)
    category = db.Column(db.String(32), nullable=False, default='other')
    description = db.Column(db.Text, nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    supplier_id = db.Column(db.Integer, db.ForeignKey('suppliers.id'))
    employee_id = db.Column(db.Integer, db.ForeignKey('employee_profiles.id'))
    receipt_url = db.Column(db.String(512))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    employee = db.relationship('EmployeeProfile')

    @property
    def category_label(self):
        return EXPENSE_CATEGORIES.get(self.category, self.category)

    def __repr__(self):
        return f'<Expense {self.date} {self.amount}>'


class CashRegisterSession(db.Model):
    """Till opened by an employee with an opening and closing amount"""
    __tablename__ = 'cash_register_sessions'

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employee_profiles.id'),
                            nullable=False, index=True)
    opening_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0.00)
    closing_amount = db.Column(db.Numeric(12, 2))
    opened_at = db.Column(db.DateTime, default=datetime.now, nullable=False, index=True)
    closed_at = db.Column(db.DateTime)
    status = db.Column(db.String(16), nullable=False, default='open')  # open, closed
    notes = db.Column(db.Text)

    @property
    def hours_worked(self):
        """Hours between opening and closing, 0 while the session is open"""
        if not self.closed_at:
            return 0.0
        return (self.closed_at - self.opened_at).total_seconds() / 3600

    @property
    def difference(self):
        if self.closing_amount is None:
            return 0
        return self.closing_amount - self.opening_amount

    def __repr__(self):
        return f'<CashRegisterSession {self.id} {self.status}>'


class CompanySettings(db.Model):
    """Single-row company information printed on reports and tickets"""
    __tablename__ = 'company_settings'

    id = db.Column(db.Integer, primary_key=True)
    company_name = db.Column(db.String(128), nullable=False)
    address = db.Column(db.Text)
    phone = db.Column(db.String(32))
    email = db.Column(db.String(120))
    tax_id = db.Column(db.String(64))
    currency = db.Column(db.String(8), default='EUR')
    locale = db.Column(db.String(16), default='es_ES')
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @staticmethod
    def current():
        return CompanySettings.query.order_by(CompanySettings.id).first()

    def __repr__(self):
        return f'<CompanySettings {self.company_name}>'


class BackupHistory(db.Model):
    """Log of JSON backups"""
    __tablename__ = 'backup_history'

    id = db.Column(db.Integer, primary_key=True)
    created_by = db.Column(db.Integer, db.ForeignKey('employee_profiles.id'))
    backup_type = db.Column(db.String(16), default='manual')  # manual, automatic
    tables_included = db.Column(db.Text)  # Comma-separated table names
    records_count = db.Column(db.Integer, default=0)
    size_bytes = db.Column(db.Integer, default=0)
    file_path = db.Column(db.String(512))
    status = db.Column(db.String(16), default='completed')  # completed, failed
    error_message = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.now, index=True)

    def __repr__(self):
        return f'<BackupHistory {self.backup_type} {self.created_at}>'


class ErrorLog(db.Model):
    """Unhandled application errors captured with request context"""
    __tablename__ = 'error_logs'

    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    error_type = db.Column(db.String(128))
    error_message = db.Column(db.Text)
    traceback = db.Column(db.Text)
    request_url = db.Column(db.String(512))
    request_method = db.Column(db.String(16))
    request_data = db.Column(db.Text)
    user_id = db.Column(db.Integer)
    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.String(512))
    status_code = db.Column(db.Integer)
    blueprint = db.Column(db.String(64))
    endpoint = db.Column(db.String(128))
    is_resolved = db.Column(db.Boolean, default=False)

    def __repr__(self):
        return f'<ErrorLog {self.error_type}>'
