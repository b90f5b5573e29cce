"""
Flask Application Factory
Initializes and configures the café back-office application
"""

import os
from flask import Flask, jsonify, session
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_wtf.csrf import CSRFProtect, CSRFError
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.exceptions import HTTPException
from config import config
from cafe_pos.models import db, EmployeeProfile
from cafe_pos.utils.validation import ValidationError

# Initialize extensions
login_manager = LoginManager()
migrate = Migrate()
csrf = CSRFProtect()
limiter = Limiter(key_func=get_remote_address)


def create_app(config_name='default'):
    """
    Application factory pattern
    Creates and configures Flask application
    """
    app = Flask(__name__)

    # Load configuration
    app.config.from_object(config[config_name])

    # Validate secret key in production
    if config_name == 'production':
        if not app.config.get('SECRET_KEY') or app.config['SECRET_KEY'] == 'dev-secret-key-change-in-production':
            raise ValueError("Production requires a secure SECRET_KEY. Set it via environment variable.")
        if len(app.config['SECRET_KEY']) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters for production.")

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    limiter.init_app(app)

    from cafe_pos.utils.cache import init_cache, register_cache_invalidation
    init_cache(app)

    # Row changes drop cached dashboard figures
    from cafe_pos.utils.realtime import init_change_feed
    init_change_feed()
    register_cache_invalidation()

    @login_manager.user_loader
    def load_user(user_id):
        """Load employee by ID for Flask-Login"""
        employee = db.session.get(EmployeeProfile, int(user_id))
        if employee is None or not employee.is_active:
            return None
        return employee

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'error': 'Authentication required'}), 401

    os.makedirs(app.config['LOG_FOLDER'], exist_ok=True)

    # Register blueprints
    from cafe_pos.routes.auth import bp as auth_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')

    from cafe_pos.routes.dashboard import bp as dashboard_bp
    app.register_blueprint(dashboard_bp, url_prefix='/dashboard')

    from cafe_pos.routes.products import bp as products_bp
    app.register_blueprint(products_bp, url_prefix='/products')

    from cafe_pos.routes.categories import bp as categories_bp
    app.register_blueprint(categories_bp, url_prefix='/categories')

    from cafe_pos.routes.suppliers import bp as suppliers_bp
    app.register_blueprint(suppliers_bp, url_prefix='/suppliers')

    from cafe_pos.routes.expenses import bp as expenses_bp
    app.register_blueprint(expenses_bp, url_prefix='/expenses')

    from cafe_pos.routes.cash_register import bp as cash_register_bp
    app.register_blueprint(cash_register_bp, url_prefix='/cash-register')

    from cafe_pos.routes.orders import bp as orders_bp
    app.register_blueprint(orders_bp, url_prefix='/orders')

    from cafe_pos.routes.tables import bp as tables_bp
    app.register_blueprint(tables_bp, url_prefix='/tables')

    from cafe_pos.routes.employees import bp as employees_bp
    app.register_blueprint(employees_bp, url_prefix='/employees')

    from cafe_pos.routes.roles import bp as roles_bp
    app.register_blueprint(roles_bp, url_prefix='/roles')

    from cafe_pos.routes.settings import bp as settings_bp
    app.register_blueprint(settings_bp, url_prefix='/settings')

    from cafe_pos.routes.backups import bp as backups_bp
    app.register_blueprint(backups_bp, url_prefix='/backups')

    @app.route('/')
    def index():
        return jsonify({'name': app.config['BUSINESS_NAME'], 'status': 'ok'})

    # Error handlers
    @app.errorhandler(ValidationError)
    def handle_validation_error(error):
        db.session.rollback()
        return jsonify({'success': False, 'error': str(error)}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'success': False, 'error': error.description}), error.code

    @app.errorhandler(CSRFError)
    def handle_csrf_error(error):
        return jsonify({
            'success': False,
            'error': 'CSRF token missing or invalid',
            'message': 'Please refresh the page and try again'
        }), 400

    @app.errorhandler(500)
    def internal_error(error):
        from cafe_pos.utils.error_logger import log_error
        db.session.rollback()
        app.logger.error(f"Unhandled error: {error}")
        log_error(getattr(error, 'original_exception', None) or error)
        return jsonify({'success': False, 'error': 'Internal server error'}), 500

    # Request hooks
    @app.before_request
    def before_request():
        session.permanent = True

    @app.after_request
    def add_security_headers(response):
        """Add security headers to all responses"""
        response.headers['Content-Security-Policy'] = "default-src 'none'; frame-ancestors 'none'"

        # Prevent clickjacking
        response.headers['X-Frame-Options'] = 'DENY'

        # Prevent MIME type sniffing
        response.headers['X-Content-Type-Options'] = 'nosniff'

        # Referrer policy
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'

        return response

    return app
