"""
Application Entry Point
Initializes and runs the back-office application with its background services
"""

import os
import logging
import click
from cafe_pos import create_app, db
from cafe_pos.services.backup_service import BackupService

# Determine configuration environment
config_name = os.environ.get('FLASK_ENV', 'development')
app = create_app(config_name)

# Setup logging
if not os.path.exists(app.config['LOG_FOLDER']):
    os.makedirs(app.config['LOG_FOLDER'])

logging.basicConfig(
    level=getattr(logging, app.config['LOG_LEVEL']),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(os.path.join(app.config['LOG_FOLDER'], 'app.log')),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)


@app.shell_context_processor
def make_shell_context():
    """Make database and models available in Flask shell"""
    from cafe_pos import models
    return {
        'db': db,
        'EmployeeProfile': models.EmployeeProfile,
        'Product': models.Product,
        'Order': models.Order,
        'Expense': models.Expense,
        'CashRegisterSession': models.CashRegisterSession
    }


@app.cli.command('init-db')
def init_db():
    """Create the tables and the company settings row"""
    from cafe_pos.models import CompanySettings

    logger.info("Initializing database...")
    db.create_all()

    if CompanySettings.current() is None:
        db.session.add(CompanySettings(
            company_name=app.config['BUSINESS_NAME'],
            address=app.config['BUSINESS_ADDRESS'],
            phone=app.config['BUSINESS_PHONE'],
            currency=app.config['CURRENCY']
        ))
        db.session.commit()
        logger.info("Company settings created")

    logger.info("Database initialized successfully!")


@app.cli.command('create-admin')
@click.option('--username', default='admin', help='Login name')
@click.option('--full-name', default='Administrator', help='Display name')
@click.option('--role', default='super_admin', type=click.Choice(['super_admin', 'admin']))
@click.password_option()
def create_admin(username, full_name, role, password):
    """Create an administrator account"""
    from cafe_pos.models import EmployeeProfile

    if EmployeeProfile.query.filter_by(username=username).first():
        logger.warning(f"Employee {username} already exists")
        return

    admin = EmployeeProfile(username=username, full_name=full_name, role=role, active=True)
    admin.set_password(password)
    db.session.add(admin)
    db.session.commit()
    logger.info(f"{role} account created (username: {username})")


@app.cli.command('backup-database')
def backup_database():
    """Manually back up every table to JSON"""
    logger.info("Starting database backup...")
    history = BackupService(app).create_backup(backup_type='manual', created_by_name='cli')
    logger.info(f"Backup {history.status}: {history.file_path or history.error_message}")


def start_background_services():
    """Start the automatic backup scheduler"""
    if app.config['BACKUP_ENABLED']:
        BackupService(app).start_scheduler()
        logger.info("Backup service started")


if __name__ == '__main__':
    is_dev = os.environ.get('FLASK_ENV', 'development') == 'development'
    use_reloader = os.environ.get('FLASK_USE_RELOADER', 'true').lower() == 'true'

    with app.app_context():
        db.create_all()
        logger.info("Database tables created")

    # Only start services once when the reloader spawns a child process
    if not use_reloader or os.environ.get('WERKZEUG_RUN_MAIN') == 'true':
        start_background_services()

    logger.info(f"Starting {app.config['BUSINESS_NAME']} back-office...")
    logger.info(f"Debug mode: {is_dev}, Auto-reload: {use_reloader}")

    app.run(
        host='0.0.0.0',
        port=5001,
        debug=is_dev,
        use_reloader=use_reloader
    )
