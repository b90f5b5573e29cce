"""
Authentication Routes
Handles employee login, logout and the current session
"""

from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user, current_user, login_required
from flask_wtf.csrf import generate_csrf
from datetime import datetime
from cafe_pos import limiter
from cafe_pos.models import db, EmployeeProfile

bp = Blueprint('auth', __name__)


def employee_json(employee):
    return {
        'id': employee.id,
        'username': employee.username,
        'email': employee.email,
        'full_name': employee.full_name,
        'role': employee.role,
        'phone': employee.phone,
        'active': employee.is_active,
        'last_login': employee.last_login.isoformat() if employee.last_login else None,
    }


@bp.route('/csrf-token')
def csrf_token():
    """Token for the X-CSRFToken header of state-changing requests"""
    return jsonify({'csrf_token': generate_csrf()})


@bp.route('/login', methods=['POST'])
@limiter.limit(lambda: current_app.config.get('RATELIMIT_LOGIN', '10 per minute'))
def login():
    """Employee login"""
    data = request.get_json(silent=True) or request.form
    username = (data.get('username') or '').strip()
    password = data.get('password') or ''
    remember = bool(data.get('remember', False))

    employee = EmployeeProfile.query.filter_by(username=username).first()

    if employee is None or not employee.check_password(password):
        current_app.logger.warning(f"Failed login attempt for username: {username}")
        return jsonify({'success': False, 'error': 'Invalid username or password'}), 401

    if not employee.is_active:
        return jsonify({'success': False,
                        'error': 'Your account has been deactivated. Please contact administrator.'}), 403

    login_user(employee, remember=remember)
    employee.last_login = datetime.utcnow()
    db.session.commit()
    current_app.logger.info(f"Employee {employee.username} logged in")

    return jsonify({'success': True, 'employee': employee_json(employee)})


@bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """Employee logout"""
    current_app.logger.info(f"Employee {current_user.username} logged out")
    logout_user()
    return jsonify({'success': True, 'message': 'You have been logged out successfully.'})


@bp.route('/me')
@login_required
def me():
    """Current employee"""
    return jsonify({'employee': employee_json(current_user)})
