"""
Employee Routes
Employee accounts and monthly time tracking built from register sessions
"""

from flask import Blueprint, request, jsonify, send_file, current_app
from flask_login import login_required, current_user
from datetime import datetime, date
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from cafe_pos.models import db, EmployeeProfile, CompanySettings, ROLES
from cafe_pos.services.session_reports import employee_month_stats, serialize_day
from cafe_pos.utils.export import build_time_tracking_workbook, time_report_filename
from cafe_pos.utils.permissions import page_required, is_manager
from cafe_pos.utils.validation import require, parse_choice, parse_month, parse_bool, ValidationError
from cafe_pos.routes.auth import employee_json

bp = Blueprint('employees', __name__)

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def _assignable_roles():
    """Only a super admin can hand out the super_admin role"""
    if current_user.is_super_admin:
        return ROLES
    return [role for role in ROLES if role != 'super_admin']


def _month_arg():
    return parse_month(request.args.get('month') or date.today().strftime('%Y-%m'))


def _visible_employee(employee_id):
    employee = EmployeeProfile.query.get_or_404(employee_id)
    if not is_manager(current_user) and employee.id != current_user.id:
        return None
    return employee


@bp.route('/')
@login_required
@page_required('users')
def list_employees():
    """Employees that are not deleted (include_inactive=1 adds deactivated ones)"""
    query = EmployeeProfile.query.filter(EmployeeProfile.deleted_at.is_(None))
    if not parse_bool(request.args.get('include_inactive'), default=False):
        query = query.filter(EmployeeProfile.active.is_(True))
    employees = query.order_by(EmployeeProfile.full_name).all()
    return jsonify({'employees': [employee_json(e) for e in employees]})


@bp.route('/', methods=['POST'])
@login_required
@page_required('users')
def create_employee():
    data = request.get_json(silent=True) or {}
    password = require(data, 'password')
    if len(password) < 8:
        raise ValidationError('Password must be at least 8 characters')

    employee = EmployeeProfile(
        username=require(data, 'username'),
        full_name=require(data, 'full_name'),
        email=data.get('email') or None,
        phone=data.get('phone'),
        role=parse_choice(data.get('role', 'cashier'), _assignable_roles(), 'role'),
        active=True
    )
    employee.set_password(password)

    try:
        db.session.add(employee)
        db.session.commit()
        current_app.logger.info(f"Employee {employee.username} created by {current_user.username}")
        return jsonify({'success': True, 'employee': employee_json(employee)}), 201

    except IntegrityError:
        db.session.rollback()
        return jsonify({'success': False, 'error': 'Username or email already exists'}), 400
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating employee: {e}")
        return jsonify({'success': False, 'error': 'Error creating employee'}), 500


@bp.route('/<int:employee_id>', methods=['PUT'])
@login_required
@page_required('users')
def update_employee(employee_id):
    employee = EmployeeProfile.query.get_or_404(employee_id)
    if employee.is_super_admin and not current_user.is_super_admin:
        return jsonify({'success': False, 'error': 'Insufficient permissions'}), 403

    data = request.get_json(silent=True) or {}
    if 'full_name' in data:
        employee.full_name = require(data, 'full_name')
    if 'email' in data:
        employee.email = data.get('email') or None
    if 'phone' in data:
        employee.phone = data.get('phone')
    if 'role' in data:
        employee.role = parse_choice(data.get('role'), _assignable_roles(), 'role')
    if 'active' in data:
        employee.active = parse_bool(data.get('active'), default=True)
    if data.get('password'):
        if len(data['password']) < 8:
            raise ValidationError('Password must be at least 8 characters')
        employee.set_password(data['password'])

    try:
        db.session.commit()
        return jsonify({'success': True, 'employee': employee_json(employee)})

    except IntegrityError:
        db.session.rollback()
        return jsonify({'success': False, 'error': 'Username or email already exists'}), 400
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating employee {employee_id}: {e}")
        return jsonify({'success': False, 'error': 'Error updating employee'}), 500


@bp.route('/<int:employee_id>', methods=['DELETE'])
@login_required
@page_required('users')
def delete_employee(employee_id):
    """Soft delete: the employee keeps their orders and sessions but can no longer log in"""
    employee = EmployeeProfile.query.get_or_404(employee_id)
    if employee.id == current_user.id:
        return jsonify({'success': False, 'error': 'You cannot delete your own account'}), 400
    if employee.is_super_admin and not current_user.is_super_admin:
        return jsonify({'success': False, 'error': 'Insufficient permissions'}), 403

    try:
        employee.active = False
        employee.deleted_at = datetime.utcnow()
        db.session.commit()
        current_app.logger.warning(f"Employee {employee.username} deleted by {current_user.username}")
        return jsonify({'success': True, 'message': 'Employee deleted successfully'})

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting employee {employee_id}: {e}")
        return jsonify({'success': False, 'error': 'Error deleting employee'}), 500


@bp.route('/<int:employee_id>/time')
@login_required
@page_required('time-tracking')
def time_tracking(employee_id):
    """Per-day and month totals of hours and sales for ?month=YYYY-MM"""
    employee = _visible_employee(employee_id)
    if employee is None:
        return jsonify({'success': False, 'error': 'Insufficient permissions'}), 403

    month = _month_arg()
    days, month_stats = employee_month_stats(employee.id, month)

    return jsonify({
        'employee': employee_json(employee),
        'month': month,
        'days': [serialize_day(day) for day in days],
        'month_stats': {
            'total_days_worked': month_stats['total_days_worked'],
            'total_hours_worked': round(month_stats['total_hours_worked'], 2),
            'average_hours_per_day': round(month_stats['average_hours_per_day'], 2),
            'total_sales': float(month_stats['total_sales']),
            'total_orders': month_stats['total_orders'],
            'sales_per_hour': round(float(month_stats['sales_per_hour']), 2),
        },
    })


@bp.route('/<int:employee_id>/time/export')
@login_required
@page_required('time-tracking')
def export_time_tracking(employee_id):
    """Download the monthly time report workbook"""
    employee = _visible_employee(employee_id)
    if employee is None:
        return jsonify({'success': False, 'error': 'Insufficient permissions'}), 403

    month = _month_arg()
    days, month_stats = employee_month_stats(employee.id, month)
    output = build_time_tracking_workbook(employee, month, days, month_stats,
                                          company=CompanySettings.current())

    return send_file(
        output,
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=time_report_filename(employee.full_name, month)
    )
