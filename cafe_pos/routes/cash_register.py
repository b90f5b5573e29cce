"""
Cash Register Routes
Open and close register sessions, list them with totals and export the report workbook
"""

from flask import Blueprint, request, jsonify, send_file, current_app
from flask_login import login_required, current_user
from datetime import datetime, date, timedelta
from sqlalchemy.exc import SQLAlchemyError
from cafe_pos.models import db, CashRegisterSession, Expense, Order, CompanySettings
from cafe_pos.services.session_reports import group_sessions, session_totals
from cafe_pos.utils.export import build_cash_register_workbook, cash_register_filename
from cafe_pos.utils.permissions import page_required, is_manager
from cafe_pos.utils.validation import parse_decimal, parse_date, parse_choice, parse_int, ValidationError

bp = Blueprint('cash_register', __name__)

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def session_json(session):
    return {
        'id': session.id,
        'employee_id': session.employee_id,
        'employee_name': session.employee.full_name if session.employee else None,
        'opening_amount': float(session.opening_amount),
        'closing_amount': float(session.closing_amount) if session.closing_amount is not None else None,
        'difference': float(session.difference),
        'opened_at': session.opened_at.isoformat(),
        'closed_at': session.closed_at.isoformat() if session.closed_at else None,
        'status': session.status,
        'notes': session.notes,
    }


def _totals_json(totals):
    return {
        'total_opening': float(totals['total_opening']),
        'total_closing': float(totals['total_closing']),
        'balance': float(totals['balance']),
        'session_count': totals['session_count'],
        'open_count': totals['open_count'],
    }


def _filtered_sessions():
    """
    Sessions matching the request filters

    Cashiers and other non-admin roles only ever see their own sessions.
    """
    query = CashRegisterSession.query

    if not is_manager(current_user):
        query = query.filter(CashRegisterSession.employee_id == current_user.id)
    elif request.args.get('employee_id'):
        query = query.filter(CashRegisterSession.employee_id ==
                             parse_int(request.args.get('employee_id'), 'employee_id'))

    start = parse_date(request.args.get('start_date'), 'start_date', default=date.min)
    end = parse_date(request.args.get('end_date'), 'end_date', default=date.max)
    if start > end:
        raise ValidationError('Start date must be before end date')
    if start != date.min:
        query = query.filter(CashRegisterSession.opened_at >= datetime.combine(start, datetime.min.time()))
    if end != date.max:
        query = query.filter(CashRegisterSession.opened_at <
                             datetime.combine(end + timedelta(days=1), datetime.min.time()))

    status = request.args.get('status', 'all')
    if status != 'all':
        query = query.filter(CashRegisterSession.status == parse_choice(status, ('open', 'closed'), 'status'))

    return query.order_by(CashRegisterSession.opened_at.desc()).all()


def _current_session(employee_id):
    return CashRegisterSession.query.filter_by(
        employee_id=employee_id, status='open'
    ).order_by(CashRegisterSession.opened_at.desc()).first()


@bp.route('/current')
@login_required
@page_required('cash')
def current_session():
    """Open session of the current employee, if any"""
    session = _current_session(current_user.id)
    return jsonify({'session': session_json(session) if session else None})


@bp.route('/open', methods=['POST'])
@login_required
@page_required('cash')
def open_session():
    """Open the register with a starting amount"""
    data = request.get_json(silent=True) or request.form
    opening_amount = parse_decimal(data.get('opening_amount'), 'opening_amount')

    if _current_session(current_user.id):
        return jsonify({'success': False, 'error': 'You already have an open cash register session'}), 400

    session = CashRegisterSession(
        employee_id=current_user.id,
        opening_amount=opening_amount,
        opened_at=datetime.now(),
        status='open',
        notes=data.get('notes')
    )

    try:
        db.session.add(session)
        db.session.commit()
        current_app.logger.info(f"Cash register opened by {current_user.username} with {opening_amount}")
        return jsonify({'success': True, 'session': session_json(session)}), 201

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error opening cash register: {e}")
        return jsonify({'success': False, 'error': 'Error opening cash register'}), 500


@bp.route('/close', methods=['POST'])
@login_required
@page_required('cash')
def close_session():
    """Close the current employee's open session with the counted amount"""
    data = request.get_json(silent=True) or request.form
    closing_amount = parse_decimal(data.get('closing_amount'), 'closing_amount')

    session = _current_session(current_user.id)
    if session is None:
        return jsonify({'success': False, 'error': 'No open cash register session'}), 400

    session.closing_amount = closing_amount
    session.closed_at = datetime.now()
    session.status = 'closed'
    if data.get('notes'):
        session.notes = data.get('notes')

    try:
        db.session.commit()
        current_app.logger.info(f"Cash register closed by {current_user.username} with {closing_amount}")
        return jsonify({'success': True, 'session': session_json(session)})

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error closing cash register: {e}")
        return jsonify({'success': False, 'error': 'Error closing cash register'}), 500


@bp.route('/sessions')
@login_required
@page_required('cash')
def list_sessions():
    """Sessions with the dashboard totals (opening, closing, balance)"""
    sessions = _filtered_sessions()
    return jsonify({
        'sessions': [session_json(s) for s in sessions],
        'totals': _totals_json(session_totals(sessions)),
    })


@bp.route('/sessions/grouped')
@login_required
@page_required('cash')
def grouped_sessions():
    """Per-employee (or per employee and day with by_day=1) session totals"""
    sessions = _filtered_sessions()
    by_day = request.args.get('by_day', '').lower() in ('1', 'true', 'yes')
    groups = group_sessions(sessions, by_day=by_day)
    return jsonify({
        'groups': [group.to_dict() for group in groups.values()],
        'totals': _totals_json(session_totals(sessions)),
    })


@bp.route('/export')
@login_required
@page_required('cash')
def export_report():
    """Download the cash register report workbook for a date range"""
    today = date.today()
    start = parse_date(request.args.get('start_date'), 'start_date', default=today.replace(day=1))
    end = parse_date(request.args.get('end_date'), 'end_date', default=today)
    if start > end:
        raise ValidationError('Start date must be before end date')

    start_dt = datetime.combine(start, datetime.min.time())
    end_dt = datetime.combine(end + timedelta(days=1), datetime.min.time())

    sessions_query = CashRegisterSession.query.filter(
        CashRegisterSession.opened_at >= start_dt,
        CashRegisterSession.opened_at < end_dt
    )
    orders_query = Order.query.filter(Order.created_at >= start_dt, Order.created_at < end_dt)
    if not is_manager(current_user):
        sessions_query = sessions_query.filter(CashRegisterSession.employee_id == current_user.id)
        orders_query = orders_query.filter(Order.employee_id == current_user.id)

    sessions = sessions_query.order_by(CashRegisterSession.opened_at.asc()).all()
    orders = orders_query.order_by(Order.created_at.asc()).all()
    expenses = []
    if is_manager(current_user):
        expenses = Expense.query.filter(
            Expense.date >= start, Expense.date <= end
        ).order_by(Expense.date.asc()).all()

    generated_at = datetime.now()
    output = build_cash_register_workbook(
        sessions, start, end,
        expenses=expenses,
        orders=orders,
        company=CompanySettings.current(),
        generated_by=current_user.full_name,
        generated_at=generated_at
    )

    return send_file(
        output,
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=cash_register_filename(start, end, generated_at)
    )
