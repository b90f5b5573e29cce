"""
Expense Tracking Routes
Manage business expenses by category and export them to CSV
"""

from flask import Blueprint, request, jsonify, send_file, current_app
from flask_login import login_required, current_user
from datetime import date
from decimal import Decimal
from sqlalchemy.exc import SQLAlchemyError
from cafe_pos.models import db, Expense, Supplier, EXPENSE_CATEGORIES
from cafe_pos.utils.export import export_expenses_csv, expenses_filename
from cafe_pos.utils.permissions import page_required
from cafe_pos.utils.validation import (require, parse_decimal, parse_date, parse_choice,
                                       parse_int, ValidationError)

bp = Blueprint('expenses', __name__)


def expense_json(expense):
    return {
        'id': expense.id,
        'date': expense.date.isoformat(),
        'category': expense.category,
        'category_label': expense.category_label,
        'description': expense.description,
        'amount': float(expense.amount),
        'supplier_id': expense.supplier_id,
        'supplier': expense.supplier.name if expense.supplier else None,
        'employee_id': expense.employee_id,
        'receipt_url': expense.receipt_url,
    }


def _date_range():
    """Requested range, defaulting to the first of the month through today"""
    today = date.today()
    start = parse_date(request.args.get('start_date'), 'start_date', default=today.replace(day=1))
    end = parse_date(request.args.get('end_date'), 'end_date', default=today)
    if start > end:
        raise ValidationError('Start date must be before end date')
    return start, end


def _filtered_query(start, end):
    query = Expense.query.filter(Expense.date >= start, Expense.date <= end)
    category = request.args.get('category')
    if category and category != 'all':
        query = query.filter(Expense.category == parse_choice(category, EXPENSE_CATEGORIES, 'category'))
    return query.order_by(Expense.date.desc(), Expense.id.desc())


def _apply_expense_fields(expense, data, partial=False):
    if not partial or 'date' in data:
        expense.date = parse_date(data.get('date'), 'date')
    if not partial or 'category' in data:
        expense.category = parse_choice(data.get('category', 'other'), EXPENSE_CATEGORIES, 'category')
    if not partial or 'description' in data:
        expense.description = require(data, 'description')
    if not partial or 'amount' in data:
        expense.amount = parse_decimal(data.get('amount'), 'amount', allow_equal=False)
    if 'supplier_id' in data:
        supplier_id = data.get('supplier_id')
        supplier_id = parse_int(supplier_id, 'supplier_id') if supplier_id else None
        if supplier_id and db.session.get(Supplier, supplier_id) is None:
            raise ValidationError('Supplier not found')
        expense.supplier_id = supplier_id
    if 'receipt_url' in data:
        expense.receipt_url = data.get('receipt_url')


@bp.route('/')
@login_required
@page_required('expenses')
def list_expenses():
    """Expenses in a date range with their total"""
    start, end = _date_range()
    expenses = _filtered_query(start, end).all()
    total = sum((Decimal(str(e.amount)) for e in expenses), Decimal('0'))

    return jsonify({
        'start_date': start.isoformat(),
        'end_date': end.isoformat(),
        'expenses': [expense_json(e) for e in expenses],
        'total': float(total),
        'categories': EXPENSE_CATEGORIES,
    })


@bp.route('/', methods=['POST'])
@login_required
@page_required('expenses')
def create_expense():
    """Record a new expense"""
    data = request.get_json(silent=True) or request.form
    expense = Expense(employee_id=current_user.id)
    _apply_expense_fields(expense, data)

    try:
        db.session.add(expense)
        db.session.commit()
        return jsonify({'success': True, 'expense': expense_json(expense)}), 201

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating expense: {e}")
        return jsonify({'success': False, 'error': 'Error saving expense'}), 500


@bp.route('/<int:expense_id>', methods=['PUT'])
@login_required
@page_required('expenses')
def update_expense(expense_id):
    expense = Expense.query.get_or_404(expense_id)
    data = request.get_json(silent=True) or request.form
    _apply_expense_fields(expense, data, partial=True)

    try:
        db.session.commit()
        return jsonify({'success': True, 'expense': expense_json(expense)})

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating expense {expense_id}: {e}")
        return jsonify({'success': False, 'error': 'Error saving expense'}), 500


@bp.route('/<int:expense_id>', methods=['DELETE'])
@login_required
@page_required('expenses')
def delete_expense(expense_id):
    expense = Expense.query.get_or_404(expense_id)

    try:
        db.session.delete(expense)
        db.session.commit()
        return jsonify({'success': True, 'message': 'Expense deleted successfully'})

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting expense {expense_id}: {e}")
        return jsonify({'success': False, 'error': 'Error deleting expense'}), 500


@bp.route('/export')
@login_required
@page_required('expenses')
def export_expenses():
    """Download the filtered expenses as CSV"""
    start, end = _date_range()
    expenses = _filtered_query(start, end).all()
    output = export_expenses_csv(expenses)

    return send_file(
        output,
        mimetype='text/csv',
        as_attachment=True,
        download_name=expenses_filename(start, end)
    )
