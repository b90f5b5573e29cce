"""
Floor Table Routes
Table layout management and the floor view (occupancy from orders in preparation)
"""

from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from cafe_pos.models import db, DiningTable, Order, RolePermission
from cafe_pos.utils.permissions import page_required
from cafe_pos.utils.validation import require, parse_int, parse_choice

bp = Blueprint('tables', __name__)

TABLE_STATUSES = ('available', 'occupied', 'reserved', 'dirty')


def table_json(table):
    return {
        'id': table.id,
        'name': table.name,
        'seats': table.seats,
        'status': table.status,
    }


def open_orders(table):
    """Orders of a table still in preparation"""
    return table.orders.filter(Order.status == 'preparing').order_by(Order.created_at.asc()).all()


def refresh_table_status(table):
    """Occupied while the table has orders in preparation, available otherwise"""
    table.status = 'occupied' if open_orders(table) else 'available'
    return table.status


@bp.route('/')
@login_required
@page_required('floor')
def list_tables():
    tables = DiningTable.query.order_by(DiningTable.name).all()
    return jsonify({'tables': [table_json(t) for t in tables]})


@bp.route('/', methods=['POST'])
@login_required
@page_required('floor')
def create_table():
    data = request.get_json(silent=True) or {}
    table = DiningTable(
        name=require(data, 'name'),
        seats=parse_int(data.get('seats', 4), 'seats', minimum=1),
        status='available'
    )

    try:
        db.session.add(table)
        db.session.commit()
        return jsonify({'success': True, 'table': table_json(table)}), 201

    except IntegrityError:
        db.session.rollback()
        return jsonify({'success': False, 'error': 'A table with that name already exists'}), 400
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating table: {e}")
        return jsonify({'success': False, 'error': 'Error creating table'}), 500


@bp.route('/<int:table_id>', methods=['PUT'])
@login_required
@page_required('floor')
def update_table(table_id):
    table = DiningTable.query.get_or_404(table_id)
    data = request.get_json(silent=True) or {}
    if 'name' in data:
        table.name = require(data, 'name')
    if 'seats' in data:
        table.seats = parse_int(data.get('seats'), 'seats', minimum=1)
    if 'status' in data:
        table.status = parse_choice(data.get('status'), TABLE_STATUSES, 'status')

    try:
        db.session.commit()
        return jsonify({'success': True, 'table': table_json(table)})

    except IntegrityError:
        db.session.rollback()
        return jsonify({'success': False, 'error': 'A table with that name already exists'}), 400
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating table {table_id}: {e}")
        return jsonify({'success': False, 'error': 'Error updating table'}), 500


@bp.route('/<int:table_id>', methods=['DELETE'])
@login_required
@page_required('floor')
def delete_table(table_id):
    table = DiningTable.query.get_or_404(table_id)
    if open_orders(table):
        return jsonify({'success': False, 'error': 'Table has orders in preparation'}), 400

    try:
        Order.query.filter_by(table_id=table.id).update(
            {Order.table_id: None}, synchronize_session=False
        )
        db.session.delete(table)
        db.session.commit()
        return jsonify({'success': True, 'message': 'Table deleted successfully'})

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting table {table_id}: {e}")
        return jsonify({'success': False, 'error': 'Error deleting table'}), 500


@bp.route('/<int:table_id>/orders')
@login_required
@page_required('floor')
def table_orders(table_id):
    """Orders in preparation for a table (status normalized on the way)"""
    table = DiningTable.query.get_or_404(table_id)
    orders = open_orders(table)
    previous = table.status
    if refresh_table_status(table) != previous:
        db.session.commit()
    return jsonify({
        'table': table_json(table),
        'orders': [{
            'id': o.id,
            'total': float(o.total),
            'payment_method': o.payment_method,
            'status': o.status,
            'created_at': o.created_at.isoformat(),
        } for o in orders],
    })


@bp.route('/<int:table_id>/refresh', methods=['POST'])
@login_required
@page_required('floor')
def refresh_status(table_id):
    table = DiningTable.query.get_or_404(table_id)

    try:
        refresh_table_status(table)
        db.session.commit()
        return jsonify({'success': True, 'table': table_json(table)})

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error refreshing table {table_id}: {e}")
        return jsonify({'success': False, 'error': 'Error refreshing table'}), 500


@bp.route('/<int:table_id>/orders/<int:order_id>/validate', methods=['POST'])
@login_required
@page_required('floor')
def validate_order(table_id, order_id):
    """Complete a table order with its payment method and free the table when nothing is left"""
    table = DiningTable.query.get_or_404(table_id)
    order = Order.query.filter_by(id=order_id, table_id=table.id).first_or_404()

    if not RolePermission.order_actions(current_user.role)['can_validate_order']:
        return jsonify({'success': False, 'error': 'Your role cannot validate orders'}), 403
    if order.status != 'preparing':
        return jsonify({'success': False, 'error': 'Only orders in preparation can be validated'}), 400

    data = request.get_json(silent=True) or request.form
    payment_method = parse_choice(data.get('payment_method', order.payment_method or 'cash'),
                                  Order.PAYMENT_METHODS, 'payment method')

    try:
        order.status = 'completed'
        order.payment_method = payment_method
        db.session.flush()
        refresh_table_status(table)
        db.session.commit()
        return jsonify({'success': True, 'order_id': order.id, 'table': table_json(table)})

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error validating order {order_id}: {e}")
        return jsonify({'success': False, 'error': 'Error validating order'}), 500
