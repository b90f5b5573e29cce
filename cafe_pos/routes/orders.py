"""
Orders and Point of Sale Routes
Create orders from the POS, follow them on the orders dashboard and print tickets
"""

import json
from flask import Blueprint, request, jsonify, send_file, current_app
from flask_login import login_required, current_user
from datetime import datetime
from decimal import Decimal
from sqlalchemy.exc import SQLAlchemyError
from cafe_pos.models import (db, Order, OrderItem, Product, ProductSize, DiningTable, Customer,
                             DeletedOrder, RolePermission, CompanySettings)
from cafe_pos.services.aggregation import period_ranges
from cafe_pos.routes.tables import refresh_table_status
from cafe_pos.utils.pdf_utils import generate_order_ticket
from cafe_pos.utils.permissions import page_required, role_required
from cafe_pos.utils.validation import parse_choice, parse_int, ValidationError

bp = Blueprint('orders', __name__)

SERVICE_TYPES = ('takeaway', 'dine_in')
DATE_RANGES = ('today', 'week', 'month', 'all')


def item_json(item):
    return {
        'id': item.id,
        'product_id': item.product_id,
        'size_id': item.size_id,
        'product_name': item.product_name,
        'size_name': item.size_name,
        'quantity': item.quantity,
        'unit_price': float(item.unit_price),
        'subtotal': float(item.subtotal),
        'notes': item.notes,
    }


def order_json(order):
    return {
        'id': order.id,
        'employee_id': order.employee_id,
        'employee_name': order.employee.full_name if order.employee else None,
        'customer_id': order.customer_id,
        'table_id': order.table_id,
        'table': order.table.name if order.table else None,
        'status': order.status,
        'total': float(order.total),
        'payment_method': order.payment_method,
        'service_type': order.service_type,
        'notes': order.notes,
        'created_at': order.created_at.isoformat(),
        'items': [item_json(item) for item in order.items.order_by(OrderItem.id)],
    }


def build_order_item(data):
    """
    Price one cart line

    Unit price is the product base price plus the size modifier; subtotal is
    unit price times quantity.
    """
    product_id = parse_int(data.get('product_id'), 'product_id')
    product = db.session.get(Product, product_id)
    if product is None:
        raise ValidationError(f'Product {product_id} not found')
    if not product.available:
        raise ValidationError(f'{product.name} is not available')

    quantity = parse_int(data.get('quantity', 1), 'quantity', minimum=1)

    size = None
    if data.get('size_id'):
        size = ProductSize.query.filter_by(id=parse_int(data.get('size_id'), 'size_id'),
                                           product_id=product.id).first()
        if size is None:
            raise ValidationError(f'Invalid size for {product.name}')

    unit_price = Decimal(str(product.base_price)) + (Decimal(str(size.price_modifier or 0)) if size else Decimal('0'))
    item = OrderItem(
        product_id=product.id,
        size_id=size.id if size else None,
        product_name=product.name,
        size_name=size.size_name if size else None,
        quantity=quantity,
        unit_price=unit_price,
        notes=data.get('notes')
    )
    item.calculate_subtotal()
    return item


@bp.route('/')
@login_required
@page_required('orders')
def list_orders():
    """Orders for a date range (today, week, month, all) and status, newest first"""
    date_range = parse_choice(request.args.get('range', 'today'), DATE_RANGES, 'range')
    status = request.args.get('status', 'all')

    query = Order.query
    if date_range != 'all':
        start, end = period_ranges()[date_range]
        query = query.filter(Order.created_at >= start)
    if status != 'all':
        query = query.filter(Order.status == parse_choice(status, Order.STATUSES, 'status'))

    limit = current_app.config.get('RECENT_ORDERS_LIMIT', 50)
    orders = query.order_by(Order.created_at.desc()).limit(limit).all()
    return jsonify({'orders': [order_json(o) for o in orders], 'range': date_range, 'status': status})


@bp.route('/<int:order_id>')
@login_required
@page_required('orders')
def get_order(order_id):
    order = Order.query.get_or_404(order_id)
    return jsonify(order_json(order))


@bp.route('/', methods=['POST'])
@login_required
@page_required('pos')
def create_order():
    """Checkout the POS cart"""
    data = request.get_json(silent=True) or {}
    cart = data.get('items') or []
    if not cart:
        raise ValidationError('Order must contain at least one item')

    items = [build_order_item(line) for line in cart]
    payment_method = parse_choice(data.get('payment_method', 'cash'), Order.PAYMENT_METHODS, 'payment method')
    service_type = parse_choice(data.get('service_type', 'takeaway'), SERVICE_TYPES, 'service type')

    table = None
    if data.get('table_id'):
        table = db.session.get(DiningTable, parse_int(data.get('table_id'), 'table_id'))
        if table is None:
            raise ValidationError('Table not found')
    # Table orders go straight to preparation and keep the table occupied
    status = parse_choice(data.get('status', 'preparing' if table else 'pending'),
                          ('pending', 'preparing'), 'status')
    customer_id = parse_int(data.get('customer_id'), 'customer_id') if data.get('customer_id') else None
    if customer_id and db.session.get(Customer, customer_id) is None:
        raise ValidationError('Customer not found')

    order = Order(
        employee_id=current_user.id,
        customer_id=customer_id,
        table_id=table.id if table else None,
        status=status,
        payment_method=payment_method,
        service_type='dine_in' if table else service_type,
        notes=data.get('notes'),
        created_at=datetime.now()
    )

    try:
        db.session.add(order)
        for item in items:
            order.items.append(item)
        order.total = sum((item.subtotal for item in items), Decimal('0'))
        if table and status == 'preparing':
            table.status = 'occupied'
        db.session.commit()
        current_app.logger.info(f"Order {order.id} created by {current_user.username}: {order.total}")
        return jsonify({'success': True, 'order': order_json(order)}), 201

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating order: {e}")
        return jsonify({'success': False, 'error': 'Error creating order'}), 500


@bp.route('/<int:order_id>/status', methods=['POST', 'PATCH'])
@login_required
@page_required('orders')
def update_status(order_id):
    """Move an order to a new status"""
    order = Order.query.get_or_404(order_id)
    data = request.get_json(silent=True) or request.form
    new_status = parse_choice(data.get('status'), Order.STATUSES, 'status')

    actions = RolePermission.order_actions(current_user.role)
    if new_status == 'preparing' and not actions['can_confirm_order']:
        return jsonify({'success': False, 'error': 'Your role cannot confirm orders'}), 403
    if new_status == 'completed' and not actions['can_validate_order']:
        return jsonify({'success': False, 'error': 'Your role cannot validate orders'}), 403

    order.status = new_status

    try:
        if order.table:
            db.session.flush()
            refresh_table_status(order.table)
        db.session.commit()
        return jsonify({'success': True, 'order': order_json(order)})

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating order {order_id}: {e}")
        return jsonify({'success': False, 'error': 'Error updating order'}), 500


@bp.route('/<int:order_id>', methods=['DELETE'])
@login_required
@role_required('admin')
def delete_order(order_id):
    """Delete an order, keeping a snapshot in deleted_orders"""
    order = Order.query.get_or_404(order_id)
    data = request.get_json(silent=True) or {}

    archive = DeletedOrder(
        original_order_id=order.id,
        employee_id=order.employee_id,
        total=order.total,
        status=order.status,
        payment_method=order.payment_method,
        items_json=json.dumps([item_json(item) for item in order.items]),
        order_created_at=order.created_at,
        deleted_by=current_user.id,
        reason=data.get('reason')
    )

    try:
        db.session.add(archive)
        db.session.delete(order)
        db.session.commit()
        current_app.logger.warning(f"Order {order_id} deleted by {current_user.username}")
        return jsonify({'success': True, 'message': 'Order deleted successfully'})

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting order {order_id}: {e}")
        return jsonify({'success': False, 'error': 'Error deleting order'}), 500


@bp.route('/deleted')
@login_required
@role_required('admin')
def list_deleted_orders():
    deleted = DeletedOrder.query.order_by(DeletedOrder.deleted_at.desc()).limit(100).all()
    return jsonify({'deleted_orders': [{
        'id': d.id,
        'original_order_id': d.original_order_id,
        'employee_id': d.employee_id,
        'total': float(d.total or 0),
        'status': d.status,
        'payment_method': d.payment_method,
        'items': json.loads(d.items_json or '[]'),
        'order_created_at': d.order_created_at.isoformat() if d.order_created_at else None,
        'deleted_by': d.deleted_by,
        'reason': d.reason,
        'deleted_at': d.deleted_at.isoformat(),
    } for d in deleted]})


@bp.route('/<int:order_id>/ticket')
@login_required
@page_required('orders')
def order_ticket(order_id):
    """PDF ticket of an order (copy=customer or copy=kitchen)"""
    order = Order.query.get_or_404(order_id)
    copy = parse_choice(request.args.get('copy', 'customer'), ('customer', 'kitchen'), 'copy')
    output = generate_order_ticket(order, company=CompanySettings.current(), copy=copy)

    return send_file(
        output,
        mimetype='application/pdf',
        as_attachment=False,
        download_name=f'ticket_{order.id}_{copy}.pdf'
    )
