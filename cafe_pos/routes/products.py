"""
Product Management Routes
Menu items and their size variants
"""

from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required
from sqlalchemy.exc import SQLAlchemyError
from cafe_pos.models import db, Product, ProductSize, Category, OrderItem
from cafe_pos.utils.permissions import page_required
from cafe_pos.utils.validation import require, parse_decimal, parse_bool, parse_int, ValidationError

bp = Blueprint('products', __name__)


def size_json(size):
    return {
        'id': size.id,
        'product_id': size.product_id,
        'size_name': size.size_name,
        'price_modifier': float(size.price_modifier or 0),
    }


def product_json(product):
    return {
        'id': product.id,
        'name': product.name,
        'description': product.description,
        'base_price': float(product.base_price or 0),
        'available': product.available,
        'image_url': product.image_url,
        'category_id': product.category_id,
        'category': product.category.name if product.category else None,
        'sizes': [size_json(size) for size in product.sizes.order_by(ProductSize.id)],
    }


def _apply_product_fields(product, data, partial=False):
    if not partial or 'name' in data:
        product.name = require(data, 'name')
    if not partial or 'base_price' in data:
        product.base_price = parse_decimal(data.get('base_price'), 'base_price')
    if 'category_id' in data:
        category_id = data.get('category_id')
        category_id = parse_int(category_id, 'category_id') if category_id else None
        if category_id and db.session.get(Category, category_id) is None:
            raise ValidationError('Category not found')
        product.category_id = category_id
    if 'description' in data:
        product.description = data.get('description')
    if 'image_url' in data:
        product.image_url = data.get('image_url')
    if 'available' in data:
        product.available = parse_bool(data.get('available'), default=True)


@bp.route('/')
@login_required
@page_required('products')
def list_products():
    """Products ordered by name, optionally for one category"""
    query = Product.query
    category_id = request.args.get('category_id', type=int)
    if category_id:
        query = query.filter_by(category_id=category_id)
    if request.args.get('available') is not None:
        query = query.filter_by(available=parse_bool(request.args.get('available')))

    products = query.order_by(Product.name).all()
    return jsonify({'products': [product_json(p) for p in products]})


@bp.route('/<int:product_id>')
@login_required
@page_required('products')
def get_product(product_id):
    product = Product.query.get_or_404(product_id)
    return jsonify(product_json(product))


@bp.route('/', methods=['POST'])
@login_required
@page_required('products')
def create_product():
    """Create product, optionally with its sizes"""
    data = request.get_json(silent=True) or {}
    product = Product(available=True)
    _apply_product_fields(product, data)

    sizes = []
    for size_data in data.get('sizes') or []:
        sizes.append(ProductSize(
            size_name=require(size_data, 'size_name'),
            price_modifier=parse_decimal(size_data.get('price_modifier', 0), 'price_modifier',
                                         minimum=-product.base_price)
        ))

    try:
        db.session.add(product)
        for size in sizes:
            product.sizes.append(size)
        db.session.commit()
        return jsonify({'success': True, 'product': product_json(product)}), 201

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating product: {e}")
        return jsonify({'success': False, 'error': 'Error creating product'}), 500


@bp.route('/<int:product_id>', methods=['PUT'])
@login_required
@page_required('products')
def update_product(product_id):
    product = Product.query.get_or_404(product_id)
    data = request.get_json(silent=True) or {}
    _apply_product_fields(product, data, partial=True)

    try:
        db.session.commit()
        return jsonify({'success': True, 'product': product_json(product)})

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating product {product_id}: {e}")
        return jsonify({'success': False, 'error': 'Error updating product'}), 500


@bp.route('/<int:product_id>', methods=['DELETE'])
@login_required
@page_required('products')
def delete_product(product_id):
    """
    Delete product permanently

    Order history keeps the product and size names stored on each order item;
    the links to the removed rows are cleared.
    """
    product = Product.query.get_or_404(product_id)

    try:
        size_ids = [size.id for size in product.sizes]
        referencing = product.order_items.count()
        if referencing:
            current_app.logger.warning(
                f"Deleting product {product.id} ({product.name}) referenced by {referencing} order items"
            )
            OrderItem.query.filter_by(product_id=product.id).update(
                {OrderItem.product_id: None}, synchronize_session=False
            )
        if size_ids:
            OrderItem.query.filter(OrderItem.size_id.in_(size_ids)).update(
                {OrderItem.size_id: None}, synchronize_session=False
            )

        db.session.delete(product)
        db.session.commit()
        return jsonify({'success': True, 'message': 'Product deleted successfully',
                        'order_items_unlinked': referencing})

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting product {product_id}: {e}")
        return jsonify({'success': False, 'error': 'Error deleting product'}), 500


@bp.route('/<int:product_id>/sizes', methods=['POST'])
@login_required
@page_required('products')
def add_size(product_id):
    product = Product.query.get_or_404(product_id)
    data = request.get_json(silent=True) or {}
    size = ProductSize(
        product_id=product.id,
        size_name=require(data, 'size_name'),
        price_modifier=parse_decimal(data.get('price_modifier', 0), 'price_modifier',
                                     minimum=-product.base_price)
    )

    try:
        db.session.add(size)
        db.session.commit()
        return jsonify({'success': True, 'size': size_json(size)}), 201

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error adding size to product {product_id}: {e}")
        return jsonify({'success': False, 'error': 'Error adding size'}), 500


@bp.route('/<int:product_id>/sizes/<int:size_id>', methods=['PUT'])
@login_required
@page_required('products')
def update_size(product_id, size_id):
    size = ProductSize.query.filter_by(id=size_id, product_id=product_id).first_or_404()
    data = request.get_json(silent=True) or {}
    if 'size_name' in data:
        size.size_name = require(data, 'size_name')
    if 'price_modifier' in data:
        size.price_modifier = parse_decimal(data.get('price_modifier'), 'price_modifier',
                                            minimum=-size.product.base_price)

    try:
        db.session.commit()
        return jsonify({'success': True, 'size': size_json(size)})

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating size {size_id}: {e}")
        return jsonify({'success': False, 'error': 'Error updating size'}), 500


@bp.route('/<int:product_id>/sizes/<int:size_id>', methods=['DELETE'])
@login_required
@page_required('products')
def delete_size(product_id, size_id):
    size = ProductSize.query.filter_by(id=size_id, product_id=product_id).first_or_404()

    try:
        OrderItem.query.filter_by(size_id=size.id).update(
            {OrderItem.size_id: None}, synchronize_session=False
        )
        db.session.delete(size)
        db.session.commit()
        return jsonify({'success': True, 'message': 'Size deleted successfully'})

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting size {size_id}: {e}")
        return jsonify({'success': False, 'error': 'Error deleting size'}), 500
