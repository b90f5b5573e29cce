"""
Category Management Routes
"""

from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from cafe_pos.models import db, Category
from cafe_pos.utils.permissions import page_required
from cafe_pos.utils.validation import require

bp = Blueprint('categories', __name__)


def category_json(category):
    return {
        'id': category.id,
        'name': category.name,
        'description': category.description,
        'product_count': category.products.count(),
    }


@bp.route('/')
@login_required
@page_required('categories')
def list_categories():
    categories = Category.query.order_by(Category.name).all()
    return jsonify({'categories': [category_json(c) for c in categories]})


@bp.route('/', methods=['POST'])
@login_required
@page_required('categories')
def create_category():
    data = request.get_json(silent=True) or {}
    category = Category(name=require(data, 'name'), description=data.get('description'))

    try:
        db.session.add(category)
        db.session.commit()
        return jsonify({'success': True, 'category': category_json(category)}), 201

    except IntegrityError:
        db.session.rollback()
        return jsonify({'success': False, 'error': 'A category with that name already exists'}), 400
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating category: {e}")
        return jsonify({'success': False, 'error': 'Error creating category'}), 500


@bp.route('/<int:category_id>', methods=['PUT'])
@login_required
@page_required('categories')
def update_category(category_id):
    category = Category.query.get_or_404(category_id)
    data = request.get_json(silent=True) or {}
    if 'name' in data:
        category.name = require(data, 'name')
    if 'description' in data:
        category.description = data.get('description')

    try:
        db.session.commit()
        return jsonify({'success': True, 'category': category_json(category)})

    except IntegrityError:
        db.session.rollback()
        return jsonify({'success': False, 'error': 'A category with that name already exists'}), 400
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating category {category_id}: {e}")
        return jsonify({'success': False, 'error': 'Error updating category'}), 500


@bp.route('/<int:category_id>', methods=['DELETE'])
@login_required
@page_required('categories')
def delete_category(category_id):
    """Delete category (refused while it still has products)"""
    category = Category.query.get_or_404(category_id)

    product_count = category.products.count()
    if product_count:
        return jsonify({'success': False,
                        'error': f'Cannot delete category with {product_count} products'}), 400

    try:
        db.session.delete(category)
        db.session.commit()
        return jsonify({'success': True, 'message': 'Category deleted successfully'})

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting category {category_id}: {e}")
        return jsonify({'success': False, 'error': 'Error deleting category'}), 500
