"""
Supplier Management Routes
Handles supplier CRUD operations
"""

from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from cafe_pos.models import db, Supplier
from cafe_pos.utils.permissions import page_required
from cafe_pos.utils.validation import require, parse_bool

bp = Blueprint('suppliers', __name__)

SUPPLIER_FIELDS = ('contact_person', 'email', 'phone', 'address')


def supplier_json(supplier):
    return {
        'id': supplier.id,
        'name': supplier.name,
        'contact_person': supplier.contact_person,
        'email': supplier.email,
        'phone': supplier.phone,
        'address': supplier.address,
        'active': supplier.active,
    }


@bp.route('/')
@login_required
@page_required('suppliers')
def list_suppliers():
    """List suppliers with optional search and active filter"""
    search = request.args.get('search', '').strip()
    query = Supplier.query

    if request.args.get('active') is not None:
        query = query.filter_by(active=parse_bool(request.args.get('active')))

    if search:
        query = query.filter(
            db.or_(
                Supplier.name.ilike(f'%{search}%'),
                Supplier.contact_person.ilike(f'%{search}%'),
                Supplier.phone.ilike(f'%{search}%'),
                Supplier.email.ilike(f'%{search}%')
            )
        )

    suppliers = query.order_by(Supplier.name).all()
    return jsonify({'suppliers': [supplier_json(s) for s in suppliers]})


@bp.route('/', methods=['POST'])
@login_required
@page_required('suppliers')
def create_supplier():
    data = request.get_json(silent=True) or {}
    supplier = Supplier(name=require(data, 'name'), active=True)
    for field in SUPPLIER_FIELDS:
        setattr(supplier, field, data.get(field))

    try:
        db.session.add(supplier)
        db.session.commit()
        return jsonify({'success': True, 'supplier': supplier_json(supplier)}), 201

    except IntegrityError:
        db.session.rollback()
        return jsonify({'success': False, 'error': 'A supplier with that name already exists'}), 400
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating supplier: {e}")
        return jsonify({'success': False, 'error': 'Error creating supplier'}), 500


@bp.route('/<int:supplier_id>', methods=['PUT'])
@login_required
@page_required('suppliers')
def update_supplier(supplier_id):
    supplier = Supplier.query.get_or_404(supplier_id)
    data = request.get_json(silent=True) or {}
    if 'name' in data:
        supplier.name = require(data, 'name')
    for field in SUPPLIER_FIELDS:
        if field in data:
            setattr(supplier, field, data.get(field))
    if 'active' in data:
        supplier.active = parse_bool(data.get('active'), default=True)

    try:
        db.session.commit()
        return jsonify({'success': True, 'supplier': supplier_json(supplier)})

    except IntegrityError:
        db.session.rollback()
        return jsonify({'success': False, 'error': 'A supplier with that name already exists'}), 400
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating supplier {supplier_id}: {e}")
        return jsonify({'success': False, 'error': 'Error updating supplier'}), 500


@bp.route('/<int:supplier_id>', methods=['DELETE'])
@login_required
@page_required('suppliers')
def delete_supplier(supplier_id):
    """
    Delete supplier

    Suppliers referenced by expenses are deactivated instead so the
    expense history keeps its supplier name.
    """
    supplier = Supplier.query.get_or_404(supplier_id)

    try:
        if supplier.expenses.count():
            supplier.active = False
            message = 'Supplier has expenses and was deactivated'
        else:
            db.session.delete(supplier)
            message = 'Supplier deleted successfully'
        db.session.commit()
        return jsonify({'success': True, 'message': message})

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting supplier {supplier_id}: {e}")
        return jsonify({'success': False, 'error': 'Error deleting supplier'}), 500
