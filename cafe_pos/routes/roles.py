"""
Role Management Routes
Page access matrix per role and the navigation menu of the current employee
"""

from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError
from cafe_pos.models import db, RolePermission, SECTIONS, PAGE_LABELS, DEFAULT_ROLE_PAGES, ROLES
from cafe_pos.utils.cache import cache, navigation_key
from cafe_pos.utils.permissions import page_required
from cafe_pos.utils.validation import parse_choice, parse_bool, ValidationError

bp = Blueprint('roles', __name__)

EDITABLE_ROLES = [role for role in ROLES if role != 'super_admin']
PAGE_SECTIONS = {page_id: section for section, pages in SECTIONS.items() for page_id in pages}


def role_matrix(role):
    """Every page with the role's flags; pages without a stored row use the defaults"""
    stored = {perm.page_id: perm for perm in RolePermission.query.filter_by(role=role).all()}
    defaults = set(DEFAULT_ROLE_PAGES.get(role, []))

    matrix = []
    for section, pages in SECTIONS.items():
        for page_id in pages:
            perm = stored.get(page_id)
            matrix.append({
                'section': section,
                'page_id': page_id,
                'label': PAGE_LABELS[page_id],
                'can_access': perm.can_access if perm else page_id in defaults,
                'can_confirm_order': perm.can_confirm_order if perm else True,
                'can_validate_order': perm.can_validate_order if perm else True,
            })
    return matrix


def navigation_for(employee):
    """Sections and pages the employee can open, in menu order"""
    if employee.is_super_admin:
        visible = {page for pages in SECTIONS.values() for page in pages}
    else:
        visible = set(RolePermission.pages_for_role(employee.role))

    navigation = []
    for section, pages in SECTIONS.items():
        section_pages = [{'id': page_id, 'label': PAGE_LABELS[page_id]}
                         for page_id in pages if page_id in visible]
        if section_pages:
            navigation.append({'section': section, 'pages': section_pages})
    return navigation


@bp.route('/navigation')
@login_required
def navigation():
    """Menu of the current employee, cached per role until its permissions change"""
    key = navigation_key(current_user.role)
    menu = cache.get(key)
    if menu is None:
        menu = navigation_for(current_user)
        cache.set(key, menu)
    return jsonify({'role': current_user.role, 'navigation': menu})


@bp.route('/')
@login_required
@page_required('role-management')
def list_roles():
    return jsonify({'roles': {role: role_matrix(role) for role in EDITABLE_ROLES}})


@bp.route('/<role>')
@login_required
@page_required('role-management')
def get_role(role):
    role = parse_choice(role, EDITABLE_ROLES, 'role')
    return jsonify({'role': role, 'permissions': role_matrix(role)})


@bp.route('/<role>', methods=['PUT'])
@login_required
@page_required('role-management')
def update_role(role):
    """Replace the stored permissions of a role"""
    role = parse_choice(role, EDITABLE_ROLES, 'role')
    data = request.get_json(silent=True) or {}
    entries = data.get('permissions')
    if not isinstance(entries, list):
        raise ValidationError('Permissions list is required')

    new_rows = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise ValidationError('Each permission must be an object')
        page_id = entry.get('page_id')
        if page_id not in PAGE_SECTIONS:
            raise ValidationError(f'Unknown page: {page_id}')
        new_rows.append(RolePermission(
            role=role,
            section=PAGE_SECTIONS[page_id],
            page_id=page_id,
            can_access=parse_bool(entry.get('can_access'), default=False),
            can_confirm_order=parse_bool(entry.get('can_confirm_order'), default=True),
            can_validate_order=parse_bool(entry.get('can_validate_order'), default=True),
        ))

    try:
        # Row by row so every change reaches the change feed
        for perm in RolePermission.query.filter_by(role=role).all():
            db.session.delete(perm)
        db.session.flush()
        db.session.add_all(new_rows)
        db.session.commit()
        current_app.logger.info(f"Permissions of role {role} updated by {current_user.username}")
        return jsonify({'success': True, 'role': role, 'permissions': role_matrix(role)})

    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error saving permissions for {role}: {e}")
        return jsonify({'success': False, 'error': 'Error saving permissions'}), 500
