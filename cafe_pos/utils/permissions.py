"""
Permission Decorators
Page-level access checks driven by the role_permissions matrix
"""

from functools import wraps
from flask import jsonify
from flask_login import current_user


def page_required(page_id):
    """
    Decorator to require access to a navigation page

    Usage:
        @page_required('expenses')
        def list_expenses():
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({'success': False, 'error': 'Authentication required'}), 401

            if not current_user.can_access(page_id):
                return jsonify({'success': False, 'error': 'Insufficient permissions'}), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator


def role_required(*roles):
    """
    Decorator to require one of the given roles (super_admin always passes)

    Usage:
        @role_required('admin')
        def update_matrix():
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({'success': False, 'error': 'Authentication required'}), 401

            if not (current_user.is_super_admin or current_user.role in roles):
                return jsonify({'success': False,
                                'error': f"Role {' or '.join(roles)} required"}), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator


def is_manager(user):
    """Admins see everybody's records, other roles only their own"""
    return user.is_super_admin or user.role == 'admin'
