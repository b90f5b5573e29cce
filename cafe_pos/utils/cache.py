"""
Caching utilities for the back-office
Dashboard figures are cached with Flask-Caching and dropped whenever the
rows they are computed from change.
"""

from flask_caching import Cache

from cafe_pos.utils import realtime

cache = Cache()

DASHBOARD_KEYS = (
    'dashboard/periods',
    'dashboard/stats',
    'dashboard/top-products',
)

# Tables feeding the analytics dashboard
DASHBOARD_TABLES = ('orders', 'order_items', 'expenses', 'products', 'customers')


def init_cache(app):
    """Initialize the cache with the Flask app"""
    cache.init_app(app)
    app.logger.info(f"Cache initialized with type: {app.config.get('CACHE_TYPE', 'SimpleCache')}")
    return cache


def cache_dashboard(key, timeout=300):
    """Cache a dashboard view under a fixed key"""
    return cache.cached(timeout=timeout, key_prefix=key)


def invalidate_dashboard(change=None):
    """Drop every cached dashboard response"""
    cache.delete_many(*DASHBOARD_KEYS)


def navigation_key(role):
    return f'navigation/{role}'


def _role_invalidator(role):
    def invalidate(change):
        cache.delete(navigation_key(role))
    return invalidate


_unsubscribers = []


def register_cache_invalidation():
    """
    Subscribe cached views to changes of their source tables (once per process)

    Navigation menus are cached per role; each role only listens to changes
    of its own role_permissions rows.
    """
    from cafe_pos.models import ROLES

    if not _unsubscribers:
        _unsubscribers.extend(realtime.subscribe(table, invalidate_dashboard)
                              for table in DASHBOARD_TABLES)
        for role in ROLES:
            _unsubscribers.append(realtime.subscribe(
                'role_permissions',
                _role_invalidator(role),
                predicate=lambda change, role=role: change.data.get('role') == role
            ))
    return _unsubscribers


def clear_all_cache():
    """Clear all cached data"""
    cache.clear()
