"""
Tests for the in-process change feed and the cache invalidation built on it.
"""

import pytest
from datetime import date
from decimal import Decimal

from cafe_pos.utils import realtime
from cafe_pos.utils.cache import navigation_key, register_cache_invalidation, invalidate_dashboard


@pytest.fixture
def received():
    """Subscribe a recorder to a table and unsubscribe after the test."""
    events = []
    unsubscribers = []

    def _subscribe(table, predicate=None):
        unsubscribers.append(realtime.subscribe(table, events.append, predicate=predicate))
        return events

    yield _subscribe

    for unsubscribe in unsubscribers:
        unsubscribe()


def add_expense(db, description='Milk', amount='12.00', category='supplier'):
    from cafe_pos.models import Expense
    expense = Expense(date=date(2024, 3, 1), category=category, description=description,
                      amount=Decimal(amount))
    db.session.add(expense)
    return expense


@pytest.mark.integration
class TestChangeFeed:
    """Row-level events delivered after commit."""

    def test_insert_delivered_after_commit(self, fresh_app, received):
        from cafe_pos.models import db

        events = received('expenses')
        with fresh_app.app_context():
            expense = add_expense(db)
            db.session.flush()
            assert events == []

            db.session.commit()

            assert len(events) == 1
            assert events[0].action == 'insert'
            assert events[0].table == 'expenses'
            assert events[0].row_id == expense.id
            assert events[0].data['description'] == 'Milk'

    def test_rollback_discards_pending_events(self, fresh_app, received):
        from cafe_pos.models import db

        events = received('expenses')
        with fresh_app.app_context():
            add_expense(db)
            db.session.flush()
            db.session.rollback()

        assert events == []

    def test_update_and_delete(self, fresh_app, received):
        from cafe_pos.models import db

        events = received('expenses')
        with fresh_app.app_context():
            expense = add_expense(db)
            db.session.commit()

            expense.amount = Decimal('15.00')
            db.session.commit()

            db.session.delete(expense)
            db.session.commit()

        assert [e.action for e in events] == ['insert', 'update', 'delete']
        assert events[1].data['amount'] == Decimal('15.00')

    def test_other_tables_are_not_delivered(self, fresh_app, received):
        from cafe_pos.models import db, Category

        events = received('expenses')
        with fresh_app.app_context():
            db.session.add(Category(name='Tea'))
            db.session.commit()

        assert events == []

    def test_predicate_filters_events(self, fresh_app, received):
        from cafe_pos.models import db

        events = received('expenses', predicate=lambda change: change.data.get('category') == 'rent')
        with fresh_app.app_context():
            add_expense(db, description='Milk', category='supplier')
            add_expense(db, description='March rent', amount='900.00', category='rent')
            db.session.commit()

        assert [e.data['description'] for e in events] == ['March rent']

    def test_failing_subscriber_does_not_stop_others(self, fresh_app, received):
        from cafe_pos.models import db

        def broken(change):
            raise RuntimeError('boom')

        unsubscribe = realtime.subscribe('expenses', broken)
        try:
            events = received('expenses')
            with fresh_app.app_context():
                add_expense(db)
                db.session.commit()
        finally:
            unsubscribe()

        assert len(events) == 1

    def test_unsubscribe(self, fresh_app):
        from cafe_pos.models import db

        events = []
        unsubscribe = realtime.subscribe('expenses', events.append)
        unsubscribe()

        with fresh_app.app_context():
            add_expense(db)
            db.session.commit()

        assert events == []


@pytest.mark.integration
class TestCacheInvalidation:
    """Cached views listen to their source tables."""

    def test_dashboard_tables_subscribed(self, fresh_app):
        register_cache_invalidation()
        for table in ('orders', 'expenses', 'products'):
            callbacks = [callback for callback, _ in realtime._subscribers[table]]
            assert invalidate_dashboard in callbacks

    def test_expense_change_drops_dashboard_cache(self, fresh_app, monkeypatch):
        from cafe_pos.models import db
        from cafe_pos.utils.cache import cache

        deleted = []
        monkeypatch.setattr(cache, 'delete_many', lambda *keys: deleted.append(keys))

        with fresh_app.app_context():
            add_expense(db)
            db.session.commit()

        assert deleted
        assert 'dashboard/periods' in deleted[0]

    def test_navigation_dropped_only_for_changed_role(self, fresh_app, monkeypatch):
        from cafe_pos.models import db, RolePermission
        from cafe_pos.utils.cache import cache

        deleted = []
        monkeypatch.setattr(cache, 'delete', lambda key: deleted.append(key))

        with fresh_app.app_context():
            db.session.add(RolePermission(role='barista', section='sales', page_id='floor',
                                          can_access=True))
            db.session.commit()

        assert deleted == [navigation_key('barista')]
