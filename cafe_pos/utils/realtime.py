"""
In-process change feed
Row-level insert/update/delete notifications dispatched after a successful commit.

Views subscribe by table name to re-run their fetches (or drop cached
results) when the underlying rows change. Nothing leaves the process.
"""

import logging
from collections import defaultdict
from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

_subscribers = defaultdict(list)
_installed = False

PENDING_KEY = 'cafe_pos_pending_changes'


class ChangeEvent:
    """A committed change to one row"""

    def __init__(self, table, action, row_id, data):
        self.table = table
        self.action = action  # insert, update, delete
        self.row_id = row_id
        self.data = data

    def __repr__(self):
        return f'<ChangeEvent {self.action} {self.table}#{self.row_id}>'


def _snapshot(obj):
    # Read loaded state only; deleted rows cannot be refreshed
    state = inspect(obj)
    return {column.key: state.dict.get(column.key) for column in state.mapper.column_attrs}


def subscribe(table, callback, predicate=None):
    """
    Register a callback for committed changes of a table

    Args:
        table: Table name, e.g. 'orders'
        callback: Called with a ChangeEvent
        predicate: Optional filter called with the ChangeEvent; the callback
            only runs when it returns True

    Returns:
        A function that removes the subscription
    """
    entry = (callback, predicate)
    _subscribers[table].append(entry)

    def unsubscribe():
        if entry in _subscribers[table]:
            _subscribers[table].remove(entry)

    return unsubscribe


def publish(change):
    """Deliver one change to the subscribers of its table"""
    for callback, predicate in list(_subscribers.get(change.table, [])):
        if predicate is not None and not predicate(change):
            continue
        try:
            callback(change)
        except Exception as e:
            # One failing subscriber must not stop the others
            logger.error(f"Change subscriber failed for {change}: {e}")


def _collect(session, flush_context):
    pending = session.info.setdefault(PENDING_KEY, [])
    for action, objects in (('insert', session.new), ('update', session.dirty),
                            ('delete', session.deleted)):
        for obj in objects:
            table = getattr(obj, '__tablename__', None)
            if table is None or table not in _subscribers:
                continue
            if action == 'update' and not session.is_modified(obj):
                continue
            data = _snapshot(obj)
            identity = inspect(obj).identity
            row_id = data.get('id') if data.get('id') is not None else (identity[0] if identity else None)
            pending.append(ChangeEvent(table, action, row_id, data))


def _dispatch(session):
    pending = session.info.pop(PENDING_KEY, [])
    for change in pending:
        publish(change)


def _discard(session):
    session.info.pop(PENDING_KEY, None)


def init_change_feed():
    """Hook the feed into every SQLAlchemy session (idempotent)"""
    global _installed
    if _installed:
        return
    event.listen(Session, 'after_flush', _collect)
    event.listen(Session, 'after_commit', _dispatch)
    event.listen(Session, 'after_rollback', _discard)
    _installed = True
