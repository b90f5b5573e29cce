"""
Cash Register Session Reports
Groups register sessions by employee (and day) and builds the time-tracking statistics
"""

import logging
from collections import OrderedDict
from datetime import datetime, date
from decimal import Decimal
from cafe_pos.models import CashRegisterSession, Order

logger = logging.getLogger(__name__)


def _decimal(value):
    if value is None:
        return Decimal('0')
    return Decimal(str(value))


class EmployeeSessionGroup:
    """Running totals of the sessions of one employee (optionally for one day)"""

    def __init__(self, employee_id, day=None, employee_name=None):
        self.employee_id = employee_id
        self.day = day
        self.employee_name = employee_name
        self.session_count = 0
        self.total_opening = Decimal('0')
        self.total_closing = Decimal('0')
        self.first_opened_at = None
        self.last_closed_at = None
        self.hours_worked = 0.0

    @property
    def key(self):
        if self.day is None:
            return self.employee_id
        return (self.employee_id, self.day)

    @property
    def balance(self):
        return self.total_closing - self.total_opening

    def add(self, session):
        """Fold one session into the group"""
        self.session_count += 1
        self.total_opening += _decimal(session.opening_amount)
        # Open sessions still count but add nothing to the closing sum
        if session.closing_amount is not None:
            self.total_closing += _decimal(session.closing_amount)

        if self.first_opened_at is None or session.opened_at < self.first_opened_at:
            self.first_opened_at = session.opened_at
        if session.closed_at and (self.last_closed_at is None or session.closed_at > self.last_closed_at):
            self.last_closed_at = session.closed_at

        if session.closed_at:
            self.hours_worked += (session.closed_at - session.opened_at).total_seconds() / 3600

    def to_dict(self):
        return {
            'employee_id': self.employee_id,
            'employee_name': self.employee_name,
            'date': self.day.isoformat() if self.day else None,
            'session_count': self.session_count,
            'total_opening': float(self.total_opening),
            'total_closing': float(self.total_closing),
            'balance': float(self.balance),
            'first_opened_at': self.first_opened_at.isoformat() if self.first_opened_at else None,
            'last_closed_at': self.last_closed_at.isoformat() if self.last_closed_at else None,
            'hours_worked': round(self.hours_worked, 2),
        }


def _employee_name(session):
    employee = getattr(session, 'employee', None)
    return employee.full_name if employee else None


def group_sessions(sessions, by_day=False):
    """
    Fold sessions into groups keyed by employee, or by employee and day

    Groups keep the order in which their key first appears in `sessions`.

    Returns:
        OrderedDict mapping key -> EmployeeSessionGroup
    """
    groups = OrderedDict()
    for session in sessions:
        day = session.opened_at.date() if by_day else None
        key = (session.employee_id, day) if by_day else session.employee_id
        group = groups.get(key)
        if group is None:
            group = EmployeeSessionGroup(session.employee_id, day=day,
                                         employee_name=_employee_name(session))
            groups[key] = group
        group.add(session)
    return groups


def session_totals(sessions):
    """Total opening, total closing and their balance over a list of sessions"""
    total_opening = sum((_decimal(s.opening_amount) for s in sessions), Decimal('0'))
    total_closing = sum((_decimal(s.closing_amount) for s in sessions
                         if s.closing_amount is not None), Decimal('0'))
    return {
        'total_opening': total_opening,
        'total_closing': total_closing,
        'balance': total_closing - total_opening,
        'session_count': len(sessions),
        'open_count': sum(1 for s in sessions if s.status == 'open'),
    }


def month_bounds(month):
    """First day of `month` ('YYYY-MM') and first day of the following month"""
    start = datetime.strptime(month, '%Y-%m')
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def employee_month_stats(employee_id, month):
    """
    Work sessions and sales of one employee during a month

    Args:
        employee_id: Employee primary key
        month: Month as 'YYYY-MM'

    Returns:
        tuple: (days, month_stats) where days is a list of per-day dicts,
        most recent day first
    """
    start, end = month_bounds(month)

    sessions = CashRegisterSession.query.filter(
        CashRegisterSession.employee_id == employee_id,
        CashRegisterSession.opened_at >= start,
        CashRegisterSession.opened_at < end
    ).order_by(CashRegisterSession.opened_at.asc()).all()

    orders = Order.query.filter(
        Order.employee_id == employee_id,
        Order.created_at >= start,
        Order.created_at < end,
        Order.status == 'completed'
    ).all()

    groups = group_sessions(sessions, by_day=True)

    days = OrderedDict()
    for group in groups.values():
        days[group.day] = {
            'group': group,
            'sessions': [],
            'total_sales': Decimal('0'),
            'orders_count': 0,
        }
    for session in sessions:
        days[session.opened_at.date()]['sessions'].append(session)

    # Sales only count on days the employee had a register session
    for order in orders:
        day = days.get(order.created_at.date())
        if day is not None:
            day['total_sales'] += _decimal(order.total)
            day['orders_count'] += 1

    day_list = []
    for day, data in sorted(days.items(), key=lambda item: item[0], reverse=True):
        group = data['group']
        hours = group.hours_worked
        day_list.append({
            'date': day,
            'sessions': data['sessions'],
            'session_count': group.session_count,
            'total_hours': hours,
            'total_sales': data['total_sales'],
            'orders_count': data['orders_count'],
            'first_check_in': group.first_opened_at,
            'last_check_out': group.last_closed_at,
            'sales_per_hour': data['total_sales'] / Decimal(str(hours)) if hours > 0 else Decimal('0'),
        })

    total_hours = sum(day['total_hours'] for day in day_list)
    total_sales = sum((day['total_sales'] for day in day_list), Decimal('0'))
    month_stats = {
        'total_days_worked': len(day_list),
        'total_hours_worked': total_hours,
        'average_hours_per_day': total_hours / len(day_list) if day_list else 0.0,
        'total_sales': total_sales,
        'total_orders': sum(day['orders_count'] for day in day_list),
        'sales_per_hour': total_sales / Decimal(str(total_hours)) if total_hours > 0 else Decimal('0'),
    }

    logger.info(f"Time stats for employee {employee_id} in {month}: "
                f"{month_stats['total_days_worked']} days, {total_hours:.2f} hours")
    return day_list, month_stats


def serialize_day(day):
    """JSON-friendly copy of a day entry from employee_month_stats"""
    return {
        'date': day['date'].isoformat() if isinstance(day['date'], date) else day['date'],
        'session_count': day['session_count'],
        'total_hours': round(day['total_hours'], 2),
        'total_sales': float(day['total_sales']),
        'orders_count': day['orders_count'],
        'first_check_in': day['first_check_in'].isoformat() if day['first_check_in'] else None,
        'last_check_out': day['last_check_out'].isoformat() if day['last_check_out'] else None,
        'sales_per_hour': round(float(day['sales_per_hour']), 2),
    }
