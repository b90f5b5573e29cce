"""
Period Aggregation Service
Sales, expenses, profit and margin summaries for the analytics dashboard
"""

import logging
from collections import OrderedDict
from datetime import datetime, timedelta
from decimal import Decimal
from sqlalchemy.exc import SQLAlchemyError
from cafe_pos.models import db, Order, OrderItem, Expense, Product, Customer

logger = logging.getLogger(__name__)

PERIODS = ('today', 'week', 'month')


def _value(row, key):
    """Read a field from a model instance or a plain dict"""
    if isinstance(row, dict):
        return row.get(key)
    return getattr(row, key, None)


def _decimal(value):
    if value is None:
        return Decimal('0')
    return Decimal(str(value))


class PeriodSummary:
    """Aggregated sales and expenses for one named period"""

    def __init__(self, period_name, sales, expenses, start=None, end=None):
        self.period_name = period_name
        self.sales = _decimal(sales)
        self.expenses = _decimal(expenses)
        self.start = start
        self.end = end

    @property
    def profit(self):
        return self.sales - self.expenses

    @property
    def profit_margin(self):
        """Profit as a percentage of sales, 0 when there were no sales"""
        if self.sales > 0:
            return self.profit / self.sales * 100
        return Decimal('0')

    def to_dict(self):
        return {
            'period': self.period_name,
            'start': self.start.isoformat() if self.start else None,
            'end': self.end.isoformat() if self.end else None,
            'sales': float(self.sales),
            'expenses': float(self.expenses),
            'profit': float(self.profit),
            'profit_margin': round(float(self.profit_margin), 2),
        }

    def __repr__(self):
        return f'<PeriodSummary {self.period_name} sales={self.sales} expenses={self.expenses}>'


def sales_total(orders):
    """Sum of order totals, counting completed orders only"""
    return sum((_decimal(_value(order, 'total')) for order in orders
                if _value(order, 'status') == 'completed'), Decimal('0'))


def expenses_total(expenses):
    return sum((_decimal(_value(expense, 'amount')) for expense in expenses), Decimal('0'))


def summarize(period_name, orders, expenses, start=None, end=None):
    """
    Build the summary of one period from rows already restricted to its window

    Args:
        period_name: Label of the period (today, week, month)
        orders: Orders created within the window, any status
        expenses: Expenses dated within the window

    Returns:
        PeriodSummary
    """
    return PeriodSummary(period_name, sales_total(orders), expenses_total(expenses),
                         start=start, end=end)


def period_ranges(now=None):
    """
    Windows of the dashboard periods, each ending at now

    today starts at local midnight, week covers the rolling seven days
    before now and month starts on the first day of the current month.
    """
    now = now or datetime.now()
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)

    return OrderedDict([
        ('today', (start_of_day, now)),
        ('week', (now - timedelta(days=7), now)),
        ('month', (start_of_day.replace(day=1), now)),
    ])


def fetch_orders(start, end):
    """Orders created within [start, end]; empty list if the query fails"""
    try:
        return Order.query.filter(
            Order.created_at >= start,
            Order.created_at <= end
        ).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error fetching orders for {start} - {end}: {e}")
        return []


def fetch_expenses(start, end):
    """Expenses dated within the days of [start, end]; empty list if the query fails"""
    try:
        return Expense.query.filter(
            Expense.date >= start.date(),
            Expense.date <= end.date()
        ).all()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error fetching expenses for {start} - {end}: {e}")
        return []


def compute_period_summaries(now=None):
    """One summary per dashboard period, each fetched with its own range"""
    summaries = []
    for name, (start, end) in period_ranges(now).items():
        orders = fetch_orders(start, end)
        expenses = fetch_expenses(start, end)
        summaries.append(summarize(name, orders, expenses, start=start, end=end))
    return summaries


def dashboard_stats(now=None):
    """Header cards: today's completed sales and orders, product and customer counts"""
    now = now or datetime.now()
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)

    stats = {
        'today_sales': 0.0,
        'today_orders': 0,
        'total_products': 0,
        'total_customers': 0,
    }

    completed_today = [order for order in fetch_orders(start_of_day, now)
                       if order.status == 'completed']
    stats['today_sales'] = float(sales_total(completed_today))
    stats['today_orders'] = len(completed_today)

    try:
        stats['total_products'] = Product.query.count()
        stats['total_customers'] = Customer.query.count()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error counting products/customers: {e}")

    return stats


def daily_sales(days=7, now=None):
    """Completed sales per day for the last `days` days, oldest first, zero-filled"""
    now = now or datetime.now()
    first_day = (now - timedelta(days=days - 1)).date()
    start = datetime.combine(first_day, datetime.min.time())

    per_day = OrderedDict()
    for offset in range(days):
        day = first_day + timedelta(days=offset)
        per_day[day] = {'date': day.isoformat(), 'total': Decimal('0'), 'order_count': 0}

    for order in fetch_orders(start, now):
        if order.status != 'completed':
            continue
        bucket = per_day.get(order.created_at.date())
        if bucket is not None:
            bucket['total'] += _decimal(order.total)
            bucket['order_count'] += 1

    return [{'date': bucket['date'], 'total': float(bucket['total']),
             'order_count': bucket['order_count']} for bucket in per_day.values()]


def top_products(limit=5):
    """Best sellers by quantity across non-cancelled orders"""
    try:
        items = OrderItem.query.join(Order).filter(Order.status != 'cancelled').all()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error fetching order items: {e}")
        return []

    aggregated = OrderedDict()
    for item in items:
        name = item.product_name or (item.product.name if item.product else 'Unknown')
        entry = aggregated.setdefault(name, {'product_name': name, 'quantity_sold': 0,
                                             'revenue': Decimal('0')})
        entry['quantity_sold'] += item.quantity
        entry['revenue'] += _decimal(item.subtotal)

    ranked = sorted(aggregated.values(), key=lambda e: e['quantity_sold'], reverse=True)[:limit]
    return [{'product_name': e['product_name'], 'quantity_sold': e['quantity_sold'],
             'revenue': float(e['revenue'])} for e in ranked]
