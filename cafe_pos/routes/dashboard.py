"""
Analytics Dashboard Routes
Period summaries, header cards, daily sales and top products
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required
from cafe_pos.services import aggregation
from cafe_pos.utils.cache import cache_dashboard
from cafe_pos.utils.permissions import page_required
from cafe_pos.utils.validation import parse_int

bp = Blueprint('dashboard', __name__)


@bp.route('/periods')
@login_required
@page_required('analytics')
@cache_dashboard('dashboard/periods', timeout=60)
def periods():
    """Sales, expenses, profit and margin for today, the last 7 days and this month"""
    summaries = aggregation.compute_period_summaries()
    return jsonify({'periods': [summary.to_dict() for summary in summaries]})


@bp.route('/stats')
@login_required
@page_required('analytics')
@cache_dashboard('dashboard/stats', timeout=60)
def stats():
    return jsonify(aggregation.dashboard_stats())


@bp.route('/daily-sales')
@login_required
@page_required('analytics')
def daily_sales():
    """Completed sales per day (default 7 days)"""
    days = parse_int(request.args.get('days', 7), 'days', minimum=1)
    return jsonify({'days': aggregation.daily_sales(days=min(days, 90))})


@bp.route('/top-products')
@login_required
@page_required('analytics')
@cache_dashboard('dashboard/top-products', timeout=120)
def top_products():
    return jsonify({'products': aggregation.top_products(limit=5)})


@bp.route('/')
@login_required
@page_required('analytics')
def overview():
    """All dashboard figures in one response; each part is fetched independently"""
    return jsonify({
        'stats': aggregation.dashboard_stats(),
        'periods': [summary.to_dict() for summary in aggregation.compute_period_summaries()],
        'daily_sales': aggregation.daily_sales(),
        'top_products': aggregation.top_products(),
    })
