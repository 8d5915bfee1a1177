from datetime import datetime

from flask import Blueprint, jsonify, request
from flask_login import login_required

from edutrack.auth import get_viewer, government_required
from edutrack.services.dashboard_service import DashboardService
from edutrack.utils.analytics import DEFAULT_TIME_RANGE, TIME_RANGES, TREND_PERIODS
from edutrack.utils.validation import FieldValidator

bp = Blueprint('dashboard', __name__, url_prefix='/api/dashboard')

CHART_TYPES = ('timeline', 'status', 'priority', 'issueType', 'lga', 'monthly')
ACTIVITY_TYPES = ('reports', 'resolutions', 'comments', 'all')
TREND_METRICS = ('reports', 'resolutions', 'students_affected', 'cost')


def dashboard_filters(v):
    time_range = v.choice('timeRange', TIME_RANGES, 'Time range must be one of: 7d, 30d, 90d, 1y, all') \
        or DEFAULT_TIME_RANGE
    lga = v.string('lga', 'LGA must be 2-100 characters', 2, 100, required=False)
    return time_range, lga


@bp.route('/stats')
def stats():
    v = FieldValidator(request.args, 'Invalid query parameters')
    time_range, lga = dashboard_filters(v)
    v.validate()

    return jsonify({'success': True, 'data': DashboardService.stats(get_viewer(), time_range, lga)})


@bp.route('/charts')
def charts():
    v = FieldValidator(request.args, 'Invalid parameters')
    chart_type = v.choice('type', CHART_TYPES, 'Chart type must be one of: ' + ', '.join(CHART_TYPES),
                          required=True)
    time_range, lga = dashboard_filters(v)
    v.validate()

    return jsonify({
        'success': True,
        'data': {
            'chartType': chart_type,
            'data': DashboardService.chart(chart_type, time_range, lga),
            'filters': {'lga': lga, 'timeRange': time_range},
            'generatedAt': datetime.utcnow().isoformat(),
        }
    })


@bp.route('/recent')
def recent():
    v = FieldValidator(request.args, 'Invalid query parameters')
    limit = v.integer('limit', 'Limit must be between 1 and 100', 1, 100) or 20
    activity_type = v.choice('type', ACTIVITY_TYPES, 'Type must be one of: reports, resolutions, comments, all') \
        or 'all'
    v.validate()

    activities = DashboardService.recent_activity(get_viewer(), activity_type, limit)
    return jsonify({
        'success': True,
        'data': {
            'activities': activities,
            'totalCount': len(activities),
            'type': activity_type,
            'generatedAt': datetime.utcnow().isoformat(),
        }
    })


@bp.route('/trends')
@login_required
@government_required
def trends():
    v = FieldValidator(request.args, 'Invalid query parameters')
    period = v.choice('period', TREND_PERIODS, 'Period must be one of: daily, weekly, monthly') or 'weekly'
    metric = v.choice('metric', TREND_METRICS,
                      'Metric must be one of: reports, resolutions, students_affected, cost') or 'reports'
    v.validate()

    return jsonify({'success': True, 'data': DashboardService.trends(period, metric)})


@bp.route('/performance')
@login_required
@government_required
def performance():
    return jsonify({'success': True, 'data': DashboardService.performance()})
