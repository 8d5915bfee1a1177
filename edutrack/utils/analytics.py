"""Date bucketing and summary helpers shared by the dashboard endpoints.

Aggregations over time are done here rather than in SQL so the same code
runs on MySQL in production and SQLite under test.
"""
from collections import OrderedDict
from datetime import datetime, timedelta
from statistics import mean, median

TIME_RANGES = OrderedDict([
    ('7d', timedelta(days=7)),
    ('30d', timedelta(days=30)),
    ('90d', timedelta(days=90)),
    ('1y', timedelta(days=365)),
    ('all', None),
])
DEFAULT_TIME_RANGE = '30d'

# period -> (bucket unit, look-back window, human readable window)
TREND_PERIODS = {
    'daily': ('day', timedelta(days=30), '30 days'),
    'weekly': ('week', timedelta(weeks=12), '12 weeks'),
    'monthly': ('month', timedelta(days=365), '12 months'),
}

TREND_THRESHOLD = 5.0


def time_range_start(time_range, now=None):
    """Lower bound for ``created_at`` or None when the range is unbounded"""
    span = TIME_RANGES.get(time_range, TIME_RANGES[DEFAULT_TIME_RANGE])
    if span is None:
        return None
    return (now or datetime.utcnow()) - span


def truncate(value, unit):
    """Start of the day, ISO week (Monday) or month containing ``value``"""
    day = datetime(value.year, value.month, value.day)
    if unit == 'day':
        return day
    if unit == 'week':
        return day - timedelta(days=day.weekday())
    if unit == 'month':
        return datetime(value.year, value.month, 1)
    raise ValueError(f'Unknown bucket unit: {unit}')


def bucket(items, timestamp, unit):
    """Group ``items`` by truncated timestamp, newest bucket first"""
    buckets = {}
    for item in items:
        moment = timestamp(item)
        if moment is None:
            continue
        buckets.setdefault(truncate(moment, unit), []).append(item)
    return OrderedDict(sorted(buckets.items(), key=lambda pair: pair[0], reverse=True))


def resolution_days(created_at, resolved_at):
    if not created_at or not resolved_at:
        return None
    return (resolved_at - created_at).total_seconds() / 86400


def average(values):
    values = [v for v in values if v is not None]
    return mean(values) if values else 0.0


def middle(values):
    values = [v for v in values if v is not None]
    return median(values) if values else 0.0


def rate(part, whole):
    """Percentage rounded to one decimal; 0.0 for an empty whole"""
    if not whole:
        return 0.0
    return round(part / whole * 100, 1)


def one_decimal(value):
    return round(float(value or 0), 1)


def trend_analysis(values):
    """Compare the newest two points of a newest-first series.

    Returns ``(direction, percentage)``; a change beyond five percent
    either way counts as a trend.
    """
    if len(values) < 2 or not values[1]:
        return 'stable', 0.0
    current, previous = values[0], values[1]
    percentage = (current - previous) / previous * 100
    if percentage > TREND_THRESHOLD:
        return 'increasing', round(percentage, 1)
    if percentage < -TREND_THRESHOLD:
        return 'decreasing', round(percentage, 1)
    return 'stable', round(percentage, 1)


def trend_interpretation(direction, percentage, metric):
    change = abs(percentage)
    if direction == 'increasing':
        if metric == 'reports':
            return f'Reports have increased by {change}%, indicating either more issues or improved reporting'
        if metric == 'resolutions':
            return f'Resolutions have increased by {change}%, showing improved response capacity'
    elif direction == 'decreasing':
        if metric == 'reports':
            return f'Reports have decreased by {change}%, possibly indicating infrastructure improvements'
        if metric == 'resolutions':
            return f'Resolutions have decreased by {change}%, may require attention to response capacity'
    elif direction == 'stable':
        label = metric.replace('_', ' ')
        return f'{label[0].upper()}{label[1:]} levels remain stable with minimal change'
    return f'Trend analysis shows {direction} pattern in {metric}'


def relative_time(then, now=None):
    """Compact age of a timestamp, e.g. ``5m ago`` or ``3d ago``"""
    if then is None:
        return None
    minutes = int(((now or datetime.utcnow()) - then).total_seconds() // 60)
    if minutes < 1:
        return 'Just now'
    if minutes < 60:
        return f'{minutes}m ago'
    hours = minutes // 60
    if hours < 24:
        return f'{hours}h ago'
    days = hours // 24
    if days < 7:
        return f'{days}d ago'
    weeks = days // 7
    if weeks < 4:
        return f'{weeks}w ago'
    return f'{max(days // 30, 1)}mo ago'
