from datetime import datetime, timedelta

from sqlalchemy import case, func

from edutrack import db
from edutrack.models import Comment, Report, School, User
from edutrack.models.report import PRIORITIES, STATUSES
from edutrack.models.school import SCHOOL_TYPES
from edutrack.utils.analytics import (
    TREND_PERIODS, average, bucket, middle, one_decimal, rate, relative_time, resolution_days,
    time_range_start, trend_analysis, trend_interpretation
)
from edutrack.utils.report_policy import can_see_internal_comments

PRIORITY_RANK = {priority: rank for rank, priority in enumerate(PRIORITIES, start=1)}

RECENT_ACTIVITY_LIMIT = 10
COMMENT_PREVIEW_LENGTH = 100
TIMELINE_POINTS = 30

PERFORMANCE_BENCHMARKS = {
    'targetResolutionRate': 85,
    'targetAvgDays': 30,
    'targetUrgentResponse': 95,
    'targetMonthlyRate': 90,
}


def count_where(condition):
    return func.count(case((condition, 1)))


def total(column):
    return func.coalesce(func.sum(column), 0)


def _camel(value):
    head, *rest = value.replace('-', '_').split('_')
    return head + ''.join(part.title() for part in rest)


def _iso(value):
    return value.isoformat() if value else None


def report_query(*columns, since=None, lga=None):
    """Aggregate query over reports joined to their school, with the common filters"""
    query = db.session.query(*columns).select_from(Report).join(School, Report.school_id == School.id)
    if since is not None:
        query = query.filter(Report.created_at >= since)
    if lga:
        query = query.filter(School.lga == lga)
    return query


def visible_reports(viewer):
    query = Report.query.join(School, Report.school_id == School.id)
    clause = Report.visible_to(viewer)
    if clause is not None:
        query = query.filter(clause)
    return query


class DashboardService:

    @staticmethod
    def resolution_times(since=None, lga=None):
        rows = report_query(Report.created_at, Report.resolved_at, since=since, lga=lga) \
            .filter(Report.status == 'resolved', Report.resolved_at.isnot(None)).all()
        return [resolution_days(created, resolved) for created, resolved in rows]

    @staticmethod
    def stats(viewer, time_range, lga=None):
        since = time_range_start(time_range)

        status_columns = [count_where(Report.status == status) for status in STATUSES]
        priority_columns = [count_where(Report.priority == priority) for priority in PRIORITIES]
        row = report_query(
            func.count(Report.id),
            total(Report.students_affected),
            total(Report.estimated_cost),
            total(Report.resolution_cost),
            func.count(func.distinct(Report.school_id)),
            *status_columns,
            *priority_columns,
            since=since, lga=lga
        ).one()
        total_reports, students, estimated, resolution_cost, affected_schools = row[:5]
        by_status = dict(zip(STATUSES, row[5:5 + len(STATUSES)]))
        by_priority = dict(zip(PRIORITIES, row[5 + len(STATUSES):]))

        return {
            'overview': {
                'totalReports': total_reports,
                'reportsByStatus': {_camel(status): count for status, count in by_status.items()},
                'reportsByPriority': {priority: by_priority[priority] for priority in reversed(PRIORITIES)},
                'resolutionRate': rate(by_status['resolved'], total_reports),
                'urgencyRate': rate(by_priority['urgent'], total_reports),
                'avgResolutionDays': one_decimal(average(DashboardService.resolution_times(since, lga))),
                'totalStudentsAffected': int(students),
                'totalEstimatedCost': float(estimated),
                'totalResolutionCost': float(resolution_cost),
                'affectedSchools': affected_schools,
            },
            'schools': DashboardService.school_stats(lga),
            'users': DashboardService.user_stats(),
            'recentActivity': DashboardService.recent_reports(viewer, lga),
            'issueBreakdown': DashboardService.issue_breakdown(since, lga),
            'filters': {'lga': lga, 'timeRange': time_range},
            'generatedAt': datetime.utcnow().isoformat(),
        }

    @staticmethod
    def school_stats(lga=None):
        query = db.session.query(
            func.count(School.id),
            func.count(func.distinct(School.lga)),
            total(School.total_students),
            total(School.total_teachers),
            total(School.total_classrooms),
            *[count_where(School.school_type == school_type) for school_type in SCHOOL_TYPES]
        ).filter(School.is_active.is_(True))
        if lga:
            query = query.filter(School.lga == lga)
        row = query.one()
        return {
            'totalSchools': row[0],
            'totalLGAs': row[1],
            'totalStudentsInSystem': int(row[2]),
            'totalTeachers': int(row[3]),
            'totalClassrooms': int(row[4]),
            'schoolsByType': dict(zip(SCHOOL_TYPES, row[5:])),
        }

    @staticmethod
    def user_stats():
        row = db.session.query(
            func.count(User.id),
            count_where(User.is_active.is_(True)),
            count_where(User.role == 'teacher'),
            count_where(User.role == 'admin'),
            count_where(User.role == 'government'),
            count_where(User.role == 'ngo'),
        ).one()
        return {
            'totalUsers': row[0],
            'activeUsers': row[1],
            'usersByRole': {
                'teachers': row[2],
                'admins': row[3],
                'government': row[4],
                'ngos': row[5],
            },
        }

    @staticmethod
    def recent_reports(viewer, lga=None, limit=RECENT_ACTIVITY_LIMIT):
        query = visible_reports(viewer)
        if lga:
            query = query.filter(School.lga == lga)
        reports = query.order_by(Report.updated_at.desc()).limit(limit).all()
        return [{
            'id': report.id,
            'title': report.title,
            'status': report.status,
            'priority': report.priority,
            'createdAt': _iso(report.created_at),
            'updatedAt': _iso(report.updated_at),
            'schoolName': report.school.name,
            'lga': report.school.lga,
            'reporterName': 'Anonymous' if report.is_anonymous or not report.reporter
            else report.reporter.full_name,
        } for report in reports]

    @staticmethod
    def issue_breakdown(since=None, lga=None):
        rows = report_query(
            Report.issue_type,
            func.count(Report.id),
            count_where(Report.status == 'resolved'),
            func.avg(Report.urgency_score),
            since=since, lga=lga
        ).group_by(Report.issue_type).order_by(func.count(Report.id).desc()).all()
        return [{
            'issueType': issue_type,
            'count': count,
            'resolvedCount': resolved,
            'resolutionRate': rate(resolved, count),
            'avgUrgency': one_decimal(avg_urgency),
        } for issue_type, count, resolved, avg_urgency in rows]

    @staticmethod
    def chart(chart_type, time_range, lga=None):
        since = time_range_start(time_range)

        if chart_type == 'timeline':
            rows = report_query(Report.created_at, Report.status, Report.priority, since=since, lga=lga).all()
            buckets = bucket(rows, lambda r: r.created_at, 'day')
            return [{
                'date': day.date().isoformat(),
                'total': len(items),
                'resolved': sum(1 for r in items if r.status == 'resolved'),
                'urgent': sum(1 for r in items if r.priority == 'urgent'),
            } for day, items in list(buckets.items())[:TIMELINE_POINTS]]

        if chart_type == 'status':
            rows = report_query(Report.status, func.count(Report.id), since=since, lga=lga) \
                .group_by(Report.status).order_by(func.count(Report.id).desc()).all()
            return [{'status': status, 'count': count} for status, count in rows]

        if chart_type == 'priority':
            rows = report_query(Report.priority, func.count(Report.id), count_where(Report.status == 'resolved'),
                                since=since, lga=lga).group_by(Report.priority).all()
            rows = sorted(rows, key=lambda r: PRIORITY_RANK.get(r[0], 0), reverse=True)
            return [{'priority': priority, 'count': count, 'resolvedCount': resolved}
                    for priority, count, resolved in rows]

        if chart_type == 'issueType':
            rows = report_query(Report.issue_type, func.count(Report.id), count_where(Report.status == 'resolved'),
                                total(Report.students_affected), since=since, lga=lga) \
                .group_by(Report.issue_type).order_by(func.count(Report.id).desc()).all()
            return [{'issueType': issue_type, 'count': count, 'resolvedCount': resolved,
                     'studentsAffected': int(students)}
                    for issue_type, count, resolved, students in rows]

        if chart_type == 'lga':
            # Every LGA is compared, so the lga filter does not apply here
            rows = report_query(
                School.lga,
                func.count(Report.id),
                count_where(Report.status == 'resolved'),
                count_where(Report.priority.in_(('urgent', 'high'))),
                func.count(func.distinct(Report.school_id)),
                total(Report.students_affected),
                since=since
            ).group_by(School.lga).order_by(func.count(Report.id).desc()).all()
            return [{
                'lga': name,
                'totalReports': count,
                'resolvedReports': resolved,
                'criticalReports': critical,
                'affectedSchools': schools,
                'totalStudentsAffected': int(students),
                'resolutionRate': rate(resolved, count),
            } for name, count, resolved, critical, schools, students in rows]

        if chart_type == 'monthly':
            since = datetime.utcnow() - timedelta(days=365)
            rows = report_query(Report.created_at, Report.status, Report.students_affected,
                                Report.resolution_cost, since=since, lga=lga).all()
            return [{
                'month': month.date().isoformat(),
                'totalReports': len(items),
                'resolvedReports': sum(1 for r in items if r.status == 'resolved'),
                'studentsAffected': sum(r.students_affected or 0 for r in items),
                'totalCost': float(sum(r.resolution_cost or 0 for r in items)),
            } for month, items in bucket(rows, lambda r: r.created_at, 'month').items()]

        raise ValueError(f'Unknown chart type: {chart_type}')

    @staticmethod
    def recent_activity(viewer, activity_type='all', limit=20):
        activities = []

        if activity_type in ('reports', 'all'):
            for report in visible_reports(viewer).order_by(Report.created_at.desc()).limit(limit):
                activities.append({
                    'activityType': 'report',
                    'itemId': report.id,
                    'title': report.title,
                    'priority': report.priority,
                    'status': report.status,
                    'activityTime': report.created_at,
                    'schoolName': report.school.name,
                    'lga': report.school.lga,
                    'actorName': 'Anonymous User' if report.is_anonymous or not report.reporter
                    else report.reporter.full_name,
                })

        if activity_type in ('resolutions', 'all'):
            resolved = visible_reports(viewer).filter(
                Report.status == 'resolved', Report.resolved_at.isnot(None)
            ).order_by(Report.resolved_at.desc()).limit(limit)
            for report in resolved:
                activities.append({
                    'activityType': 'resolution',
                    'itemId': report.id,
                    'title': report.title,
                    'priority': report.priority,
                    'status': 'resolved',
                    'activityTime': report.resolved_at,
                    'schoolName': report.school.name,
                    'lga': report.school.lga,
                    'actorName': report.resolver.full_name if report.resolver else None,
                })

        if activity_type in ('comments', 'all'):
            query = Comment.query.join(Report, Comment.report_id == Report.id) \
                .join(School, Report.school_id == School.id)
            clause = Report.visible_to(viewer)
            if clause is not None:
                query = query.filter(clause)
            if not can_see_internal_comments(viewer):
                query = query.filter(Comment.is_internal.is_(False))
            for comment in query.order_by(Comment.created_at.desc()).limit(limit):
                report = comment.report
                activities.append({
                    'activityType': 'comment',
                    'itemId': comment.id,
                    'title': report.title,
                    'priority': report.priority,
                    'status': report.status,
                    'activityTime': comment.created_at,
                    'schoolName': report.school.name,
                    'lga': report.school.lga,
                    'actorName': comment.author.full_name if comment.author else None,
                    'commentType': comment.comment_type,
                    'commentPreview': (comment.comment_text or '')[:COMMENT_PREVIEW_LENGTH],
                })

        activities.sort(key=lambda a: a['activityTime'] or datetime.min, reverse=True)
        activities = activities[:limit]

        now = datetime.utcnow()
        for activity in activities:
            moment = activity['activityTime']
            activity['relativeTime'] = relative_time(moment, now)
            activity['activityTime'] = _iso(moment)
        return activities

    @staticmethod
    def trends(period, metric):
        unit, window, window_label = TREND_PERIODS[period]
        since = datetime.utcnow() - window

        rows = report_query(
            Report.created_at, Report.resolved_at, Report.status, Report.students_affected,
            Report.resolution_cost, School.lga, since=since
        ).all()

        def measure(items):
            if metric == 'reports':
                return len(items)
            if metric == 'resolutions':
                return sum(1 for r in items if r.status == 'resolved')
            if metric == 'students_affected':
                return sum(r.students_affected or 0 for r in items)
            return float(sum(r.resolution_cost or 0 for r in items))

        series = [{'period': start.isoformat(), 'value': measure(items)}
                  for start, items in bucket(rows, lambda r: r.created_at, unit).items()]
        direction, percentage = trend_analysis([point['value'] for point in series])

        by_lga = {}
        for row in rows:
            by_lga.setdefault(row.lga, []).append(row)
        insights = []
        for name, items in sorted(by_lga.items(), key=lambda pair: len(pair[1]), reverse=True):
            resolved = [r for r in items if r.status == 'resolved']
            insights.append({
                'lga': name,
                'reportCount': len(items),
                'resolvedCount': len(resolved),
                'resolutionRate': rate(len(resolved), len(items)),
                'avgResolutionDays': one_decimal(average(
                    resolution_days(r.created_at, r.resolved_at) for r in resolved)),
            })

        return {
            'trends': series,
            'analysis': {
                'direction': direction,
                'percentage': percentage,
                'interpretation': trend_interpretation(direction, percentage, metric),
            },
            'insights': insights,
            'metadata': {
                'period': period,
                'metric': metric,
                'dataPoints': len(series),
                'timeRange': window_label,
            },
            'generatedAt': datetime.utcnow().isoformat(),
        }

    @staticmethod
    def performance():
        now = datetime.utcnow()
        month_ago = now - timedelta(days=30)
        rows = report_query(
            Report.created_at, Report.resolved_at, Report.status, Report.priority, School.lga,
            since=now - timedelta(days=365)
        ).all()

        resolved = [r for r in rows if r.status == 'resolved']
        durations = [resolution_days(r.created_at, r.resolved_at) for r in resolved]
        urgent_resolved = [r for r in resolved if r.priority == 'urgent']
        urgent_on_time = [r for r in urgent_resolved
                          if r.resolved_at and r.resolved_at <= r.created_at + timedelta(days=7)]
        last_month = [r for r in rows if r.created_at >= month_ago]
        last_month_resolved = [r for r in last_month if r.status == 'resolved']

        by_lga = {}
        for row in rows:
            by_lga.setdefault(row.lga, []).append(row)
        lga_performance = []
        for name, items in sorted(by_lga.items(), key=lambda pair: len(pair[1]), reverse=True):
            done = [r for r in items if r.status == 'resolved']
            lga_performance.append({
                'lga': name,
                'reports': len(items),
                'resolved': len(done),
                'resolutionRate': rate(len(done), len(items)),
                'avgDays': one_decimal(average(resolution_days(r.created_at, r.resolved_at) for r in done)),
            })

        return {
            'kpis': {
                'overallResolutionRate': rate(len(resolved), len(rows)),
                'avgResolutionDays': one_decimal(average(durations)),
                'medianResolutionDays': one_decimal(middle(durations)),
                'urgentResponseRate': rate(len(urgent_on_time), len(urgent_resolved)),
                'monthlyResolutionRate': rate(len(last_month_resolved), len(last_month)),
                'totalReportsProcessed': len(rows),
                'reportsLastMonth': len(last_month),
            },
            'lgaPerformance': lga_performance,
            'benchmarks': dict(PERFORMANCE_BENCHMARKS),
            'generatedAt': now.isoformat(),
        }

    @staticmethod
    def report_analytics(time_range, lga=None):
        """Triage overview used by the reports analytics endpoint"""
        since = time_range_start(time_range)

        row = report_query(
            func.count(Report.id),
            count_where(Report.status == 'reported'),
            count_where(Report.status == 'in-progress'),
            count_where(Report.status == 'resolved'),
            count_where(Report.priority == 'urgent'),
            count_where(Report.priority == 'high'),
            total(Report.students_affected),
            func.count(func.distinct(Report.school_id)),
            func.count(func.distinct(School.lga)),
            since=since, lga=lga
        ).one()
        (total_reports, pending, in_progress, resolved, urgent, high,
         students, schools_with_reports, lgas_with_reports) = row

        status_rows = report_query(Report.created_at, Report.status, since=since, lga=lga).all()
        trends = []
        for day, items in bucket(status_rows, lambda r: r.created_at, 'day').items():
            counts = {}
            for item in items:
                counts[item.status] = counts.get(item.status, 0) + 1
            for status in STATUSES:
                if status in counts:
                    trends.append({'date': day.date().isoformat(), 'status': status, 'count': counts[status]})
        trends = trends[:TIMELINE_POINTS]

        issue_rows = report_query(
            Report.issue_type, func.count(Report.id), count_where(Report.status == 'resolved'),
            func.avg(Report.urgency_score), since=since, lga=lga
        ).group_by(Report.issue_type).order_by(func.count(Report.id).desc()).all()

        lga_rows = report_query(
            School.lga, func.count(Report.id), count_where(Report.status == 'resolved'),
            count_where(Report.priority.in_(('urgent', 'high'))), total(Report.students_affected),
            since=since, lga=lga
        ).group_by(School.lga).order_by(func.count(Report.id).desc()).all()

        durations = [d for d in DashboardService.resolution_times(since, lga) if d is not None]

        return {
            'overview': {
                'totalReports': total_reports,
                'pendingReports': pending,
                'inProgressReports': in_progress,
                'resolvedReports': resolved,
                'urgentReports': urgent,
                'highPriorityReports': high,
                'totalStudentsAffected': int(students),
                'avgStudentsPerReport': one_decimal(int(students) / total_reports if total_reports else 0),
                'schoolsWithReports': schools_with_reports,
                'lgasWithReports': lgas_with_reports,
                'resolutionRate': rate(resolved, total_reports),
            },
            'trends': trends,
            'issueTypes': [{
                'issueType': issue_type,
                'count': count,
                'resolvedCount': done,
                'avgUrgencyScore': one_decimal(avg_urgency),
            } for issue_type, count, done, avg_urgency in issue_rows],
            'lgaData': [{
                'lga': name,
                'totalReports': count,
                'resolvedReports': done,
                'highPriorityReports': critical,
                'studentsAffected': int(affected),
            } for name, count, done, critical, affected in lga_rows],
            'responseTime': {
                'avgResolutionDays': one_decimal(average(durations)),
                'minResolutionDays': one_decimal(min(durations) if durations else 0),
                'maxResolutionDays': one_decimal(max(durations) if durations else 0),
            },
            'timeRange': time_range,
            'generatedAt': datetime.utcnow().isoformat(),
        }
