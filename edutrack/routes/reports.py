import os
import uuid
from datetime import datetime

from flask import Blueprint, Response, current_app, jsonify, request, send_file
from flask_login import current_user, login_required
from sqlalchemy import case, or_
from werkzeug.utils import secure_filename

from edutrack import db
from edutrack.auth import (
    admin_required, get_viewer, government_required, roles_required, validate_uuid
)
from edutrack.errors import BadRequest, NotFound, PermissionDenied
from edutrack.models import Comment, Report, Resource, School
from edutrack.models.report import (
    COMMENT_TYPES, ISSUE_TYPES, PRIORITIES, PROVIDER_TYPES, RESOURCE_STATUSES, RESOURCE_TYPES,
    STATUSES, VISIBILITIES
)
from edutrack.routes.main import log_activity
from edutrack.services.dashboard_service import DashboardService
from edutrack.services.email_service import EmailService
from edutrack.services.export_service import ExportService, export_record
from edutrack.services.notification_service import NotificationService
from edutrack.utils.analytics import DEFAULT_TIME_RANGE, TIME_RANGES
from edutrack.utils.report_policy import (
    calculate_urgency_score, can_see_internal_comments, can_view_report, check_report_modification
)
from edutrack.utils.validation import FieldValidator

bp = Blueprint('reports', __name__, url_prefix='/api/reports')

SORT_COLUMNS = ('created_at', 'priority', 'status', 'students_affected', 'urgency_score')
PRIORITY_ORDER = case({priority: rank for rank, priority in enumerate(PRIORITIES, start=1)},
                      value=Report.priority, else_=0)

ALLOWED_PHOTO_TYPES = ('image/jpeg', 'image/png', 'image/jpg')
PHOTO_EXTENSIONS = {'image/jpeg': '.jpg', 'image/jpg': '.jpg', 'image/png': '.png'}

# Fields reserved for government and admin users
RESOLUTION_FIELDS = ('status', 'resolutionNotes', 'resolutionCost', 'fundingSource')

EXPORT_FORMATS = ('csv', 'json', 'xlsx', 'pdf')
URGENT_LIMIT = 50
URGENT_SCORE_THRESHOLD = 80


def get_report_or_404(report_id):
    report = db.session.get(Report, report_id)
    if report is None:
        raise NotFound('Report not found', code='REPORT_NOT_FOUND')
    return report


def require_report_access(viewer, report):
    if not can_view_report(viewer, report):
        raise PermissionDenied('Access denied to this report', code='REPORT_ACCESS_DENIED')


def request_payload():
    """JSON body, or form fields plus uploaded photos for multipart requests"""
    if request.mimetype == 'multipart/form-data':
        return request.form.to_dict(), request.files.getlist('photos')
    return request.get_json(silent=True) or {}, []


def file_size(storage):
    stream = storage.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def check_photos(validator, photos):
    photos = [p for p in photos if p and p.filename]
    max_photos = current_app.config['MAX_PHOTOS']
    max_size = current_app.config['MAX_PHOTO_SIZE']
    if len(photos) > max_photos:
        validator.error('photos', f'A maximum of {max_photos} photos can be uploaded')
        return []
    for photo in photos:
        if photo.mimetype not in ALLOWED_PHOTO_TYPES:
            validator.error('photos', 'Invalid file type. Only JPEG, PNG, and JPG are allowed.')
        elif file_size(photo) > max_size:
            validator.error('photos', f'{photo.filename} exceeds the {max_size // (1024 * 1024)}MB limit')
    return photos


def save_photos(photos):
    """Store uploads under UPLOAD_FOLDER and return their public URLs"""
    folder = current_app.config['UPLOAD_FOLDER']
    os.makedirs(folder, exist_ok=True)
    urls = []
    for photo in photos:
        original = secure_filename(photo.filename) or 'photo'
        stem = os.path.splitext(original)[0][:40]
        filename = f"report_{uuid.uuid4().hex}_{stem}{PHOTO_EXTENSIONS[photo.mimetype]}"
        photo.save(os.path.join(folder, filename))
        urls.append(f"/uploads/{filename}")
    return urls


@bp.route('', methods=['GET'])
def list_reports():
    viewer = get_viewer()

    v = FieldValidator(request.args, 'Invalid query parameters')
    page = v.integer('page', 'Page must be a positive integer', minimum=1) or 1
    limit = v.integer('limit', 'Limit must be between 1 and 100', 1, 100) or 20
    status = v.choice('status', STATUSES, 'Invalid status')
    priority = v.choice('priority', PRIORITIES, 'Invalid priority level')
    issue_type = v.choice('issueType', ISSUE_TYPES, 'Invalid issue type')
    lga = v.string('lga', 'LGA must be 2-100 characters', 2, 100, required=False)
    school_id = v.uuid('schoolId', 'Invalid school ID', required=False)
    sort_by = v.choice('sortBy', SORT_COLUMNS, 'Invalid sort field') or 'created_at'
    sort_order = v.choice('sortOrder', ('asc', 'desc'), 'Sort order must be asc or desc') or 'desc'
    search = (request.args.get('search') or '').strip()
    v.validate()

    query = Report.query.join(School, Report.school_id == School.id)

    # Apply visibility filters based on user role
    visibility = Report.visible_to(viewer)
    if visibility is not None:
        query = query.filter(visibility)

    if status:
        query = query.filter(Report.status == status)
    if priority:
        query = query.filter(Report.priority == priority)
    if issue_type:
        query = query.filter(Report.issue_type == issue_type)
    if lga:
        query = query.filter(School.lga.ilike(f'%{lga}%'))
    if school_id:
        query = query.filter(Report.school_id == school_id)
    if search:
        pattern = f'%{search}%'
        query = query.filter(or_(
            Report.title.ilike(pattern),
            Report.description.ilike(pattern),
            School.name.ilike(pattern)
        ))

    sort_column = PRIORITY_ORDER if sort_by == 'priority' else getattr(Report, sort_by)
    ordering = sort_column.asc() if sort_order == 'asc' else sort_column.desc()
    query = query.order_by(ordering, Report.created_at.desc(), Report.id)

    reports = query.paginate(page=page, per_page=limit, error_out=False)

    return jsonify({
        'success': True,
        'data': {
            'reports': [report.to_dict() for report in reports.items],
            'pagination': {
                'currentPage': page,
                'totalPages': reports.pages,
                'totalReports': reports.total,
                'hasNextPage': reports.has_next,
                'hasPrevPage': reports.has_prev,
                'limit': limit,
            }
        }
    })


@bp.route('/<report_id>', methods=['GET'])
@validate_uuid('report_id')
def get_report(report_id):
    viewer = get_viewer()
    report = get_report_or_404(report_id)
    require_report_access(viewer, report)

    show_internal = can_see_internal_comments(viewer)
    comments = [c.to_dict() for c in report.comments if show_internal or not c.is_internal]

    return jsonify({
        'success': True,
        'data': {
            'report': report.to_dict(detail=True),
            'comments': comments,
            'resources': [resource.to_dict() for resource in report.resources],
        }
    })


@bp.route('', methods=['POST'])
@login_required
def create_report():
    data, photos = request_payload()

    v = FieldValidator(data)
    school_id = v.uuid('schoolId', 'Valid school ID is required')
    title = v.string('title', 'Title must be between 5 and 255 characters', 5, 255)
    description = v.string('description', 'Description must be between 20 and 2000 characters', 20, 2000)
    issue_type = v.choice('issueType', ISSUE_TYPES, 'Invalid issue type', required=True)
    priority = v.choice('priority', PRIORITIES, 'Invalid priority level') or 'medium'
    students_affected = v.integer('studentsAffected', 'Students affected must be a number between 0 and 10000',
                                  0, 10000) or 0
    estimated_cost = v.number('estimatedCost', 'Estimated cost must be a positive number', minimum=0)
    location_detail = v.string('locationDetail', 'Location detail must not exceed 500 characters',
                               max_length=500, required=False)
    is_anonymous = v.boolean('isAnonymous', 'Anonymous flag must be boolean') or False
    visibility = v.choice('visibility', VISIBILITIES, 'Visibility must be public, government or private') \
        or 'public'
    photos = check_photos(v, photos)
    v.validate()

    school = db.session.get(School, school_id)
    if school is None:
        raise BadRequest('School not found')

    photo_urls = save_photos(photos) if photos else []

    report = Report(
        school_id=school.id,
        reporter_id=None if is_anonymous else current_user.id,
        title=title,
        description=description,
        issue_type=issue_type,
        priority=priority,
        students_affected=students_affected,
        estimated_cost=estimated_cost if estimated_cost is not None else 0,
        urgency_score=calculate_urgency_score(priority, students_affected, issue_type),
        location_detail=location_detail,
        photos=photo_urls,
        is_anonymous=is_anonymous,
        visibility=visibility,
    )
    db.session.add(report)
    db.session.flush()
    if is_anonymous:
        log_activity(current_user.id, 'create_report', 'Submitted an anonymous report', commit=False)
    else:
        log_activity(current_user.id, 'create_report', f'Submitted report {report.id}: {title}', commit=False)
    db.session.commit()

    current_app.logger.info('Report %s created for school %s (urgency %s)',
                            report.id, school.id, report.urgency_score)
    NotificationService.notify_new_report(report)

    return jsonify({
        'success': True,
        'message': 'Report submitted successfully',
        'data': {'report': report.to_dict()}
    }), 201


@bp.route('/<report_id>', methods=['PUT'])
@login_required
@validate_uuid('report_id')
def update_report(report_id):
    report = get_report_or_404(report_id)

    allowed, reason = check_report_modification(current_user, report)
    if not allowed:
        raise PermissionDenied(reason)

    data = request.get_json(silent=True) or {}

    if not current_user.is_privileged and any(field in data for field in RESOLUTION_FIELDS):
        raise PermissionDenied('Only government or admin users can update status or resolution details',
                               code='INSUFFICIENT_PERMISSIONS', required=['admin', 'government'],
                               current=current_user.role)

    v = FieldValidator(data)
    updates = {}
    if 'title' in data:
        updates['title'] = v.string('title', 'Title must be between 5 and 255 characters', 5, 255)
    if 'description' in data:
        updates['description'] = v.string('description', 'Description must be between 20 and 2000 characters',
                                          20, 2000)
    if 'priority' in data:
        updates['priority'] = v.choice('priority', PRIORITIES, 'Invalid priority level', required=True)
    if 'studentsAffected' in data:
        updates['students_affected'] = v.integer(
            'studentsAffected', 'Students affected must be a number between 0 and 10000', 0, 10000, required=True)
    if 'estimatedCost' in data:
        updates['estimated_cost'] = v.number('estimatedCost', 'Estimated cost must be a positive number',
                                             minimum=0)
    if 'locationDetail' in data:
        updates['location_detail'] = v.string('locationDetail', 'Location detail must not exceed 500 characters',
                                              max_length=500, required=False)
    if 'status' in data:
        updates['status'] = v.choice('status', STATUSES, 'Invalid status', required=True)
    if 'resolutionNotes' in data:
        updates['resolution_notes'] = v.string('resolutionNotes', 'Resolution notes must not exceed 1000 characters',
                                               max_length=1000, required=False)
    if 'resolutionCost' in data:
        updates['resolution_cost'] = v.number('resolutionCost', 'Resolution cost must be a positive number',
                                              minimum=0)
    if 'fundingSource' in data:
        updates['funding_source'] = v.string('fundingSource', 'Funding source must not exceed 255 characters',
                                             max_length=255, required=False)
    v.validate()

    if not updates:
        raise BadRequest('No fields to update')

    old_status = report.status
    for field, value in updates.items():
        setattr(report, field, value)

    # If resolving, set resolved timestamp and resolver
    if updates.get('status') == 'resolved' and old_status != 'resolved':
        report.resolved_at = datetime.utcnow()
        report.resolved_by = current_user.id

    if {'priority', 'students_affected'} & set(updates):
        report.urgency_score = calculate_urgency_score(report.priority, report.students_affected,
                                                       report.issue_type)

    log_activity(current_user.id, 'update_report',
                 f'Updated report {report.id}: ' + ', '.join(sorted(updates)), commit=False)
    db.session.commit()

    if report.status != old_status:
        current_app.logger.info('Report %s moved from %s to %s', report.id, old_status, report.status)
        NotificationService.notify_status_update(report, old_status)
        reporter = report.reporter
        if reporter is not None:
            try:
                EmailService.send_status_update_email(reporter, report, old_status)
            except Exception as e:
                current_app.logger.warning('Failed to email status update for report %s: %s', report.id, e)

    return jsonify({
        'success': True,
        'message': 'Report updated successfully',
        'data': {'report': report.to_dict(detail=True)}
    })


@bp.route('/<report_id>', methods=['DELETE'])
@login_required
@validate_uuid('report_id')
@admin_required
def delete_report(report_id):
    report = get_report_or_404(report_id)
    title = report.title

    # Comments and resources go with the report
    db.session.delete(report)
    log_activity(current_user.id, 'delete_report', f'Deleted report {report_id}: {title}', commit=False)
    db.session.commit()

    current_app.logger.info('Report %s deleted by %s', report_id, current_user.username)
    return jsonify({'success': True, 'message': 'Report deleted successfully'})


@bp.route('/<report_id>/comments', methods=['POST'])
@login_required
@validate_uuid('report_id')
def add_comment(report_id):
    report = get_report_or_404(report_id)
    require_report_access(current_user, report)

    data = request.get_json(silent=True) or {}
    v = FieldValidator(data)
    text = v.string('commentText', 'Comment must be between 1 and 1000 characters', 1, 1000)
    comment_type = v.choice('commentType', COMMENT_TYPES, 'Invalid comment type') or 'comment'
    is_internal = v.boolean('isInternal', 'Internal flag must be boolean') or False
    v.validate()

    # Only admin and government can make internal comments
    comment = Comment(
        report_id=report.id,
        user_id=current_user.id,
        comment_text=text,
        comment_type=comment_type,
        is_internal=is_internal and current_user.is_privileged,
    )
    db.session.add(comment)
    db.session.commit()

    return jsonify({
        'success': True,
        'message': 'Comment added successfully',
        'data': {'comment': comment.to_dict()}
    }), 201


@bp.route('/<report_id>/resources', methods=['POST'])
@login_required
@validate_uuid('report_id')
@roles_required('admin', 'government', 'ngo')
def pledge_resource(report_id):
    report = get_report_or_404(report_id)
    require_report_access(current_user, report)

    data = request.get_json(silent=True) or {}
    v = FieldValidator(data)
    resource_type = v.choice('resourceType', RESOURCE_TYPES, 'Invalid resource type', required=True)
    provider_name = v.string('providerName', 'Provider name must be between 2 and 255 characters', 2, 255)
    provider_type = v.choice('providerType', PROVIDER_TYPES, 'Invalid provider type')
    amount = v.number('amount', 'Amount must be a positive number', minimum=0)
    currency = v.string('currency', 'Currency must be a 3-letter code', 3, 3, required=False)
    description = v.string('description', 'Description must not exceed 1000 characters',
                           max_length=1000, required=False)
    conditions = v.string('conditions', 'Conditions must not exceed 1000 characters',
                          max_length=1000, required=False)
    contact_info = data.get('contactInfo')
    if contact_info is not None and not isinstance(contact_info, dict):
        v.error('contactInfo', 'Contact info must be an object')
    v.validate()

    resource = Resource(
        report_id=report.id,
        resource_type=resource_type,
        provider_name=provider_name,
        provider_type=provider_type or ('ngo' if current_user.role == 'ngo' else 'government'),
        amount=amount,
        currency=(currency or 'NGN').upper(),
        description=description,
        conditions=conditions,
        contact_info=contact_info,
        status='pledged',
    )
    db.session.add(resource)
    log_activity(current_user.id, 'pledge_resource',
                 f'Pledged {resource_type} from {provider_name} for report {report.id}', commit=False)
    db.session.commit()

    NotificationService.notify_resource_pledged(report, resource)

    return jsonify({
        'success': True,
        'message': 'Resource pledged successfully',
        'data': {'resource': resource.to_dict()}
    }), 201


@bp.route('/<report_id>/resources/<resource_id>', methods=['PUT'])
@login_required
@validate_uuid('report_id', 'resource_id')
@government_required
def update_resource(report_id, resource_id):
    resource = Resource.query.filter_by(id=resource_id, report_id=report_id).first()
    if resource is None:
        raise NotFound('Resource not found')

    data = request.get_json(silent=True) or {}
    v = FieldValidator(data)
    status = v.choice('status', RESOURCE_STATUSES, 'Invalid resource status')
    amount = v.number('amount', 'Amount must be a positive number', minimum=0)
    v.validate()

    if status is None and amount is None:
        raise BadRequest('No fields to update')

    now = datetime.utcnow()
    if amount is not None:
        resource.amount = amount
    if status is not None:
        resource.status = status
        if status == 'allocated' and resource.allocated_at is None:
            resource.allocated_at = now
        if status == 'completed':
            resource.completed_at = now
            if resource.allocated_at is None:
                resource.allocated_at = now
    db.session.commit()

    return jsonify({
        'success': True,
        'message': 'Resource updated successfully',
        'data': {'resource': resource.to_dict()}
    })


@bp.route('/analytics/dashboard', methods=['GET'])
@login_required
@government_required
def analytics_dashboard():
    v = FieldValidator(request.args, 'Invalid query parameters')
    time_range = v.choice('timeRange', TIME_RANGES, 'Invalid time range') or DEFAULT_TIME_RANGE
    lga = v.string('lga', 'LGA must be 2-100 characters', 2, 100, required=False)
    v.validate()

    return jsonify({'success': True, 'data': DashboardService.report_analytics(time_range, lga)})


@bp.route('/export', methods=['GET'])
@login_required
@government_required
def export_reports():
    v = FieldValidator(request.args, 'Invalid query parameters')
    export_format = v.choice('format', EXPORT_FORMATS, 'Format must be one of: csv, json, xlsx, pdf') or 'csv'
    status = v.choice('status', STATUSES, 'Invalid status')
    lga = v.string('lga', 'LGA must be 2-100 characters', 2, 100, required=False)
    date_from = v.date('dateFrom', 'dateFrom must be an ISO date')
    date_to = v.date('dateTo', 'dateTo must be an ISO date', end_of_day=True)
    v.validate()

    query = Report.query.join(School, Report.school_id == School.id)
    if status:
        query = query.filter(Report.status == status)
    if lga:
        query = query.filter(School.lga == lga)
    if date_from:
        query = query.filter(Report.created_at >= date_from)
    if date_to:
        query = query.filter(Report.created_at <= date_to)
    records = [export_record(report) for report in query.order_by(Report.created_at.desc()).all()]

    log_activity(current_user.id, 'export_reports', f'Exported {len(records)} reports as {export_format}')
    filters = {'status': status, 'lga': lga, 'dateFrom': request.args.get('dateFrom'),
               'dateTo': request.args.get('dateTo')}

    if export_format == 'json':
        return jsonify({
            'success': True,
            'data': {
                'reports': records,
                'exportedAt': datetime.utcnow().isoformat(),
                'totalRecords': len(records),
            }
        })

    if export_format == 'xlsx':
        return send_file(
            ExportService.to_xlsx(records, filters),
            mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
            download_name=ExportService.filename('xlsx'),
            as_attachment=True
        )

    if export_format == 'pdf':
        return send_file(ExportService.to_pdf(records, filters), mimetype='application/pdf',
                         download_name=ExportService.filename('pdf'), as_attachment=True)

    return Response(
        ExportService.to_csv(records),
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={ExportService.filename("csv")}'}
    )


@bp.route('/urgent/list', methods=['GET'])
@login_required
@government_required
def urgent_reports():
    reports = Report.query.join(School, Report.school_id == School.id).filter(
        Report.status.in_(('reported', 'acknowledged')),
        or_(Report.priority == 'urgent', Report.urgency_score >= URGENT_SCORE_THRESHOLD)
    ).order_by(Report.urgency_score.desc(), Report.created_at.asc()).limit(URGENT_LIMIT).all()

    now = datetime.utcnow()
    urgent = []
    for report in reports:
        item = report.to_dict()
        item['hoursSinceCreated'] = round((now - report.created_at).total_seconds() / 3600, 1)
        urgent.append(item)

    return jsonify({
        'success': True,
        'data': {
            'urgentReports': urgent,
            'totalCount': len(urgent),
            'generatedAt': now.isoformat(),
        }
    })
