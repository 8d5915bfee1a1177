from datetime import datetime

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy import func

from edutrack import db
from edutrack.auth import admin_required, get_viewer, validate_uuid
from edutrack.errors import BadRequest, NotFound
from edutrack.models import Report, School
from edutrack.models.school import SCHOOL_TYPES
from edutrack.routes.main import log_activity
from edutrack.services.dashboard_service import count_where
from edutrack.utils.validation import EMAIL_PATTERN, FieldValidator, PHONE_PATTERN

bp = Blueprint('schools', __name__, url_prefix='/api/schools')

OPEN_STATUSES = ('reported', 'acknowledged', 'in-progress')


def school_fields(v, data):
    """Validate the writable school attributes present in ``data``.

    Returns a mapping of column name to cleaned value.
    """
    fields = {}
    if 'name' in data:
        fields['name'] = v.string('name', 'Name must be between 2 and 255 characters', 2, 255)
    if 'schoolType' in data:
        fields['school_type'] = v.choice('schoolType', SCHOOL_TYPES,
                                         'School type must be primary, secondary or technical', required=True)
    if 'address' in data:
        fields['address'] = v.string('address', 'Address must be between 5 and 1000 characters', 5, 1000)
    if 'lga' in data:
        fields['lga'] = v.string('lga', 'LGA must be 2-100 characters', 2, 100)
    if 'state' in data:
        fields['state'] = v.string('state', 'State must be 2-100 characters', 2, 100)
    if 'latitude' in data:
        latitude = v.number('latitude', 'Latitude must be between -90 and 90', minimum=-90)
        if latitude is not None and latitude > 90:
            v.error('latitude', 'Latitude must be between -90 and 90')
        fields['latitude'] = latitude
    if 'longitude' in data:
        longitude = v.number('longitude', 'Longitude must be between -180 and 180', minimum=-180)
        if longitude is not None and longitude > 180:
            v.error('longitude', 'Longitude must be between -180 and 180')
        fields['longitude'] = longitude
    for key, column in (('totalStudents', 'total_students'),
                        ('totalTeachers', 'total_teachers'),
                        ('totalClassrooms', 'total_classrooms')):
        if key in data:
            fields[column] = v.integer(key, f'{key} must be a non-negative integer', minimum=0) or 0
    if 'contactPhone' in data:
        fields['contact_phone'] = v.string('contactPhone', 'Please provide a valid phone number',
                                           pattern=PHONE_PATTERN, required=False)
    if 'contactEmail' in data:
        fields['contact_email'] = v.string('contactEmail', 'Please provide a valid email address',
                                           max_length=255, pattern=EMAIL_PATTERN, required=False)
    if 'headTeacherName' in data:
        fields['head_teacher_name'] = v.string('headTeacherName', 'Head teacher name must not exceed 255 characters',
                                               max_length=255, required=False)
    if 'establishedYear' in data:
        fields['established_year'] = v.integer('establishedYear', 'Established year is not valid',
                                                1800, datetime.utcnow().year)
    if 'infrastructureScore' in data:
        fields['infrastructure_score'] = v.integer('infrastructureScore',
                                                   'Infrastructure score must be between 0 and 100', 0, 100) or 0
    if 'isActive' in data:
        fields['is_active'] = v.boolean('isActive', 'isActive must be boolean', required=True)
    return fields


def get_school_or_404(school_id):
    school = db.session.get(School, school_id)
    if school is None:
        raise NotFound('School not found')
    return school


@bp.route('', methods=['GET'])
def list_schools():
    viewer = get_viewer()

    v = FieldValidator(request.args, 'Invalid query parameters')
    page = v.integer('page', 'Page must be a positive integer', minimum=1) or 1
    limit = v.integer('limit', 'Limit must be between 1 and 100', 1, 100) or 50
    school_type = v.choice('schoolType', SCHOOL_TYPES, 'School type must be primary, secondary or technical')
    lga = v.string('lga', 'LGA must be 2-100 characters', 2, 100, required=False)
    search = (request.args.get('search') or '').strip()
    v.validate()

    query = School.query
    # Deactivated schools are only listed for admins
    if not (viewer is not None and viewer.role == 'admin'):
        query = query.filter(School.is_active.is_(True))
    if school_type:
        query = query.filter(School.school_type == school_type)
    if lga:
        query = query.filter(School.lga.ilike(f'%{lga}%'))
    if search:
        query = query.filter(School.name.ilike(f'%{search}%'))

    schools = query.order_by(School.name).paginate(page=page, per_page=limit, error_out=False)

    return jsonify({
        'success': True,
        'data': {
            'schools': [school.to_dict() for school in schools.items],
            'pagination': {
                'currentPage': page,
                'totalPages': schools.pages,
                'totalSchools': schools.total,
                'hasNextPage': schools.has_next,
                'hasPrevPage': schools.has_prev,
                'limit': limit,
            }
        }
    })


@bp.route('/<school_id>', methods=['GET'])
@validate_uuid('school_id')
def get_school(school_id):
    school = get_school_or_404(school_id)

    total, open_reports, resolved, urgent = db.session.query(
        func.count(Report.id),
        count_where(Report.status.in_(OPEN_STATUSES)),
        count_where(Report.status == 'resolved'),
        count_where(Report.priority == 'urgent'),
    ).filter(Report.school_id == school.id).one()

    data = school.to_dict()
    data['reportCounts'] = {
        'total': total,
        'open': open_reports,
        'resolved': resolved,
        'urgent': urgent,
    }
    return jsonify({'success': True, 'data': {'school': data}})


@bp.route('', methods=['POST'])
@login_required
@admin_required
def create_school():
    data = request.get_json(silent=True) or {}

    v = FieldValidator(data)
    for required in ('name', 'schoolType', 'address', 'lga'):
        if required not in data:
            v.error(required, f'{required} is required')
    fields = school_fields(v, data)
    v.validate()

    school = School(**fields)
    db.session.add(school)
    db.session.flush()
    log_activity(current_user.id, 'create_school', f'Added school {school.name} ({school.lga})', commit=False)
    db.session.commit()

    current_app.logger.info('School %s created by %s', school.id, current_user.username)
    return jsonify({
        'success': True,
        'message': 'School created successfully',
        'data': {'school': school.to_dict()}
    }), 201


@bp.route('/<school_id>', methods=['PUT'])
@login_required
@validate_uuid('school_id')
@admin_required
def update_school(school_id):
    school = get_school_or_404(school_id)
    data = request.get_json(silent=True) or {}

    v = FieldValidator(data)
    fields = school_fields(v, data)
    v.validate()

    if not fields:
        raise BadRequest('No fields to update')

    for column, value in fields.items():
        setattr(school, column, value)
    log_activity(current_user.id, 'update_school',
                 f'Updated school {school.id}: ' + ', '.join(sorted(fields)), commit=False)
    db.session.commit()

    return jsonify({
        'success': True,
        'message': 'School updated successfully',
        'data': {'school': school.to_dict()}
    })
