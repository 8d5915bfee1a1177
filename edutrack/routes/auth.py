from datetime import datetime, timedelta

import jwt
from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy import or_

from edutrack import db, limiter
from edutrack.auth import decode_refresh_token, generate_tokens, hash_token
from edutrack.errors import AuthenticationError, BadRequest, Conflict, PermissionDenied
from edutrack.models import Comment, Report, School, Session, User
from edutrack.models.user import USER_ROLES
from edutrack.routes.main import log_activity
from edutrack.services.email_service import EmailService
from edutrack.utils.password_validator import PasswordValidator
from edutrack.utils.validation import (
    FieldValidator, FULL_NAME_PATTERN, PHONE_PATTERN, USERNAME_PATTERN, is_uuid, parse_bool
)

bp = Blueprint('auth', __name__, url_prefix='/api/auth')
password_validator = PasswordValidator()


def login_rate_limit():
    return current_app.config['LOGIN_RATE_LIMIT']


def create_session(user, refresh_token, days):
    session = Session(
        user_id=user.id,
        token_hash=hash_token(refresh_token),
        expires_at=datetime.utcnow() + timedelta(days=days),
        user_agent=request.headers.get('User-Agent'),
        ip_address=request.remote_addr,
    )
    db.session.add(session)
    return session


def check_new_password(validator, field, password):
    is_valid, issues = password_validator.validate_password(password)
    if not is_valid:
        for issue in issues:
            validator.error(field, issue)


@bp.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}

    v = FieldValidator(data)
    username = v.string('username', 'Username must be 3-50 characters and contain only letters, '
                        'numbers, and underscores', 3, 50, USERNAME_PATTERN)
    email = v.email('email', 'Please provide a valid email address')
    password = data.get('password')
    check_new_password(v, 'password', password)
    full_name = v.string('fullName', 'Full name must be 2-255 characters and contain only letters and spaces',
                         2, 255, FULL_NAME_PATTERN)
    role = v.choice('role', USER_ROLES, 'Role must be one of: teacher, admin, government, ngo') or 'teacher'
    phone = v.string('phone', 'Please provide a valid phone number', pattern=PHONE_PATTERN, required=False)
    lga = v.string('lga', 'LGA must be 2-100 characters', 2, 100, required=False)
    school_id = data.get('schoolId') or None
    v.validate()

    existing = User.query.filter(or_(User.username == username, User.email == email)).first()
    if existing:
        raise Conflict('Username or email already exists')

    if school_id is not None:
        if not is_uuid(school_id) or db.session.get(School, school_id) is None:
            raise BadRequest('Invalid school ID provided')

    user = User(
        username=username,
        email=email,
        full_name=full_name,
        role=role,
        phone=phone,
        lga=lga,
        school_id=school_id,
    )
    user.set_password(password)
    db.session.add(user)
    db.session.flush()

    access_token, refresh_token = generate_tokens(user)
    create_session(user, refresh_token, current_app.config['SESSION_DAYS'])
    log_activity(user.id, 'register', f'User registered: {user.username}', commit=False)
    db.session.commit()

    try:
        EmailService.send_welcome_email(user)
    except Exception as e:
        current_app.logger.warning('Failed to send welcome email to %s: %s', user.email, e)

    current_app.logger.info('New %s account registered: %s', user.role, user.username)
    return jsonify({
        'success': True,
        'message': 'User registered successfully',
        'data': {
            'user': user.to_dict(),
            'accessToken': access_token,
            'refreshToken': refresh_token,
        }
    }), 201


@bp.route('/login', methods=['POST'])
@limiter.limit(login_rate_limit)
def login():
    data = request.get_json(silent=True) or {}

    v = FieldValidator(data)
    identifier = v.string('username', 'Username or email is required')
    password = v.secret('password', 'Password is required')
    v.validate()

    user = User.query.filter(or_(User.username == identifier, User.email == identifier.lower())).first()
    if not user:
        current_app.logger.info('Login attempt with unknown identifier: %s', identifier)
        raise AuthenticationError('Invalid credentials')

    if user.is_account_locked():
        minutes_remaining = user.get_lock_time_remaining()
        log_activity(user.id, 'login_attempt', f'Account locked, login attempt blocked for {user.username}')
        raise PermissionDenied(f'Account is locked. Please try again in {minutes_remaining} minutes.',
                               code='ACCOUNT_LOCKED')

    if not user.is_active:
        raise PermissionDenied('Account is deactivated. Please contact administrator.')

    if not user.check_password(password):
        if user.is_account_locked():
            log_activity(user.id, 'account_locked',
                         f'Account locked due to too many failed login attempts for {user.username}')
        else:
            log_activity(user.id, 'login_failed', f'Invalid password attempt for {user.username}')
        raise AuthenticationError('Invalid credentials')

    remember_me = parse_bool(data.get('rememberMe')) or False
    days = current_app.config['REMEMBER_ME_SESSION_DAYS' if remember_me else 'SESSION_DAYS']

    access_token, refresh_token = generate_tokens(user)
    create_session(user, refresh_token, days)
    user.last_login = datetime.utcnow()
    log_activity(user.id, 'login', f'User logged in: {user.username}', commit=False)
    db.session.commit()

    return jsonify({
        'success': True,
        'message': 'Login successful',
        'data': {
            'user': user.to_dict(include_school=True),
            'accessToken': access_token,
            'refreshToken': refresh_token,
        }
    })


@bp.route('/refresh', methods=['POST'])
def refresh():
    data = request.get_json(silent=True) or {}
    refresh_token = data.get('refreshToken')
    if not refresh_token or not isinstance(refresh_token, str):
        raise AuthenticationError('Refresh token required')

    try:
        payload = decode_refresh_token(refresh_token)
    except jwt.InvalidTokenError:
        raise AuthenticationError('Token refresh failed')

    session = Session.query.filter_by(
        token_hash=hash_token(refresh_token),
        user_id=payload.get('id'),
        is_active=True
    ).first()
    if session is None or not session.is_valid() or not session.user.is_active:
        raise AuthenticationError('Invalid or expired refresh token')

    user = session.user
    access_token, _ = generate_tokens(user)
    return jsonify({
        'success': True,
        'message': 'Token refreshed successfully',
        'data': {
            'accessToken': access_token,
            'user': {
                'id': user.id,
                'username': user.username,
                'email': user.email,
                'fullName': user.full_name,
                'role': user.role,
            }
        }
    })


@bp.route('/logout', methods=['POST'])
@login_required
def logout():
    Session.query.filter_by(user_id=current_user.id, is_active=True).update({'is_active': False})
    log_activity(current_user.id, 'logout', f'User logged out: {current_user.username}', commit=False)
    db.session.commit()
    return jsonify({'success': True, 'message': 'Logout successful'})


@bp.route('/profile', methods=['GET'])
@login_required
def profile():
    reports_submitted = Report.query.filter_by(reporter_id=current_user.id).count()
    reports_resolved = Report.query.filter_by(reporter_id=current_user.id, status='resolved').count()
    comments_made = Comment.query.filter_by(user_id=current_user.id).count()

    return jsonify({
        'success': True,
        'data': {
            'user': current_user.to_dict(include_school=True),
            'stats': {
                'reportsSubmitted': reports_submitted,
                'reportsResolved': reports_resolved,
                'commentsMade': comments_made,
            }
        }
    })


@bp.route('/profile', methods=['PUT'])
@login_required
def update_profile():
    data = request.get_json(silent=True) or {}

    v = FieldValidator(data)
    updates = {}
    if 'fullName' in data:
        updates['full_name'] = v.string('fullName', 'Full name must be 2-255 characters', 2, 255)
    if 'phone' in data:
        updates['phone'] = v.string('phone', 'Please provide a valid phone number',
                                    pattern=PHONE_PATTERN, required=False)
    if 'lga' in data:
        updates['lga'] = v.string('lga', 'LGA must be 2-100 characters', 2, 100, required=False)
    v.validate()

    if not updates:
        raise BadRequest('No fields to update')

    for field, value in updates.items():
        setattr(current_user, field, value)
    log_activity(current_user.id, 'update_profile', 'Updated profile: ' + ', '.join(sorted(updates)),
                 commit=False)
    db.session.commit()

    return jsonify({
        'success': True,
        'message': 'Profile updated successfully',
        'data': {'user': current_user.to_dict()}
    })


@bp.route('/change-password', methods=['POST'])
@login_required
def change_password():
    data = request.get_json(silent=True) or {}

    v = FieldValidator(data)
    current_password = v.secret('currentPassword', 'Current password is required')
    new_password = data.get('newPassword')
    check_new_password(v, 'newPassword', new_password)
    keep = v.secret('refreshToken', 'Refresh token must be a string', required=False)
    v.validate()

    if not current_user.verify_password(current_password):
        raise BadRequest('Current password is incorrect')

    current_user.set_password(new_password)

    # Keep only the session the caller is refreshing with, if one is named
    sessions = Session.query.filter_by(user_id=current_user.id, is_active=True)
    if keep:
        sessions = sessions.filter(Session.token_hash != hash_token(keep))
    sessions.update({'is_active': False}, synchronize_session=False)

    log_activity(current_user.id, 'change_password', 'Password changed', commit=False)
    db.session.commit()

    return jsonify({'success': True, 'message': 'Password changed successfully'})
