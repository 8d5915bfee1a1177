"""Bearer-token authentication and authorization guards.

Access tokens are verified by a Flask-Login ``request_loader`` so routes
use the usual ``login_required`` / ``current_user`` pair. Endpoints that
allow anonymous access simply skip ``login_required``; an invalid token on
such an endpoint is treated as "no user".
"""
import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from functools import wraps

import jwt
from flask import current_app, g, jsonify, request
from flask_login import current_user

from edutrack import db
from edutrack.errors import AuthenticationError, PermissionDenied, ValidationError
from edutrack.utils.validation import is_uuid

logger = logging.getLogger(__name__)

JWT_ALGORITHM = 'HS256'

AUTH_ERRORS = {
    'NO_TOKEN': (401, 'Access token required'),
    'INVALID_TOKEN': (401, 'Invalid token'),
    'TOKEN_EXPIRED': (401, 'Token expired'),
    'USER_NOT_FOUND': (401, 'User not found'),
    'ACCOUNT_DEACTIVATED': (403, 'Account deactivated'),
}


def generate_tokens(user):
    """Issue an access token carrying the user's identity and a bare refresh token"""
    config = current_app.config
    now = datetime.utcnow()
    payload = {
        'id': user.id,
        'username': user.username,
        'email': user.email,
        'role': user.role,
        'fullName': user.full_name,
        'iat': now,
        'exp': now + timedelta(hours=config['JWT_ACCESS_EXPIRES_HOURS']),
    }
    access_token = jwt.encode(payload, config['JWT_SECRET'], algorithm=JWT_ALGORITHM)

    refresh_payload = {
        'id': user.id,
        'jti': secrets.token_hex(16),
        'iat': now,
        'exp': now + timedelta(days=config['SESSION_DAYS']),
    }
    refresh_token = jwt.encode(refresh_payload, config['JWT_REFRESH_SECRET'], algorithm=JWT_ALGORITHM)
    return access_token, refresh_token


def decode_access_token(token):
    return jwt.decode(token, current_app.config['JWT_SECRET'], algorithms=[JWT_ALGORITHM])


def decode_refresh_token(token):
    return jwt.decode(token, current_app.config['JWT_REFRESH_SECRET'], algorithms=[JWT_ALGORITHM])


def hash_token(token):
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def bearer_token():
    header = request.headers.get('Authorization', '')
    parts = header.split(' ')
    if len(parts) == 2 and parts[0].lower() == 'bearer' and parts[1]:
        return parts[1]
    return None


def load_user_from_request(req):
    """Resolve the bearer token to an active user, recording why it failed"""
    from edutrack.models import User

    token = bearer_token()
    if not token:
        g.auth_error = 'NO_TOKEN'
        return None

    try:
        payload = decode_access_token(token)
    except jwt.ExpiredSignatureError:
        g.auth_error = 'TOKEN_EXPIRED'
        return None
    except jwt.InvalidTokenError:
        g.auth_error = 'INVALID_TOKEN'
        return None

    user = db.session.get(User, payload.get('id')) if payload.get('id') else None
    if user is None:
        g.auth_error = 'USER_NOT_FOUND'
        return None
    if not user.is_active:
        g.auth_error = 'ACCOUNT_DEACTIVATED'
        return None
    return user


def unauthorized():
    code = g.get('auth_error', 'NO_TOKEN')
    status, message = AUTH_ERRORS.get(code, AUTH_ERRORS['NO_TOKEN'])
    if code != 'NO_TOKEN':
        logger.info('Rejected request to %s: %s', request.path, code)
    return jsonify({'success': False, 'message': message, 'code': code}), status


def init_auth(login_manager):
    login_manager.request_loader(load_user_from_request)
    login_manager.unauthorized_handler(unauthorized)


def get_viewer():
    """The authenticated user or None, for endpoints with optional auth"""
    if current_user and current_user.is_authenticated:
        return current_user._get_current_object()
    return None


def roles_required(*roles):
    """Guard for use after ``login_required``"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                raise AuthenticationError('Authentication required', code='AUTH_REQUIRED')
            if current_user.role not in roles:
                raise PermissionDenied('Insufficient permissions', code='INSUFFICIENT_PERMISSIONS',
                                       required=list(roles), current=current_user.role)
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def admin_required(f):
    return roles_required('admin')(f)


def government_required(f):
    return roles_required('admin', 'government')(f)


def validate_uuid(*param_names):
    """Reject malformed identifiers in the URL before any lookup"""
    names = param_names or ('report_id',)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            for name in names:
                value = kwargs.get(name)
                if value is not None and not is_uuid(value):
                    raise ValidationError(f'Invalid {name} format', code='INVALID_UUID')
            return f(*args, **kwargs)
        return decorated_function
    return decorator
