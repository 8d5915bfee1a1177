from datetime import datetime

from flask import Blueprint, current_app, jsonify, request, send_from_directory
from sqlalchemy import text

from edutrack import db
from edutrack.models.user_activity import UserActivity


def log_activity(user_id, activity_type, description, ip_address=None, commit=True):
    if user_id:  # Only log if user is authenticated
        activity = UserActivity(user_id=user_id, activity_type=activity_type, description=description,
                                ip_address=ip_address or request.remote_addr)
        db.session.add(activity)
        if commit:
            db.session.commit()


bp = Blueprint('main', __name__)


@bp.route('/')
def index():
    return current_app.send_static_file('index.html')


@bp.route('/uploads/<path:filename>')
def uploaded_file(filename):
    return send_from_directory(current_app.config['UPLOAD_FOLDER'], filename)


@bp.route('/health')
def health():
    """Database round-trip check for load balancers"""
    try:
        db.session.execute(text('SELECT 1'))
    except Exception as e:
        current_app.logger.error('Health check failed: %s', e)
        db.session.rollback()
        return jsonify({
            'success': False,
            'status': 'unhealthy',
            'database': 'unavailable',
            'timestamp': datetime.utcnow().isoformat(),
        }), 503

    return jsonify({
        'success': True,
        'status': 'healthy',
        'database': 'connected',
        'environment': current_app.config['APP_ENV'],
        'timestamp': datetime.utcnow().isoformat(),
    })
