from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from edutrack import db
from edutrack.auth import validate_uuid
from edutrack.errors import NotFound
from edutrack.models.notification import Notification
from edutrack.services.notification_service import NotificationService
from edutrack.utils.validation import FieldValidator

bp = Blueprint('notifications', __name__, url_prefix='/api/notifications')


@bp.route('', methods=['GET'])
@login_required
def index():
    """List the current user's notifications, newest first"""
    v = FieldValidator(request.args, 'Invalid query parameters')
    page = v.integer('page', 'Page must be a positive integer', minimum=1) or 1
    limit = v.integer('limit', 'Limit must be between 1 and 100', 1, 100) or 20
    unread = v.boolean('unread', 'unread must be true or false')
    v.validate()

    query = Notification.query.filter(Notification.user_id == current_user.id, Notification.not_expired())
    if unread:
        query = query.filter(Notification.is_read.is_(False))

    notifications = query.order_by(Notification.created_at.desc()) \
        .paginate(page=page, per_page=limit, error_out=False)

    return jsonify({
        'success': True,
        'data': {
            'notifications': [n.to_dict() for n in notifications.items],
            'unreadCount': Notification.get_unread_count(current_user.id),
            'pagination': {
                'currentPage': page,
                'totalPages': notifications.pages,
                'totalNotifications': notifications.total,
                'hasNextPage': notifications.has_next,
                'hasPrevPage': notifications.has_prev,
                'limit': limit,
            }
        }
    })


@bp.route('/unread-count')
@login_required
def get_unread_count():
    return jsonify({'success': True, 'data': {'count': Notification.get_unread_count(current_user.id)}})


@bp.route('/<notification_id>/read', methods=['POST'])
@login_required
@validate_uuid('notification_id')
def mark_as_read(notification_id):
    if not NotificationService.mark_notification_as_read(notification_id, current_user.id):
        raise NotFound('Notification not found')
    return jsonify({'success': True, 'message': 'Notification marked as read'})


@bp.route('/read-all', methods=['POST'])
@login_required
def mark_all_as_read():
    count = NotificationService.mark_all_as_read(current_user.id)
    return jsonify({
        'success': True,
        'message': f'{count} notifications marked as read',
        'data': {'count': count}
    })


@bp.route('/<notification_id>', methods=['DELETE'])
@login_required
@validate_uuid('notification_id')
def delete_notification(notification_id):
    notification = Notification.query.filter_by(id=notification_id, user_id=current_user.id).first()
    if notification is None:
        raise NotFound('Notification not found')

    db.session.delete(notification)
    db.session.commit()
    return jsonify({'success': True, 'message': 'Notification deleted'})
