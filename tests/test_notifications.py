from datetime import datetime, timedelta

import pytest

from edutrack import db
from edutrack.models import Notification, Report
from edutrack.services.notification_service import NotificationService


@pytest.fixture
def notify(app):
    def _notify(user_id, title='Report Status Updated', **fields):
        with app.app_context():
            notification = Notification(user_id=user_id, title=title, message=f'{title} message',
                                        type=fields.pop('type', 'status_update'), **fields)
            db.session.add(notification)
            db.session.commit()
            return notification.id
    return _notify


def test_list_and_unread_filter(client, teacher, teacher_headers, notify):
    notify(teacher, title='First')
    notify(teacher, title='Second', is_read=True)
    notify(teacher, title='Expired', expires_at=datetime.utcnow() - timedelta(days=1))

    everything = client.get('/api/notifications', headers=teacher_headers).get_json()['data']
    unread = client.get('/api/notifications?unread=true', headers=teacher_headers).get_json()['data']

    assert {n['title'] for n in everything['notifications']} == {'First', 'Second'}
    assert [n['title'] for n in unread['notifications']] == ['First']


def test_only_own_notifications(client, teacher, admin_headers, notify):
    notify(teacher)

    assert client.get('/api/notifications', headers=admin_headers).get_json()['data']['notifications'] == []


def test_unread_count_and_mark_read(client, teacher, teacher_headers, notify):
    first = notify(teacher)
    notify(teacher)

    assert client.get('/api/notifications/unread-count', headers=teacher_headers).get_json()['data']['count'] == 2
    assert client.post(f'/api/notifications/{first}/read', headers=teacher_headers).status_code == 200
    assert client.get('/api/notifications/unread-count', headers=teacher_headers).get_json()['data']['count'] == 1

    response = client.post('/api/notifications/read-all', headers=teacher_headers)
    assert response.get_json()['data']['count'] == 1


def test_cannot_touch_someone_elses_notification(client, teacher, admin_headers, notify):
    notification_id = notify(teacher)

    assert client.post(f'/api/notifications/{notification_id}/read', headers=admin_headers).status_code == 404
    assert client.delete(f'/api/notifications/{notification_id}', headers=admin_headers).status_code == 404


def test_delete(app, client, teacher, teacher_headers, notify):
    notification_id = notify(teacher)

    assert client.delete(f'/api/notifications/{notification_id}', headers=teacher_headers).status_code == 200
    with app.app_context():
        assert db.session.get(Notification, notification_id) is None


def test_requires_login(client):
    assert client.get('/api/notifications').status_code == 401


def test_new_report_maps_medium_priority_to_normal(app, school, create_report, admin, create_user):
    create_user(role='government')
    create_user(role='government', is_active=False)
    report_id = create_report(school, priority='medium')

    with app.app_context():
        report = db.session.get(Report, report_id)
        assert NotificationService.notify_new_report(report) == 2
        priorities = {n.priority for n in Notification.query.all()}
        assert priorities == {'normal'}


def test_unread_count_ignores_expired(client, teacher, teacher_headers, notify):
    notify(teacher, title='Current')
    notify(teacher, title='Expired', expires_at=datetime.utcnow() - timedelta(days=1))

    count = client.get('/api/notifications/unread-count', headers=teacher_headers).get_json()['data']['count']
    listing = client.get('/api/notifications', headers=teacher_headers).get_json()['data']

    assert count == 1
    assert listing['unreadCount'] == len(listing['notifications']) == 1
