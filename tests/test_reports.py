import io
from datetime import datetime, timedelta

import pytest

from edutrack import db
from edutrack.models import Comment, Notification, Report, UserActivity

MISSING_ID = '3f1c2a4e-0000-4000-8000-000000000000'


def new_report(school_id, **overrides):
    payload = {
        'schoolId': school_id,
        'title': 'Collapsed classroom wall',
        'description': 'Part of the wall in classroom 3 collapsed after the storm last night.',
        'issueType': 'safety',
        'priority': 'high',
        'studentsAffected': 250,
        'estimatedCost': 350000,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def other_school(create_school):
    return create_school(name='Gwale Community School', lga='Gwale', school_type='secondary')


class TestCreateReport:
    def test_create_scores_and_returns_report(self, client, school, teacher_headers):
        response = client.post('/api/reports', headers=teacher_headers, json=new_report(school))

        assert response.status_code == 201
        report = response.get_json()['data']['report']
        assert report['urgencyScore'] == 95
        assert report['status'] == 'reported'
        assert report['reporterName'] == 'Test Teacher'
        assert report['school']['id'] == school

    def test_anonymous_report_stores_no_reporter(self, app, client, school, teacher_headers):
        response = client.post('/api/reports', headers=teacher_headers, json=new_report(school, isAnonymous=True))

        report = response.get_json()['data']['report']
        assert report['reporterName'] is None
        with app.app_context():
            assert db.session.get(Report, report['id']).reporter_id is None

    def test_anonymous_report_leaves_no_trail_in_activity_log(self, app, client, school, teacher,
                                                              teacher_headers):
        response = client.post('/api/reports', headers=teacher_headers, json=new_report(school, isAnonymous=True))

        report_id = response.get_json()['data']['report']['id']
        with app.app_context():
            activity = UserActivity.query.filter_by(user_id=teacher, activity_type='create_report').one()
            assert report_id not in activity.description

    def test_staff_are_notified(self, client, school, teacher_headers, admin_headers):
        client.post('/api/reports', headers=teacher_headers, json=new_report(school, priority='urgent'))

        notifications = client.get('/api/notifications', headers=admin_headers).get_json()['data']['notifications']
        assert len(notifications) == 1
        assert notifications[0]['type'] == 'report'
        assert notifications[0]['priority'] == 'urgent'

    def test_validation_errors(self, client, teacher_headers):
        response = client.post('/api/reports', headers=teacher_headers,
                               json={'title': 'x', 'issueType': 'weather', 'studentsAffected': -3})

        assert response.status_code == 400
        fields = {e['field'] for e in response.get_json()['errors']}
        assert {'schoolId', 'title', 'description', 'issueType', 'studentsAffected'} <= fields

    def test_unknown_school(self, client, teacher_headers):
        response = client.post('/api/reports', headers=teacher_headers, json=new_report(MISSING_ID))

        assert response.status_code == 400
        assert response.get_json()['message'] == 'School not found'

    def test_requires_login(self, client, school):
        assert client.post('/api/reports', json=new_report(school)).status_code == 401

    def test_photo_upload(self, app, client, school, teacher_headers):
        data = new_report(school)
        data['photos'] = (io.BytesIO(b'\x89PNG fake image'), 'wall.png', 'image/png')

        response = client.post('/api/reports', headers=teacher_headers, data=data,
                               content_type='multipart/form-data')

        assert response.status_code == 201
        photos = response.get_json()['data']['report']['photos']
        assert len(photos) == 1
        assert photos[0].startswith('/uploads/report_')
        assert client.get(photos[0]).status_code == 200

    def test_photo_type_is_checked(self, client, school, teacher_headers):
        data = new_report(school)
        data['photos'] = (io.BytesIO(b'GIF89a'), 'wall.gif', 'image/gif')

        response = client.post('/api/reports', headers=teacher_headers, data=data,
                               content_type='multipart/form-data')

        assert response.status_code == 400


class TestListReports:
    @pytest.fixture
    def reports(self, create_report, school, other_school):
        return {
            'public_a': create_report(school, visibility='public'),
            'private_a': create_report(school, visibility='private'),
            'government_b': create_report(other_school, visibility='government'),
            'private_b': create_report(other_school, visibility='private'),
        }

    @staticmethod
    def listed_ids(client, headers=None, query=''):
        body = client.get(f'/api/reports{query}', headers=headers or {}).get_json()
        return {report['id'] for report in body['data']['reports']}

    def test_anonymous_sees_public_and_government(self, client, reports):
        assert self.listed_ids(client) == {reports['public_a'], reports['government_b']}

    def test_teacher_sees_public_and_own_school(self, client, reports, teacher_headers):
        assert self.listed_ids(client, teacher_headers) == {reports['public_a'], reports['private_a']}

    def test_admin_sees_everything(self, client, reports, admin_headers):
        assert self.listed_ids(client, admin_headers) == set(reports.values())

    def test_filters(self, client, reports, admin_headers, other_school):
        assert self.listed_ids(client, admin_headers, '?lga=gwa') == {reports['government_b'], reports['private_b']}
        assert self.listed_ids(client, admin_headers, f'?schoolId={other_school}') == \
            {reports['government_b'], reports['private_b']}
        assert self.listed_ids(client, admin_headers, '?search=Gwale') == \
            {reports['government_b'], reports['private_b']}

    def test_invalid_query(self, client):
        response = client.get('/api/reports?limit=500&status=closed')

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Invalid query parameters'

    def test_sort_by_priority(self, client, school, create_report, admin_headers):
        low = create_report(school, priority='low')
        urgent = create_report(school, priority='urgent')
        medium = create_report(school, priority='medium')

        body = client.get('/api/reports?sortBy=priority', headers=admin_headers).get_json()
        assert [r['id'] for r in body['data']['reports']] == [urgent, medium, low]

    def test_pagination(self, client, school, create_report):
        for _ in range(3):
            create_report(school)

        pagination = client.get('/api/reports?limit=2&page=2').get_json()['data']['pagination']
        assert pagination['totalReports'] == 3
        assert pagination['totalPages'] == 2
        assert pagination['hasPrevPage'] is True
        assert pagination['hasNextPage'] is False


class TestReportDetail:
    def test_invalid_and_missing_ids(self, client):
        response = client.get('/api/reports/not-a-uuid')
        assert response.status_code == 400
        assert response.get_json()['code'] == 'INVALID_UUID'

        response = client.get(f'/api/reports/{MISSING_ID}')
        assert response.status_code == 404
        assert response.get_json()['code'] == 'REPORT_NOT_FOUND'

    def test_private_report_hidden_from_public(self, client, school, create_report):
        report_id = create_report(school, visibility='private')

        response = client.get(f'/api/reports/{report_id}')
        assert response.status_code == 403
        assert response.get_json()['code'] == 'REPORT_ACCESS_DENIED'

    def test_reporter_opens_own_private_report(self, client, other_school, create_report, create_user,
                                               headers_for):
        ngo = create_user(role='ngo')
        report_id = create_report(other_school, reporter_id=ngo, visibility='private')

        assert client.get(f'/api/reports/{report_id}', headers=headers_for(ngo)).status_code == 200

    def test_anonymous_reporter_identity_hidden(self, client, school, create_report, teacher, admin_headers):
        report_id = create_report(school, reporter_id=teacher, is_anonymous=True)

        report = client.get(f'/api/reports/{report_id}', headers=admin_headers).get_json()['data']['report']
        assert report['reporterName'] is None
        assert report['reporterEmail'] is None


class TestUpdateReport:
    def test_reporter_edits_fresh_report(self, client, school, create_report, teacher, teacher_headers):
        report_id = create_report(school, reporter_id=teacher, priority='low', students_affected=10,
                                  issue_type='resources')

        response = client.put(f'/api/reports/{report_id}', headers=teacher_headers,
                              json={'title': 'No textbooks for JSS1', 'priority': 'urgent'})

        assert response.status_code == 200
        report = response.get_json()['data']['report']
        assert report['title'] == 'No textbooks for JSS1'
        assert report['urgencyScore'] == 100

    def test_processed_report_is_locked(self, client, school, create_report, teacher, teacher_headers):
        report_id = create_report(school, reporter_id=teacher, status='acknowledged')

        response = client.put(f'/api/reports/{report_id}', headers=teacher_headers, json={'title': 'New title here'})

        assert response.status_code == 403
        assert response.get_json()['message'] == 'Cannot modify report that has been processed'

    def test_edit_window_expires(self, client, school, create_report, teacher, teacher_headers):
        report_id = create_report(school, reporter_id=teacher,
                                  created_at=datetime.utcnow() - timedelta(hours=25))

        response = client.put(f'/api/reports/{report_id}', headers=teacher_headers, json={'title': 'New title here'})

        assert response.status_code == 403
        assert response.get_json()['message'] == 'Cannot modify report after 24 hours'

    def test_other_teacher_denied(self, client, school, create_report, teacher, create_user, headers_for):
        report_id = create_report(school, reporter_id=teacher)
        other = create_user(role='teacher', school_id=school)

        response = client.put(f'/api/reports/{report_id}', headers=headers_for(other), json={'title': 'New title'})
        assert response.status_code == 403

    def test_reporter_cannot_set_status(self, client, school, create_report, teacher, teacher_headers):
        report_id = create_report(school, reporter_id=teacher)

        response = client.put(f'/api/reports/{report_id}', headers=teacher_headers, json={'status': 'resolved'})

        assert response.status_code == 403
        assert response.get_json()['code'] == 'INSUFFICIENT_PERMISSIONS'

    def test_staff_resolve_report(self, app, client, school, create_report, teacher, create_user, headers_for):
        report_id = create_report(school, reporter_id=teacher, status='in-progress')
        official = create_user(role='government')

        response = client.put(f'/api/reports/{report_id}', headers=headers_for(official),
                              json={'status': 'resolved', 'resolutionNotes': 'Wall rebuilt',
                                    'resolutionCost': 300000, 'fundingSource': 'SUBEB'})

        assert response.status_code == 200
        report = response.get_json()['data']['report']
        assert report['status'] == 'resolved'
        assert report['resolvedAt'] is not None
        assert report['resolvedByName'] == 'Test Government'
        with app.app_context():
            notification = Notification.query.filter_by(user_id=teacher).one()
            assert notification.type == 'status_update'
            assert notification.priority == 'high'

    def test_empty_update(self, client, school, create_report, admin_headers):
        report_id = create_report(school)

        response = client.put(f'/api/reports/{report_id}', headers=admin_headers, json={})
        assert response.status_code == 400


class TestDeleteReport:
    def test_admin_only(self, client, school, create_report, teacher, teacher_headers):
        report_id = create_report(school, reporter_id=teacher)

        response = client.delete(f'/api/reports/{report_id}', headers=teacher_headers)
        assert response.status_code == 403
        assert response.get_json()['code'] == 'INSUFFICIENT_PERMISSIONS'

    def test_delete_removes_comments(self, app, client, school, create_report, admin, admin_headers):
        report_id = create_report(school)
        client.post(f'/api/reports/{report_id}/comments', headers=admin_headers, json={'commentText': 'On it'})

        response = client.delete(f'/api/reports/{report_id}', headers=admin_headers)

        assert response.status_code == 200
        with app.app_context():
            assert db.session.get(Report, report_id) is None
            assert Comment.query.filter_by(report_id=report_id).count() == 0

    def test_malformed_id_is_rejected_before_role_check(self, client, teacher_headers):
        response = client.delete('/api/reports/not-a-uuid', headers=teacher_headers)

        assert response.status_code == 400
        assert response.get_json()['code'] == 'INVALID_UUID'


class TestCommentsAndResources:
    def test_internal_flag_reserved_for_staff(self, client, school, create_report, teacher_headers,
                                              admin_headers):
        report_id = create_report(school)

        teacher_comment = client.post(f'/api/reports/{report_id}/comments', headers=teacher_headers,
                                      json={'commentText': 'Still leaking', 'isInternal': True})
        staff_comment = client.post(f'/api/reports/{report_id}/comments', headers=admin_headers,
                                    json={'commentText': 'Budget approved', 'isInternal': True,
                                          'commentType': 'update'})

        assert teacher_comment.status_code == 201
        assert teacher_comment.get_json()['data']['comment']['isInternal'] is False
        assert staff_comment.get_json()['data']['comment']['isInternal'] is True

        public_view = client.get(f'/api/reports/{report_id}').get_json()['data']['comments']
        staff_view = client.get(f'/api/reports/{report_id}', headers=admin_headers).get_json()['data']['comments']
        assert [c['commentText'] for c in public_view] == ['Still leaking']
        assert len(staff_view) == 2

    def test_ngo_pledges_resource(self, client, school, create_report, teacher, create_user, headers_for):
        report_id = create_report(school, reporter_id=teacher)
        ngo = create_user(role='ngo')

        response = client.post(f'/api/reports/{report_id}/resources', headers=headers_for(ngo),
                               json={'resourceType': 'funding', 'providerName': 'Kano Education Trust',
                                     'amount': 250000})

        assert response.status_code == 201
        resource = response.get_json()['data']['resource']
        assert resource['status'] == 'pledged'
        detail = client.get(f'/api/reports/{report_id}').get_json()['data']
        assert len(detail['resources']) == 1

    def test_ngo_cannot_pledge_to_hidden_report(self, app, client, other_school, create_report, teacher,
                                                create_user, headers_for):
        report_id = create_report(other_school, reporter_id=teacher, visibility='private')
        ngo = create_user(role='ngo')

        response = client.post(f'/api/reports/{report_id}/resources', headers=headers_for(ngo),
                               json={'resourceType': 'funding', 'providerName': 'Kano Education Trust'})

        assert response.status_code == 403
        assert response.get_json()['code'] == 'REPORT_ACCESS_DENIED'
        with app.app_context():
            assert Notification.query.filter_by(user_id=teacher).count() == 0

    def test_teacher_cannot_pledge(self, client, school, create_report, teacher_headers):
        report_id = create_report(school)

        response = client.post(f'/api/reports/{report_id}/resources', headers=teacher_headers,
                               json={'resourceType': 'materials', 'providerName': 'Someone'})
        assert response.status_code == 403

    def test_resource_status_update(self, client, school, create_report, admin_headers):
        report_id = create_report(school)
        resource = client.post(f'/api/reports/{report_id}/resources', headers=admin_headers,
                               json={'resourceType': 'materials', 'providerName': 'SUBEB'}).get_json()

        resource_id = resource['data']['resource']['id']
        response = client.put(f'/api/reports/{report_id}/resources/{resource_id}', headers=admin_headers,
                              json={'status': 'completed'})

        assert response.status_code == 200
        assert response.get_json()['data']['resource']['status'] == 'completed'

    def test_resource_update_checks_ids_first(self, client, teacher_headers):
        response = client.put(f'/api/reports/{MISSING_ID}/resources/bad-id', headers=teacher_headers,
                              json={'status': 'completed'})

        assert response.status_code == 400
        assert response.get_json()['code'] == 'INVALID_UUID'


class TestExportAndUrgent:
    def test_csv_export(self, client, school, create_report, admin_headers):
        create_report(school, description='x' * 150, is_anonymous=True)

        response = client.get('/api/reports/export?format=csv', headers=admin_headers)

        assert response.status_code == 200
        assert response.mimetype == 'text/csv'
        assert 'attachment; filename=edutrack_reports_' in response.headers['Content-Disposition']
        text = response.get_data(as_text=True)
        assert text.splitlines()[0].startswith('Report ID,Title,Description')
        assert 'x' * 100 + '...' in text
        assert 'Anonymous' in text

    def test_json_export_filters_by_status(self, client, school, create_report, admin_headers):
        create_report(school, status='resolved')
        create_report(school, status='reported')

        body = client.get('/api/reports/export?format=json&status=resolved', headers=admin_headers).get_json()

        assert body['data']['totalRecords'] == 1
        assert body['data']['reports'][0]['status'] == 'resolved'

    def test_spreadsheet_and_pdf_exports(self, client, school, create_report, admin_headers):
        create_report(school)

        xlsx = client.get('/api/reports/export?format=xlsx', headers=admin_headers)
        pdf = client.get('/api/reports/export?format=pdf', headers=admin_headers)

        assert xlsx.status_code == 200
        assert xlsx.data[:2] == b'PK'
        assert pdf.status_code == 200
        assert pdf.data.startswith(b'%PDF')

    def test_export_requires_staff(self, client, teacher_headers):
        assert client.get('/api/reports/export', headers=teacher_headers).status_code == 403

    def test_urgent_list(self, client, school, create_report, admin_headers):
        urgent = create_report(school, priority='urgent')
        high_score = create_report(school, priority='high', students_affected=250, issue_type='safety')
        create_report(school, priority='urgent', status='resolved')
        create_report(school, priority='low')

        body = client.get('/api/reports/urgent/list', headers=admin_headers).get_json()['data']

        assert [r['id'] for r in body['urgentReports']] == [urgent, high_score]
        assert body['urgentReports'][0]['hoursSinceCreated'] >= 0
