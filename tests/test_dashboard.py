from datetime import datetime, timedelta

import pytest


@pytest.fixture
def seeded(create_school, create_report, teacher):
    dala = create_school(name='Dala Primary School', lga='Dala', total_students=320)
    fagge = create_school(name='Government Primary School Fagge', lga='Fagge', total_students=450)
    now = datetime.utcnow()
    create_report(dala, reporter_id=teacher, priority='urgent', issue_type='safety', students_affected=150)
    create_report(dala, priority='high', status='resolved', issue_type='sanitation',
                  created_at=now - timedelta(days=4), resolved_at=now - timedelta(days=2))
    create_report(fagge, priority='low', status='in-progress', issue_type='furniture', visibility='private')
    create_report(fagge, priority='medium', created_at=now - timedelta(days=60))
    return {'dala': dala, 'fagge': fagge}


class TestStats:
    def test_overview(self, client, seeded):
        response = client.get('/api/dashboard/stats')

        assert response.status_code == 200
        overview = response.get_json()['data']['overview']
        assert overview['totalReports'] == 3
        assert overview['reportsByStatus']['resolved'] == 1
        assert overview['reportsByStatus']['inProgress'] == 1
        assert overview['reportsByPriority']['urgent'] == 1
        assert overview['resolutionRate'] == 33.3
        assert overview['avgResolutionDays'] == 2.0
        assert overview['affectedSchools'] == 2

    def test_all_time_range_and_lga_filter(self, client, seeded):
        data = client.get('/api/dashboard/stats?timeRange=all&lga=Fagge').get_json()['data']

        assert data['overview']['totalReports'] == 2
        assert data['filters'] == {'lga': 'Fagge', 'timeRange': 'all'}

    def test_recent_activity_respects_visibility(self, client, seeded, admin_headers):
        public = client.get('/api/dashboard/stats').get_json()['data']['recentActivity']
        staff = client.get('/api/dashboard/stats', headers=admin_headers).get_json()['data']['recentActivity']

        assert len(public) == 3
        assert len(staff) == 4

    def test_school_and_user_counts(self, client, seeded):
        data = client.get('/api/dashboard/stats').get_json()['data']

        assert data['schools']['totalSchools'] == 3
        assert data['schools']['schoolsByType']['primary'] == 3
        assert data['users']['usersByRole']['teachers'] == 1

    def test_invalid_time_range(self, client):
        response = client.get('/api/dashboard/stats?timeRange=2w')

        assert response.status_code == 400
        assert response.get_json()['errors'][0]['field'] == 'timeRange'


class TestCharts:
    def test_type_is_required(self, client):
        response = client.get('/api/dashboard/charts')

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Invalid parameters'

    def test_priority_chart_is_ordered_by_severity(self, client, seeded):
        data = client.get('/api/dashboard/charts?type=priority').get_json()['data']

        assert data['chartType'] == 'priority'
        assert [row['priority'] for row in data['data']] == ['urgent', 'high', 'low']

    def test_lga_chart_ignores_lga_filter(self, client, seeded):
        data = client.get('/api/dashboard/charts?type=lga&timeRange=all&lga=Dala').get_json()['data']['data']

        by_lga = {row['lga']: row for row in data}
        assert set(by_lga) == {'Dala', 'Fagge'}
        assert by_lga['Dala']['resolutionRate'] == 50.0

    def test_timeline_and_monthly(self, client, seeded):
        timeline = client.get('/api/dashboard/charts?type=timeline').get_json()['data']['data']
        monthly = client.get('/api/dashboard/charts?type=monthly').get_json()['data']['data']

        assert sum(point['total'] for point in timeline) == 3
        assert sum(point['totalReports'] for point in monthly) == 4


class TestRecent:
    def test_internal_comments_hidden_from_public(self, client, seeded, admin_headers):
        report = client.get('/api/reports', headers=admin_headers).get_json()['data']['reports'][0]
        client.post(f"/api/reports/{report['id']}/comments", headers=admin_headers,
                    json={'commentText': 'Contractor visiting on Monday', 'isInternal': True})

        public = client.get('/api/dashboard/recent?type=comments').get_json()['data']
        staff = client.get('/api/dashboard/recent?type=comments', headers=admin_headers).get_json()['data']

        assert public['totalCount'] == 0
        assert staff['totalCount'] == 1
        assert staff['activities'][0]['relativeTime'] == 'Just now'

    def test_limit(self, client, seeded):
        data = client.get('/api/dashboard/recent?limit=2').get_json()['data']

        assert data['totalCount'] == 2
        assert data['type'] == 'all'


class TestStaffOnlyEndpoints:
    def test_trends_require_staff(self, client, teacher_headers):
        assert client.get('/api/dashboard/trends').status_code == 401
        assert client.get('/api/dashboard/trends', headers=teacher_headers).status_code == 403

    def test_trends(self, client, seeded, admin_headers):
        data = client.get('/api/dashboard/trends?period=daily&metric=reports',
                          headers=admin_headers).get_json()['data']

        assert data['metadata'] == {'period': 'daily', 'metric': 'reports',
                                    'dataPoints': len(data['trends']), 'timeRange': '30 days'}
        assert sum(point['value'] for point in data['trends']) == 3
        assert data['analysis']['direction'] in ('increasing', 'decreasing', 'stable')

    def test_performance(self, client, seeded, admin_headers):
        data = client.get('/api/dashboard/performance', headers=admin_headers).get_json()['data']

        assert data['kpis']['totalReportsProcessed'] == 4
        assert data['kpis']['overallResolutionRate'] == 25.0
        assert data['benchmarks']['targetResolutionRate'] == 85

    def test_report_analytics(self, client, seeded, admin_headers):
        data = client.get('/api/reports/analytics/dashboard?timeRange=all',
                          headers=admin_headers).get_json()['data']

        assert data['overview']['totalReports'] == 4
        assert data['overview']['urgentReports'] == 1
        assert data['responseTime']['avgResolutionDays'] == 2.0
