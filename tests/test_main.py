def test_health(client):
    response = client.get('/health')

    assert response.status_code == 200
    body = response.get_json()
    assert body['status'] == 'healthy'
    assert body['database'] == 'connected'
    assert body['environment'] == 'testing'


def test_index_serves_dashboard_page(client):
    response = client.get('/')

    assert response.status_code == 200
    assert b'EduTrack' in response.data


def test_unknown_route_returns_json(client):
    response = client.get('/api/unknown')

    assert response.status_code == 404
    assert response.get_json() == {'success': False, 'message': 'Resource not found'}


def test_method_not_allowed(client):
    response = client.patch('/api/reports')

    assert response.status_code == 405
    assert response.get_json()['success'] is False


def test_upload_limit_fits_a_full_set_of_photos(app):
    config = app.config

    assert config['MAX_CONTENT_LENGTH'] > config['MAX_PHOTOS'] * config['MAX_PHOTO_SIZE']
