"""Shared fixtures.

Every test gets a fresh in-memory SQLite database. Fixtures that create
rows do so inside a short-lived app context and hand back plain ids, so no
application context stays pushed while the test client issues requests.
"""
from datetime import datetime

import pytest

from config import TestingConfig
from edutrack import create_app, db
from edutrack.auth import generate_tokens
from edutrack.models import Report, School, User
from edutrack.utils.report_policy import calculate_urgency_score

PASSWORD = 'Str0ng!Pass'


@pytest.fixture
def app(tmp_path):
    config = type('TestConfig', (TestingConfig,), {'UPLOAD_FOLDER': str(tmp_path / 'uploads')})
    app = create_app(config)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def create_school(app):
    def _create(name='Dala Primary School', lga='Dala', school_type='primary', **fields):
        with app.app_context():
            school = School(name=name, lga=lga, school_type=school_type,
                            address=fields.pop('address', f'{lga} Market Area, Kano'), **fields)
            db.session.add(school)
            db.session.commit()
            return school.id
    return _create


@pytest.fixture
def school(create_school):
    return create_school()


@pytest.fixture
def create_user(app):
    counter = {'n': 0}

    def _create(role='teacher', school_id=None, username=None, password=PASSWORD, is_active=True, **fields):
        counter['n'] += 1
        username = username or f'{role}_{counter["n"]}'
        with app.app_context():
            user = User(
                username=username,
                email=fields.pop('email', f'{username}@edutrack.ng'),
                full_name=fields.pop('full_name', f'Test {role.title()}'),
                role=role,
                school_id=school_id,
                is_active=is_active,
                **fields
            )
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            return user.id
    return _create


@pytest.fixture
def headers_for(app):
    def _headers(user_id):
        with app.app_context():
            access_token, _ = generate_tokens(db.session.get(User, user_id))
        return {'Authorization': f'Bearer {access_token}'}
    return _headers


@pytest.fixture
def create_report(app):
    def _create(school_id, reporter_id=None, title='Leaking roof in block B',
                description='The roof leaks badly whenever it rains and classes are disrupted.',
                issue_type='infrastructure', priority='medium', status='reported',
                students_affected=120, visibility='public', is_anonymous=False,
                created_at=None, **fields):
        with app.app_context():
            report = Report(
                school_id=school_id,
                reporter_id=reporter_id,
                title=title,
                description=description,
                issue_type=issue_type,
                priority=priority,
                status=status,
                students_affected=students_affected,
                urgency_score=calculate_urgency_score(priority, students_affected, issue_type),
                visibility=visibility,
                is_anonymous=is_anonymous,
                created_at=created_at or datetime.utcnow(),
                photos=[],
                **fields
            )
            db.session.add(report)
            db.session.commit()
            return report.id
    return _create


@pytest.fixture
def admin(create_user):
    return create_user(role='admin', username='admin')


@pytest.fixture
def admin_headers(admin, headers_for):
    return headers_for(admin)


@pytest.fixture
def teacher(create_user, school):
    return create_user(role='teacher', school_id=school, username='teacher')


@pytest.fixture
def teacher_headers(teacher, headers_for):
    return headers_for(teacher)
