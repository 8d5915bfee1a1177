from flask import current_app

from edutrack import db
from edutrack.models import Report, School, User
from edutrack.utils.report_policy import calculate_urgency_score

DEFAULT_ADMIN = {
    'username': 'admin',
    'email': 'admin@edutrack.ng',
    'password': 'admin123!',
    'full_name': 'System Administrator',
    'phone': '+2348000000000',
}

# name, type, address, lga, latitude, longitude, students, teachers, classrooms, head teacher
SAMPLE_SCHOOLS = [
    ('Government Primary School Fagge', 'primary', 'Fagge Central, Kano', 'Fagge',
     12.0022, 8.5120, 450, 18, 12, 'Malam Sani Ibrahim'),
    ('Kano Municipal Secondary School', 'secondary', 'Municipal Road, Kano', 'Kano Municipal',
     12.0100, 8.5200, 680, 28, 18, 'Mrs. Amina Hassan'),
    ('Dala Primary School', 'primary', 'Dala Market Area, Kano', 'Dala',
     11.9950, 8.4900, 320, 15, 10, 'Malam Ahmed Bello'),
    ('Gwale Community School', 'secondary', 'Gwale District, Kano', 'Gwale',
     12.0200, 8.4800, 520, 22, 15, 'Mrs. Fatima Aliyu'),
    ('Tarauni Girls Secondary', 'secondary', 'Tarauni Town, Kano', 'Tarauni',
     12.0300, 8.5300, 380, 20, 12, 'Mrs. Hadiza Usman'),
    ('Nassarawa Primary School', 'primary', 'Nassarawa GRA, Kano', 'Nassarawa',
     11.9800, 8.5100, 280, 12, 8, 'Malam Yusuf Ali'),
    ('Ungogo Technical School', 'technical', 'Ungogo Industrial Area, Kano', 'Ungogo',
     12.0400, 8.4700, 420, 25, 14, 'Engr. Ibrahim Sule'),
    ('Kumbotso Primary School', 'primary', 'Kumbotso Village, Kano', 'Kumbotso',
     11.9700, 8.5400, 180, 8, 6, 'Malam Garba Musa'),
]

# title, description, issue type, priority, status, students affected, estimated cost, anonymous
SAMPLE_REPORTS = [
    ('Students sitting on bare floors',
     '150 students in this primary school are forced to sit on bare concrete floors during classes. '
     'Urgent need for desks and chairs.',
     'furniture', 'urgent', 'reported', 150, 450000, True),
    ('Leaking roof during rainy season',
     'The school roof leaks severely during rain, disrupting classes and damaging learning materials.',
     'infrastructure', 'high', 'in-progress', 280, 850000, False),
    ('Broken windows and doors need repair',
     'Multiple windows and doors are broken, creating security and weather protection issues.',
     'maintenance', 'medium', 'reported', 180, 320000, True),
    ('Lack of proper sanitation facilities',
     'The school toilets are in terrible condition and need complete renovation for health and dignity.',
     'sanitation', 'urgent', 'in-progress', 380, 680000, False),
    ('Laboratory equipment needs replacement',
     'Science laboratory lacks basic equipment for practical lessons, affecting student learning outcomes.',
     'resources', 'medium', 'reported', 420, 920000, True),
]


def seed_default_data():
    """Populate an empty database with sample schools, the default admin and sample reports.

    Returns False without touching anything when users already exist.
    """
    if User.query.first() is not None:
        current_app.logger.info('Database already has data, skipping seed')
        return False

    try:
        schools = []
        for (name, school_type, address, lga, latitude, longitude,
             students, teachers, classrooms, head_teacher) in SAMPLE_SCHOOLS:
            school = School(
                name=name,
                school_type=school_type,
                address=address,
                lga=lga,
                latitude=latitude,
                longitude=longitude,
                total_students=students,
                total_teachers=teachers,
                total_classrooms=classrooms,
                head_teacher_name=head_teacher
            )
            db.session.add(school)
            schools.append(school)

        admin = User(
            username=DEFAULT_ADMIN['username'],
            email=DEFAULT_ADMIN['email'],
            full_name=DEFAULT_ADMIN['full_name'],
            phone=DEFAULT_ADMIN['phone'],
            role='admin',
            is_active=True,
            email_verified=True
        )
        admin.set_password(DEFAULT_ADMIN['password'])
        db.session.add(admin)
        db.session.flush()  # Get the school IDs

        for school, (title, description, issue_type, priority, status,
                     students_affected, cost, anonymous) in zip(schools, SAMPLE_REPORTS):
            db.session.add(Report(
                school_id=school.id,
                title=title,
                description=description,
                issue_type=issue_type,
                priority=priority,
                status=status,
                students_affected=students_affected,
                estimated_cost=cost,
                urgency_score=calculate_urgency_score(priority, students_affected, issue_type),
                is_anonymous=anonymous,
                photos=[]
            ))

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info('Seeded %d schools, %d reports and the default admin',
                            len(schools), len(SAMPLE_REPORTS))
    return True
