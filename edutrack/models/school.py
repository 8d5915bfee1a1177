from datetime import datetime

from edutrack import db
from edutrack.models.user import new_id

SCHOOL_TYPES = ('primary', 'secondary', 'technical')


class School(db.Model):
    __tablename__ = 'schools'
    __table_args__ = (
        db.CheckConstraint("school_type IN ('primary', 'secondary', 'technical')", name='ck_schools_type'),
        db.CheckConstraint('infrastructure_score BETWEEN 0 AND 100', name='ck_schools_infrastructure_score'),
        db.CheckConstraint('total_students >= 0 AND total_teachers >= 0 AND total_classrooms >= 0',
                           name='ck_schools_counts'),
        db.Index('idx_schools_location', 'latitude', 'longitude'),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    school_type = db.Column(db.String(50), nullable=False)
    address = db.Column(db.Text, nullable=False)
    lga = db.Column(db.String(100), nullable=False, index=True)
    state = db.Column(db.String(100), default='Kano')
    latitude = db.Column(db.Numeric(10, 8, asdecimal=False))
    longitude = db.Column(db.Numeric(11, 8, asdecimal=False))
    total_students = db.Column(db.Integer, default=0)
    total_teachers = db.Column(db.Integer, default=0)
    total_classrooms = db.Column(db.Integer, default=0)
    contact_phone = db.Column(db.String(20))
    contact_email = db.Column(db.String(255))
    head_teacher_name = db.Column(db.String(255))
    established_year = db.Column(db.Integer)
    infrastructure_score = db.Column(db.Integer, default=0)
    last_assessment = db.Column(db.Date)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    users = db.relationship('User', backref='school', lazy=True)
    reports = db.relationship('Report', backref='school', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'schoolType': self.school_type,
            'address': self.address,
            'lga': self.lga,
            'state': self.state,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'totalStudents': self.total_students,
            'totalTeachers': self.total_teachers,
            'totalClassrooms': self.total_classrooms,
            'contactPhone': self.contact_phone,
            'contactEmail': self.contact_email,
            'headTeacherName': self.head_teacher_name,
            'establishedYear': self.established_year,
            'infrastructureScore': self.infrastructure_score,
            'lastAssessment': self.last_assessment.isoformat() if self.last_assessment else None,
            'isActive': self.is_active,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<School {self.name} ({self.lga})>'
