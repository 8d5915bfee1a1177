import uuid
from datetime import datetime, timedelta

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from edutrack import db

USER_ROLES = ('admin', 'government', 'teacher', 'ngo')
PRIVILEGED_ROLES = ('admin', 'government')

MAX_LOGIN_ATTEMPTS = 5
LOCKOUT_MINUTES = 15


def new_id():
    return str(uuid.uuid4())


class User(UserMixin, db.Model):
    __tablename__ = 'users'
    __table_args__ = (
        db.CheckConstraint("role IN ('admin', 'government', 'teacher', 'ngo')", name='ck_users_role'),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    username = db.Column(db.String(50), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    full_name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default='teacher', index=True)
    phone = db.Column(db.String(20))
    lga = db.Column(db.String(100))
    school_id = db.Column(db.String(36), db.ForeignKey('schools.id', ondelete='SET NULL'), index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    email_verified = db.Column(db.Boolean, nullable=False, default=False)
    last_login = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Fields for login security
    login_attempts = db.Column(db.Integer, default=0)
    last_login_attempt = db.Column(db.DateTime)
    is_locked = db.Column(db.Boolean, default=False)
    lock_until = db.Column(db.DateTime)

    sessions = db.relationship('Session', backref='user', lazy=True, cascade='all, delete-orphan')

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)
        # Reset login attempts when password is changed
        self.login_attempts = 0
        self.is_locked = False
        self.lock_until = None

    def verify_password(self, password):
        """Plain hash comparison, no lockout bookkeeping"""
        return check_password_hash(self.password_hash, password)

    def check_password(self, password):
        # Check if account is locked
        if self.is_account_locked():
            return False

        # An expired lock starts a fresh round of attempts
        if self.is_locked:
            self.is_locked = False
            self.lock_until = None
            self.login_attempts = 0

        is_correct = self.verify_password(password)

        # Update login attempts
        now = datetime.utcnow()
        if is_correct:
            self.login_attempts = 0
            self.is_locked = False
            self.lock_until = None
        else:
            self.login_attempts = (self.login_attempts or 0) + 1
            # Lock account after repeated failed attempts
            if self.login_attempts >= MAX_LOGIN_ATTEMPTS:
                self.is_locked = True
                self.lock_until = now + timedelta(minutes=LOCKOUT_MINUTES)
        self.last_login_attempt = now

        db.session.commit()
        return is_correct

    def has_role(self, *roles):
        return self.role in roles

    @property
    def is_privileged(self):
        return self.role in PRIVILEGED_ROLES

    def is_account_locked(self):
        if not self.is_locked or not self.lock_until:
            return False
        return datetime.utcnow() < self.lock_until

    def get_lock_time_remaining(self):
        if not self.is_locked or not self.lock_until:
            return 0
        remaining = self.lock_until - datetime.utcnow()
        return max(0, int(remaining.total_seconds() / 60))

    def to_dict(self, include_school=False):
        data = {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'fullName': self.full_name,
            'role': self.role,
            'phone': self.phone,
            'lga': self.lga,
            'schoolId': self.school_id,
            'isActive': self.is_active,
            'emailVerified': self.email_verified,
            'lastLogin': self.last_login.isoformat() if self.last_login else None,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_school:
            school = self.school
            data['schoolName'] = school.name if school else None
            data['schoolType'] = school.school_type if school else None
            data['schoolAddress'] = school.address if school else None
        return data

    def __repr__(self):
        return f'<User {self.username} ({self.role})>'


class Session(db.Model):
    """Refresh-token session; only the SHA-256 of the token is stored"""
    __tablename__ = 'sessions'
    __table_args__ = (
        db.Index('idx_sessions_user', 'user_id', 'is_active'),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    token_hash = db.Column(db.String(64), nullable=False, index=True)
    expires_at = db.Column(db.DateTime, nullable=False)
    user_agent = db.Column(db.Text)
    ip_address = db.Column(db.String(45))  # IPv6 addresses can be up to 45 characters
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def is_valid(self, now=None):
        return self.is_active and (now or datetime.utcnow()) < self.expires_at
