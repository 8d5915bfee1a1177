from edutrack import db
from datetime import datetime
from typing import Optional


class UserActivity(db.Model):
    __tablename__ = 'user_activities'
    __table_args__ = (
        db.Index('idx_user_activities_user', 'user_id', 'created_at'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    activity_type = db.Column(db.String(50), nullable=False)  # e.g., 'login', 'create_report', 'delete_report'
    description = db.Column(db.String(255), nullable=False)
    ip_address = db.Column(db.String(45))  # IPv6 addresses can be up to 45 characters
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationship with User model
    user = db.relationship('User', backref=db.backref('activities', lazy=True, cascade='all, delete-orphan'))

    def __init__(self, user_id: str, activity_type: str, description: str, ip_address: Optional[str] = None):
        self.user_id = user_id
        self.activity_type = activity_type
        self.description = description[:255]
        self.ip_address = ip_address
