from edutrack import db
from datetime import datetime
from enum import Enum

from edutrack.models.user import new_id


class NotificationType(Enum):
    REPORT = "report"
    STATUS_UPDATE = "status_update"
    ASSIGNMENT = "assignment"
    DEADLINE = "deadline"
    SYSTEM = "system"


class NotificationPriority(Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class Notification(db.Model):
    __tablename__ = 'notifications'
    __table_args__ = (
        db.CheckConstraint("type IN ('report', 'status_update', 'assignment', 'deadline', 'system')",
                           name='ck_notifications_type'),
        db.CheckConstraint("priority IN ('low', 'normal', 'high', 'urgent')",
                           name='ck_notifications_priority'),
        db.Index('idx_notifications_user', 'user_id', 'is_read'),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(50), nullable=False)
    priority = db.Column(db.String(20), nullable=False, default='normal')

    # Metadata
    related_id = db.Column(db.String(36))  # e.g. a report id
    related_type = db.Column(db.String(50))  # 'report', 'school', ...
    action_url = db.Column(db.Text)

    # Status tracking
    is_read = db.Column(db.Boolean, nullable=False, default=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    read_at = db.Column(db.DateTime)
    expires_at = db.Column(db.DateTime)  # For temporary notifications

    # Relationships
    recipient = db.relationship('User', backref=db.backref(
        'notifications', lazy=True, cascade='all, delete-orphan',
        order_by='Notification.created_at.desc()'))

    def mark_as_read(self):
        """Mark notification as read"""
        self.is_read = True
        self.read_at = datetime.utcnow()
        db.session.commit()

    def to_dict(self):
        """Convert notification to dictionary for JSON responses"""
        return {
            'id': self.id,
            'title': self.title,
            'message': self.message,
            'type': self.type,
            'priority': self.priority,
            'isRead': self.is_read,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'readAt': self.read_at.isoformat() if self.read_at else None,
            'expiresAt': self.expires_at.isoformat() if self.expires_at else None,
            'actionUrl': self.action_url,
            'relatedType': self.related_type,
            'relatedId': self.related_id,
        }

    @staticmethod
    def not_expired():
        return db.or_(Notification.expires_at.is_(None), Notification.expires_at > datetime.utcnow())

    @staticmethod
    def get_unread_count(user_id):
        """Get count of unread, unexpired notifications for a user"""
        return Notification.query.filter(Notification.user_id == user_id, Notification.is_read.is_(False),
                                         Notification.not_expired()).count()

    def __repr__(self):
        return f'<Notification {self.id}: {self.title} for User {self.user_id}>'
