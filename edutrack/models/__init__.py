from edutrack.models.user import User, Session
from edutrack.models.school import School
from edutrack.models.report import Report, Comment, Resource
from edutrack.models.notification import Notification
from edutrack.models.user_activity import UserActivity

__all__ = ['User', 'Session', 'School', 'Report', 'Comment', 'Resource', 'Notification', 'UserActivity']
