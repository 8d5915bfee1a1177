from datetime import datetime, timedelta

from flask import current_app

from edutrack import db
from edutrack.models.notification import Notification, NotificationType, NotificationPriority
from edutrack.models.user import User, PRIVILEGED_ROLES

# Report priorities map onto notification priorities; only "medium" differs
REPORT_PRIORITY_MAP = {
    'low': NotificationPriority.LOW.value,
    'medium': NotificationPriority.NORMAL.value,
    'high': NotificationPriority.HIGH.value,
    'urgent': NotificationPriority.URGENT.value,
}


class NotificationService:

    @staticmethod
    def create_notification(recipient_id, title, message, notification_type,
                            priority='normal', related_type=None, related_id=None,
                            action_url=None, expires_in_days=30, commit=True):
        """
        Create a new notification for a user
        """
        try:
            # Validate recipient_id
            if not recipient_id:
                current_app.logger.warning("Cannot create notification: recipient_id is None")
                return None

            # Verify recipient exists
            recipient = db.session.get(User, recipient_id)
            if not recipient:
                current_app.logger.warning("Cannot create notification: recipient with ID %s not found",
                                           recipient_id)
                return None

            # Set expiration date
            expires_at = datetime.utcnow() + timedelta(days=expires_in_days) if expires_in_days else None

            notification = Notification(
                user_id=recipient_id,
                title=title,
                message=message,
                type=notification_type,
                priority=priority,
                related_type=related_type,
                related_id=related_id,
                action_url=action_url,
                expires_at=expires_at
            )

            db.session.add(notification)
            if commit:
                db.session.commit()
            return notification

        except Exception as e:
            db.session.rollback()
            current_app.logger.error("Error creating notification: %s", e)
            return None

    @staticmethod
    def notify_new_report(report):
        """Alert every active government and admin user about a new report"""
        recipients = User.query.filter(
            User.role.in_(PRIVILEGED_ROLES),
            User.is_active.is_(True)
        ).all()

        school_name = report.school.name if report.school else 'a school'
        title = "New Infrastructure Report"
        message = f"New {report.priority} priority report: {report.title} at {school_name}"
        priority = REPORT_PRIORITY_MAP.get(report.priority, NotificationPriority.NORMAL.value)

        created = 0
        try:
            for user in recipients:
                db.session.add(Notification(
                    user_id=user.id,
                    title=title,
                    message=message,
                    type=NotificationType.REPORT.value,
                    priority=priority,
                    related_type='report',
                    related_id=report.id,
                    action_url=f"/reports/{report.id}",
                    expires_at=datetime.utcnow() + timedelta(days=30)
                ))
                created += 1
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error("Error notifying staff about report %s: %s", report.id, e)
            return 0

        current_app.logger.info("Notified %d staff users about report %s", created, report.id)
        return created

    @staticmethod
    def notify_status_update(report, old_status):
        """Tell the reporter that their report moved to a new status"""
        if not report.reporter_id:
            return None

        message = f'Your report "{report.title}" changed from {old_status} to {report.status}.'
        if report.resolution_notes and report.status == 'resolved':
            message += f"\n\nResolution notes: {report.resolution_notes}"

        return NotificationService.create_notification(
            recipient_id=report.reporter_id,
            title="Report Status Updated",
            message=message,
            notification_type=NotificationType.STATUS_UPDATE.value,
            priority=NotificationPriority.HIGH.value if report.status == 'resolved'
            else NotificationPriority.NORMAL.value,
            related_type='report',
            related_id=report.id,
            action_url=f"/reports/{report.id}"
        )

    @staticmethod
    def notify_resource_pledged(report, resource):
        if not report.reporter_id:
            return None
        amount = f" ({resource.currency} {resource.amount:,.2f})" if resource.amount else ""
        return NotificationService.create_notification(
            recipient_id=report.reporter_id,
            title="Resource Pledged",
            message=f'{resource.provider_name} pledged {resource.resource_type}{amount} for "{report.title}".',
            notification_type=NotificationType.ASSIGNMENT.value,
            related_type='report',
            related_id=report.id,
            action_url=f"/reports/{report.id}"
        )

    @staticmethod
    def mark_notification_as_read(notification_id, user_id):
        """Mark a notification as read"""
        notification = Notification.query.filter_by(id=notification_id, user_id=user_id).first()
        if notification:
            notification.mark_as_read()
            return True
        return False

    @staticmethod
    def mark_all_as_read(user_id):
        """Mark all notifications as read for a user"""
        notifications = Notification.query.filter_by(user_id=user_id, is_read=False).all()
        for notification in notifications:
            notification.is_read = True
            notification.read_at = datetime.utcnow()
        db.session.commit()
        return len(notifications)
