from flask import current_app
from flask_mail import Message

from edutrack import mail


class EmailService:
    """Service for handling email notifications"""

    @staticmethod
    def mail_configured():
        config = current_app.config
        return bool(config.get('MAIL_USERNAME')) and not config.get('MAIL_SUPPRESS_SEND', False)

    @staticmethod
    def send_email(to=None, subject=None, body=None, html_body=None, *, recipients=None):
        """
        Send an email, or log it when no mail account is configured.

        Returns True on success, False on failure.
        """
        recipient_list = list(recipients) if recipients else ([to] if to else [])
        if not recipient_list:
            current_app.logger.error("No recipients specified for email")
            return False

        if not EmailService.mail_configured():
            return EmailService._log_email(recipient_list, subject, body)

        try:
            msg = Message(
                subject=subject,
                recipients=recipient_list,
                body=body,
                html=html_body
            )
            mail.send(msg)
            current_app.logger.info("Email sent successfully to %s", ', '.join(recipient_list))
            return True
        except Exception as e:
            current_app.logger.error("Failed to send email to %s: %s", recipient_list[0], e)
            return False

    @staticmethod
    def _log_email(recipient_list, subject, body):
        """Fallback used when mail delivery is disabled"""
        current_app.logger.info("EMAIL NOTIFICATION:")
        current_app.logger.info("To: %s", ', '.join(recipient_list))
        current_app.logger.info("Subject: %s", subject)
        current_app.logger.debug("Body: %s", body)
        return True

    @staticmethod
    def send_welcome_email(user):
        """
        Greet a newly registered user

        Args:
            user (User): the account that was just created

        Returns:
            bool: True if email sent (or logged) successfully
        """
        subject = "Welcome to EduTrack"
        body = f"""
Hello {user.full_name},

Your EduTrack account ({user.username}) has been created with the role "{user.role}".

You can now report infrastructure issues at schools across Kano State and follow
their progress from the dashboard.

Best regards,
EduTrack Team
        """
        return EmailService.send_email(user.email, subject, body)

    @staticmethod
    def send_status_update_email(user, report, old_status):
        subject = f"Report update: {report.title}"
        body = f"""
Hello {user.full_name},

The status of your report "{report.title}" changed from "{old_status}" to "{report.status}".
{f"Resolution notes: {report.resolution_notes}" if report.resolution_notes else ""}

Best regards,
EduTrack Team
        """
        return EmailService.send_email(user.email, subject, body)
