import re
import uuid
from datetime import datetime, timezone

from edutrack.errors import ValidationError

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
PHONE_PATTERN = re.compile(r'^\+?[1-9]\d{1,14}$')
USERNAME_PATTERN = re.compile(r'^[a-zA-Z0-9_]+$')
FULL_NAME_PATTERN = re.compile(r'^[a-zA-Z\s]+$')

TRUE_VALUES = ('true', '1', 'yes', 'on')
FALSE_VALUES = ('false', '0', 'no', 'off')


def is_uuid(value):
    try:
        uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return False
    return True


def parse_bool(value):
    """Coerce JSON booleans and form strings; returns None when not boolean-like"""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_VALUES:
            return True
        if lowered in FALSE_VALUES:
            return False
    return None


def _is_missing(value):
    return value is None or (isinstance(value, str) and value == '')


class FieldValidator:
    """Collects field-level errors for one request payload.

    Each check returns the cleaned value (or None) and records an error
    instead of raising, so a single response lists every problem.
    """

    def __init__(self, data, message='Validation failed'):
        self.data = data or {}
        self.message = message
        self.errors = []

    def error(self, field, message):
        self.errors.append({'field': field, 'message': message})

    def present(self, field):
        return field in self.data and not _is_missing(self.data.get(field))

    def string(self, field, message, min_length=0, max_length=None, pattern=None, required=True):
        value = self.data.get(field)
        if _is_missing(value):
            if required:
                self.error(field, message)
            return None
        if not isinstance(value, str):
            self.error(field, message)
            return None
        value = value.strip()
        if len(value) < min_length or (max_length is not None and len(value) > max_length):
            self.error(field, message)
            return None
        if pattern is not None and not pattern.match(value):
            self.error(field, message)
            return None
        return value

    def secret(self, field, message, required=True):
        """Passwords and tokens: must be strings, kept byte-for-byte"""
        value = self.data.get(field)
        if _is_missing(value):
            if required:
                self.error(field, message)
            return None
        if not isinstance(value, str):
            self.error(field, message)
            return None
        return value

    def email(self, field, message, required=True):
        value = self.string(field, message, max_length=255, pattern=EMAIL_PATTERN, required=required)
        return value.lower() if value else value

    def choice(self, field, choices, message, required=False):
        value = self.data.get(field)
        if _is_missing(value):
            if required:
                self.error(field, message)
            return None
        if value not in choices:
            self.error(field, message)
            return None
        return value

    def integer(self, field, message, minimum=None, maximum=None, required=False):
        value = self.data.get(field)
        if _is_missing(value):
            if required:
                self.error(field, message)
            return None
        if isinstance(value, bool):
            self.error(field, message)
            return None
        try:
            number = int(value)
        except (TypeError, ValueError):
            self.error(field, message)
            return None
        if isinstance(value, float) and value != number:
            self.error(field, message)
            return None
        if (minimum is not None and number < minimum) or (maximum is not None and number > maximum):
            self.error(field, message)
            return None
        return number

    def number(self, field, message, minimum=None, required=False):
        value = self.data.get(field)
        if _is_missing(value):
            if required:
                self.error(field, message)
            return None
        if isinstance(value, bool):
            self.error(field, message)
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            self.error(field, message)
            return None
        if minimum is not None and number < minimum:
            self.error(field, message)
            return None
        return number

    def boolean(self, field, message, required=False):
        value = self.data.get(field)
        if _is_missing(value):
            if required:
                self.error(field, message)
            return None
        parsed = parse_bool(value)
        if parsed is None:
            self.error(field, message)
        return parsed

    def uuid(self, field, message, required=True):
        value = self.data.get(field)
        if _is_missing(value):
            if required:
                self.error(field, message)
            return None
        if not is_uuid(value):
            self.error(field, message)
            return None
        return str(value)

    def date(self, field, message, end_of_day=False, required=False):
        """ISO date or datetime; a bare date can be widened to the end of that day"""
        value = self.data.get(field)
        if _is_missing(value):
            if required:
                self.error(field, message)
            return None
        try:
            parsed = datetime.fromisoformat(str(value).strip())
        except ValueError:
            self.error(field, message)
            return None
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        if end_of_day and len(str(value).strip()) == 10:
            parsed = parsed.replace(hour=23, minute=59, second=59, microsecond=999999)
        return parsed

    def validate(self):
        if self.errors:
            raise ValidationError(self.message, errors=self.errors)
