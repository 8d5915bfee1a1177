"""API error types.

Route handlers and guards raise these; the handlers registered in
``create_app`` turn them into ``{"success": false, ...}`` JSON responses.
"""


class APIError(Exception):
    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message=None, code=None, errors=None, **extra):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.code = code
        self.errors = errors
        self.extra = extra

    def to_dict(self):
        payload = {'success': False, 'message': self.message}
        if self.code:
            payload['code'] = self.code
        if self.errors is not None:
            payload['errors'] = self.errors
        payload.update(self.extra)
        return payload


class ValidationError(APIError):
    status_code = 400
    default_message = 'Validation failed'


class BadRequest(APIError):
    status_code = 400
    default_message = 'Bad request'


class AuthenticationError(APIError):
    status_code = 401
    default_message = 'Authentication required'


class PermissionDenied(APIError):
    status_code = 403
    default_message = 'Permission denied'


class NotFound(APIError):
    status_code = 404
    default_message = 'Resource not found'


class Conflict(APIError):
    status_code = 409
    default_message = 'Resource already exists'
