"""Exception hierarchy shared by the API client and the attendance controllers.

Controllers catch these at the call site and turn them into UI state:
transient errors become dismissible messages, session errors block the view,
device errors carry a ``reason`` so the message can tell the user what to fix.
"""


class AttendCheckError(Exception):
    """Base class for every error raised by the client."""

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details


class ApiError(AttendCheckError):
    """A backend call did not produce a usable response."""

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message, status_code=status_code)
        self.status_code = status_code
        self.payload = payload if payload is not None else {}


class TransientError(ApiError):
    """Network failure, timeout or server-side error; safe to retry."""


class BusinessRuleError(ApiError):
    """The backend understood the request and refused it."""

    @property
    def error_type(self):
        if isinstance(self.payload, dict):
            return self.payload.get('error_type') or ''
        return ''


class AuthenticationError(ApiError):
    """Credentials were rejected or the bearer token is no longer valid."""


class AuthorizationError(AttendCheckError):
    """The logged-in user does not have the role a view requires."""


class SessionError(AttendCheckError):
    """Missing, malformed or expired attendance session token."""


class DeviceError(AttendCheckError):
    """A local device (camera, location) could not be used."""

    def __init__(self, message, reason='unavailable'):
        super().__init__(message, reason=reason)
        self.reason = reason


class CameraError(DeviceError):
    pass


class LocationError(DeviceError):
    pass
