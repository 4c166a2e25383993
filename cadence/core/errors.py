"""
Cadence exception hierarchy.

Every error in the system inherits from CadenceError.
Each subsystem has its own error class for targeted catching.

Usage:
    try:
        await gateway.update_event(event_id, instance)
    except NotFoundError:
        # Event is gone on the provider side, re-create it
    except CalendarError as e:
        # Provider rejected the request
    except CadenceError as e:
        # Handle any Cadence error
"""


class CadenceError(Exception):
    """Base exception for all Cadence errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# ━━━ Layer 0: Core Errors ━━━


class ConfigError(CadenceError):
    """Configuration is invalid, missing, or malformed."""

    pass


class StorageError(CadenceError):
    """Document store failure — database errors, corrupt documents, etc."""

    pass


# ━━━ Layer 1: Recurrence Errors ━━━


class InvalidRuleError(CadenceError):
    """Recurrence rule cannot be expanded (unrecognized frequency)."""

    pass


# ━━━ Layer 2: Calendar Errors ━━━


class NotConfiguredError(CadenceError):
    """Calendar integration is absent or disabled. Sync treats this as skip."""

    pass


class TokenServiceError(CadenceError):
    """Backend token endpoint failed to exchange or refresh a token."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, details)


class AuthExpiredError(CadenceError):
    """Provider rejected the access token. Recoverable exactly once."""

    pass


class CalendarError(CadenceError):
    """Provider rejected a request for a reason other than auth expiry."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, details)


class NotFoundError(CalendarError):
    """External event id does not exist on the provider."""

    def __init__(self, message: str, event_id: str = "", details: dict | None = None):
        self.event_id = event_id
        super().__init__(message, status_code=404, details=details)
