"""
Error taxonomy for authentication, authorization and workflow decisions.

Each error carries an ErrorKind so callers can branch on the kind rather
than on message text. The HTTP binding lives in tpcomply.api.errors; nothing
here knows about status codes.
"""

from enum import Enum


class ErrorKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    ACCOUNT_NOT_FOUND = "account_not_found"
    NO_FIRM_ASSIGNED = "no_firm_assigned"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    TRANSITION_NOT_ALLOWED_FOR_ROLE = "transition_not_allowed_for_role"
    CONDITION_NOT_MET = "condition_not_met"
    RESOLUTION_FAILURE = "resolution_failure"


class AccessError(Exception):
    kind: ErrorKind = ErrorKind.FORBIDDEN
    default_message: str = "Access denied"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(AccessError):
    kind = ErrorKind.UNAUTHENTICATED
    default_message = "Please log in to continue"


class AccountNotFound(AccessError):
    kind = ErrorKind.ACCOUNT_NOT_FOUND
    default_message = "Your account could not be found"


class NoFirmAssigned(AccessError):
    kind = ErrorKind.NO_FIRM_ASSIGNED
    default_message = "Your account is not associated with a firm"


class Forbidden(AccessError):
    kind = ErrorKind.FORBIDDEN
    default_message = "Permission denied"


class NotFound(AccessError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Record not found"


class ResolutionFailure(AccessError):
    kind = ErrorKind.RESOLUTION_FAILURE
    default_message = "An error occurred during authentication"


class WorkflowError(AccessError):
    """A rejected status transition; kind is one of the transition kinds."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
