"""
Service-layer exceptions.

Every workflow either completes its side effects or raises one of these.
Each carries a user-facing message (shown verbatim by the admin UI) and the
HTTP status the JSON views answer with.
"""


class ServiceError(Exception):
    status = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class NotFound(ServiceError):
    """Referenced user, post, comment or chat does not exist."""
    status = 404


class PermissionDenied(ServiceError):
    """Caller lacks rights, or the target is protected (e.g. an admin)."""
    status = 403


class InvalidArgument(ServiceError):
    """Operation does not apply to the target or a required field is missing."""
    status = 400


class AlreadyInState(ServiceError):
    """Target is already in the requested state."""
    status = 409
