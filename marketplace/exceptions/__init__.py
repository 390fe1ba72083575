"""Custom exceptions for the course marketplace.

Every error carries a ``kind`` naming its place in the failure taxonomy
(InvalidArgument, NotFound, Conflict, InvalidState, Unauthenticated,
ResourceExhausted, Internal) and the HTTP status it is surfaced with.
"""


class MarketplaceError(Exception):
    """Base exception for all application errors."""
    kind = 'Internal'

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        rv['kind'] = self.kind
        return rv


class InvalidArgumentError(MarketplaceError):
    """Malformed or missing required reference."""
    kind = 'InvalidArgument'

    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)


class NotFoundError(MarketplaceError):
    """Exception raised when a resource is not found."""
    kind = 'NotFound'

    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class ConflictError(MarketplaceError):
    """Duplicate add, already-paid checkout."""
    kind = 'Conflict'

    def __init__(self, message, payload=None):
        super().__init__(message, 409, payload)


class InvalidStateError(MarketplaceError):
    """Empty cart, ambiguous checkout owner."""
    kind = 'InvalidState'

    def __init__(self, message, payload=None):
        super().__init__(message, 422, payload)


class UnauthenticatedError(MarketplaceError):
    """Raised when a caller or a webhook cannot be authenticated."""
    kind = 'Unauthenticated'

    def __init__(self, message="Unauthenticated", status_code=401):
        super().__init__(message, status_code)


class ForbiddenError(MarketplaceError):
    """Raised when a user lacks permission for an action."""
    kind = 'Forbidden'

    def __init__(self, message="Forbidden"):
        super().__init__(message, 403)


class ResourceExhaustedError(MarketplaceError):
    """A bounded retry budget ran out (e.g. credential email generation)."""
    kind = 'ResourceExhausted'

    def __init__(self, message, payload=None):
        super().__init__(message, 503, payload)


class InternalError(MarketplaceError):
    """Unexpected upstream failure, e.g. the payment provider rejected a call."""
    kind = 'Internal'

    def __init__(self, message="Upstream provider error", payload=None):
        super().__init__(message, 502, payload)
