"""
Billing error taxonomy.

Services raise these before any write happens. The API layer maps each one to
its HTTP status (see billing.api.exceptions).
"""


class BillingError(Exception):
    """Base class for billing errors with a human-readable message."""

    status_code = 500
    default_message = 'Billing operation failed'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(BillingError):
    """Referenced record does not exist or is outside the caller's company."""

    status_code = 404
    default_message = 'Not found'


class Forbidden(BillingError):
    """Caller does not own the record or lacks the required role."""

    status_code = 403
    default_message = 'Access denied'


class ValidationError(BillingError):
    """Missing or invalid input, or a transition not allowed from the current state."""

    status_code = 400
    default_message = 'Invalid request'


class InternalError(BillingError):
    """Unexpected failure in pricing or persistence."""

    status_code = 500
