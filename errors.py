"""
Error taxonomy shared by the store, service and HTTP layers.
"""


class AdminError(Exception):
    """Base class; ``message`` is safe to show to staff."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class StoreError(AdminError):
    """The document store or object storage rejected or failed a call."""

    status_code = 503


class RecordNotFound(AdminError):
    status_code = 404


class RuleViolation(AdminError):
    """Client-side validation failed; no remote call was issued."""

    status_code = 400
