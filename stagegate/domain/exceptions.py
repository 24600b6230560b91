"""
Domain exceptions.

Business-rule rejections are returned as results, not raised. These
exceptions cover the cases the services translate or propagate.
"""


class StageGateError(Exception):
    """Base class for stagegate errors."""
    pass


class InvalidTransitionError(StageGateError):
    """Raised when a processing instance is moved out of a terminal state or started out of order."""

    def __init__(self, message: str, *, processing_id: int | None = None, status: str | None = None):
        super().__init__(message)
        self.processing_id = processing_id
        self.status = status


class DataIntegrityError(StageGateError):
    """Raised when a required related record (order, stage definition, instance) is missing."""
    pass


class ConcurrencyError(StageGateError):
    """Raised when concurrent modification detected."""
    pass
