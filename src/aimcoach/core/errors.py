"""
Error hierarchy for AimCoach.

Pipeline boundaries catch these and turn them into failure metadata.
Context detection and plain conversation let them propagate.
"""


class AimCoachError(Exception):
    """Base exception for all AimCoach errors."""

    def __init__(self, message: str, details: dict | None = None):
        """
        Initialize error.

        Args:
            message: Error message
            details: Optional structured details for logging
        """
        super().__init__(message)
        self.details = details or {}


class DataSourceError(AimCoachError):
    """Raised when an activity, playlist or checkpoint store is unreachable or malformed."""

    def __init__(self, operation: str, message: str, details: dict | None = None):
        """
        Initialize data source error.

        Args:
            operation: Store operation that failed (e.g. "most_recent")
            message: Error message
            details: Optional error details
        """
        super().__init__(f"{operation} failed: {message}", details)
        self.operation = operation


class ModelServiceError(AimCoachError):
    """Raised when a generative model call fails or its reply violates the schema."""

    def __init__(self, message: str, model: str | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.model = model


class UnknownTaskError(AimCoachError):
    """Raised when no pipeline is registered for a task type."""

    def __init__(self, task_type: str):
        super().__init__(f"No pipeline registered for task type '{task_type}'")
        self.task_type = task_type
