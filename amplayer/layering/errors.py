"""Custom exceptions for layer coordination.

This module defines exception classes for the layer coordination services.
Every exception carries a human-readable message plus an optional context
dictionary with the values that triggered it.

Data gaps (missing performance or history for one strategy) are not errors:
the services apply explicit low-confidence defaults instead. Collaborator
I/O failures are not wrapped; they propagate as raised.
"""


class LayeringError(Exception):
    """
    Base exception for layer coordination.

    Attributes:
        message: Human-readable error description.
        context: Optional dictionary with additional error context.

    Examples:
        >>> raise LayeringError("Bad input", context={"layer_id": "L1"})
        Traceback (most recent call last):
        ...
        amplayer.layering.errors.LayeringError: Bad input (layer_id=L1)
    """

    def __init__(self, message: str, context: dict | None = None):
        """
        Initialize LayeringError.

        Args:
            message: Error description.
            context: Optional dictionary with error details.
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


class InputError(LayeringError):
    """Raised when input is malformed and is rejected before computation."""


class InsufficientMembersError(InputError):
    """Raised when a layer has too few enabled members for the operation."""


class AllocationInvariantError(LayeringError):
    """Raised when normalized allocation fractions do not sum to ~1.

    This signals a defect in allocation arithmetic, not a runtime condition
    to recover from.
    """


class StaleAllocationError(LayeringError):
    """Raised when a commit targets an allocation version that has moved."""


class UnknownLayerError(LayeringError):
    """Raised when a requested layer does not exist in the store."""
