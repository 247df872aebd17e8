from __future__ import annotations


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class InvalidArgument(ValidationError):
    """Malformed input (negative hours, bad reference, ...). Raised before any mutation."""


class NotFound(DomainError):
    """Raised when the requested task or attendance record does not exist."""


class InvalidTransition(DomainError):
    """Raised when the current state does not permit the operation."""

    def __init__(self, message: str, *, current=None, target=None):
        super().__init__(message)
        self.current = current
        self.target = target


class ConcurrencyError(DomainError):
    """Another caller holds or already won the entity."""


class AlreadyProcessing(ConcurrencyError):
    """An approval for the same entity is in flight."""


class AlreadyClaimed(ConcurrencyError):
    """A department task was claimed by someone else first."""


class ConfigurationError(DomainError):
    """Raised for unknown policy keys (e.g. difficulty tier) or missing settings."""


class SettlementFailure(DomainError):
    """The payment gateway could not complete a settlement."""

    def __init__(self, message: str, *, idempotency_key: str | None = None):
        super().__init__(message)
        self.idempotency_key = idempotency_key


class UpstreamUnavailable(DomainError):
    """A read endpoint (database, replica) could not be reached."""
