"""Domain exceptions.

Exception hierarchy:
- LeaderKeyConfigError: Invalid configuration (settings, YAML, retry policy).
  - ParticipantIdentityError: Missing or blank participant identity.
- CoordinationError: A call to the coordination service failed permanently.
  - ServiceUnavailableError: Transient failure (network blip, timeout).
  - LeaseExpiredError: The service no longer knows the lease.
  - LeaseRevokedError: The lease manager was already cancelled.
- ElectionError: Base for election outcomes that must reach the caller.
  - ElectionFailedError: Retries exhausted or a permanent failure occurred.
  - ElectionClosedError: The election was already shut down.
"""

from __future__ import annotations


class LeaderKeyConfigError(Exception):
    """Raised when election configuration is invalid.

    This is the base exception for all domain-level configuration errors.
    It is raised by domain entities (e.g., ElectionSettings, RetryPolicy)
    and use cases (e.g., ConfigParser) when validation fails.
    """

    pass


class ParticipantIdentityError(LeaderKeyConfigError):
    """Raised when no valid participant identity is supplied at startup.

    Absence of an identity is a startup error, never an election-time error.
    """

    pass


class CoordinationError(Exception):
    """Raised when a coordination service call fails.

    Errors of this exact type are permanent: retrying the same call will not
    help. Transient failures use the ServiceUnavailableError subclass.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying exception that caused the failure (optional).
    """

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
    ) -> None:
        """Initialize CoordinationError.

        Args:
            message: Human-readable error description.
            original_error: The underlying exception that caused the failure.
        """
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ServiceUnavailableError(CoordinationError, ConnectionError):
    """Raised when the coordination service is unreachable or timed out.

    Subclasses ConnectionError so RetryPolicy classifies it as transient.
    """

    pass


class LeaseExpiredError(CoordinationError):
    """Raised when the service reports the lease as unknown or expired."""

    pass


class LeaseRevokedError(CoordinationError):
    """Raised when a lease is requested from an already cancelled manager."""

    pass


class ElectionError(Exception):
    """Base exception for election failures surfaced to the caller."""

    pass


class ElectionFailedError(ElectionError):
    """Raised when an election attempt cannot determine leadership.

    The participant must not assume either role after this error; its
    known leader is reset to unknown until a later attempt succeeds.

    Attributes:
        attempts: Number of claim attempts made before giving up.
        last_error: The error raised by the final attempt (optional).
    """

    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: BaseException | None = None,
    ) -> None:
        """Initialize ElectionFailedError.

        Args:
            message: Human-readable error description.
            attempts: Number of claim attempts made.
            last_error: The error raised by the final attempt.
        """
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class ElectionClosedError(ElectionError):
    """Raised when an election is attempted after shutdown."""

    pass
