"""Retry policy domain value object."""

from dataclasses import dataclass

from leaderkey.domain.exceptions import LeaderKeyConfigError

# Transient errno codes that indicate retryable network errors
# These are Linux errno values commonly seen in network operations
_TRANSIENT_ERRNOS = frozenset(
    {
        104,  # ECONNRESET - Connection reset by peer
        110,  # ETIMEDOUT - Connection timed out
        111,  # ECONNREFUSED - Connection refused
        113,  # EHOSTUNREACH - No route to host
        115,  # EINPROGRESS - Operation now in progress
    }
)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry policy for leader key claim attempts.

    Value object encapsulating how many times a claim is attempted, the
    optional exponential backoff between attempts, and transient failure
    detection.

    The defaults are 10 attempts with no delay between them. Backoff is
    a tunable for sustained partitions.

    Attributes:
        max_attempts: Total number of claim attempts, including the first.
                      Must be at least 1.
        backoff_base: Base delay in seconds for exponential backoff.
                      0.0 disables backoff. Must be non-negative.
                      Delay = backoff_base * 2^attempt.
        max_backoff: Maximum backoff delay in seconds. Must be positive.
    """

    max_attempts: int = 10
    backoff_base: float = 0.0
    max_backoff: float = 5.0

    def __post_init__(self) -> None:
        """Validate retry policy configuration."""
        self._validate_max_attempts()
        self._validate_backoff_base()
        self._validate_max_backoff()

    def _validate_max_attempts(self) -> None:
        """Validate max_attempts is at least 1."""
        if isinstance(self.max_attempts, bool) or not isinstance(
            self.max_attempts, int
        ):
            raise LeaderKeyConfigError(
                f"max_attempts must be an integer, got: {self.max_attempts!r}"
            )
        if self.max_attempts < 1:
            raise LeaderKeyConfigError("max_attempts must be at least 1")

    def _validate_backoff_base(self) -> None:
        """Validate backoff_base is non-negative."""
        if self.backoff_base < 0:
            raise LeaderKeyConfigError("backoff_base cannot be negative")

    def _validate_max_backoff(self) -> None:
        """Validate max_backoff is positive."""
        if self.max_backoff <= 0:
            raise LeaderKeyConfigError("max_backoff must be positive")

    def calculate_backoff(self, attempt: int) -> float:
        """Calculate the delay before the attempt following `attempt`.

        Args:
            attempt: The failed attempt number (0-indexed).

        Returns:
            Delay in seconds, capped at max_backoff. 0.0 when backoff is disabled.
        """
        if self.backoff_base == 0:
            return 0.0
        delay = self.backoff_base * (2**attempt)
        return float(min(delay, self.max_backoff))

    def should_retry(self, attempt: int) -> bool:
        """Determine if another attempt may follow the failed `attempt`.

        Args:
            attempt: The failed attempt number (0-indexed).

        Returns:
            True if attempt + 1 < max_attempts, False otherwise.
        """
        return attempt + 1 < self.max_attempts

    def is_transient_error(self, error: BaseException) -> bool:
        """Determine if an error is transient (retryable).

        Transient errors are temporary failures that may succeed on retry,
        such as connection errors, timeouts, and certain OS-level network
        errors. ServiceUnavailableError is a ConnectionError and therefore
        transient.

        Args:
            error: The exception to classify.

        Returns:
            True if the error is transient and should be retried,
            False if it's a permanent error.
        """
        # Connection errors are transient
        if isinstance(error, ConnectionError):
            return True

        # Timeout errors are transient
        if isinstance(error, TimeoutError):
            return True

        # Check OSError with specific errno values
        if isinstance(error, OSError) and error.errno is not None:
            return error.errno in _TRANSIENT_ERRNOS

        # All other errors are considered permanent
        return False
