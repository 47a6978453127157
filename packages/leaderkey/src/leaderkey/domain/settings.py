"""Election settings domain entity."""

from dataclasses import dataclass, field
from urllib.parse import urlparse

from leaderkey.domain.exceptions import LeaderKeyConfigError
from leaderkey.domain.retry import RetryPolicy

DEFAULT_ELECTION_KEY = "MyApp/leader"
DEFAULT_LEASE_TTL = 10
DEFAULT_ENDPOINT = "http://127.0.0.1:2379"


@dataclass(frozen=True)
class ElectionSettings:
    """Configuration for one election group.

    Value object with zero external dependencies. The election key is
    scoped to one application; every participant of the group must use
    the same key.

    Attributes:
        election_key: Well-known key whose value is the leader's id.
        lease_ttl: Lease time-to-live in seconds. Must be positive.
        endpoint: Base URL of the coordination service.
        request_timeout: Per-request timeout in seconds. Must be positive.
        retry_policy: Policy applied to each election attempt.
    """

    election_key: str = DEFAULT_ELECTION_KEY
    lease_ttl: int = DEFAULT_LEASE_TTL
    endpoint: str = DEFAULT_ENDPOINT
    request_timeout: float = 5.0
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        self._validate_election_key()
        self._validate_lease_ttl()
        self._validate_endpoint()
        self._validate_request_timeout()

    def _validate_election_key(self) -> None:
        """Validate election_key is non-empty and has no surrounding whitespace."""
        if not self.election_key:
            raise LeaderKeyConfigError("election_key cannot be empty")

        if not self.election_key.strip():
            raise LeaderKeyConfigError("election_key cannot be whitespace-only")

        if self.election_key != self.election_key.strip():
            raise LeaderKeyConfigError(
                f"election_key cannot have leading/trailing whitespace, got: {self.election_key!r}"
            )

    def _validate_lease_ttl(self) -> None:
        """Validate lease_ttl is a positive integer."""
        if isinstance(self.lease_ttl, bool) or not isinstance(self.lease_ttl, int):
            raise LeaderKeyConfigError(
                f"lease_ttl must be an integer, got: {self.lease_ttl!r}"
            )
        if self.lease_ttl <= 0:
            raise LeaderKeyConfigError(
                f"lease_ttl must be positive, got: {self.lease_ttl}"
            )

    def _validate_endpoint(self) -> None:
        """Validate endpoint is an http(s) URL with a host."""
        parsed = urlparse(self.endpoint)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise LeaderKeyConfigError(
                f"endpoint must be an http(s) URL, got: {self.endpoint!r}"
            )

    def _validate_request_timeout(self) -> None:
        """Validate request_timeout is positive."""
        if self.request_timeout <= 0:
            raise LeaderKeyConfigError(
                f"request_timeout must be positive, got: {self.request_timeout}"
            )
