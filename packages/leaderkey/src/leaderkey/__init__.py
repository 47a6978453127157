"""leaderkey: Leader election over a coordination service's leased keys."""

__version__ = "0.1.0"

from leaderkey.domain.settings import ElectionSettings
from leaderkey.domain.retry import RetryPolicy
from leaderkey.domain.exceptions import (
    LeaderKeyConfigError,
    ParticipantIdentityError,
    CoordinationError,
    ServiceUnavailableError,
    ElectionFailedError,
    ElectionClosedError,
)
from leaderkey.usecases.election_coordinator import ElectionCoordinator
from leaderkey.usecases.config_parser import ConfigParser
from leaderkey.factories import (
    EtcdBackendNotInstalledError,
    create_election_coordinator,
    create_etcd_coordination_service,
)

__all__ = [
    "ElectionSettings",
    "RetryPolicy",
    "LeaderKeyConfigError",
    "ParticipantIdentityError",
    "CoordinationError",
    "ServiceUnavailableError",
    "ElectionFailedError",
    "ElectionClosedError",
    "ElectionCoordinator",
    "ConfigParser",
    "EtcdBackendNotInstalledError",
    "create_election_coordinator",
    "create_etcd_coordination_service",
]
