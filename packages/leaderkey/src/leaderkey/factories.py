"""Factory functions for creating election instances.

Provides factory methods to build the etcd-backed coordination service and
a wired ElectionCoordinator from settings. Handles the optional backend
import gracefully.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from leaderkey.domain.settings import ElectionSettings
from leaderkey.usecases.election_coordinator import ElectionCoordinator

if TYPE_CHECKING:
    from leaderkey.adapters.ports import CoordinationServicePort


class EtcdBackendNotInstalledError(ImportError):
    """Raised when py-etcd-leader or its httpx dependency cannot be imported.

    It ships with the leaderkey distribution; a stripped install may lack it.
    """

    def __init__(self) -> None:
        super().__init__(
            "py-etcd-leader (or httpx) is not installed. "
            "Reinstall with: pip install leaderkey"
        )


def create_etcd_coordination_service(
    settings: ElectionSettings | None = None,
) -> CoordinationServicePort:
    """Create an EtcdGatewayClient from ElectionSettings.

    Args:
        settings: Settings providing endpoint and request_timeout.
                  Defaults to ElectionSettings().

    Returns:
        A CoordinationServicePort implementation (EtcdGatewayClient from
        py-etcd-leader). The caller owns it and should close() it.

    Raises:
        EtcdBackendNotInstalledError: If py-etcd-leader is not installed.
    """
    settings = settings or ElectionSettings()

    try:
        from py_etcd_leader import EtcdGatewayClient
    except ImportError as exc:
        raise EtcdBackendNotInstalledError() from exc

    result: CoordinationServicePort = EtcdGatewayClient(
        settings.endpoint, timeout=settings.request_timeout
    )
    return result


def create_election_coordinator(
    participant_id: str,
    settings: ElectionSettings | None = None,
    service: CoordinationServicePort | None = None,
    **kwargs: Any,
) -> ElectionCoordinator:
    """Create an ElectionCoordinator, building the etcd service if none is given.

    Args:
        participant_id: This participant's id.
        settings: Election settings. Defaults to ElectionSettings().
        service: Coordination service to use. Defaults to an etcd client
                 built from settings.
        **kwargs: Passed through to ElectionCoordinator (logger, metrics,
                  event_emitter, sleep).

    Raises:
        EtcdBackendNotInstalledError: If no service is given and
            py-etcd-leader is not installed.
        ParticipantIdentityError: If participant_id is empty or blank.

    Example:
        >>> settings = ElectionSettings(election_key="billing/leader")
        >>> with create_election_coordinator("node-a", settings) as election:
        ...     print(election.current_leader_id())
    """
    settings = settings or ElectionSettings()
    if service is None:
        service = create_etcd_coordination_service(settings)
    return ElectionCoordinator(participant_id, service, settings, **kwargs)
