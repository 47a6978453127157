"""Unit tests for ElectionCoordinator use case."""

from __future__ import annotations

import pytest

from leaderkey.adapters.fakes import FakeCoordinationService, FakeMetricsAdapter
from leaderkey.domain.election import ClaimResult, Lease
from leaderkey.domain.exceptions import (
    CoordinationError,
    ElectionClosedError,
    ElectionFailedError,
    ParticipantIdentityError,
    ServiceUnavailableError,
)
from leaderkey.domain.retry import RetryPolicy
from leaderkey.domain.settings import ElectionSettings
from leaderkey.usecases.election_coordinator import ElectionCoordinator
from leaderkey.usecases.election_core import ElectionState

KEY = "MyApp/leader"


class OrderRecordingService(FakeCoordinationService):
    """Fake service that records how many watches were live at each revoke."""

    def __init__(self) -> None:
        super().__init__()
        self.watches_at_revoke: list[int] = []

    def revoke_lease(self, lease: Lease) -> None:
        self.watches_at_revoke.append(self.active_watch_count)
        super().revoke_lease(lease)


class RejectingService(FakeCoordinationService):
    """Fake service that grants leases but rejects claims and revokes."""

    def create_if_absent(self, key: str, value: str, lease: Lease) -> ClaimResult:
        raise CoordinationError("permission denied")

    def revoke_lease(self, lease: Lease) -> None:
        raise ServiceUnavailableError("etcd unreachable")


def claims_by(service: FakeCoordinationService, participant_id: str) -> int:
    return sum(1 for _, value, _ in service.claim_calls if value == participant_id)


@pytest.mark.tier(1)
@pytest.mark.tra("UseCase.ElectionCoordinator")
class TestElectionCoordinator:
    """Test the public election API."""

    def test_start_then_watch(self, service: FakeCoordinationService) -> None:
        coordinator = ElectionCoordinator("A", service)
        result = coordinator.start_election()
        coordinator.watch_for_leader_change()

        assert result.created is True
        assert coordinator.is_leader() is True
        assert coordinator.current_leader_id() == "A"
        assert coordinator.self_id() == "A"
        assert coordinator.state is ElectionState.LEADING
        assert coordinator.watcher.is_active is True
        coordinator.shutdown()

    def test_empty_identity_rejected(self, service: FakeCoordinationService) -> None:
        with pytest.raises(ParticipantIdentityError):
            ElectionCoordinator("  ", service)

    def test_settings_are_applied(self, service: FakeCoordinationService) -> None:
        settings = ElectionSettings(
            election_key="billing/leader",
            lease_ttl=4,
            retry_policy=RetryPolicy(max_attempts=2),
        )
        coordinator = ElectionCoordinator("A", service, settings)
        coordinator.start_election()

        assert coordinator.settings is settings
        assert service.get_value("billing/leader") == "A"
        assert coordinator.lease_manager.lease.ttl == 4  # type: ignore[union-attr]
        coordinator.shutdown()

    def test_follower_takes_over_when_leader_leaves(
        self, service: FakeCoordinationService
    ) -> None:
        with ElectionCoordinator("A", service) as a:
            b = ElectionCoordinator("B", service).__enter__()
            assert a.is_leader() is True
            assert b.current_leader_id() == "A"

        assert service.drain()
        assert b.is_leader() is True
        assert a.is_leader() is False
        assert service.get_value(KEY) == "B"
        b.shutdown()

    def test_leader_change_observed_before_watch_is_replayed(
        self, service: FakeCoordinationService
    ) -> None:
        a = ElectionCoordinator("A", service)
        a.start_election()
        b = ElectionCoordinator("B", service)
        b.start_election()

        # A leaves in the gap between B's election and B's watch
        a.shutdown()
        b.watch_for_leader_change()
        assert service.drain()

        assert b.is_leader() is True
        b.shutdown()

    def test_watch_does_not_replay_own_claim(self, service: FakeCoordinationService) -> None:
        metrics = FakeMetricsAdapter()
        coordinator = ElectionCoordinator("A", service, metrics=metrics)
        coordinator.start_election()
        coordinator.watch_for_leader_change()
        assert service.drain()

        assert coordinator.watcher.delivered_count == 0
        assert metrics.leader_changes == 1
        coordinator.shutdown()


@pytest.mark.tier(1)
@pytest.mark.tra("UseCase.ElectionCoordinator.Shutdown")
class TestShutdown:
    """Test teardown ordering and idempotence."""

    def test_watch_cancelled_before_lease_revoked(self) -> None:
        service = OrderRecordingService()
        try:
            coordinator = ElectionCoordinator("A", service)
            coordinator.start_election()
            coordinator.watch_for_leader_change()

            coordinator.shutdown()

            assert service.watches_at_revoke == [0]
        finally:
            service.close()

    def test_no_reclaim_after_shutdown(self, service: FakeCoordinationService) -> None:
        coordinator = ElectionCoordinator("A", service)
        coordinator.start_election()
        coordinator.watch_for_leader_change()

        coordinator.shutdown()
        assert service.drain()

        assert claims_by(service, "A") == 1
        assert service.get_value(KEY) is None
        assert coordinator.is_leader() is False

    def test_shutdown_is_idempotent(self, service: FakeCoordinationService) -> None:
        coordinator = ElectionCoordinator("A", service)
        coordinator.start_election()
        coordinator.shutdown()
        coordinator.shutdown()
        assert len(service.revoked_handles) == 1

    def test_shutdown_before_start(self, service: FakeCoordinationService) -> None:
        coordinator = ElectionCoordinator("A", service)
        coordinator.shutdown()
        assert service.revoked_handles == []
        with pytest.raises(ElectionClosedError):
            coordinator.start_election()

    def test_core_closed_even_if_revoke_fails(self, service: FakeCoordinationService) -> None:
        coordinator = ElectionCoordinator("A", service)
        coordinator.start_election()
        service.fail_next(1)

        with pytest.raises(ServiceUnavailableError):
            coordinator.shutdown()

        assert coordinator.core.closed is True
        assert coordinator.watcher.is_active is False

    def test_failed_enter_tears_down(self, service: FakeCoordinationService) -> None:
        settings = ElectionSettings(retry_policy=RetryPolicy(max_attempts=2))
        coordinator = ElectionCoordinator("A", service, settings, sleep=lambda s: None)
        service.set_available(False)

        with pytest.raises(ElectionFailedError):
            with coordinator:
                pytest.fail("body must not run")

        assert coordinator.core.closed is True
        assert coordinator.lease_manager.cancelled is True

    def test_failed_enter_keeps_election_error_when_teardown_fails(
        self, fake_logger
    ) -> None:
        service = RejectingService()
        try:
            coordinator = ElectionCoordinator("A", service, logger=fake_logger)

            with pytest.raises(ElectionFailedError):
                with coordinator:
                    pytest.fail("body must not run")

            assert coordinator.core.closed is True
            assert any("Teardown after failed start" in m for m in fake_logger.warnings)
        finally:
            service.close()


@pytest.mark.tier(1)
@pytest.mark.tra("UseCase.ElectionCoordinator.LeaseExpiry")
class TestLeaseExpiry:
    """Test re-entering the election after the lease is lost."""

    def test_leader_reclaims_after_own_lease_expires(
        self, service: FakeCoordinationService
    ) -> None:
        coordinator = ElectionCoordinator("A", service)
        coordinator.start_election()
        coordinator.watch_for_leader_change()
        expired = coordinator.lease_manager.lease

        service.expire_lease(expired)  # type: ignore[arg-type]
        assert service.drain()

        assert coordinator.is_leader() is True
        assert service.get_value(KEY) == "A"
        assert coordinator.lease_manager.lease != expired
        coordinator.shutdown()

    def test_start_election_succeeds_after_lease_expiry(
        self, service: FakeCoordinationService
    ) -> None:
        coordinator = ElectionCoordinator("A", service)
        coordinator.start_election()
        coordinator.watch_for_leader_change()
        service.expire_lease(coordinator.lease_manager.lease)  # type: ignore[arg-type]
        assert service.drain()

        result = coordinator.start_election()

        assert result.current_value == "A"
        assert coordinator.is_leader() is True
        assert service.leases_granted == 2
        coordinator.shutdown()

    def test_follower_takes_over_expired_leader_and_old_leader_follows(
        self, service: FakeCoordinationService
    ) -> None:
        a = ElectionCoordinator("A", service).__enter__()
        b = ElectionCoordinator("B", service).__enter__()

        # A is partitioned: its watch is gone while its lease times out
        a.watcher.cancel()
        service.expire_lease(a.lease_manager.lease)  # type: ignore[arg-type]
        assert service.drain()
        assert b.is_leader() is True

        a.start_election()

        assert a.is_leader() is False
        assert a.current_leader_id() == "B"
        a.shutdown()
        b.shutdown()
