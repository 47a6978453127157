"""EventEmitterPort implementations for leadership events."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from leaderkey.domain.events import LeadershipEventType

if TYPE_CHECKING:
    from collections.abc import Callable

    from leaderkey.domain.events import LeadershipEvent

logger = logging.getLogger(__name__)


class CallbackEventEmitter:
    """Forwards every leadership event to a user callable.

    Exceptions raised by the callable are logged and not propagated, so a
    faulty observer cannot break the election state machine.
    """

    def __init__(self, callback: Callable[[LeadershipEvent], None]) -> None:
        self._callback = callback

    def emit(self, event: LeadershipEvent) -> None:
        try:
            self._callback(event)
        except Exception:
            logger.exception(
                f"Leadership observer failed on {event.event_type.value} event"
            )


class LoggingEventEmitter:
    """Logs each leadership transition at a level matching its severity."""

    def emit(self, event: LeadershipEvent) -> None:
        if event.event_type is LeadershipEventType.ELECTION_FAILED:
            logger.error(
                f"Election failed for participant {event.participant_id!r}: {event.reason}"
            )
        elif event.event_type is LeadershipEventType.VACATED:
            logger.warning(
                f"Leadership vacated (participant {event.participant_id!r})"
            )
        else:
            logger.info(
                f"Participant {event.participant_id!r} {event.event_type.value}: "
                f"leader is {event.leader_id!r}"
            )
