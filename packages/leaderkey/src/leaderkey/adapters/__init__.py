"""Interface adapters: ports, default implementations and metrics."""

from leaderkey.adapters.ports import (
    CoordinationServicePort,
    WatchSubscriptionPort,
    EventEmitterPort,
    LoggingPort,
    ParticipantIDResolverPort,
    EnvironmentParticipantIDResolver,
    StandardLoggingAdapter,
)
from leaderkey.adapters.event_emitters import CallbackEventEmitter, LoggingEventEmitter
from leaderkey.adapters.metrics_port import MetricsPort, NoOpMetricsAdapter

__all__ = [
    "CoordinationServicePort",
    "WatchSubscriptionPort",
    "EventEmitterPort",
    "LoggingPort",
    "ParticipantIDResolverPort",
    "EnvironmentParticipantIDResolver",
    "StandardLoggingAdapter",
    "CallbackEventEmitter",
    "LoggingEventEmitter",
    "MetricsPort",
    "NoOpMetricsAdapter",
]
