"""Command-line process shell for leaderkey.

Joins an election group, prints leadership changes, and leaves the group
after a fixed duration or on Ctrl-C.

Usage:
    leaderkey node-a
    leaderkey node-a --endpoint http://etcd:2379 --key billing/leader --ttl 5
    LEADERKEY_PARTICIPANT_ID=node-b leaderkey --config election.yaml
"""

from __future__ import annotations

import dataclasses
import logging
import time
from pathlib import Path

import typer

from leaderkey.adapters.event_emitters import CallbackEventEmitter
from leaderkey.adapters.ports import EnvironmentParticipantIDResolver
from leaderkey.domain.events import LeadershipEvent, LeadershipEventType
from leaderkey.domain.exceptions import (
    CoordinationError,
    ElectionFailedError,
    LeaderKeyConfigError,
)
from leaderkey.domain.settings import ElectionSettings
from leaderkey.factories import (
    EtcdBackendNotInstalledError,
    create_etcd_coordination_service,
)
from leaderkey.usecases.config_parser import ConfigParser
from leaderkey.usecases.election_coordinator import ElectionCoordinator

EXIT_ELECTION_FAILED = 1
EXIT_USAGE = 2

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

app = typer.Typer(
    name="leaderkey",
    help="Join a leader election group backed by etcd",
    add_completion=False,
)


def _configure_logging(log_level: str) -> None:
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise LeaderKeyConfigError(f"Unknown log level: {log_level}")
    logging.basicConfig(level=level, format=LOG_FORMAT)


def _load_settings(
    config: Path | None,
    endpoint: str | None,
    key: str | None,
    ttl: int | None,
) -> ElectionSettings:
    settings = ConfigParser().parse_file(config) if config else ElectionSettings()

    overrides: dict[str, object] = {}
    if endpoint is not None:
        overrides["endpoint"] = endpoint
    if key is not None:
        overrides["election_key"] = key
    if ttl is not None:
        overrides["lease_ttl"] = ttl
    # replace() re-runs validation
    return dataclasses.replace(settings, **overrides) if overrides else settings


def _print_event(event: LeadershipEvent) -> None:
    if event.event_type is LeadershipEventType.ELECTED:
        typer.echo("I am the leader")
    elif event.event_type is LeadershipEventType.FOLLOWING:
        typer.echo(f"Rx leader: {event.leader_id}")
    elif event.event_type is LeadershipEventType.VACATED:
        typer.echo("Leader vacated")
    else:
        typer.echo(f"Election failed: {event.reason}", err=True)


@app.command()
def run(
    participant_id: str | None = typer.Argument(
        None,
        help="This process's id. Defaults to $LEADERKEY_PARTICIPANT_ID",
        show_default=False,
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML file with election and etcd sections",
    ),
    endpoint: str | None = typer.Option(None, "--endpoint", help="etcd gateway URL"),
    key: str | None = typer.Option(None, "--key", help="Election key"),
    ttl: int | None = typer.Option(None, "--ttl", help="Lease ttl in seconds"),
    duration: float = typer.Option(
        120.0, "--duration", help="Seconds to stay in the group before leaving"
    ),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level"),
) -> None:
    """Elect a leader and report every leadership change until shut down."""
    try:
        _configure_logging(log_level)
        if participant_id is None:
            participant_id = EnvironmentParticipantIDResolver().resolve_participant_id()
        settings = _load_settings(config, endpoint, key, ttl)
    except LeaderKeyConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=EXIT_USAGE) from e

    try:
        service = create_etcd_coordination_service(settings)
    except EtcdBackendNotInstalledError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=EXIT_ELECTION_FAILED) from e

    try:
        coordinator = ElectionCoordinator(
            participant_id,
            service,
            settings,
            event_emitter=CallbackEventEmitter(_print_event),
        )
        with coordinator:
            try:
                time.sleep(duration)
            except KeyboardInterrupt:
                typer.echo("Interrupted, leaving the election")
    except LeaderKeyConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=EXIT_USAGE) from e
    except (ElectionFailedError, CoordinationError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=EXIT_ELECTION_FAILED) from e
    finally:
        close = getattr(service, "close", None)
        if close is not None:
            close()


def main() -> None:
    """Entry point for the leaderkey console script."""
    app()


if __name__ == "__main__":
    main()
