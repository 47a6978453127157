"""Use cases: Business logic with dependency injection."""

from leaderkey.usecases.lease_manager import LeaseManager
from leaderkey.usecases.election_core import ElectionCore, ElectionState
from leaderkey.usecases.change_watcher import ChangeWatcher
from leaderkey.usecases.election_coordinator import ElectionCoordinator
from leaderkey.usecases.config_parser import ConfigParser

__all__ = [
    "LeaseManager",
    "ElectionCore",
    "ElectionState",
    "ChangeWatcher",
    "ElectionCoordinator",
    "ConfigParser",
]
