"""Config parser use case for election settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from leaderkey.domain.exceptions import LeaderKeyConfigError
from leaderkey.domain.retry import RetryPolicy
from leaderkey.domain.settings import (
    DEFAULT_ELECTION_KEY,
    DEFAULT_ENDPOINT,
    DEFAULT_LEASE_TTL,
    ElectionSettings,
)


class ConfigParser:
    """Parses YAML election configuration to settings.

    Expected layout (every field optional):

        election:
          key: MyApp/leader
          lease_ttl: 10
          max_attempts: 10
          backoff_base: 0.0
          max_backoff: 5.0
        etcd:
          endpoint: http://127.0.0.1:2379
          timeout: 5.0
    """

    def parse(self, yaml_str: str) -> ElectionSettings:
        """Parse YAML config to settings.

        Args:
            yaml_str: YAML string representing the election configuration.
                      An empty document yields default settings.

        Returns:
            ElectionSettings domain object.

        Raises:
            LeaderKeyConfigError: If YAML is invalid or a field has the wrong type.
        """
        try:
            config = yaml.safe_load(yaml_str)
        except yaml.YAMLError as e:
            raise LeaderKeyConfigError(f"Invalid YAML: {e}") from e

        if config is None:
            config = {}

        if not isinstance(config, dict):
            raise LeaderKeyConfigError("Config must be a dictionary")

        election = self._section(config, "election")
        etcd = self._section(config, "etcd")

        defaults = RetryPolicy()
        try:
            retry_policy = RetryPolicy(
                max_attempts=election.get("max_attempts", defaults.max_attempts),
                backoff_base=float(election.get("backoff_base", defaults.backoff_base)),
                max_backoff=float(election.get("max_backoff", defaults.max_backoff)),
            )
            return ElectionSettings(
                election_key=str(election.get("key", DEFAULT_ELECTION_KEY)),
                lease_ttl=election.get("lease_ttl", DEFAULT_LEASE_TTL),
                endpoint=str(etcd.get("endpoint", DEFAULT_ENDPOINT)),
                request_timeout=float(etcd.get("timeout", 5.0)),
                retry_policy=retry_policy,
            )
        except (TypeError, ValueError) as e:
            raise LeaderKeyConfigError(f"Invalid value in config: {e}") from e

    def parse_file(self, path: str | Path) -> ElectionSettings:
        """Read and parse a YAML config file.

        Raises:
            LeaderKeyConfigError: If the file cannot be read or is invalid.
        """
        try:
            yaml_str = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise LeaderKeyConfigError(f"Cannot read config file {path}: {e}") from e
        return self.parse(yaml_str)

    @staticmethod
    def _section(config: dict[str, Any], name: str) -> dict[str, Any]:
        section = config.get(name) or {}
        if not isinstance(section, dict):
            raise LeaderKeyConfigError(f"'{name}' section must be a dictionary")
        return section
