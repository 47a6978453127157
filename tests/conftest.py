"""
Root conftest.py for the leaderkey test suite.

Pytest plugin that enforces TRA (Test Responsibility Architecture) and Tier markers.
- Fails collection if a test is missing its TRA marker or tier marker
- Enforces tier timeouts when pytest-timeout is installed

Usage:
    @pytest.mark.tier(1)
    @pytest.mark.tra("UseCase.ElectionCore")
    def test_something():
        ...

Configuration:
    Set TIER_ENFORCE=0 or TRA_ENFORCE=0 to disable enforcement,
    or =warn to report violations without failing collection.
    Set TIER_TIMEOUT_MULTIPLIER to scale tier timeouts on slow machines.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from _pytest.config import Config
    from _pytest.nodes import Item


# ============================================================================
# TRA (Test Responsibility Architecture) Configuration
# ============================================================================

# Valid TRA namespace prefixes
VALID_TRA_PREFIXES = frozenset(
    [
        "Domain.Invariant.",
        "Domain.Policy.",
        "UseCase.",
        "Port.",
        "Adapter.",
        "Contract.",
    ]
)


# ============================================================================
# Tier Configuration
# ============================================================================

# Tier timeout limits in seconds
TIER_TIMEOUTS: dict[int, float] = {
    0: 0.1,  # 100ms - instant
    1: 2.0,  # 2s - fast (pre-commit)
    2: 30.0,  # 30s - standard (CI)
    3: 300.0,  # 5min - slow (needs a live etcd)
    4: 0,  # No limit - manual
}

TIER_NAMES: dict[int, str] = {
    0: "instant",
    1: "fast",
    2: "standard",
    3: "slow",
    4: "manual",
}

_TIER_COUNTS = pytest.StashKey[dict[int, int]]()


# ============================================================================
# Pytest Hooks
# ============================================================================


def pytest_configure(config: Config) -> None:
    """Register custom markers for TRA and Tier enforcement."""
    config.addinivalue_line(
        "markers",
        "tra(anchor): Test Responsibility Anchor - declares the single responsibility this test protects. "
        "Must start with one of: Domain.Invariant, Domain.Policy, UseCase, Port, Adapter, Contract",
    )
    config.addinivalue_line(
        "markers",
        "tier(level): Test tier (0=instant, 1=fast, 2=standard, 3=slow, 4=manual). "
        "Determines when test runs and enforces timeout.",
    )
    config.addinivalue_line(
        "markers", "property: Property-based tests using Hypothesis"
    )
    config.addinivalue_line(
        "markers", "concurrency: Tests that race several threads against one service"
    )


def _get_tier(item: Item) -> int | None:
    """Extract tier level from item's markers."""
    for marker in item.iter_markers(name="tier"):
        if marker.args:
            tier = marker.args[0]
            if isinstance(tier, int) and 0 <= tier <= 4:
                return tier
    return None


def _enforce_tra_markers(items: list[Item]) -> list[str]:
    """
    Validate TRA markers on all tests.

    Returns:
        List of error messages. Empty if all valid.
    """
    if os.environ.get("TRA_ENFORCE", "1") == "0":
        return []

    errors = []

    for item in items:
        tra_markers = list(item.iter_markers(name="tra"))
        test_id = item.nodeid

        if not tra_markers:
            errors.append(f"{test_id}: Missing @pytest.mark.tra('...')")
            continue

        # A class marker plus a method marker is allowed; the closest one wins
        marker = tra_markers[0]

        if not marker.args:
            errors.append(f"{test_id}: @tra marker missing anchor argument")
            continue

        anchor = marker.args[0]

        if not isinstance(anchor, str) or not anchor.strip():
            errors.append(f"{test_id}: @tra anchor must be a non-empty string")
            continue

        if not any(anchor.startswith(prefix) for prefix in VALID_TRA_PREFIXES):
            valid = ", ".join(sorted(VALID_TRA_PREFIXES))
            errors.append(
                f"{test_id}: Invalid TRA anchor '{anchor}'. Must start with one of: {valid}"
            )

    return errors


def _enforce_tier_markers(items: list[Item]) -> list[str]:
    """
    Validate tier markers on all tests.

    Returns:
        List of error messages. Empty if all valid.
    """
    if os.environ.get("TIER_ENFORCE", "1") == "0":
        return []

    errors = []
    missing: list[str] = []
    invalid: list[str] = []

    for item in items:
        if not list(item.iter_markers(name="tier")):
            missing.append(item.nodeid)
        elif _get_tier(item) is None:
            invalid.append(f"{item.nodeid} (invalid tier value)")

    if missing:
        errors.append(
            f"\nTests missing @pytest.mark.tier() marker ({len(missing)}):\n"
            + "\n".join(f"  - {nodeid}" for nodeid in missing[:10])
        )
        if len(missing) > 10:
            errors.append(f"  ... and {len(missing) - 10} more")

    if invalid:
        errors.append(
            f"\nTests with invalid tier markers ({len(invalid)}):\n"
            + "\n".join(f"  - {msg}" for msg in invalid[:10])
        )

    return errors


def _apply_tier_timeouts(items: list[Item], config: Config) -> None:
    """Apply timeout based on tier level.

    Only applies if pytest-timeout is installed and no explicit timeout is set.
    Respects TIER_TIMEOUT_MULTIPLIER environment variable.
    """
    if not config.pluginmanager.hasplugin("timeout"):
        return

    multiplier = float(os.environ.get("TIER_TIMEOUT_MULTIPLIER", "1.0"))

    for item in items:
        tier = _get_tier(item)
        if tier is None:
            continue

        if any(item.iter_markers(name="timeout")):
            continue

        timeout = TIER_TIMEOUTS.get(tier, 0)
        if timeout > 0:
            item.add_marker(pytest.mark.timeout(timeout * multiplier))


@pytest.hookimpl(tryfirst=True)
def pytest_collection_modifyitems(config: Config, items: list[Item]) -> None:
    """Enforce TRA and Tier markers at collection time."""
    all_errors = _enforce_tra_markers(items) + _enforce_tier_markers(items)

    if all_errors:
        if "warn" in (
            os.environ.get("TRA_ENFORCE", "1"),
            os.environ.get("TIER_ENFORCE", "1"),
        ):
            print("\nTRA/Tier Enforcement Warnings:")
            for error in all_errors:
                print(f"  {error}")
        else:
            error_msg = "TRA/Tier Enforcement Errors:\n" + "\n".join(
                f"  - {e}" for e in all_errors
            )
            pytest.fail(error_msg, pytrace=False)

    counts: dict[int, int] = {}
    for item in items:
        tier = _get_tier(item)
        if tier is not None:
            counts[tier] = counts.get(tier, 0) + 1
    config.stash[_TIER_COUNTS] = counts

    _apply_tier_timeouts(items, config)


# ============================================================================
# Reporting
# ============================================================================


@pytest.hookimpl(trylast=True)
def pytest_report_header(config: Config) -> str:
    """Add enforcement info to pytest header."""
    tra_enforce = os.environ.get("TRA_ENFORCE", "1")
    tier_enforce = os.environ.get("TIER_ENFORCE", "1")
    return f"TRA enforcement: {tra_enforce} | Tier enforcement: {tier_enforce}"


def pytest_terminal_summary(
    terminalreporter: object, exitstatus: int, config: Config
) -> None:
    """Print how many collected tests fall in each tier."""
    by_tier = config.stash.get(_TIER_COUNTS, {})
    if not by_tier or not hasattr(terminalreporter, "write_line"):
        return

    write_sep = getattr(terminalreporter, "write_sep")
    write_line = getattr(terminalreporter, "write_line")
    write_sep("=", "Tier Summary")
    for tier in sorted(by_tier):
        name = TIER_NAMES.get(tier, "unknown")
        write_line(f"  tier({tier}) [{name}]: {by_tier[tier]}")
