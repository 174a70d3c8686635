"""
Retention

A retention policy looks at one world's snapshots and says which of
them may be deleted. Policies are written in config as a name plus
key=value arguments:

    all                 keep everything
    fixed count=5       keep the newest 5 snapshots
    daily days=7        keep all of today's snapshots plus the newest
                        snapshot from each of the 7 days before today

prune() applies a policy and deletes what it selects, skipping any
snapshot that is still being published or otherwise protected.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone

from .catalog import SnapshotId
from .publication import in_flight_snapshots

logger = logging.getLogger(__name__)


class RetentionPolicyError(ValueError):
    """Raised for an unparseable or invalid retention policy."""


class RetentionPolicy(ABC):
    name = ""

    @abstractmethod
    def select_for_pruning(self, snapshots: list[SnapshotId], now: datetime) -> list[SnapshotId]:
        """Return the snapshots that may be deleted, oldest first."""

    def describe(self) -> str:
        return self.name


class KeepAllPolicy(RetentionPolicy):
    name = "all"

    def select_for_pruning(self, snapshots, now):
        return []


class FixedCountPolicy(RetentionPolicy):
    name = "fixed"

    def __init__(self, count: int):
        if count < 1:
            raise RetentionPolicyError(f"fixed retention needs count >= 1, got {count}")
        self.count = count

    def select_for_pruning(self, snapshots, now):
        ordered = sorted(snapshots)
        if len(ordered) <= self.count:
            return []
        return ordered[: len(ordered) - self.count]

    def describe(self) -> str:
        return f"fixed count={self.count}"


class DailyPolicy(RetentionPolicy):
    name = "daily"

    def __init__(self, days: int):
        if days < 0:
            raise RetentionPolicyError(f"daily retention needs days >= 0, got {days}")
        self.days = days

    def select_for_pruning(self, snapshots, now):
        today = now.date()
        oldest_kept_day = today - timedelta(days=self.days)
        keep = set()
        days_seen = set()
        for sid in sorted(snapshots, reverse=True):
            day = sid.timestamp.date()
            if day >= today:
                keep.add(sid)
            elif day >= oldest_kept_day and day not in days_seen:
                days_seen.add(day)
                keep.add(sid)
        return [sid for sid in sorted(snapshots) if sid not in keep]

    def describe(self) -> str:
        return f"daily days={self.days}"


_POLICIES = {
    "all": (KeepAllPolicy, ()),
    "fixed": (FixedCountPolicy, ("count",)),
    "daily": (DailyPolicy, ("days",)),
}


def parse_policy(text: str) -> RetentionPolicy:
    tokens = (text or "").split()
    if not tokens:
        raise RetentionPolicyError("Empty retention policy")
    name = tokens[0].lower()
    if name not in _POLICIES:
        raise RetentionPolicyError(f"Unknown retention policy: {tokens[0]!r}")
    cls, required = _POLICIES[name]

    args = {}
    for token in tokens[1:]:
        key, sep, value = token.partition("=")
        if not sep or key not in required:
            raise RetentionPolicyError(f"Bad argument {token!r} for retention policy {name!r}")
        try:
            args[key] = int(value)
        except ValueError:
            raise RetentionPolicyError(f"{key} must be an integer, got {value!r}") from None
    missing = [k for k in required if k not in args]
    if missing:
        raise RetentionPolicyError(f"Retention policy {name!r} needs {', '.join(missing)}")
    return cls(**args)


def prune(
    snapshots: Iterable[SnapshotId],
    policy: RetentionPolicy,
    delete: Callable[[list[SnapshotId]], None],
    protected: Iterable[SnapshotId] = (),
    now: datetime | None = None,
) -> list[SnapshotId]:
    """Delete the snapshots the policy selects; return those removed."""
    if now is None:
        now = datetime.now(timezone.utc).replace(tzinfo=None)
    candidates = policy.select_for_pruning(sorted(snapshots), now)
    busy = in_flight_snapshots() | frozenset(protected)
    doomed = []
    for sid in candidates:
        if sid in busy:
            logger.info("Not pruning %s: snapshot is in use", sid)
            continue
        doomed.append(sid)
    if doomed:
        logger.info("Pruning %d snapshots under policy '%s'", len(doomed), policy.describe())
        delete(doomed)
    return doomed
