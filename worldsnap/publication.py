"""
Publication

Pushes snapshot branches to the configured remote. While a push is
running its snapshot is registered as in flight so that a concurrent
remote prune leaves it alone.
"""

import logging
import threading
from contextlib import contextmanager

logger = logging.getLogger(__name__)

_in_flight = set()
_in_flight_lock = threading.Lock()


def in_flight_snapshots() -> frozenset:
    with _in_flight_lock:
        return frozenset(_in_flight)


@contextmanager
def _publishing(sid):
    with _in_flight_lock:
        _in_flight.add(sid)
    try:
        yield
    finally:
        with _in_flight_lock:
            _in_flight.discard(sid)


def publish(repo, backend, remote_name: str, sid) -> None:
    """Push one snapshot. Failures propagate; the local snapshot is untouched."""
    repo.remote_url(remote_name)
    logger.info("Pushing %s to %s", sid, remote_name)
    with _publishing(sid):
        backend.push_snapshot(repo, remote_name, sid)
    logger.info("Pushed %s", sid)
