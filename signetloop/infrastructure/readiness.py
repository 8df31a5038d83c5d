"""Readiness polling for dependent services.

The loops here have no timeout: an endpoint that never comes up blocks the
caller forever, which is what the container start-up ordering relies on.
"""

import socket
import time
from collections.abc import Callable

from signetloop.utils.logging import get_logger

logger = get_logger(__name__)

# Upper bound for a single connect attempt, not for the overall wait.
PROBE_TIMEOUT_SECONDS = 1.0


def is_port_open(host: str, port: int, timeout: float = PROBE_TIMEOUT_SECONDS) -> bool:
    """Return True if a TCP connection to ``host:port`` succeeds."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def wait_until(
    predicate: Callable[[], bool],
    interval: float = 1.0,
    *,
    description: str = "condition",
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Block until ``predicate()`` returns True, checking every ``interval`` seconds.

    Returns:
        Number of failed checks before the predicate held
    """
    attempts = 0
    while not predicate():
        attempts += 1
        logger.debug("still_waiting", target=description, attempts=attempts)
        sleep(interval)

    logger.info("wait_finished", target=description, attempts=attempts)
    return attempts


def wait_for_port(
    host: str,
    port: int,
    interval: float = 1.0,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Block until ``host:port`` accepts TCP connections.

    Example:
        >>> wait_for_port("localhost", 2379)  # etcd
        0
    """
    return wait_until(
        lambda: is_port_open(host, port),
        interval,
        description=f"{host}:{port}",
        sleep=sleep,
    )
