"""Upload readiness polling: Tenacity-based backoff between upload and commit.

The remote ingestion service reads an uploaded batch asynchronously, so the
commit phase of a push must not be issued before the blob is visible. This
module turns a caller-supplied readiness probe into a bounded poll:

- **Exponential backoff**: ``poll_initial_seconds * 2^n`` capped at
  ``poll_max_seconds``
- **Deadline**: polling stops after ``poll_deadline_seconds`` (also enforced
  as an attempt budget so an injected ``sleep`` cannot loop forever)
- **Probe exceptions propagate**: a failing probe aborts the push

Example:
    >>> from IndexBridge.config import UploadConfig
    >>> wait_until_ready(lambda target: True, "file-1", UploadConfig())
    True
"""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    before_sleep_log,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
)

from ..config.models import UploadConfig

logger = logging.getLogger(__name__)

__all__ = ["ReadinessProbe", "create_readiness_policy", "max_poll_attempts", "wait_until_ready"]

T = TypeVar("T")
ReadinessProbe = Callable[[T], bool]


def max_poll_attempts(config: UploadConfig) -> int:
    """Return how many probe calls fit into the poll deadline.

    Examples:
        >>> max_poll_attempts(UploadConfig(poll_initial_seconds=1, poll_max_seconds=2,
        ...                                poll_deadline_seconds=5))
        4
    """
    attempts = 1
    elapsed = 0.0
    delay = config.poll_initial_seconds
    while elapsed < config.poll_deadline_seconds:
        elapsed += min(delay, config.poll_max_seconds)
        delay *= 2
        attempts += 1
    return attempts


def create_readiness_policy(
    config: UploadConfig,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> Retrying:
    """Create the Tenacity policy that re-runs a probe until it returns ``True``.

    Args:
        config: Upload section of the configuration.
        sleep: Sleep function (injected by tests).

    Returns:
        Configured ``Retrying`` object; exhausting it returns ``False``.
    """

    def _give_up(retry_state: RetryCallState) -> bool:
        logger.warning(
            "upload-readiness-deadline",
            extra={"event": {"attempts": retry_state.attempt_number}},
        )
        return False

    return Retrying(
        stop=stop_after_delay(config.poll_deadline_seconds)
        | stop_after_attempt(max_poll_attempts(config)),
        wait=wait_exponential(
            multiplier=config.poll_initial_seconds,
            max=config.poll_max_seconds,
        ),
        retry=retry_if_result(lambda ready: not ready),
        before_sleep=before_sleep_log(logger, logging.DEBUG),
        retry_error_callback=_give_up,
        sleep=sleep,
        reraise=True,
    )


def wait_until_ready(
    probe: ReadinessProbe,
    target: T,
    config: UploadConfig,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Poll ``probe(target)`` with backoff; return whether it reported ready in time."""

    policy = create_readiness_policy(config, sleep=sleep)
    return bool(policy(probe, target))
