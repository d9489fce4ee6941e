"""Long-request polling with capped multiplicative backoff."""

from __future__ import annotations

import logging as py_logging
import math
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from restpoll.errors import ExitCode, InterruptedOperation, RestPollError
from restpoll.transport import HttpAttempt, HttpResponse

logger = py_logging.getLogger(__name__)

STILL_RUNNING_STATUS = 202


@dataclass(frozen=True)
class PollPolicy:
    initial_delay_ms: int = 2000
    max_delay_ms: int = 10000
    multiplier: float = 1.5

    def __post_init__(self) -> None:
        if self.initial_delay_ms < 0:
            raise RestPollError("initial_delay_ms must be >= 0.", code=ExitCode.VALIDATION_ERROR)
        if self.max_delay_ms < self.initial_delay_ms:
            raise RestPollError(
                "max_delay_ms must be >= initial_delay_ms.",
                code=ExitCode.VALIDATION_ERROR,
            )
        if self.multiplier < 1:
            raise RestPollError("multiplier must be >= 1.", code=ExitCode.VALIDATION_ERROR)


def next_delay(delay_ms: int, policy: PollPolicy) -> int:
    return min(policy.max_delay_ms, math.floor(delay_ms * policy.multiplier))


def backoff_delays(policy: PollPolicy) -> Iterator[int]:
    delay = policy.initial_delay_ms
    while True:
        yield delay
        delay = next_delay(delay, policy)


class LongPollExecutor:
    """Re-issues an attempt while the server answers ``202 Accepted``.

    The executor keeps no per-call state, so one instance may serve several
    threads. Setting ``cancel_event`` aborts every wait that uses it with
    ``InterruptedOperation``; pair it with ``threading.Timer`` for a deadline.
    ``wait`` receives seconds and returns ``True`` when cancelled; the cancel
    event is still checked after an injected ``wait`` returns.
    """

    def __init__(
        self,
        policy: PollPolicy | None = None,
        *,
        cancel_event: threading.Event | None = None,
        wait: Callable[[float], bool] | None = None,
    ) -> None:
        self.policy = policy or PollPolicy()
        self.cancel_event = cancel_event or threading.Event()
        self._wait = wait or self.cancel_event.wait

    def run_long_poll(self, attempt: HttpAttempt, operation_name: str) -> HttpResponse:
        delays = backoff_delays(self.policy)
        while True:
            response = attempt()
            if response.status_code != STILL_RUNNING_STATUS:
                return response

            # The body of a 202 is never read; release it before waiting.
            response.close()

            delay = next(delays)
            logger.debug("%s: Still running... Retrying in %d ms", operation_name, delay)
            if self._wait(delay / 1000) or self.cancel_event.is_set():
                raise InterruptedOperation(
                    f"{operation_name}: long request interrupted.",
                    hint="The wait between polls was cancelled.",
                )
