"""Polling edge case tests."""

from __future__ import annotations

import threading
from itertools import islice

import pytest

from restpoll.errors import ExitCode, InterruptedOperation, RestPollError
from restpoll.polling import LongPollExecutor, PollPolicy, backoff_delays, next_delay


def test_default_policy_matches_long_request_contract() -> None:
    policy = PollPolicy()
    assert policy.initial_delay_ms == 2000
    assert policy.max_delay_ms == 10000
    assert policy.multiplier == 1.5


def test_backoff_sequence_floors_and_caps() -> None:
    delays = list(islice(backoff_delays(PollPolicy()), 7))
    assert delays == [2000, 3000, 4500, 6750, 10000, 10000, 10000]


def test_next_delay_floors_fractional_values() -> None:
    policy = PollPolicy(initial_delay_ms=3, max_delay_ms=100)
    assert next_delay(3, policy) == 4
    assert next_delay(5, policy) == 7


def test_zero_initial_delay_stays_zero() -> None:
    delays = list(islice(backoff_delays(PollPolicy(initial_delay_ms=0)), 3))
    assert delays == [0, 0, 0]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"initial_delay_ms": -1},
        {"initial_delay_ms": 5000, "max_delay_ms": 1000},
        {"multiplier": 0.5},
    ],
)
def test_invalid_policy_is_rejected(kwargs: dict[str, float]) -> None:
    with pytest.raises(RestPollError) as exc:
        PollPolicy(**kwargs)
    assert exc.value.code == ExitCode.VALIDATION_ERROR


def test_preset_cancel_event_aborts_on_first_wait(make_response, scripted) -> None:
    event = threading.Event()
    event.set()
    attempt = scripted([make_response(202), make_response(200)])

    with pytest.raises(InterruptedOperation):
        LongPollExecutor(cancel_event=event).run_long_poll(attempt, "cancelled")

    assert attempt.calls == 1


def test_preset_cancel_event_does_not_affect_terminal_response(make_response, scripted) -> None:
    event = threading.Event()
    event.set()
    terminal = make_response(200)

    result = LongPollExecutor(cancel_event=event).run_long_poll(scripted([terminal]), "done")

    assert result is terminal


def test_executor_is_safe_to_share_between_threads(make_response, scripted) -> None:
    executor = LongPollExecutor(PollPolicy(initial_delay_ms=1, max_delay_ms=2))
    results: dict[int, object] = {}
    attempts = {}
    for index in range(4):
        pending = [make_response(202) for _ in range(index)]
        attempts[index] = scripted([*pending, make_response(200, str(index))])

    def worker(index: int) -> None:
        results[index] = executor.run_long_poll(attempts[index], f"op-{index}")

    threads = [threading.Thread(target=worker, args=(index,)) for index in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert {index: results[index].body for index in range(4)} == {i: str(i) for i in range(4)}
    assert {index: attempts[index].calls for index in range(4)} == {i: i + 1 for i in range(4)}


def test_cancel_event_is_honoured_with_injected_wait(make_response, scripted) -> None:
    event = threading.Event()
    waits: list[float] = []

    def wait(seconds: float) -> bool:
        waits.append(seconds)
        event.set()
        return False

    attempt = scripted([make_response(202), make_response(200)])
    executor = LongPollExecutor(cancel_event=event, wait=wait)

    with pytest.raises(InterruptedOperation):
        executor.run_long_poll(attempt, "cancelled")

    assert waits == [2.0]
    assert attempt.calls == 1
