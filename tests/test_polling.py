from __future__ import annotations

import logging as py_logging
import threading

import pytest

from restpoll.errors import InterruptedOperation, TransportFailure
from restpoll.polling import LongPollExecutor, PollPolicy


def test_terminal_response_is_returned_without_retry(make_response, scripted, recorded_waits) -> None:
    waits, wait = recorded_waits
    terminal = make_response(500, "boom", "Internal Server Error")
    attempt = scripted([terminal])

    result = LongPollExecutor(wait=wait).run_long_poll(attempt, "create")

    assert result is terminal
    assert attempt.calls == 1
    assert waits == []
    assert terminal.close_count == 0
    assert terminal.read_count == 0


def test_accepted_responses_are_retried_with_growing_delays(
    make_response, scripted, recorded_waits
) -> None:
    waits, wait = recorded_waits
    pending = [make_response(202) for _ in range(6)]
    terminal = make_response(200, '{"id":"abc"}')
    attempt = scripted([*pending, terminal])

    result = LongPollExecutor(wait=wait).run_long_poll(attempt, "render")

    assert result is terminal
    assert attempt.calls == 7
    assert waits == [2.0, 3.0, 4.5, 6.75, 10.0, 10.0]


def test_every_accepted_response_is_released_once_and_never_read(
    make_response, scripted, recorded_waits
) -> None:
    _, wait = recorded_waits
    pending = [make_response(202) for _ in range(3)]
    attempt = scripted([*pending, make_response(201)])

    LongPollExecutor(wait=wait).run_long_poll(attempt, "upload")

    assert [item.close_count for item in pending] == [1, 1, 1]
    assert [item.read_count for item in pending] == [0, 0, 0]


def test_other_success_codes_are_terminal(make_response, scripted, recorded_waits) -> None:
    waits, wait = recorded_waits
    pending_looking = make_response(200, '{"status":"pending"}')
    attempt = scripted([pending_looking, make_response(200)])

    result = LongPollExecutor(wait=wait).run_long_poll(attempt, "status")

    assert result is pending_looking
    assert attempt.calls == 1
    assert waits == []


def test_retry_is_traced_with_operation_name_and_delay(
    make_response, scripted, recorded_waits, caplog, monkeypatch
) -> None:
    _, wait = recorded_waits
    attempt = scripted([make_response(202), make_response(200)])
    monkeypatch.setattr(py_logging.getLogger("restpoll"), "propagate", True)

    with caplog.at_level(py_logging.DEBUG, logger="restpoll.polling"):
        LongPollExecutor(wait=wait).run_long_poll(attempt, "startSession")

    assert "startSession: Still running... Retrying in 2000 ms" in caplog.messages


def test_cancelled_wait_raises_interrupted_operation(make_response, scripted) -> None:
    first = make_response(202)
    attempt = scripted([first, make_response(200)])
    executor = LongPollExecutor(wait=lambda _: True)

    with pytest.raises(InterruptedOperation) as exc:
        executor.run_long_poll(attempt, "match")

    assert "match" in str(exc.value)
    assert attempt.calls == 1
    assert first.close_count == 1


def test_cancel_event_interrupts_real_wait(make_response) -> None:
    event = threading.Event()
    executor = LongPollExecutor(PollPolicy(initial_delay_ms=60_000, max_delay_ms=60_000), cancel_event=event)
    timer = threading.Timer(0.05, event.set)
    timer.start()
    try:
        with pytest.raises(InterruptedOperation):
            executor.run_long_poll(lambda: make_response(202), "slow")
    finally:
        timer.cancel()


def test_transport_failure_propagates_unchanged(recorded_waits) -> None:
    waits, wait = recorded_waits
    failure = TransportFailure("connection refused")

    def attempt():
        raise failure

    with pytest.raises(TransportFailure) as exc:
        LongPollExecutor(wait=wait).run_long_poll(attempt, "create")

    assert exc.value is failure
    assert waits == []
