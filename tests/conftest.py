from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path

import pytest


class FakeResponse:
    def __init__(self, status_code: int, body: str = "", reason_phrase: str = "") -> None:
        self.status_code = status_code
        self.reason_phrase = reason_phrase
        self.body = body
        self.read_count = 0
        self.close_count = 0

    def read_text(self) -> str:
        self.read_count += 1
        return self.body

    def close(self) -> None:
        self.close_count += 1


class ScriptedAttempt:
    """Returns the scripted responses in order, one per call."""

    def __init__(self, responses: Sequence[FakeResponse]) -> None:
        self.responses = list(responses)
        self.calls = 0

    def __call__(self) -> FakeResponse:
        response = self.responses[self.calls]
        self.calls += 1
        return response


@pytest.fixture
def make_response() -> Callable[..., FakeResponse]:
    return FakeResponse


@pytest.fixture
def scripted() -> Callable[[Sequence[FakeResponse]], ScriptedAttempt]:
    return ScriptedAttempt


@pytest.fixture
def recorded_waits() -> tuple[list[float], Callable[[float], bool]]:
    waits: list[float] = []

    def wait(seconds: float) -> bool:
        waits.append(seconds)
        return False

    return waits, wait


@pytest.hookimpl(trylast=True)
def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    del config
    for item in items:
        path = Path(str(getattr(item, "path", item.fspath)))
        if "integration" in path.parts:
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.slow)
