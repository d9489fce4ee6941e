"""Error model, exit code contract and response error formatting."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

MAX_BODY_IN_MESSAGE = 2000


class ExitCode(IntEnum):
    SUCCESS = 0
    INVALID_ARGS = 2
    CONFIG_ERROR = 3
    RUNTIME_ERROR = 4
    TRANSPORT_ERROR = 5
    INTERRUPTED = 6
    RESPONSE_ERROR = 7
    VALIDATION_ERROR = 8


@dataclass
class RestPollError(Exception):
    message: str
    code: ExitCode = ExitCode.RUNTIME_ERROR
    hint: str = ""

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message


@dataclass
class TransportFailure(RestPollError):
    """The HTTP transport could not complete the request (DNS, refused, TLS)."""

    code: ExitCode = ExitCode.TRANSPORT_ERROR


@dataclass
class InterruptedOperation(RestPollError):
    """A long request was cancelled while waiting between polls."""

    code: ExitCode = ExitCode.INTERRUPTED


@dataclass
class ResponseError(RestPollError):
    code: ExitCode = ExitCode.RESPONSE_ERROR
    status_code: int = 0
    reason_phrase: str = ""
    raw_body: str = ""


@dataclass
class InvalidResponseStatus(ResponseError):
    """The terminal response carried a status code outside the allow-list."""


@dataclass
class DeserializationFailure(ResponseError):
    """The response body could not be decoded into the requested type."""


def format_response_error(
    context: str | None,
    status_code: int,
    reason_phrase: str,
    body: str | None,
) -> str:
    """Build ``"<context>: [<status> <reason>] <body>"`` for response failures."""
    text = body or ""
    if len(text) > MAX_BODY_IN_MESSAGE:
        text = text[:MAX_BODY_IN_MESSAGE] + "..."
    prefix = f"{context}: " if context else ""
    return f"{prefix}[{status_code} {reason_phrase}] {text}"


def user_facing_error(message: str, *, hint: str = "") -> str:
    if hint:
        return f"Error: {message}. Next step: {hint}"
    return f"Error: {message}."
