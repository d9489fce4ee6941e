"""REST client helper for long-running, asynchronously completed operations."""

from .client import RestClient
from .errors import (
    DeserializationFailure,
    ExitCode,
    InterruptedOperation,
    InvalidResponseStatus,
    ResponseError,
    RestPollError,
    TransportFailure,
)
from .polling import LongPollExecutor, PollPolicy, backoff_delays
from .transport import HttpAttempt, HttpResponse, ProxySettings, UrllibResponse, UrllibTransport
from .validation import ensure_status, parse_typed

__all__ = [
    "backoff_delays",
    "DeserializationFailure",
    "ensure_status",
    "ExitCode",
    "HttpAttempt",
    "HttpResponse",
    "InterruptedOperation",
    "InvalidResponseStatus",
    "LongPollExecutor",
    "parse_typed",
    "PollPolicy",
    "ProxySettings",
    "ResponseError",
    "RestClient",
    "RestPollError",
    "TransportFailure",
    "UrllibResponse",
    "UrllibTransport",
]
