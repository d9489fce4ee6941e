"""HTTP transport seam: response protocol and a urllib-backed implementation."""

from __future__ import annotations

import json
import logging as py_logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from http.client import HTTPException
from http.client import responses as _REASON_PHRASES
from typing import IO, Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlparse
from urllib.request import OpenerDirector, ProxyHandler, Request, build_opener

from restpoll.errors import ExitCode, RestPollError, TransportFailure

logger = py_logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 1000 * 60 * 5


class HttpResponse(Protocol):
    status_code: int
    reason_phrase: str

    def read_text(self) -> str: ...

    def close(self) -> None: ...


HttpAttempt = Callable[[], HttpResponse]


@contextmanager
def response_scope(response: HttpResponse) -> Iterator[HttpResponse]:
    """Release ``response`` when the block exits, whatever the exit path."""
    try:
        yield response
    finally:
        response.close()


class UrllibResponse:
    """Wraps a urllib response (or ``HTTPError``) as an ``HttpResponse``."""

    def __init__(self, status_code: int, reason_phrase: str, stream: IO[bytes] | None) -> None:
        self.status_code = status_code
        self.reason_phrase = reason_phrase or _REASON_PHRASES.get(status_code, "")
        self._stream = stream
        self._consumed = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def read_text(self) -> str:
        if self._consumed:
            raise RuntimeError("Response body was already read.")
        if self._closed:
            raise RuntimeError("Response was already released.")
        self._consumed = True
        if self._stream is None:
            return ""
        try:
            payload = self._stream.read()
        except (OSError, HTTPException) as exc:
            raise TransportFailure(
                f"Reading the {self.status_code} response body failed.",
                hint=str(exc) or type(exc).__name__,
            ) from exc
        return payload.decode("utf-8", errors="replace")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._stream is not None:
            self._stream.close()

    def __enter__(self) -> UrllibResponse:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


@dataclass(frozen=True)
class ProxySettings:
    uri: str
    username: str = ""
    password: str = ""

    def proxy_url(self) -> str:
        parsed = urlparse(self.uri)
        if parsed.scheme not in {"http", "https"} or not parsed.hostname:
            raise RestPollError(
                f"Invalid proxy URI: {self.uri}",
                code=ExitCode.VALIDATION_ERROR,
                hint="Use http://host:port.",
            )
        if not self.username:
            return self.uri
        credentials = quote(self.username, safe="")
        if self.password:
            credentials += ":" + quote(self.password, safe="")
        netloc = f"{credentials}@{parsed.hostname}"
        if parsed.port is not None:
            netloc += f":{parsed.port}"
        return parsed._replace(netloc=netloc).geturl()


def validate_server_url(url: str) -> str:
    value = url.strip()
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise RestPollError(
            f"Invalid server URL: {url!r}",
            code=ExitCode.VALIDATION_ERROR,
            hint="Use an absolute http(s) URL.",
        )
    return value


def build_urllib_opener(proxy: ProxySettings | None = None) -> OpenerDirector:
    if proxy is None:
        return build_opener()
    proxy_url = proxy.proxy_url()
    return build_opener(ProxyHandler({"http": proxy_url, "https": proxy_url}))


class UrllibTransport:
    """Sends single requests; HTTP error statuses come back as responses."""

    def __init__(
        self,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        proxy: ProxySettings | None = None,
        opener: OpenerDirector | None = None,
    ) -> None:
        if timeout_ms < 0:
            raise RestPollError(
                "timeout_ms must be greater than or equal to zero.",
                code=ExitCode.VALIDATION_ERROR,
            )
        self.timeout_ms = timeout_ms
        self.proxy = proxy
        self._opener = opener or build_urllib_opener(proxy)

    def send(
        self,
        method: str,
        url: str,
        *,
        payload: object | None = None,
        headers: dict[str, str] | None = None,
    ) -> UrllibResponse:
        request_headers = {"Accept": "application/json"}
        data: bytes | None = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            request_headers["Content-Type"] = "application/json"
        request_headers.update(headers or {})
        request = Request(url, data=data, headers=request_headers, method=method.upper())
        timeout = self.timeout_ms / 1000 if self.timeout_ms else None
        try:
            raw = self._opener.open(request, timeout=timeout)  # nosec B310
        except HTTPError as exc:
            return UrllibResponse(exc.code, str(exc.reason or ""), exc.fp)
        except (URLError, OSError, HTTPException) as exc:
            reason = getattr(exc, "reason", None) or exc
            logger.warning("%s %s failed: %s", method.upper(), url, reason)
            raise TransportFailure(
                f"Request to {url} failed.",
                hint=str(reason) or "Check network connectivity.",
            ) from exc
        status = int(getattr(raw, "status", raw.getcode()))
        return UrllibResponse(status, str(getattr(raw, "reason", "") or ""), raw)

    def attempt(
        self,
        method: str,
        url: str,
        *,
        payload: object | None = None,
        headers: dict[str, str] | None = None,
    ) -> HttpAttempt:
        def call() -> HttpResponse:
            return self.send(method, url, payload=payload, headers=headers)

        return call
