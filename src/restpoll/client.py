"""REST client composing the transport, the poll loop and response validation."""

from __future__ import annotations

import logging as py_logging
import threading
from collections.abc import Collection
from typing import Any, TypeVar

from restpoll.errors import ExitCode, RestPollError
from restpoll.polling import LongPollExecutor, PollPolicy
from restpoll.transport import (
    DEFAULT_TIMEOUT_MS,
    HttpAttempt,
    HttpResponse,
    ProxySettings,
    UrllibTransport,
    validate_server_url,
)
from restpoll.validation import parse_typed

logger = py_logging.getLogger(__name__)

T = TypeVar("T")


class RestClient:
    def __init__(
        self,
        server_url: str,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        proxy: ProxySettings | None = None,
        policy: PollPolicy | None = None,
        cancel_event: threading.Event | None = None,
        transport: UrllibTransport | None = None,
    ) -> None:
        if timeout_ms < 0:
            raise RestPollError(
                "timeout_ms must be greater than or equal to zero.",
                code=ExitCode.VALIDATION_ERROR,
            )
        self._server_url = validate_server_url(server_url)
        self._timeout_ms = timeout_ms
        self._proxy = proxy
        self._owns_transport = transport is None
        self._transport = transport or UrllibTransport(timeout_ms=timeout_ms, proxy=proxy)
        self.executor = LongPollExecutor(policy, cancel_event=cancel_event)

    @property
    def server_url(self) -> str:
        return self._server_url

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    @property
    def proxy(self) -> ProxySettings | None:
        return self._proxy

    def set_server_url(self, server_url: str) -> None:
        self._server_url = validate_server_url(server_url)

    def _check_owns_transport(self, setting: str) -> None:
        if not self._owns_transport:
            raise RestPollError(
                f"Cannot change {setting} of an injected transport.",
                code=ExitCode.VALIDATION_ERROR,
                hint="Configure the transport before passing it to RestClient.",
            )

    def set_timeout(self, timeout_ms: int) -> None:
        self._check_owns_transport("timeout")
        self._transport = UrllibTransport(timeout_ms=timeout_ms, proxy=self._proxy)
        self._timeout_ms = timeout_ms

    def set_proxy(self, proxy: ProxySettings | None) -> None:
        self._check_owns_transport("proxy")
        self._transport = UrllibTransport(timeout_ms=self._timeout_ms, proxy=proxy)
        self._proxy = proxy

    def url_for(self, path: str) -> str:
        if not path:
            return self._server_url
        return self._server_url.rstrip("/") + "/" + path.lstrip("/")

    def attempt_for(
        self,
        method: str,
        path: str,
        *,
        payload: object | None = None,
        headers: dict[str, str] | None = None,
    ) -> HttpAttempt:
        return self._transport.attempt(method, self.url_for(path), payload=payload, headers=headers)

    def send_long_request(self, attempt: HttpAttempt, name: str) -> HttpResponse:
        return self.executor.run_long_poll(attempt, name)

    def request_json(
        self,
        method: str,
        path: str,
        result_type: type[T] | Any,
        *,
        valid_status_codes: Collection[int] = (200,),
        payload: object | None = None,
        headers: dict[str, str] | None = None,
        name: str | None = None,
        long_request: bool = True,
    ) -> T:
        operation_name = name or f"{method.upper()} {path}"
        attempt = self.attempt_for(method, path, payload=payload, headers=headers)
        logger.debug("Starting %s (long_request=%s)", operation_name, long_request)
        response = self.send_long_request(attempt, operation_name) if long_request else attempt()
        return parse_typed(
            response,
            valid_status_codes,
            result_type,
            operation_name=operation_name,
        )
