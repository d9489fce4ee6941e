"""Public CLI contract and entrypoint."""

from __future__ import annotations

import argparse
import json
import sys
import threading
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from .client import RestClient
from .config import ClientConfig, load_config
from .errors import ExitCode, RestPollError, user_facing_error
from .logging import configure_logging, default_log_path

_VALID_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")
_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")

ClientFactory = Callable[[ClientConfig, threading.Event], RestClient]


def _status_type(value: str) -> int:
    try:
        status = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("--status must be an integer") from exc
    if status < 100 or status > 599:
        raise argparse.ArgumentTypeError("--status must be between 100 and 599")
    return status


def _non_negative_int_type(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("value must be an integer") from exc
    if number < 0:
        raise argparse.ArgumentTypeError("value must be >= 0")
    return number


def _positive_float_type(value: str) -> float:
    try:
        number = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("value must be a number") from exc
    if number <= 0:
        raise argparse.ArgumentTypeError("value must be > 0")
    return number


def _json_type(value: str) -> object:
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        raise argparse.ArgumentTypeError(f"--data must be valid JSON: {exc.msg}") from exc


def _log_level_type(value: str) -> str:
    normalized = value.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="restpoll",
        description="Call a long-running REST endpoint and print its JSON result.",
    )
    parser.add_argument("path", help="Endpoint path relative to the server URL")
    parser.add_argument("--server-url", default=None)
    parser.add_argument("--method", type=str.upper, choices=_VALID_METHODS, default="GET")
    parser.add_argument("--data", type=_json_type, default=None, help="JSON request body")
    parser.add_argument(
        "--status",
        type=_status_type,
        action="append",
        default=None,
        help="Accepted status code (repeatable, default 200)",
    )
    parser.add_argument("--timeout-ms", type=_non_negative_int_type, default=None)
    parser.add_argument(
        "--deadline-seconds",
        type=_positive_float_type,
        default=None,
        help="Abort polling after this many seconds",
    )
    parser.add_argument(
        "--no-poll",
        action="store_true",
        help="Send a single request without waiting on 202 responses",
    )
    parser.add_argument("--config", type=Path, default=None)
    parser.add_argument("--log-level", type=_log_level_type, default=None)
    parser.add_argument("--log-file", type=Path, default=None)
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    return parser.parse_args(argv)


def resolve_config(namespace: argparse.Namespace) -> ClientConfig:
    config = load_config(namespace.config)
    if namespace.server_url:
        config.server_url = namespace.server_url
    if namespace.timeout_ms is not None:
        config.timeout_ms = namespace.timeout_ms
    if namespace.log_level:
        config.log_level = namespace.log_level
    return config


def default_client_factory(config: ClientConfig, cancel_event: threading.Event) -> RestClient:
    return RestClient(
        config.server_url,
        timeout_ms=config.timeout_ms,
        proxy=config.proxy_settings(),
        policy=config.poll_policy(),
        cancel_event=cancel_event,
    )


def run_request(
    namespace: argparse.Namespace,
    config: ClientConfig,
    *,
    client_factory: ClientFactory = default_client_factory,
) -> Any:
    cancel_event = threading.Event()
    client = client_factory(config, cancel_event)
    timer: threading.Timer | None = None
    if namespace.deadline_seconds is not None:
        timer = threading.Timer(namespace.deadline_seconds, cancel_event.set)
        timer.daemon = True
        timer.start()
    try:
        return client.request_json(
            namespace.method,
            namespace.path,
            Any,
            valid_status_codes=tuple(namespace.status or (200,)),
            payload=namespace.data,
            long_request=not namespace.no_poll,
        )
    finally:
        if timer is not None:
            timer.cancel()


def main(
    argv: Sequence[str] | None = None,
    *,
    client_factory: ClientFactory = default_client_factory,
) -> int:
    log_path = default_log_path()
    logger = configure_logging(log_file=log_path)
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    try:
        config = resolve_config(namespace)
    except ValueError as exc:
        print(user_facing_error("Invalid configuration", hint=str(exc)), file=sys.stderr)
        return int(ExitCode.CONFIG_ERROR)

    if namespace.log_file is not None:
        log_path = namespace.log_file.expanduser()
    logger = configure_logging(level=config.log_level, log_file=log_path)

    try:
        logger.debug("Requesting %s %s from %s", namespace.method, namespace.path, config.server_url)
        result = run_request(namespace, config, client_factory=client_factory)
    except RestPollError as exc:
        logger.error("Request failed: %s", exc)
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        hint = f"Inspect logs: {log_path}"
        print(user_facing_error("Unexpected runtime failure", hint=hint), file=sys.stderr)
        return int(ExitCode.RUNTIME_ERROR)

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return int(ExitCode.SUCCESS)


def run() -> int:
    return main()
