"""Status validation and typed decoding of terminal responses."""

from __future__ import annotations

import json
import logging as py_logging
from collections.abc import Callable, Collection
from types import UnionType
from typing import Any, TypeVar, Union, cast, get_args, get_origin

from pydantic import BaseModel, TypeAdapter, ValidationError

from restpoll.errors import DeserializationFailure, InvalidResponseStatus, format_response_error
from restpoll.transport import HttpResponse, response_scope

logger = py_logging.getLogger(__name__)

T = TypeVar("T")

INVALID_STATUS_CONTEXT = "Invalid status code"
DESERIALIZE_CONTEXT = "Failed to deserialize response body"


def _context(operation_name: str, base: str) -> str:
    if operation_name:
        return f"{operation_name}: {base}"
    return base


def _accepts_none(annotation: object) -> bool:
    if annotation is None or annotation is type(None) or annotation is Any:
        return True
    if get_origin(annotation) in (Union, UnionType):
        return type(None) in get_args(annotation)
    return False


def _is_model(result_type: object) -> bool:
    return (
        isinstance(result_type, type)
        and get_origin(result_type) is None
        and issubclass(result_type, BaseModel)
    )


def _decode_json(body: str, result_type: Any) -> Any:
    if not _is_model(result_type):
        return TypeAdapter(result_type).validate_json(body)
    data = json.loads(body)
    if isinstance(data, dict):
        # Required fields that accept None are treated as null when absent.
        for name, field in result_type.model_fields.items():
            key = field.alias or name
            if key not in data and field.is_required() and _accepts_none(field.annotation):
                data[key] = None
    return result_type.model_validate(data)


def read_response(response: HttpResponse) -> tuple[int, str, str]:
    """Read status, reason and body, then release the response."""
    with response_scope(response):
        status_code = response.status_code
        reason_phrase = response.reason_phrase or ""
        body = response.read_text()
    return status_code, reason_phrase, body


def _check_status(
    status_code: int,
    reason_phrase: str,
    body: str,
    valid_status_codes: Collection[int],
    operation_name: str,
) -> None:
    if status_code in valid_status_codes:
        return
    message = format_response_error(
        _context(operation_name, INVALID_STATUS_CONTEXT), status_code, reason_phrase, body
    )
    logger.error("%s", message)
    raise InvalidResponseStatus(
        message,
        status_code=status_code,
        reason_phrase=reason_phrase,
        raw_body=body,
    )


def ensure_status(
    response: HttpResponse,
    valid_status_codes: Collection[int],
    *,
    operation_name: str = "",
) -> str:
    status_code, reason_phrase, body = read_response(response)
    _check_status(status_code, reason_phrase, body, valid_status_codes, operation_name)
    return body


def parse_typed(
    response: HttpResponse,
    valid_status_codes: Collection[int],
    result_type: type[T] | Any,
    *,
    decoder: Callable[[str], T] | None = None,
    operation_name: str = "",
) -> T:
    """Validate the status code of ``response`` and decode its JSON body.

    ``result_type`` is anything pydantic can build a ``TypeAdapter`` for.
    Models keep pydantic's default of ignoring unknown fields, so servers may
    add fields freely. Fields with defaults may be absent, and so may
    top-level model fields typed ``Optional[X]``, which then decode as
    ``None``. Pass ``decoder`` to replace JSON decoding entirely.
    """
    status_code, reason_phrase, body = read_response(response)
    _check_status(status_code, reason_phrase, body, valid_status_codes, operation_name)

    try:
        if decoder is not None:
            return decoder(body)
        return cast(T, _decode_json(body, result_type))
    except (ValidationError, ValueError) as exc:
        message = format_response_error(
            _context(operation_name, DESERIALIZE_CONTEXT), status_code, reason_phrase, body
        )
        logger.error("%s", message)
        raise DeserializationFailure(
            message,
            status_code=status_code,
            reason_phrase=reason_phrase,
            raw_body=body,
        ) from exc
