from __future__ import annotations

"""One operation per node type. Each returns plain JSON-compatible data."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

import httpx

from .catalog import NodeType
from .context import ExecutionContext
from .exceptions import ConfigError, NetworkError, ParseError
from .expressions import evaluate_condition, execute_code
from .registry import operation_registry

logger = logging.getLogger(__name__)

BODY_METHODS = ("POST", "PUT")


@operation_registry.register(NodeType.MANUAL_TRIGGER)
async def manual_trigger(
    config: Mapping[str, Any], input_value: Any, context: ExecutionContext
) -> Dict[str, Any]:
    return {"triggered": True, "timestamp": datetime.now(timezone.utc).isoformat()}


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def _loads_strict(raw: str) -> Any:
    """json.loads without the NaN and Infinity extensions."""
    return json.loads(raw, parse_constant=_reject_constant)


def _parse_headers(raw: Any) -> Dict[str, str]:
    if not raw:
        return {}
    if isinstance(raw, str):
        try:
            parsed = _loads_strict(raw)
        except ValueError as exc:
            raise ParseError("Invalid headers JSON") from exc
    else:
        parsed = raw
    if not isinstance(parsed, Mapping):
        raise ParseError("Invalid headers JSON")
    return {str(key): str(value) for key, value in parsed.items()}


def _json_or_raw(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return _loads_strict(value)
    except ValueError:
        return value


def _request_body(raw: Any) -> Dict[str, Any]:
    """Strings are sent as JSON when they parse, otherwise verbatim."""
    if isinstance(raw, str):
        try:
            return {"json": _loads_strict(raw)}
        except ValueError:
            return {"content": raw}
    return {"json": raw}


def _response_data(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return _loads_strict(response.text)
    except ValueError:
        return response.text


@operation_registry.register(NodeType.HTTP_REQUEST)
async def http_request(
    config: Mapping[str, Any], input_value: Any, context: ExecutionContext
) -> Dict[str, Any]:
    url = config.get("url")
    if not url:
        raise ConfigError("URL is required")

    method = str(config.get("method") or "GET").upper()
    request_kwargs: Dict[str, Any] = {"headers": _parse_headers(config.get("headers"))}
    body = config.get("body")
    if body is not None and body != "" and method in BODY_METHODS:
        request_kwargs.update(_request_body(body))

    logger.debug("HTTP %s %s", method, url)
    try:
        if context.http_client is not None:
            response = await context.http_client.request(method, str(url), **request_kwargs)
        else:
            async with httpx.AsyncClient(
                timeout=context.settings.http_timeout_seconds
            ) as client:
                response = await client.request(method, str(url), **request_kwargs)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise NetworkError(str(exc) or exc.__class__.__name__) from exc

    return {
        "status": response.status_code,
        "statusText": response.reason_phrase,
        "data": _response_data(response),
    }


@operation_registry.register(NodeType.SET_VARIABLE)
async def set_variable(
    config: Mapping[str, Any], input_value: Any, context: ExecutionContext
) -> Dict[str, Any]:
    name: Optional[str] = config.get("variableName")
    if not name:
        raise ConfigError("Variable name is required")

    value = _json_or_raw(config.get("value"))
    context.set_variable(name, value)
    return {"variableName": name, "value": value}


@operation_registry.register(NodeType.CONDITION)
async def condition(
    config: Mapping[str, Any], input_value: Any, context: ExecutionContext
) -> Dict[str, Any]:
    expression = config.get("condition")
    if not expression:
        raise ConfigError("Condition is required")

    result = await evaluate_condition(
        str(expression),
        input_value,
        context.get_variables(),
        timeout=context.settings.evaluation_timeout_seconds,
    )
    return {"condition": expression, "result": result, "input": input_value}


@operation_registry.register(NodeType.CODE)
async def code(config: Mapping[str, Any], input_value: Any, context: ExecutionContext) -> Any:
    body = config.get("code")
    if not body:
        raise ConfigError("Code is required")

    return await execute_code(
        str(body),
        input_value,
        context.get_variables(),
        timeout=context.settings.evaluation_timeout_seconds,
    )


operation_registry.verify_complete()
