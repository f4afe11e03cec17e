"""
FastAPI dependencies.

This module contains dependency injection functions route modules use to
reach the parsed request body, cookies, settings, the startup route
report and the data store client.
"""
import json
import re
from typing import Any, Dict, List, Optional

from elasticsearch import AsyncElasticsearch
from fastapi import Request

from apiserver.api.route_loader import RouteTable
from apiserver.core.config import Settings
from apiserver.utils.exceptions import MalformedBodyError

# a[b][c] -> ["a", "b", "c"]; a[] -> ["a", ""]
_KEY_PART = re.compile(r"\[([^\[\]]*)\]")


def split_form_key(key: str) -> List[str]:
    """Split a bracketed form key into its path segments."""
    head, bracket, rest = key.partition("[")
    if not bracket or not head:
        return [key]
    rest = "[" + rest
    parts = _KEY_PART.findall(rest)
    # Anything left over after the brackets means the key is not nested
    if "".join(f"[{part}]" for part in parts) != rest:
        return [key]
    return [head] + parts


def _assign(target: Dict[str, Any], parts: List[str], value: str) -> None:
    key = parts[0]
    existing = target.get(key)
    if len(parts) == 1 or parts[1] == "":
        # a=1&a=2 or a[]=1&a[]=2
        if isinstance(existing, dict):
            raise _conflict(key)
        if existing is None:
            target[key] = value if len(parts) == 1 else [value]
        elif isinstance(existing, list):
            existing.append(value)
        else:
            target[key] = [existing, value]
        return

    if existing is None:
        existing = target[key] = {}
    elif not isinstance(existing, dict):
        raise _conflict(key)
    _assign(existing, parts[1:], value)


def _conflict(key: str) -> MalformedBodyError:
    return MalformedBodyError(
        f"Form key '{key}' is used both as a value and as a nested object",
        {"key": key},
    )


def parse_form_items(items: List[tuple[str, str]]) -> Dict[str, Any]:
    """
    Build a nested mapping from URL-encoded pairs.

    Repeated keys become lists, ``a[b]=1`` becomes ``{"a": {"b": "1"}}``
    and ``a[]=1&a[]=2`` becomes ``{"a": ["1", "2"]}``.

    Raises:
        MalformedBodyError: If a key holds both a value and nested keys
    """
    result: Dict[str, Any] = {}
    for key, value in items:
        _assign(result, split_form_key(key), value)
    return result


async def get_request_body(request: Request) -> Any:
    """
    Parse the request body according to its content type.

    JSON and URL-encoded bodies are parsed; anything else (or an empty
    body) yields an empty dict.

    Raises:
        MalformedBodyError: If a JSON body cannot be decoded or form keys conflict
    """
    cached = getattr(request.state, "parsed_body", None)
    if cached is not None:
        return cached

    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    body: Any = {}

    if content_type == "application/json" or content_type.endswith("+json"):
        raw = await request.body()
        if raw.strip():
            try:
                body = json.loads(raw)
            except ValueError as e:
                raise MalformedBodyError(
                    "Request body is not valid JSON",
                    {"error": str(e)},
                ) from e
    elif content_type == "application/x-www-form-urlencoded":
        form = await request.form()
        body = parse_form_items([(key, str(value)) for key, value in form.multi_items()])

    request.state.parsed_body = body
    return body


def get_cookies(request: Request) -> Dict[str, str]:
    """Return the cookies sent with the request."""
    return dict(request.cookies)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_route_table(request: Request) -> RouteTable:
    return request.app.state.route_table


def get_database(request: Request) -> Optional[AsyncElasticsearch]:
    """
    Get the connected data store client from app state.

    Returns:
        AsyncElasticsearch client or None if not connected
    """
    return getattr(request.app.state, "database", None)
