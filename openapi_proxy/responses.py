"""Convert HTTP responses into a single text payload."""

from __future__ import annotations

import json
import logging
from http import HTTPStatus
from typing import Any, Mapping

from .errors import SerializationError

logger = logging.getLogger(__name__)


def _render_item(item: Any) -> str:
    if isinstance(item, (dict, list)):
        return json.dumps(item, indent=2, ensure_ascii=False)
    if isinstance(item, str):
        return item
    return json.dumps(item)


def render_json(value: Any) -> str:
    """Render a parsed JSON value as text.

    Arrays become their rendered elements separated by blank lines.
    """
    if isinstance(value, list):
        return "\n\n".join(_render_item(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, indent=2, ensure_ascii=False)
    if isinstance(value, str):
        return value
    return json.dumps(value)


def parse_json(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        raise SerializationError(f"Response body is not JSON: {exc}") from exc


def _reason(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ""


def normalize_response(
    status: int, headers: Mapping[str, str], text: str,
) -> str:
    """Return the response body as text, whatever its status or format."""
    content_type = ""
    for key, value in headers.items():
        if key.lower() == "content-type":
            content_type = value
            break

    if not text.strip():
        if status >= 400:
            return f"HTTP {status} {_reason(status)}".rstrip()
        return ""

    try:
        return render_json(parse_json(text))
    except SerializationError as exc:
        if "json" in content_type.lower():
            logger.debug("Falling back to raw text: %s", exc)
        return text
