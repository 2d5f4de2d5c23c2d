"""Placeholder sentinels substituted with live values before validation.

Callers that cannot produce a fresh identifier or timestamp themselves send
one of the literal tokens below instead.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Callable

GUID_PLACEHOLDER = "{{GUID}}"
DATETIME_PLACEHOLDER = "{{NOW}}"


def _new_guid() -> str:
    return str(uuid.uuid4())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


PLACEHOLDERS: dict[str, Callable[[], str]] = {
    GUID_PLACEHOLDER: _new_guid,
    DATETIME_PLACEHOLDER: _now,
}


def resolve_placeholders(value: Any) -> Any:
    """Return ``value`` with every sentinel string replaced by a live value.

    Dicts and lists are walked recursively and copied; the input is never
    mutated. Each sentinel occurrence gets its own fresh value.
    """
    if isinstance(value, str):
        resolver = PLACEHOLDERS.get(value)
        return resolver() if resolver else value
    if isinstance(value, dict):
        return {key: resolve_placeholders(item) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_placeholders(item) for item in value]
    return value
