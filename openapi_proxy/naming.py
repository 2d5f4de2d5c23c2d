"""Derive tool names from operations.

Pattern:
  - explicit operationId          -> operationId
  - explicit operationId + tag    -> {tag}_{operationId}
  - no operationId                -> {method}_{path segments}

Every name is then sanitized: characters outside [A-Za-z0-9_-] become "_"
and the result is cut to 64 characters.

Examples:
  GET    /items/{id}   operationId=getItem   -> getItem
  GET    /items/{id}   (no operationId)      -> get_items_id
  POST   /v1/orders.json                     -> post_v1_orders_json
  DELETE /items/{id}   tag="Inventory Ops"   -> Inventory_Ops_deleteItem
"""

from __future__ import annotations

import re

from .models import OperationDescriptor

MAX_TOOL_NAME_LENGTH = 64

TOOL_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

_INVALID_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def sanitize_tool_name(raw: str) -> str:
    """Replace disallowed characters with '_' and truncate to 64."""
    return _INVALID_CHARS.sub("_", raw)[:MAX_TOOL_NAME_LENGTH]


def _extract_path_parts(path: str) -> list[str]:
    """Path segments with parameter braces removed."""
    return [p.strip("{}") for p in path.split("/") if p]


def build_tool_name(operation: OperationDescriptor, tag: str | None = None) -> str:
    """Build the tool name for an operation.

    Returns the sanitized operationId when there is one, optionally
    prefixed by ``tag``; otherwise a name built from method and path.
    """
    if operation.operation_id:
        raw = f"{tag}_{operation.operation_id}" if tag else operation.operation_id
    else:
        parts = _extract_path_parts(operation.path) or ["root"]
        raw = "_".join([operation.method.lower(), *parts])
        if tag:
            raw = f"{tag}_{raw}"
    name = sanitize_tool_name(raw)
    return name or "_"
