"""Assemble the outbound HTTP request for a validated tool call."""

from __future__ import annotations

import re
from typing import Any, Mapping
from urllib.parse import quote

from .config import ProxyConfig
from .errors import InvocationError
from .models import FamilyPolicy, PreparedRequest, ToolDefinition

JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain"

_PATH_PARAM = re.compile(r"\{([^{}]+)\}")


def _as_path_value(value: Any) -> str:
    if isinstance(value, bool):
        value = "true" if value else "false"
    return quote(str(value), safe="")


def _as_query_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def fill_path(template: str, arguments: Mapping[str, Any]) -> tuple[str, set[str]]:
    """Substitute ``{name}`` segments; return the path and the names used."""
    used: set[str] = set()

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in arguments or arguments[name] is None:
            return match.group(0)
        used.add(name)
        return _as_path_value(arguments[name])

    return _PATH_PARAM.sub(substitute, template), used


def build_request(
    tool: ToolDefinition,
    arguments: Mapping[str, Any],
    config: ProxyConfig,
) -> PreparedRequest:
    """Turn validated arguments into method, path, headers, query and body.

    ``arguments`` is keyed by the document's original parameter names.
    It is not modified.
    Raises InvocationError when a path template segment has no value.
    """
    operation = tool.operation
    policy = tool.policy

    path, used = fill_path(operation.path, arguments)
    missing = _PATH_PARAM.findall(path)
    if missing:
        raise InvocationError(f"Missing path parameters: {', '.join(missing)}")
    if policy is not None and policy.canonical_prefix and not path.startswith(policy.canonical_prefix):
        path = policy.canonical_prefix.rstrip("/") + "/" + path.lstrip("/")

    headers: dict[str, str] = {
        "Content-Type": JSON_CONTENT_TYPE,
        "Accept": JSON_CONTENT_TYPE if operation.returns_json else TEXT_CONTENT_TYPE,
    }
    query: dict[str, Any] = {}
    consumed = set(used)

    for param in operation.parameters:
        if param.location == "path":
            consumed.add(param.name)
            continue
        if param.location == "header" and param.name.lower() == config.org_header.lower():
            consumed.add(param.name)
            if config.org_id is not None and (param.required or param.name not in arguments):
                headers[config.org_header] = config.org_id
            elif arguments.get(param.name) is not None:
                headers[config.org_header] = str(arguments[param.name])
            continue
        if param.name not in arguments:
            continue
        consumed.add(param.name)
        value = arguments[param.name]
        if value is None:
            continue
        if param.location == "header":
            headers[param.name] = str(_as_query_value(value))
        else:
            query[param.name] = _as_query_value(value)

    if policy is not None:
        headers.update(policy.extra_headers)
    inject_org = config.org_header_always or (policy is not None and policy.inject_org_header)
    if inject_org and config.org_id is not None:
        headers[config.org_header] = config.org_id

    body: Any = None
    if tool.body_mode == "raw":
        body = arguments.get("body")
    elif tool.body_mode == "fields":
        body = {k: v for k, v in arguments.items() if k not in consumed}
        if policy is not None:
            body = _apply_body_policy(body, policy, config)

    return PreparedRequest(
        method=operation.method.upper(),
        path=path,
        headers=headers,
        query=query,
        body=body,
        has_body=tool.body_mode != "none",
    )


def _apply_body_policy(body: dict[str, Any], policy: FamilyPolicy, config: ProxyConfig) -> dict[str, Any]:
    renamed = {policy.field_renames.get(k, k): v for k, v in body.items()}
    field = policy.org_body_field
    if field and config.org_id is not None:
        if policy.org_body_source == "config" or renamed.get(field) is None:
            renamed[field] = config.org_id
    return renamed
