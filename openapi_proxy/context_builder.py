"""Build the tool registry from a parsed API document.

Walks every operation once, derives its tool name and input model, and
registers the result. Also assembles the template context used by codegen.
"""

from __future__ import annotations

import logging
from typing import Any

from .config import ProxyConfig
from .loader import resolve_schema
from .models import ApiDocument, OperationDescriptor, ToolDefinition, parse_document
from .naming import build_tool_name
from .registry import ToolRegistry
from .schema_parser import build_input_model, type_label

logger = logging.getLogger(__name__)


def _make_description(operation: OperationDescriptor) -> str:
    """Build a tool description."""
    if operation.summary:
        doc = operation.summary
    elif operation.description:
        doc = operation.description.split(".")[0]
    else:
        doc = f"{operation.method.upper()} {operation.path}"

    doc = doc.strip().rstrip(". ")
    doc += f". Calls {operation.method.upper()} {operation.path}."
    if not operation.returns_json and operation.success_content_types:
        doc += " Returns plain text."
    return doc


def _names_for(operation: OperationDescriptor, config: ProxyConfig) -> list[str]:
    if config.tag_prefix and operation.tags:
        return [build_tool_name(operation, tag) for tag in operation.tags]
    return [build_tool_name(operation)]


def build_tool(
    name: str, operation: OperationDescriptor, document: ApiDocument, config: ProxyConfig,
) -> ToolDefinition:
    """Build one ToolDefinition; unresolvable references degrade, not fail."""
    org_params = frozenset(
        p.name for p in operation.parameters
        if p.location == "header" and p.name.lower() == config.org_header.lower()
        and config.org_id is not None
    )
    spec = build_input_model(name, operation, document.schemas, optional_params=org_params)
    for err in spec.errors:
        logger.warning(
            "Tool %s (%s %s): %s; field left unchecked",
            name, operation.method.upper(), operation.path, err,
        )
    return ToolDefinition(
        name=name,
        operation=operation,
        input_model=spec.model,
        description=_make_description(operation),
        policy=config.policy_for(operation.path),
        body_mode=spec.body_mode,
        degraded=spec.degraded,
    )


def build_registry(raw_document: Any, config: ProxyConfig) -> ToolRegistry:
    """Register one tool per operation (or per tag) of the document.

    ``raw_document`` is either the deserialized document or an already
    parsed ApiDocument. The returned registry is frozen.
    """
    if isinstance(raw_document, ApiDocument):
        document = raw_document
    else:
        document = parse_document(raw_document)
    registry = ToolRegistry(on_conflict=config.on_conflict)

    for operation in document.operations:
        for name in _names_for(operation, config):
            registry.register(build_tool(name, operation, document, config))

    registry.freeze()
    degraded = sum(1 for tool in registry.list() if tool.degraded)
    logger.info(
        "Registered %d tools from %d operations (%d degraded)",
        len(registry), len(document.operations), degraded,
    )
    return registry


def _field_rows(tool: ToolDefinition, document: ApiDocument) -> list[dict[str, Any]]:
    """Describe each input field for the catalog."""
    params = {p.name: p for p in tool.operation.parameters}
    body = None
    if tool.operation.body is not None:
        body = resolve_schema(tool.operation.body, document.schemas, errors=[])
    rows = []
    for field_name, info in tool.input_model.model_fields.items():
        name = info.alias or field_name
        param = params.get(name)
        if param is not None:
            node = resolve_schema(param.schema, document.schemas, errors=[])
            location = param.location
        elif tool.body_mode == "raw":
            node, location = body, "body"
        else:
            node, location = body.properties.get(name) if body else None, "body"
        rows.append({
            "name": name,
            "type": type_label(node) if node is not None else "any",
            "location": location,
            "required": info.is_required(),
            "description": info.description or "",
        })
    return rows


def build_context(raw_document: Any, config: ProxyConfig) -> dict[str, Any]:
    """Build the template context for the tool catalog."""
    document = parse_document(raw_document)
    registry = build_registry(document, config)
    tools = [
        {
            "name": tool.name,
            "method": tool.operation.method.upper(),
            "path": tool.operation.path,
            "description": tool.description,
            "tags": list(tool.operation.tags),
            "degraded": tool.degraded,
            "fields": _field_rows(tool, document),
        }
        for tool in registry.list()
    ]
    return {
        "title": document.title,
        "version": document.version,
        "base_url": config.base_url,
        "tools": tools,
        "tool_count": len(tools),
    }
