"""Load the API document and resolve schema references.

resolve_ref() is the single-hop lookup; resolve_schema() follows chains and
nested references with cycle detection.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path
from typing import Any, Mapping

from .errors import DocumentError, SchemaResolutionError
from .models import SchemaNode

logger = logging.getLogger(__name__)


def load_spec(path: Path | str) -> dict[str, Any]:
    """Load an API document from a JSON file."""
    with open(path) as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as exc:
            raise DocumentError(f"{path} is not valid JSON: {exc}") from exc


def resolve_ref(ref: str, schemas: Mapping[str, SchemaNode]) -> SchemaNode:
    """Resolve a $ref pointer to its named schema (one level only)."""
    key = ref.rstrip("/").split("/")[-1]
    try:
        return schemas[key]
    except KeyError:
        raise SchemaResolutionError(ref) from None


def resolve_schema(
    node: SchemaNode,
    schemas: Mapping[str, SchemaNode],
    errors: list[SchemaResolutionError] | None = None,
    _stack: tuple[str, ...] = (),
) -> SchemaNode:
    """Return ``node`` with every reference inside it replaced by its target.

    allOf parts are merged into one object. A reference that is already being
    resolved further up (a cycle) becomes a permissive node. When ``errors``
    is given, missing references are collected there and replaced by
    permissive nodes instead of raising.
    """
    if node.kind == "ref":
        name = node.ref_name or ""
        if name in _stack:
            logger.debug("Cyclic reference to %s; leaving it unchecked", name)
            return SchemaNode(description=node.description, nullable=node.nullable)
        try:
            target = resolve_ref(node.ref or "", schemas)
        except SchemaResolutionError as exc:
            if errors is None:
                raise
            errors.append(exc)
            return SchemaNode(description=node.description)
        resolved = resolve_schema(target, schemas, errors, _stack + (name,))
        return dataclasses.replace(
            resolved,
            description=node.description or resolved.description,
            nullable=node.nullable or resolved.nullable,
            read_only=node.read_only or resolved.read_only,
        )

    if node.kind == "object" and node.all_of:
        properties: dict[str, SchemaNode] = {}
        required: set[str] = set()
        for part in node.all_of:
            merged = resolve_schema(part, schemas, errors, _stack)
            properties.update(merged.properties)
            required.update(merged.required)
        return dataclasses.replace(
            node, all_of=(), properties=properties, required=frozenset(required),
        )

    if node.kind == "object" and node.properties:
        return dataclasses.replace(node, properties={
            name: resolve_schema(sub, schemas, errors, _stack)
            for name, sub in node.properties.items()
        })

    if node.kind == "array" and node.items is not None:
        return dataclasses.replace(
            node, items=resolve_schema(node.items, schemas, errors, _stack),
        )

    return node
