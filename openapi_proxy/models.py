"""Typed view of the API document, plus the objects built from it.

The raw document is a loosely-typed mapping. parse_document() walks it once
and produces immutable descriptors; anything it does not recognize is
logged and mapped to the permissive "any" schema node instead of being
dropped silently.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping

from pydantic import BaseModel

from .errors import DocumentError

logger = logging.getLogger(__name__)

SchemaKind = Literal[
    "string", "integer", "number", "boolean", "enum", "object", "array", "ref", "any",
]
ParamLocation = Literal["path", "query", "header"]

HTTP_METHODS = ("get", "post", "put", "patch", "delete", "head", "options")
_PRIMITIVE_TYPES = {"string", "integer", "number", "boolean"}
_LOCATIONS = {"path", "query", "header"}


@dataclass(frozen=True)
class SchemaNode:
    """One schema constraint, tagged by ``kind``."""

    kind: SchemaKind = "any"
    format: str | None = None
    enum_values: tuple[Any, ...] = ()
    properties: Mapping[str, SchemaNode] = field(default_factory=dict)
    required: frozenset[str] = frozenset()
    items: SchemaNode | None = None
    ref: str | None = None
    all_of: tuple[SchemaNode, ...] = ()
    description: str = ""
    default: Any = None
    minimum: float | None = None
    maximum: float | None = None
    nullable: bool = False
    read_only: bool = False

    @property
    def ref_name(self) -> str | None:
        """Lookup key of a reference: its final path segment."""
        if self.ref is None:
            return None
        return self.ref.rstrip("/").split("/")[-1]


@dataclass(frozen=True)
class ParameterDescriptor:
    name: str
    location: ParamLocation
    required: bool
    schema: SchemaNode
    description: str = ""


@dataclass(frozen=True)
class OperationDescriptor:
    path: str
    method: str
    operation_id: str | None = None
    tags: tuple[str, ...] = ()
    parameters: tuple[ParameterDescriptor, ...] = ()
    body: SchemaNode | None = None
    body_required: bool = False
    success_content_types: tuple[str, ...] = ()
    summary: str = ""
    description: str = ""

    @property
    def returns_json(self) -> bool:
        return any("json" in ct for ct in self.success_content_types)

    @property
    def path_param_names(self) -> list[str]:
        return [p.name for p in self.parameters if p.location == "path"]


@dataclass(frozen=True)
class ApiDocument:
    operations: tuple[OperationDescriptor, ...]
    schemas: Mapping[str, SchemaNode]
    title: str = ""
    version: str = "unknown"


@dataclass(frozen=True)
class FamilyPolicy:
    """Request adjustments for one family of endpoints.

    A family is every path template that starts with ``prefix`` once
    ``canonical_prefix`` (if any) has been stripped from it.
    """

    prefix: str
    canonical_prefix: str | None = None
    inject_org_header: bool = False
    extra_headers: Mapping[str, str] = field(default_factory=dict)
    field_renames: Mapping[str, str] = field(default_factory=dict)
    org_body_field: str | None = None
    org_body_source: Literal["config", "caller"] = "config"

    def matches(self, path: str) -> bool:
        if self.canonical_prefix and path.startswith(self.canonical_prefix):
            path = path[len(self.canonical_prefix):]
        return path.startswith(self.prefix)


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    operation: OperationDescriptor
    input_model: type[BaseModel]
    description: str = ""
    policy: FamilyPolicy | None = None
    body_mode: Literal["none", "fields", "raw"] = "none"
    degraded: bool = False

    def input_schema(self) -> dict[str, Any]:
        """JSON schema of the tool's arguments, for host transports."""
        return self.input_model.model_json_schema(by_alias=True)


@dataclass(frozen=True)
class PreparedRequest:
    method: str
    path: str
    headers: Mapping[str, str]
    query: Mapping[str, Any] = field(default_factory=dict)
    body: Any = None
    has_body: bool = False


class DispatchState(str, enum.Enum):
    IDLE = "Idle"
    PLACEHOLDER_SUBSTITUTED = "PlaceholderSubstituted"
    VALIDATED = "Validated"
    REQUEST_BUILT = "RequestBuilt"
    INVOKED = "Invoked"
    NORMALIZED = "Normalized"
    DONE = "Done"
    FAILED = "Failed"


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one tool invocation: always text, never an exception."""

    tool: str
    text: str
    is_error: bool = False
    error_kind: str | None = None
    state: DispatchState = DispatchState.DONE
    status: int | None = None


# ---------------------------------------------------------------------------
# Parse pass
# ---------------------------------------------------------------------------

def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _mapping(raw: dict[str, Any], key: str, where: str) -> dict[str, Any]:
    """``raw[key]`` when it is a mapping; empty (with a warning) otherwise."""
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        logger.warning("%r at %s is not a mapping; ignoring it", key, where or "?")
        return {}
    return value


def _sequence(raw: dict[str, Any], key: str, where: str) -> list[Any]:
    """``raw[key]`` when it is a list; empty (with a warning) otherwise."""
    value = raw.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        logger.warning("%r at %s is not a list; ignoring it", key, where or "?")
        return []
    return value


def parse_schema(raw: Any, where: str = "") -> SchemaNode:
    """Convert a raw schema object into a SchemaNode."""
    if not isinstance(raw, dict):
        if raw is not None:
            logger.warning("Schema at %s is not an object; treating as any", where or "?")
        return SchemaNode()

    common = {
        "description": str(raw.get("description") or ""),
        "nullable": bool(raw.get("nullable", False)),
        "read_only": bool(raw.get("readOnly", False)),
    }

    if "$ref" in raw:
        return SchemaNode(kind="ref", ref=str(raw["$ref"]), **common)

    if "allOf" in raw and isinstance(raw["allOf"], list):
        parts = tuple(
            parse_schema(sub, f"{where}/allOf/{i}") for i, sub in enumerate(raw["allOf"])
        )
        if len(parts) == 1 and not raw.get("properties"):
            return parts[0]
        own = _parse_object(raw, where, common) if raw.get("properties") else None
        return SchemaNode(
            kind="object",
            all_of=parts + ((own,) if own else ()),
            **common,
        )

    for key in ("oneOf", "anyOf"):
        if key in raw and isinstance(raw[key], list):
            for i, sub in enumerate(raw[key]):
                node = parse_schema(sub, f"{where}/{key}/{i}")
                if node.kind != "any":
                    return node
            return SchemaNode(**common)

    if "enum" in raw and isinstance(raw["enum"], list):
        return SchemaNode(
            kind="enum",
            enum_values=tuple(raw["enum"]),
            default=raw.get("default"),
            **common,
        )

    schema_type = raw.get("type")
    if isinstance(schema_type, list):
        # OpenAPI 3.1 style ["string", "null"]
        non_null = [t for t in schema_type if t != "null"]
        common["nullable"] = common["nullable"] or "null" in schema_type
        schema_type = non_null[0] if len(non_null) == 1 else None
    if schema_type is not None and not isinstance(schema_type, str):
        logger.warning("Schema type at %s is not a string; treating as any", where or "?")
        schema_type = None

    if schema_type in _PRIMITIVE_TYPES:
        return SchemaNode(
            kind=schema_type,
            format=raw["format"] if isinstance(raw.get("format"), str) else None,
            default=raw.get("default"),
            minimum=_number(raw.get("minimum")),
            maximum=_number(raw.get("maximum")),
            **common,
        )
    if schema_type == "array":
        return SchemaNode(
            kind="array",
            items=parse_schema(raw.get("items"), f"{where}/items") if "items" in raw else SchemaNode(),
            **common,
        )
    if schema_type == "object" or "properties" in raw:
        return _parse_object(raw, where, common)

    if schema_type is not None:
        logger.warning("Unrecognized schema type %r at %s; treating as any", schema_type, where or "?")
    return SchemaNode(default=raw.get("default"), **common)


def _parse_object(raw: dict[str, Any], where: str, common: dict[str, Any]) -> SchemaNode:
    props = _mapping(raw, "properties", where)
    required = _sequence(raw, "required", where)
    return SchemaNode(
        kind="object",
        properties={
            name: parse_schema(sub, f"{where}/properties/{name}")
            for name, sub in props.items()
        },
        required=frozenset(str(r) for r in required if isinstance(r, str)),
        **common,
    )


def _parse_parameter(
    raw: Any, document: dict[str, Any], where: str,
) -> ParameterDescriptor | None:
    if isinstance(raw, dict) and "$ref" in raw:
        name = str(raw["$ref"]).split("/")[-1]
        components = _mapping(document, "components", "#")
        resolved = _mapping(components, "parameters", "#/components").get(name)
        if resolved is None:
            logger.warning("Parameter reference %s at %s not found; skipping", raw["$ref"], where)
            return None
        raw = resolved
    if not isinstance(raw, dict) or not raw.get("name"):
        logger.warning("Malformed parameter at %s; skipping", where)
        return None
    location = raw.get("in", "query")
    if not isinstance(location, str) or location not in _LOCATIONS:
        logger.warning("Parameter %r at %s is in %r; skipping", raw["name"], where, location)
        return None
    return ParameterDescriptor(
        name=str(raw["name"]),
        location=location,
        required=bool(raw.get("required", False)) or location == "path",
        schema=parse_schema(raw.get("schema"), f"{where}/{raw['name']}"),
        description=str(raw.get("description") or ""),
    )


def _merge_parameters(
    shared: list[ParameterDescriptor], own: list[ParameterDescriptor], where: str,
) -> tuple[ParameterDescriptor, ...]:
    """Keep one parameter per (name, location); later declarations win.

    An operation-level parameter overriding a path-level one is normal.
    The same (name, location) twice at one level is flagged.
    """
    merged: dict[tuple[str, str], ParameterDescriptor] = {}
    for level in (shared, own):
        seen: set[tuple[str, str]] = set()
        for param in level:
            key = (param.name, param.location)
            if key in seen:
                logger.warning("Duplicate parameter %s (%s) at %s", param.name, param.location, where)
            elif key in merged:
                logger.debug("Parameter %s (%s) overridden at %s", param.name, param.location, where)
            seen.add(key)
            merged[key] = param
    return tuple(merged.values())


def _success_content_types(responses: Any) -> tuple[str, ...]:
    if not isinstance(responses, dict):
        return ()
    types: list[str] = []
    for status, response in responses.items():
        if not str(status).startswith("2") or not isinstance(response, dict):
            continue
        for ct in _mapping(response, "content", f"responses/{status}"):
            if ct not in types:
                types.append(ct)
    return tuple(types)


def _parse_body(raw: Any, where: str) -> tuple[SchemaNode | None, bool]:
    if not isinstance(raw, dict):
        return None, False
    content = _mapping(raw, "content", f"{where}/requestBody")
    media = None
    for ct in ("application/json", *content.keys()):
        if ct in content and "json" in ct:
            media = content[ct]
            break
    if media is None:
        logger.warning("Request body at %s has no JSON content; accepting any body", where)
        return SchemaNode(), bool(raw.get("required", False))
    if not isinstance(media, dict):
        media = {}
    return parse_schema(media.get("schema"), f"{where}/requestBody"), bool(raw.get("required", False))


def parse_document(document: Any) -> ApiDocument:
    """Walk the raw document once and return its operations and schemas.

    Raises DocumentError only when the document cannot be walked at all.
    """
    if not isinstance(document, dict):
        raise DocumentError("API document must be a mapping")
    paths = document.get("paths", {})
    if not isinstance(paths, dict):
        raise DocumentError("'paths' must be a mapping of path templates")

    components = _mapping(document, "components", "#")
    raw_schemas = _mapping(components, "schemas", "#/components")
    schemas = {
        name: parse_schema(raw, f"#/components/schemas/{name}")
        for name, raw in raw_schemas.items()
    }

    operations: list[OperationDescriptor] = []
    for path, path_item in paths.items():
        if not isinstance(path_item, dict):
            logger.warning("Path item %s is not a mapping; skipping", path)
            continue
        shared = [
            p for i, raw in enumerate(_sequence(path_item, "parameters", path))
            if (p := _parse_parameter(raw, document, f"{path}/parameters/{i}")) is not None
        ]
        for method, op in path_item.items():
            if method.lower() not in HTTP_METHODS:
                continue
            where = f"{method.upper()} {path}"
            if not isinstance(op, dict):
                logger.warning("Operation %s is not a mapping; skipping", where)
                continue
            own = [
                p for i, raw in enumerate(_sequence(op, "parameters", where))
                if (p := _parse_parameter(raw, document, f"{where}/parameters/{i}")) is not None
            ]
            body, body_required = _parse_body(op.get("requestBody"), where)
            tags = op.get("tags") or []
            if isinstance(tags, str):
                tags = [tags]
            elif not isinstance(tags, list):
                logger.warning("Tags of %s are not a list; ignoring them", where)
                tags = []
            operations.append(OperationDescriptor(
                path=path,
                method=method.lower(),
                operation_id=str(op["operationId"]) if op.get("operationId") else None,
                tags=tuple(str(t) for t in tags if isinstance(t, str)),
                parameters=_merge_parameters(shared, own, where),
                body=body,
                body_required=body_required,
                success_content_types=_success_content_types(op.get("responses")),
                summary=str(op.get("summary") or ""),
                description=str(op.get("description") or ""),
            ))

    info = _mapping(document, "info", "#")
    return ApiDocument(
        operations=tuple(operations),
        schemas=schemas,
        title=str(info.get("title") or ""),
        version=str(info.get("version") or "unknown"),
    )
