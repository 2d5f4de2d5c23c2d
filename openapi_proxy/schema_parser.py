"""Turn schema nodes and parameters into pydantic validators.

Handles:
- Path, query and header parameters
- Request body (JSON), flattened into top-level fields when it is an object
- $ref resolution, including allOf merging and nested objects
- uuid / date-time / date / time string formats
- Enum values as Literal types, with the values listed in descriptions
- minimum / maximum bounds on numbers
- Field names that are not Python identifiers (aliased to the original)
"""

from __future__ import annotations

import keyword
import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Annotated, Callable, Literal, Mapping, Optional, Union
from uuid import UUID

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    StringConstraints,
    create_model,
)

from .errors import SchemaResolutionError
from .loader import resolve_schema
from .models import OperationDescriptor, SchemaNode
from .placeholders import DATETIME_PLACEHOLDER, GUID_PLACEHOLDER

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^\d{2}:\d{2}:\d{2}$"

BodyMode = Literal["none", "fields", "raw"]


class ArgumentsModel(BaseModel):
    """Base for generated tool input models."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())


class _NestedModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=(), extra="allow")


_RESERVED = set(dir(BaseModel))


@dataclass
class InputModelSpec:
    """Result of building one tool's input model."""

    model: type[BaseModel]
    body_mode: BodyMode = "none"
    errors: list[SchemaResolutionError] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.errors)


def _strip_html(text: str) -> str:
    """Strip HTML tags and collapse whitespace."""
    text = re.sub(r"<[^>]+>", "", text)
    text = re.sub(r"\s+", " ", text).strip()
    return text


def _check_uuid(value: str) -> str:
    if value == GUID_PLACEHOLDER:
        return value
    UUID(value)
    return value


def _check_datetime(value: str) -> str:
    if value == DATETIME_PLACEHOLDER:
        return value
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        raise ValueError("datetime must carry a UTC offset")
    return value


def _bounds(minimum: float | None, maximum: float | None) -> Callable[[Any], Any]:
    def check(value: Any) -> Any:
        if minimum is not None and value < minimum:
            raise ValueError(f"must be >= {minimum}")
        if maximum is not None and value > maximum:
            raise ValueError(f"must be <= {maximum}")
        return value
    return check


def python_field_name(name: str) -> str:
    """Sanitize a parameter name for use as a pydantic field name."""
    sanitized = re.sub(r"\W", "_", name)
    if not sanitized or sanitized[0].isdigit() or sanitized.startswith("_"):
        sanitized = "f_" + sanitized.lstrip("_")
    if keyword.iskeyword(sanitized) or sanitized in _RESERVED:
        sanitized += "_"
    return sanitized


def _enum_type(values: tuple[Any, ...]) -> Any:
    if not values:
        return Any
    if all(v is None or isinstance(v, (str, int, bool)) for v in values):
        return Literal[values]
    allowed = list(values)

    def check(value: Any) -> Any:
        if value not in allowed:
            raise ValueError(f"must be one of {allowed}")
        return value
    return Annotated[Any, AfterValidator(check)]


def _string_type(node: SchemaNode) -> Any:
    if node.format == "uuid":
        return Annotated[StrictStr, AfterValidator(_check_uuid)]
    if node.format == "date-time":
        return Annotated[StrictStr, AfterValidator(_check_datetime)]
    if node.format == "date":
        return Annotated[StrictStr, StringConstraints(pattern=DATE_PATTERN)]
    if node.format == "time":
        return Annotated[StrictStr, StringConstraints(pattern=TIME_PATTERN)]
    return StrictStr


def resolve_field_type(node: SchemaNode, model_name: str = "Object") -> Any:
    """Map a resolved SchemaNode to a pydantic-checkable annotation."""
    if node.kind == "string":
        annotation = _string_type(node)
    elif node.kind in ("integer", "number"):
        annotation = StrictInt if node.kind == "integer" else Union[StrictInt, StrictFloat]
        if node.minimum is not None or node.maximum is not None:
            annotation = Annotated[annotation, AfterValidator(_bounds(node.minimum, node.maximum))]
    elif node.kind == "boolean":
        annotation = StrictBool
    elif node.kind == "enum":
        annotation = _enum_type(node.enum_values)
    elif node.kind == "array":
        annotation = list[resolve_field_type(node.items or SchemaNode(), f"{model_name}_item")]
    elif node.kind == "object" and node.properties:
        annotation = _object_model(node, model_name)
    elif node.kind == "object":
        annotation = dict[str, Any]
    else:
        annotation = Any

    if node.nullable and annotation is not Any:
        annotation = Optional[annotation]
    return annotation


def _describe(node: SchemaNode, description: str = "") -> str:
    text = _strip_html(description or node.description)
    if node.kind == "enum" and node.enum_values:
        values = ", ".join(str(v) for v in node.enum_values)
        text = f"{text} (values: {values})" if text else f"Values: {values}"
    return text


def _field(
    node: SchemaNode, required: bool, model_name: str, description: str = "",
    alias: str | None = None,
) -> tuple[Any, Any]:
    annotation = resolve_field_type(node, model_name)
    kwargs: dict[str, Any] = {"description": _describe(node, description) or None}
    if alias:
        kwargs["alias"] = alias
    if required:
        return annotation, Field(**kwargs)
    if annotation is not Any:
        annotation = Optional[annotation]
    return annotation, Field(default=node.default, **kwargs)


def _fields_for(
    named: list[tuple[str, SchemaNode, bool, str]], model_name: str,
) -> dict[str, tuple[Any, Any]]:
    fields: dict[str, tuple[Any, Any]] = {}
    for name, node, required, description in named:
        field_name = python_field_name(name)
        while field_name in fields:
            field_name += "_"
        alias = name if field_name != name else None
        fields[field_name] = _field(
            node, required, f"{model_name}_{field_name}", description, alias,
        )
    return fields


def _object_model(node: SchemaNode, model_name: str) -> type[BaseModel]:
    named = [
        (name, sub, name in node.required, "")
        for name, sub in node.properties.items()
    ]
    return create_model(model_name, __base__=_NestedModel, **_fields_for(named, model_name))


def build_input_model(
    tool_name: str,
    operation: OperationDescriptor,
    schemas: Mapping[str, SchemaNode],
    optional_params: frozenset[str] = frozenset(),
) -> InputModelSpec:
    """Build the input model for one operation.

    Missing schema references do not fail the build; the affected field
    accepts any value and the returned spec is marked degraded. Parameters
    named in ``optional_params`` are never required (their value is
    supplied from configuration).
    """
    errors: list[SchemaResolutionError] = []
    named: list[tuple[str, SchemaNode, bool, str]] = []
    seen: set[str] = set()

    for param in operation.parameters:
        node = resolve_schema(param.schema, schemas, errors)
        if param.location == "path" and node.nullable:
            node = replace(node, nullable=False)
        required = param.required and param.name not in optional_params
        named.append((param.name, node, required, param.description))
        seen.add(param.name)

    body_mode: BodyMode = "none"
    if operation.body is not None:
        body = resolve_schema(operation.body, schemas, errors)
        if body.kind == "object" and body.properties:
            body_mode = "fields"
            for prop_name, prop in body.properties.items():
                if prop.read_only or prop_name in seen:
                    continue
                named.append((prop_name, prop, prop_name in body.required, ""))
        else:
            body_mode = "raw"
            named.append(("body", body, operation.body_required, "Request body"))

    model_name = python_field_name(f"{tool_name}_arguments")
    model = create_model(model_name, __base__=ArgumentsModel, **_fields_for(named, model_name))
    return InputModelSpec(model=model, body_mode=body_mode, errors=errors)


def type_label(node: SchemaNode) -> str:
    """Short human-readable type of a resolved node, for catalogs."""
    if node.kind == "string" and node.format:
        return f"string({node.format})"
    if node.kind == "enum":
        return "enum[" + ", ".join(str(v) for v in node.enum_values) + "]"
    if node.kind == "array":
        return f"array[{type_label(node.items or SchemaNode())}]"
    return node.kind
