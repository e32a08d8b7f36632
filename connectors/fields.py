"""Field schema tables.

Every ``(resource, operation)`` pair is described by an :class:`OperationDescriptor`
holding the ordered :class:`FieldSpec` list the operation collects. Descriptors are
module-level constants built once at import time and never mutated.

A field may carry a show condition over sibling fields, e.g. ``limit`` is only
collected when ``returnAll`` is false and ``fieldsUi`` only when ``dataToSend`` is
``defineBelow``. Resource and operation are never part of a condition: they are
the descriptor key.
"""

import copy
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .errors import ValidationError


class FieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OPTIONS = "options"
    MULTI_OPTIONS = "multiOptions"
    COLLECTION = "collection"
    FIXED_COLLECTION = "fixedCollection"
    JSON = "json"


Condition = tuple[tuple[str, tuple[Any, ...]], ...]


def when(**conditions: Any) -> Condition:
    """Build a show condition, e.g. ``when(returnAll=False)``."""
    return tuple(
        (name, tuple(allowed) if isinstance(allowed, (list, tuple)) else (allowed,))
        for name, allowed in conditions.items()
    )


@dataclass(frozen=True)
class Option:
    name: str
    value: Any
    description: str = ""


@dataclass(frozen=True)
class FieldSpec:
    name: str
    display_name: str
    type: FieldType
    default: Any = None
    required: bool = False
    description: str = ""
    min_value: float | None = None
    max_value: float | None = None
    options: tuple[Option, ...] = ()
    fields: tuple["FieldSpec", ...] = ()
    group: str | None = None
    multiple_values: bool = False
    show: Condition = ()
    load_options: str | None = None

    def is_visible(self, values: dict[str, Any]) -> bool:
        return all(values.get(name) in allowed for name, allowed in self.show)


@dataclass(frozen=True)
class OperationDescriptor:
    resource: str
    operation: str
    description: str
    fields: tuple[FieldSpec, ...] = ()
    writes: bool = False

    def __post_init__(self):
        types: dict[str, FieldType] = {}
        for spec in self.fields:
            previous = types.setdefault(spec.name, spec.type)
            if previous is not spec.type:
                raise ValueError(
                    f"Field '{spec.name}' of {self.resource}:{self.operation} "
                    f"declared as both {previous.value} and {spec.type.value}"
                )

    @property
    def key(self) -> tuple[str, str]:
        return (self.resource, self.operation)


# ============================================================================
# Table builders
# ============================================================================

def option(name: str, value: Any, description: str = "") -> Option:
    return Option(name, value, description)


def string(name: str, display_name: str, **kwargs: Any) -> FieldSpec:
    kwargs.setdefault("default", "")
    return FieldSpec(name, display_name, FieldType.STRING, **kwargs)


def number(name: str, display_name: str, **kwargs: Any) -> FieldSpec:
    kwargs.setdefault("default", 0)
    return FieldSpec(name, display_name, FieldType.NUMBER, **kwargs)


def boolean(name: str, display_name: str, **kwargs: Any) -> FieldSpec:
    kwargs.setdefault("default", False)
    return FieldSpec(name, display_name, FieldType.BOOLEAN, **kwargs)


def options(name: str, display_name: str, choices: tuple[Option, ...] = (), **kwargs: Any) -> FieldSpec:
    if "default" not in kwargs:
        kwargs["default"] = choices[0].value if choices else ""
    return FieldSpec(name, display_name, FieldType.OPTIONS, options=choices, **kwargs)


def multi_options(name: str, display_name: str, choices: tuple[Option, ...] = (), **kwargs: Any) -> FieldSpec:
    kwargs.setdefault("default", [])
    return FieldSpec(name, display_name, FieldType.MULTI_OPTIONS, options=choices, **kwargs)


def json_field(name: str, display_name: str, **kwargs: Any) -> FieldSpec:
    kwargs.setdefault("default", "")
    return FieldSpec(name, display_name, FieldType.JSON, **kwargs)


def collection(name: str, display_name: str, *fields: FieldSpec, **kwargs: Any) -> FieldSpec:
    kwargs.setdefault("default", {})
    return FieldSpec(name, display_name, FieldType.COLLECTION, fields=fields, **kwargs)


def fixed_collection(
    name: str, display_name: str, group: str, *fields: FieldSpec, multiple_values: bool = True, **kwargs: Any
) -> FieldSpec:
    kwargs.setdefault("default", {})
    return FieldSpec(
        name,
        display_name,
        FieldType.FIXED_COLLECTION,
        fields=fields,
        group=group,
        multiple_values=multiple_values,
        **kwargs,
    )


def return_all_field(description: str = "Whether to return all results or only up to a given limit") -> FieldSpec:
    return boolean("returnAll", "Return All", description=description)


def limit_field(default: int = 50, max_value: int | None = None, description: str = "How many results to return") -> FieldSpec:
    return number(
        "limit",
        "Limit",
        default=default,
        min_value=1,
        max_value=max_value,
        description=description,
        show=when(returnAll=False),
    )


# ============================================================================
# Lookup and resolution
# ============================================================================

_MISSING = object()


def visible_fields(descriptor: OperationDescriptor, values: dict[str, Any]) -> list[FieldSpec]:
    """Return the fields collected for ``descriptor`` given the supplied values."""
    scope: dict[str, Any] = {}
    visible = []
    for spec in descriptor.fields:
        if spec.name in scope or not spec.is_visible(scope):
            continue
        visible.append(spec)
        scope[spec.name] = _condition_value(spec, values.get(spec.name), scope)
    return visible


def _condition_value(spec: FieldSpec, raw: Any, scope: dict[str, Any]) -> Any:
    """The value show conditions see: coerced exactly as resolution would collect it."""
    if raw is None or (spec.required and raw == ""):
        return copy.deepcopy(spec.default)
    try:
        return _coerce(spec, raw, scope)
    except ValidationError:
        # resolve_parameters reports the bad value; the lookup only needs a best answer.
        return raw


def resolve_parameters(descriptor: OperationDescriptor, values: dict[str, Any]) -> dict[str, Any]:
    """Validate ``values`` against the descriptor and fill in defaults.

    Hidden fields are dropped even when supplied, so of two groups selected by a
    discriminator only the chosen one survives.

    Raises:
        ValidationError: Unknown parameter, missing required value, wrong type,
            number out of bounds or value outside the enumerated options.
    """
    known = {spec.name for spec in descriptor.fields}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValidationError(
            f"Unknown parameter(s) for {descriptor.resource}:{descriptor.operation}: {', '.join(unknown)}"
        )
    return _resolve_fields(descriptor.fields, values, {}, sparse=False)


def _resolve_fields(
    specs: tuple[FieldSpec, ...], values: dict[str, Any], context: dict[str, Any], sparse: bool
) -> dict[str, Any]:
    resolved: dict[str, Any] = {}
    for spec in specs:
        if spec.name in resolved:
            continue
        scope = {**context, **resolved}
        if not spec.is_visible(scope):
            continue
        raw = values.get(spec.name, _MISSING)
        if raw is _MISSING or raw is None or (spec.required and raw == ""):
            # A required field with a usable default (e.g. a binary property name) falls back to it.
            if spec.required and spec.default in (None, "", [], {}):
                raise ValidationError(f"Missing required parameter '{spec.display_name}'")
            if spec.required or not sparse:
                resolved[spec.name] = copy.deepcopy(spec.default)
            continue
        resolved[spec.name] = _coerce(spec, raw, scope)
    return resolved


def _type_error(spec: FieldSpec, expected: str) -> ValidationError:
    return ValidationError(f"Parameter '{spec.display_name}' must be {expected}")


def _coerce(spec: FieldSpec, value: Any, scope: dict[str, Any]) -> Any:
    kind = spec.type

    if kind is FieldType.STRING:
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise _type_error(spec, "a string")
        return str(value)

    if kind is FieldType.NUMBER:
        return _check_bounds(spec, _to_number(spec, value))

    if kind is FieldType.BOOLEAN:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("true", "false"):
            return value.lower() == "true"
        raise _type_error(spec, "a boolean")

    if kind is FieldType.OPTIONS:
        _check_option(spec, value)
        return value

    if kind is FieldType.MULTI_OPTIONS:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            raise _type_error(spec, "a list")
        for entry in value:
            _check_option(spec, entry)
        return list(value)

    if kind is FieldType.JSON:
        # Parsing is left to the request builder, which knows the error message to raise.
        if not isinstance(value, (str, dict, list)):
            raise _type_error(spec, "JSON text or a JSON object")
        return value

    if kind is FieldType.COLLECTION:
        _check_mapping(spec, value, {child.name for child in spec.fields})
        return _resolve_fields(spec.fields, value, scope, sparse=True)

    if kind is FieldType.FIXED_COLLECTION:
        _check_mapping(spec, value, {spec.group})
        entries = value.get(spec.group)
        if entries is None:
            return {}
        if not spec.multiple_values:
            return {spec.group: _resolve_entry(spec, entries, scope)}
        if isinstance(entries, dict):
            entries = [entries]
        if not isinstance(entries, list):
            raise _type_error(spec, f"an object with a '{spec.group}' list")
        return {spec.group: [_resolve_entry(spec, entry, scope) for entry in entries]}

    raise ValueError(f"Unsupported field type: {kind}")


def _resolve_entry(spec: FieldSpec, entry: Any, scope: dict[str, Any]) -> dict[str, Any]:
    _check_mapping(spec, entry, {child.name for child in spec.fields})
    return _resolve_fields(spec.fields, entry, scope, sparse=False)


def _check_mapping(spec: FieldSpec, value: Any, allowed: set) -> None:
    if not isinstance(value, dict):
        raise _type_error(spec, "an object")
    unknown = sorted(set(value) - allowed)
    if unknown:
        raise ValidationError(f"Unknown field(s) in '{spec.display_name}': {', '.join(unknown)}")


def _to_number(spec: FieldSpec, value: Any) -> int | float:
    if isinstance(value, bool):
        raise _type_error(spec, "a number")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            parsed = float(value)
        except ValueError:
            raise _type_error(spec, "a number")
        return int(parsed) if parsed.is_integer() else parsed
    raise _type_error(spec, "a number")


def _check_bounds(spec: FieldSpec, value: int | float) -> int | float:
    if spec.min_value is not None and value < spec.min_value:
        raise ValidationError(f"Parameter '{spec.display_name}' must be at least {spec.min_value}")
    if spec.max_value is not None and value > spec.max_value:
        raise ValidationError(f"Parameter '{spec.display_name}' must be at most {spec.max_value}")
    return value


def _check_option(spec: FieldSpec, value: Any) -> None:
    # Dynamic or free-form lists cannot be checked statically.
    if spec.load_options or not spec.options:
        return
    allowed = [choice.value for choice in spec.options]
    if value not in allowed:
        raise ValidationError(
            f"Invalid value '{value}' for '{spec.display_name}'. "
            f"Allowed values: {', '.join(str(choice) for choice in allowed)}"
        )


# ============================================================================
# JSON Schema
# ============================================================================

_JSON_TYPES = {
    FieldType.STRING: "string",
    FieldType.NUMBER: "number",
    FieldType.BOOLEAN: "boolean",
    FieldType.MULTI_OPTIONS: "array",
    FieldType.COLLECTION: "object",
    FieldType.FIXED_COLLECTION: "object",
}


def field_schema(spec: FieldSpec) -> dict[str, Any]:
    """Build the JSON Schema fragment for one field."""
    description = spec.description or spec.display_name
    if spec.load_options:
        description += f" Values come from the '{spec.load_options}' option loader."
    if spec.show:
        conditions = ", ".join(
            f"{name} is {' or '.join(json_literal(value) for value in allowed)}" for name, allowed in spec.show
        )
        description += f" Only used when {conditions}."

    schema: dict[str, Any] = {"description": description}
    if spec.type in _JSON_TYPES:
        schema["type"] = _JSON_TYPES[spec.type]
    enum = [choice.value for choice in spec.options] if spec.options and not spec.load_options else None

    if spec.type is FieldType.OPTIONS and enum:
        schema["enum"] = enum
    elif spec.type is FieldType.MULTI_OPTIONS:
        schema["items"] = {"enum": enum} if enum else {"type": "string"}
    elif spec.type is FieldType.JSON:
        schema["type"] = ["string", "object", "array"]
    elif spec.type is FieldType.NUMBER:
        if spec.min_value is not None:
            schema["minimum"] = spec.min_value
        if spec.max_value is not None:
            schema["maximum"] = spec.max_value
    elif spec.type is FieldType.COLLECTION:
        schema["properties"] = _properties(spec.fields)
        schema["additionalProperties"] = False
    elif spec.type is FieldType.FIXED_COLLECTION:
        entry = {"type": "object", "properties": _properties(spec.fields), "additionalProperties": False}
        schema["properties"] = {spec.group: {"type": "array", "items": entry} if spec.multiple_values else entry}

    if spec.default not in (None, "", [], {}):
        schema["default"] = spec.default
    return schema


def json_literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return f"'{value}'"


def _properties(specs: tuple[FieldSpec, ...]) -> dict[str, Any]:
    properties: dict[str, Any] = {}
    for spec in specs:
        properties.setdefault(spec.name, field_schema(spec))
    return properties


def to_json_schema(descriptor: OperationDescriptor) -> dict[str, Any]:
    """JSON Schema describing the parameters of one operation."""
    required = []
    for spec in descriptor.fields:
        if spec.required and not spec.show and spec.name not in required:
            required.append(spec.name)
    return {
        "type": "object",
        "properties": _properties(descriptor.fields),
        "required": required,
    }
