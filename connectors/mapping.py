"""Declarative request assembly.

A :class:`FieldMapping` says where a collected value lands in the outbound
request: ``FieldMapping("priority", "priority.id")`` turns ``{"priority": "3"}``
into ``{"priority": {"id": "3"}}``. Blank values are skipped, so an update body
only ever carries the fields the caller actually supplied.
"""

import json
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from .errors import ValidationError

BODY = "body"
QUERY = "query"


@dataclass(frozen=True)
class FieldMapping:
    source: str
    target: str
    location: str = BODY
    transform: Callable[[Any], Any] | None = None
    keep_falsy: bool = False


def is_blank(value: Any, keep_falsy: bool = False) -> bool:
    """True for values that mean "not supplied"."""
    if value is None or value == "" or value == [] or value == {}:
        return True
    if keep_falsy or isinstance(value, (dict, list)):
        return False
    return not value


def set_path(target: dict[str, Any], path: str, value: Any) -> None:
    """Assign ``value`` at a dotted ``path``, creating intermediate objects."""
    *parents, leaf = path.split(".")
    node = target
    for key in parents:
        node = node.setdefault(key, {})
    node[leaf] = value


def apply_mappings(
    mappings: Iterable[FieldMapping],
    values: dict[str, Any],
    body: dict[str, Any] | None = None,
    query: dict[str, Any] | None = None,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Evaluate ``mappings`` against ``values`` and return ``(body, query)``."""
    body = {} if body is None else body
    query = {} if query is None else query
    for mapping in mappings:
        value = values.get(mapping.source)
        if is_blank(value, mapping.keep_falsy):
            continue
        if mapping.transform is not None:
            value = mapping.transform(value)
        set_path(query if mapping.location == QUERY else body, mapping.target, value)
    return body, query


def passthrough(names: Iterable[str], location: str = BODY, keep_falsy: bool = False) -> tuple[FieldMapping, ...]:
    """Identity mappings for values that keep their name on the wire."""
    return tuple(FieldMapping(name, name, location, keep_falsy=keep_falsy) for name in names)


# ============================================================================
# Transforms
# ============================================================================

def split_comma(value: str | list[str]) -> list[str]:
    if isinstance(value, list):
        return value
    return [part.strip() for part in value.split(",") if part.strip()]


def join_comma(value: str | list[str]) -> str:
    if isinstance(value, list):
        return ",".join(value)
    return value


def wrap_each(key: str) -> Callable[[list[Any]], list[dict[str, Any]]]:
    """``wrap_each("id")`` turns ``["1", "2"]`` into ``[{"id": "1"}, {"id": "2"}]``."""
    def transform(values: list[Any]) -> list[dict[str, Any]]:
        return [{key: value} for value in values]
    return transform


def parse_json_parameter(value: Any, message: str = "Parameter must be valid JSON") -> Any:
    """Parse a raw-JSON parameter, passing already-structured values through."""
    if isinstance(value, (dict, list)):
        return value
    try:
        return json.loads(value)
    except (TypeError, json.JSONDecodeError) as e:
        raise ValidationError(f"{message}: {e}")


def key_value_pairs(entries: list[dict[str, Any]], key: str, value: str) -> dict[str, Any]:
    """Fold fixed-collection rows like ``[{"fieldId": "a", "fieldValue": 1}]`` into ``{"a": 1}``."""
    return {entry[key]: entry.get(value) for entry in entries if entry.get(key)}
