"""Connector base class and per-record execution loop."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import httpx

from .config import Settings
from .errors import ConnectorError, ValidationError, WritesDisabledError
from .fields import OperationDescriptor, resolve_parameters
from .http import error_message
from .mapping import FieldMapping, apply_mappings
from .normalize import Records, to_records

logger = logging.getLogger(__name__)


@dataclass
class InputItem:
    """One record handed to a connector by the host."""

    json: dict[str, Any] = field(default_factory=dict)
    binary: dict[str, Any] = field(default_factory=dict)
    parameters: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InputItem":
        if not isinstance(data, dict):
            raise ValidationError("Each input item must be an object")
        return cls(
            json=data.get("json") or {},
            binary=data.get("binary") or {},
            parameters=data.get("parameters") or {},
        )


@dataclass
class RequestContext:
    """Everything a handler needs to build the calls for a single record."""

    credentials: Any
    resource: str
    operation: str
    params: dict[str, Any]
    item: InputItem = field(default_factory=InputItem)
    index: int = 0
    continue_on_fail: bool = True
    strategy: Any = None
    query: dict[str, Any] = field(default_factory=dict)
    body: dict[str, Any] = field(default_factory=dict)

    def param(self, name: str, default: Any = None) -> Any:
        return self.params.get(name, default)

    def apply(
        self, mappings: Iterable[FieldMapping], values: dict[str, Any] | None
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        """Map ``values`` into this record's running body and query."""
        return apply_mappings(mappings, values or {}, self.body, self.query)


def operation(resource: str, name: str):
    """Register a connector method as the handler of ``resource:name``."""
    def decorator(func):
        func._operation = (resource, name)
        return func
    return decorator


def option_loader(name: str):
    """Register a connector method as a dynamic option loader."""
    def decorator(func):
        func._loader = name
        return func
    return decorator


def sort_options(options: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(options, key=lambda entry: str(entry["name"]))


class Connector:
    """A set of operations against one third-party API.

    Subclasses provide ``name``, ``display_name``, ``credentials_class``, the
    ``descriptors`` table and one ``@operation`` handler per descriptor.
    Handlers return a dict or a list of dicts (wrapped into records here), or
    :class:`Records` they shaped themselves.
    """

    name: str = ""
    display_name: str = ""
    credentials_class: Any = None
    descriptors: tuple[OperationDescriptor, ...] = ()

    _handlers: dict[tuple[str, str], str]
    _loaders: dict[str, str]

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls._handlers = {}
        cls._loaders = {}
        for klass in reversed(cls.__mro__):
            for attr, value in vars(klass).items():
                if hasattr(value, "_operation"):
                    cls._handlers[value._operation] = attr
                if hasattr(value, "_loader"):
                    cls._loaders[value._loader] = attr
        missing = [d.key for d in cls.descriptors if d.key not in cls._handlers]
        if missing:
            raise TypeError(f"{cls.__name__} has no handler for {missing}")

    # -- lookup -------------------------------------------------------------

    def descriptor(self, resource: str, operation_name: str) -> OperationDescriptor:
        for descriptor in self.descriptors:
            if descriptor.key == (resource, operation_name):
                return descriptor
        raise ValidationError(f"Unknown operation for {self.name}: {resource}:{operation_name}")

    @property
    def loader_names(self) -> list[str]:
        return sorted(self._loaders)

    def load_credentials(self) -> Any:
        return self.credentials_class.from_env()

    def select_strategy(self, params: dict[str, Any]) -> Any:
        """Pick the API-variant strategy for one record; ``None`` when there is only one."""
        return None

    # -- execution ----------------------------------------------------------

    async def execute(
        self,
        resource: str,
        operation_name: str,
        items: list[InputItem] | None = None,
        parameters: dict[str, Any] | None = None,
        *,
        continue_on_fail: bool | None = None,
        credentials: Any = None,
    ) -> list[dict[str, Any]]:
        """Run one operation over a batch of input items, one record at a time."""
        settings = Settings.from_env()
        if continue_on_fail is None:
            continue_on_fail = settings.continue_on_fail

        descriptor = self.descriptor(resource, operation_name)
        if descriptor.writes and not settings.allow_writes:
            raise WritesDisabledError(
                f"Write operations ({resource}:{operation_name}) are disabled. "
                "Set CONNECTORS_ALLOW_WRITES=true to enable them."
            )
        if credentials is None:
            credentials = self.load_credentials()

        handler = getattr(self, self._handlers[descriptor.key])
        items = items or [InputItem()]
        output: list[dict[str, Any]] = []

        for index, item in enumerate(items):
            try:
                params = resolve_parameters(descriptor, {**(parameters or {}), **item.parameters})
                ctx = RequestContext(
                    credentials=credentials,
                    resource=resource,
                    operation=operation_name,
                    params=params,
                    item=item,
                    index=index,
                    continue_on_fail=continue_on_fail,
                    strategy=self.select_strategy(params),
                )
                result = await handler(ctx)
            except (ConnectorError, httpx.HTTPError) as e:
                if not continue_on_fail:
                    raise
                message = self.describe_error(e)
                logger.warning("%s %s:%s failed for item %d: %s", self.name, resource, operation_name, index, message)
                output.append({"json": {"error": message}, "pairedItem": index})
                continue
            output.extend(self._records(result, index))

        logger.info("%s %s:%s produced %d record(s)", self.name, resource, operation_name, len(output))
        return output

    def describe_error(self, error: Exception) -> str:
        if isinstance(error, httpx.HTTPStatusError):
            return f"{self.display_name} API error: {error_message(error)}"
        return str(error)

    @staticmethod
    def _records(result: Any, index: int) -> list[dict[str, Any]]:
        if isinstance(result, Records):
            for record in result:
                record.setdefault("pairedItem", index)
            return result
        return to_records(result, index)

    async def load_options(self, method: str, parameters: dict[str, Any] | None = None, *, credentials: Any = None):
        """Run a dynamic option loader (e.g. the projects to pick from)."""
        if method not in self._loaders:
            raise ValidationError(f"Unknown option loader for {self.name}: {method}")
        if credentials is None:
            credentials = self.load_credentials()
        params = dict(parameters or {})
        ctx = RequestContext(
            credentials=credentials,
            resource="",
            operation="",
            params=params,
            strategy=self.select_strategy(params),
        )
        return await getattr(self, self._loaders[method])(ctx)
