"""
Capability binding table.

The closed set of host objects a guest snippet can reach. Guest code calls
``<capability>.<method>(...args)``; the execution host routes each call to
:meth:`CapabilityTable.dispatch` and sends the JSON-encoded result back.
"""

from __future__ import annotations

import inspect
import json
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Protocol

from ..core.exceptions import CapabilityError, ConfigurationError, UnknownCapabilityError

CAPABILITY_NAMES = ("filesystem", "bestcase", "guides", "metadata")


class CapabilityFacade(Protocol):
    """Anything that can be exposed to guests as one capability."""

    name: str

    def guest_methods(self) -> dict[str, Callable[..., Any]]: ...


@dataclass(frozen=True)
class CapabilityBinding:
    """One guest-visible capability: a name plus its camelCase methods."""

    name: str
    methods: Mapping[str, Callable[..., Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "methods", MappingProxyType(dict(self.methods)))

    @property
    def method_names(self) -> list[str]:
        return list(self.methods)

    async def invoke(self, method: str, args: list[Any] | None = None) -> Any:
        func = self.methods.get(method)
        if func is None:
            raise UnknownCapabilityError(self.name, method, self.method_names)
        result = func(*(args or []))
        if inspect.isawaitable(result):
            result = await result
        return result


class CapabilityTable(Mapping[str, CapabilityBinding]):
    """Immutable mapping of capability name to binding."""

    def __init__(self, bindings: Iterable[CapabilityBinding] = ()):
        table: dict[str, CapabilityBinding] = {}
        for binding in bindings:
            if binding.name not in CAPABILITY_NAMES:
                raise ConfigurationError(
                    f"Unknown capability '{binding.name}'. "
                    f"Allowed capabilities: {', '.join(CAPABILITY_NAMES)}"
                )
            if binding.name in table:
                raise ConfigurationError(f"Capability '{binding.name}' is bound twice")
            table[binding.name] = binding
        self._bindings = MappingProxyType(table)

    @classmethod
    def from_facades(cls, facades: Iterable[CapabilityFacade]) -> CapabilityTable:
        return cls(CapabilityBinding(f.name, f.guest_methods()) for f in facades)

    def __getitem__(self, name: str) -> CapabilityBinding:
        return self._bindings[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def manifest(self) -> dict[str, list[str]]:
        """Method names per capability, as sent to the guest runtime."""
        return {name: binding.method_names for name, binding in self._bindings.items()}

    async def dispatch(self, capability: str, method: str, args: list[Any] | None = None) -> Any:
        binding = self._bindings.get(capability)
        if binding is None:
            raise UnknownCapabilityError(capability, None, list(self._bindings))
        return await binding.invoke(method, args)


def encode_result(value: Any) -> str:
    """JSON-encode a capability result, stringifying what JSON cannot hold."""
    return json.dumps(value, default=str)


def rejection_message(error: BaseException) -> str:
    """Text of the rejection a failed capability call produces in the guest."""
    if isinstance(error, CapabilityError):
        return str(error)
    return f"{type(error).__name__}: {error}"
