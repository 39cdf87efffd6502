"""Typed call and event definitions.

The hubs dispatch by plain string names. Definitions pair a name with
pydantic types so both sides of the channel agree on payload shapes.

Usage:
    Sum = define_call("sum", SumParams, int)

    coordinator.on(Sum, lambda params: params.a + params.b)
    total = await worker.call(Sum, SumParams(a=2, b=3))

    TrackChanged = define_event("track.changed", TrackInfo)
    await coordinator.send_to_all(TrackChanged, TrackInfo(title="..."))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, TypeAdapter

P = TypeVar("P")
R = TypeVar("R")


def _dump(adapter: TypeAdapter[Any] | None, value: Any) -> Any:
    if adapter is None:
        return value
    return adapter.dump_python(value, mode="json")


@dataclass(frozen=True)
class CallDefinition(Generic[P, R]):
    """Typed definition of a worker -> coordinator call."""

    name: str
    params: type[P] | None = None
    result: type[R] | None = None
    _params_adapter: TypeAdapter[Any] | None = field(default=None, repr=False, compare=False)
    _result_adapter: TypeAdapter[Any] | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.params is not None:
            object.__setattr__(self, "_params_adapter", TypeAdapter(self.params))
        if self.result is not None:
            object.__setattr__(self, "_result_adapter", TypeAdapter(self.result))

    def dump_params(self, params: Any) -> Any:
        """Validate then dump the payload for the wire."""
        if self._params_adapter is None:
            return params
        if not isinstance(params, BaseModel):
            params = self._params_adapter.validate_python(params)
        return _dump(self._params_adapter, params)

    def load_params(self, data: Any) -> Any:
        if self._params_adapter is None:
            return data
        return self._params_adapter.validate_python(data)

    def dump_result(self, result: Any) -> Any:
        return _dump(self._result_adapter, result)

    def load_result(self, data: Any) -> Any:
        if self._result_adapter is None:
            return data
        return self._result_adapter.validate_python(data)


@dataclass(frozen=True)
class EventDefinition(Generic[P]):
    """Typed definition of a coordinator -> worker broadcast."""

    name: str
    payload: type[P] | None = None
    _adapter: TypeAdapter[Any] | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.payload is not None:
            object.__setattr__(self, "_adapter", TypeAdapter(self.payload))

    def dump(self, payload: Any) -> Any:
        if self._adapter is None:
            return payload
        if not isinstance(payload, BaseModel):
            payload = self._adapter.validate_python(payload)
        return _dump(self._adapter, payload)

    def load(self, data: Any) -> Any:
        if self._adapter is None:
            return data
        return self._adapter.validate_python(data)


def define_call(
    name: str, params: type[P] | None = None, result: type[R] | None = None
) -> CallDefinition[P, R]:
    """Define a typed call.

    Args:
        name: Call name used on the wire
        params: Type the payload is validated against (usually a BaseModel)
        result: Type the handler's result is validated against

    Returns:
        CallDefinition usable with ``CoordinatorHub.on`` and ``WorkerHub.call``
    """
    return CallDefinition(name=name, params=params, result=result)


def define_event(name: str, payload: type[P] | None = None) -> EventDefinition[P]:
    """Define a typed broadcast event."""
    return EventDefinition(name=name, payload=payload)
