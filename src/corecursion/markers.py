# corecursion/markers.py
from __future__ import annotations

import inspect
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from corecursion.contracts import InvalidCallback, ObserverKind


class SelfReference:
    """
    Marker for "the codata type being declared".

    Usable bare (`Self`) or called (`Self(T)`); calling discards its arguments
    and returns the same marker.
    """

    __slots__ = ()

    def __call__(self, *_type_args: Any) -> SelfReference:
        return self

    def __repr__(self) -> str:
        return "Self"


@dataclass(frozen=True, eq=False)
class TypeParameter:
    """Erased generic parameter; only its name is kept, for documentation."""

    name: str

    def __repr__(self) -> str:
        return self.name


@dataclass(frozen=True)
class DeclarationMarkers:
    self_ref: SelfReference
    type_parameters: tuple[TypeParameter, ...]
    args: tuple[Any, ...]
    kwargs: Mapping[str, Any]

    @property
    def type_parameter_names(self) -> tuple[str, ...]:
        return tuple(p.name for p in self.type_parameters)


_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
SELF_PARAMETER = "Self"


def resolve_markers(callback: Callable[..., Any]) -> DeclarationMarkers:
    """
    Bind the callback's formal parameters to markers, in declaration order.

    A parameter named `Self` receives the Self marker, or the first parameter
    when none is so named. Every other parameter gets a fresh TypeParameter
    carrying its own name.
    """
    try:
        params = list(inspect.signature(callback).parameters.values())
    except (TypeError, ValueError) as exc:
        raise InvalidCallback(f"codata() cannot inspect the parameters of {callback!r}") from exc

    for param in params:
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            raise InvalidCallback(
                f"codata() callback parameters must be named, got variadic '{param.name}'"
            )

    self_index = next((i for i, p in enumerate(params) if p.name == SELF_PARAMETER), 0)
    self_ref = SelfReference()
    type_parameters: list[TypeParameter] = []
    args: list[Any] = []
    kwargs: dict[str, Any] = {}
    for index, param in enumerate(params):
        marker: Any
        if index == self_index:
            marker = self_ref
        else:
            marker = TypeParameter(param.name)
            type_parameters.append(marker)
        if param.kind in _POSITIONAL:
            args.append(marker)
        else:
            kwargs[param.name] = marker

    return DeclarationMarkers(
        self_ref=self_ref,
        type_parameters=tuple(type_parameters),
        args=tuple(args),
        kwargs=kwargs,
    )


def is_self_reference(value: Any) -> bool:
    return isinstance(value, SelfReference)


def is_parametric_spec(value: Any) -> bool:
    return isinstance(value, Mapping) and ("in" in value or "out" in value)


def classify_observer(spec: Any, self_ref: SelfReference | None = None) -> ObserverKind:
    # A declaration only treats its own Self marker as a continuation.
    continuation = spec is self_ref if self_ref is not None else is_self_reference(spec)
    if continuation:
        return ObserverKind.CONTINUATION
    if is_parametric_spec(spec):
        return ObserverKind.PARAMETRIC
    return ObserverKind.SIMPLE
