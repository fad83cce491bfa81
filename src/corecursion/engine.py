# corecursion/engine.py
from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any, Optional, cast

from corecursion._compat import Self
from corecursion.contracts import (
    FrozenInstanceError,
    IncompleteVariantImplementation,
    InvalidCallback,
    InvalidDeclarationShape,
    InvalidHandler,
    InvalidObserverName,
    InvalidTypeArguments,
    InvalidVariantName,
    ObserverKind,
    UnknownObserverHandler,
    Variant,
)
from corecursion.invariants import (
    UNFOLD_CHECKS,
    CheckId,
    CheckOutcome,
    DeclarationCheckContext,
    check_observer_name,
    first_failure,
    run_checks,
)
from corecursion.markers import TypeParameter, resolve_markers
from corecursion.registry import ObserverRegistry, VariantRegistry, codata_observers

logger = logging.getLogger(__name__)

VariantFactory = Callable[..., "CodataInstance"]


# ------------------------------------------------------------------------------
# Instances
# ------------------------------------------------------------------------------


class _ContinuationCell:
    """One-shot slot for a continuation observer of a single instance."""

    __slots__ = ("_transition", "_seed", "_lock", "_resolved", "_child")

    def __init__(self, transition: Callable[[Any], Any], seed: Any) -> None:
        self._transition = transition
        self._seed = seed
        self._lock = threading.Lock()
        self._resolved = False
        self._child: Optional[CodataInstance] = None

    @property
    def resolved(self) -> bool:
        return self._resolved

    def resolve(self, build: Callable[[Any], CodataInstance]) -> CodataInstance:
        if not self._resolved:
            with self._lock:
                if not self._resolved:
                    # A raising transition leaves the cell unresolved.
                    self._child = build(self._transition(self._seed))
                    self._resolved = True
        return cast(CodataInstance, self._child)


class CodataInstance:
    """
    One observable value produced by a variant factory.

    Simple and parametric observers are plain attributes computed when the
    instance is built. Continuation observers build the next instance on first
    read and return that same child on every later read.
    """

    __slots__ = ("_codata_type", "_variant", "_seed", "_values", "_cells")

    def __init__(self, codata_type: CodataType, variant: Variant, seed: Any) -> None:
        values: dict[str, Any] = {}
        cells: dict[str, _ContinuationCell] = {}
        for name, descriptor in codata_type.observers.items():
            transition = variant.transition(name)
            if descriptor.kind is ObserverKind.CONTINUATION:
                cells[name] = _ContinuationCell(transition, seed)
            else:
                values[name] = transition(seed)

        object.__setattr__(self, "_codata_type", codata_type)
        object.__setattr__(self, "_variant", variant)
        object.__setattr__(self, "_seed", seed)
        object.__setattr__(self, "_values", values)
        object.__setattr__(self, "_cells", cells)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        if name in self._values:
            return self._values[name]
        cell = self._cells.get(name)
        if cell is None:
            raise AttributeError(f"{self._label()} has no observer '{name}'")
        if not cell.resolved:
            logger.debug("resolving continuation %s.%s", self._label(), name)
        return cell.resolve(self._build_next)

    def __setattr__(self, name: str, value: Any) -> None:
        raise FrozenInstanceError(f"Cannot set property '{name}' on codata instance {self._label()}")

    def __delattr__(self, name: str) -> None:
        raise FrozenInstanceError(f"Cannot delete property '{name}' on codata instance {self._label()}")

    def __dir__(self) -> list[str]:
        return sorted(set(super().__dir__()) | set(self._codata_type.observers))

    def __repr__(self) -> str:
        parts = [f"{name}={value!r}" for name, value in self._values.items()]
        parts.extend(f"{name}=<lazy>" for name, cell in self._cells.items() if not cell.resolved)
        return f"{self._label()}({', '.join(parts)})"

    def __copy__(self) -> CodataInstance:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> CodataInstance:
        return self

    def _label(self) -> str:
        try:
            return f"{self._codata_type.name}.{self._variant.name}"
        except AttributeError:
            return type(self).__name__

    def _build_next(self, seed: Any) -> CodataInstance:
        return build_instance(self._codata_type, self._variant, seed)


def build_instance(codata_type: CodataType, variant: Variant, seed: Any) -> CodataInstance:
    """Materialize one instance of `variant` from `seed`; transition errors propagate unchanged."""
    return CodataInstance(codata_type, variant, seed)


def seed_of(instance: CodataInstance) -> Any:
    return instance._seed


def variant_of(instance: CodataInstance) -> Variant:
    return instance._variant


def codata_type_of(instance: CodataInstance) -> CodataType:
    return instance._codata_type


# ------------------------------------------------------------------------------
# Codata types
# ------------------------------------------------------------------------------


def _raise_for(outcome: CheckOutcome, variant_name: str) -> None:
    offending = outcome.offending or ""
    if outcome.check_id is CheckId.VARIANT_NAME_PASCAL_CASE:
        raise InvalidVariantName(variant_name)
    if outcome.check_id is CheckId.IMPLEMENTATION_COMPLETENESS:
        raise IncompleteVariantImplementation(variant_name, offending)
    if outcome.check_id is CheckId.IMPLEMENTATION_CLOSURE:
        raise UnknownObserverHandler(variant_name, offending)
    if outcome.check_id is CheckId.HANDLER_CALLABLE:
        raise InvalidHandler(variant_name, offending)
    raise AssertionError(f"unmapped check failure: {outcome.check_id}")


def _make_factory(codata_type: CodataType, variant: Variant) -> VariantFactory:
    def factory(seed: Any = None) -> CodataInstance:
        return build_instance(codata_type, variant, seed)

    factory.__name__ = variant.name
    factory.__qualname__ = f"{codata_type.name}.{variant.name}"
    factory.__doc__ = f"Build a {codata_type.name} instance with the '{variant.name}' unfold."
    setattr(factory, "variant", variant)
    return factory


class CodataType:
    """
    Identity of a coinductive type: its observer registry plus named unfolds.

    Variant factories are exposed as attributes named after the variant, so
    `Stream.unfold("From", ...)` makes `Stream.From(seed)` available.
    """

    def __init__(
        self,
        *,
        name: str,
        observers: ObserverRegistry,
        type_parameters: tuple[TypeParameter, ...] = (),
    ) -> None:
        self.name = name
        self._observers = observers
        self._variants = VariantRegistry()
        self._type_parameters = type_parameters

    @property
    def observers(self) -> ObserverRegistry:
        return self._observers

    @property
    def variants(self) -> VariantRegistry:
        return self._variants

    @property
    def type_parameters(self) -> tuple[TypeParameter, ...]:
        return self._type_parameters

    @property
    def type_parameter_names(self) -> tuple[str, ...]:
        return tuple(p.name for p in self._type_parameters)

    def unfold(
        self,
        variant_name: str,
        signature_fn: Callable[[Any], Any],
        implementation: Mapping[str, Callable[[Any], Any]],
    ) -> Self:
        self._register_variant(variant_name, signature_fn, implementation, signature_subject=self)
        return self

    def factory(self, variant_name: str) -> VariantFactory:
        if variant_name not in self._variants:
            raise KeyError(f"{self.name} has no unfold operation '{variant_name}'")
        return getattr(self, variant_name)

    def _register_variant(
        self,
        variant_name: str,
        signature_fn: Callable[[Any], Any],
        implementation: Mapping[str, Callable[[Any], Any]],
        *,
        signature_subject: Any,
    ) -> Variant:
        name_failure = first_failure(
            run_checks((CheckId.VARIANT_NAME_PASCAL_CASE,), DeclarationCheckContext(variant_name=variant_name))
        )
        if name_failure is not None:
            _raise_for(name_failure, variant_name)

        if not callable(signature_fn):
            raise InvalidCallback(
                f"unfold('{variant_name}') requires a signature function: lambda T: {{'in': ..., 'out': T}}"
            )
        if not isinstance(implementation, Mapping):
            raise InvalidDeclarationShape(
                f"unfold('{variant_name}') implementation must be a mapping of observer name to handler"
            )

        ctx = DeclarationCheckContext(
            variant_name=variant_name,
            observer_names=tuple(self._observers),
            implementation=implementation,
        )
        failure = first_failure(run_checks(UNFOLD_CHECKS, ctx))
        if failure is not None:
            _raise_for(failure, variant_name)

        # Recorded as-is; signatures document a variant and are never validated.
        signature = signature_fn(signature_subject)
        variant = Variant(name=variant_name, signature=signature, implementation=dict(implementation))
        previous = self._variants.register(variant)
        if previous is not None:
            logger.warning("unfold operation %s.%s redefined; replacing previous variant", self.name, variant_name)
        else:
            logger.debug("registered unfold operation %s.%s", self.name, variant_name)
        self.__dict__[variant_name] = _make_factory(self, variant)
        return variant

    def __call__(self, *type_args: Any, **named_type_args: Any) -> CodataType | ParameterizedCodataType:
        if not type_args and not named_type_args:
            return self
        return ParameterizedCodataType(self, self._bind_type_arguments(type_args, named_type_args))

    def _bind_type_arguments(self, type_args: tuple[Any, ...], named: Mapping[str, Any]) -> dict[str, Any]:
        names = self.type_parameter_names
        if len(type_args) > len(names):
            raise InvalidTypeArguments(
                f"{self.name} declares {len(names)} type parameter(s) {names}, got {len(type_args)} positional argument(s)"
            )
        bound = dict(zip(names, type_args))
        for key, value in named.items():
            if key not in names:
                raise InvalidTypeArguments(f"{self.name} has no type parameter '{key}'")
            if key in bound:
                raise InvalidTypeArguments(f"{self.name} type parameter '{key}' bound twice")
            bound[key] = value
        return bound

    def __repr__(self) -> str:
        params = f"({', '.join(self.type_parameter_names)})" if self._type_parameters else ""
        return f"<codata {self.name}{params} observers=[{', '.join(self._observers)}] variants=[{', '.join(self._variants)}]>"


class ParameterizedCodataType:
    """
    A codata type with type arguments bound for documentation.

    Shares the origin's registries, so variants registered through either are
    visible through both.
    """

    def __init__(self, origin: CodataType, type_arguments: Mapping[str, Any]) -> None:
        self.origin = origin
        self.type_arguments = dict(type_arguments)
        codata_observers[self] = origin.observers

    @property
    def name(self) -> str:
        return self.origin.name

    @property
    def observers(self) -> ObserverRegistry:
        return self.origin.observers

    @property
    def variants(self) -> VariantRegistry:
        return self.origin.variants

    def unfold(
        self,
        variant_name: str,
        signature_fn: Callable[[Any], Any],
        implementation: Mapping[str, Callable[[Any], Any]],
    ) -> Self:
        self.origin._register_variant(variant_name, signature_fn, implementation, signature_subject=self)
        return self

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return getattr(self.origin, name)

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={getattr(v, '__name__', v)!s}" for k, v in self.type_arguments.items())
        return f"<codata {self.name}[{args}]>"


# ------------------------------------------------------------------------------
# Declaration
# ------------------------------------------------------------------------------


def _declared_name(callback: Callable[..., Any], name: Optional[str]) -> str:
    if name:
        return name
    candidate = getattr(callback, "__name__", "")
    if candidate and candidate.isidentifier():
        return candidate
    return "Codata"


def codata(callback: Callable[..., Mapping[str, Any]], *, name: Optional[str] = None) -> CodataType:
    """
    Declare a codata type from its observers.

    The parameter named `Self` receives the Self marker and every other
    parameter a type-parameter marker named after it:

        Stream = codata(lambda Self, T: {"head": T, "tail": Self(T)}, name="Stream")

    Without a `Self` parameter the first parameter takes the marker, so
    `lambda T, U: {...}` binds `T` to Self.

    Values equal to the Self marker (bare or called) declare continuations,
    mappings with "in" and/or "out" declare parametric observers, and anything
    else declares a simple observer.
    """
    if not callable(callback):
        raise InvalidCallback("codata() requires a callback function: codata(lambda Self, T: {...observers})")

    markers = resolve_markers(callback)
    declaration = callback(*markers.args, **markers.kwargs)
    if not isinstance(declaration, Mapping):
        raise InvalidDeclarationShape("codata() callback must return a mapping of observer definitions")

    for key in declaration:
        outcome = check_observer_name(DeclarationCheckContext(observer_key=key))
        if not outcome.passed:
            raise InvalidObserverName(key)

    observers = ObserverRegistry.from_declaration(declaration, self_ref=markers.self_ref)
    codata_type = CodataType(
        name=_declared_name(callback, name),
        observers=observers,
        type_parameters=markers.type_parameters,
    )
    codata_observers[codata_type] = observers
    logger.debug("declared codata %r", codata_type)
    return codata_type
