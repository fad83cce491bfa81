# corecursion/contracts.py
from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from corecursion._compat import StrEnum

# ------------------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------------------


class CodataError(Exception):
    """Base class for every declaration or registration failure raised by the engine."""


class InvalidCallback(CodataError, TypeError):
    """Raised when a declaration or signature callback is not invocable."""


class InvalidDeclarationShape(CodataError, TypeError):
    """Raised when a declaration callback does not produce a mapping of observers."""


class InvalidObserverName(CodataError, ValueError):
    def __init__(self, key: object) -> None:
        self.key = key
        super().__init__(
            f"Observer '{key}' must be camelCase (start with lowercase letter, no underscore prefix)"
        )


class InvalidVariantName(CodataError, ValueError):
    def __init__(self, variant_name: object) -> None:
        self.variant_name = variant_name
        super().__init__(f"Unfold operation '{variant_name}' must be PascalCase")


class IncompleteVariantImplementation(CodataError, ValueError):
    def __init__(self, variant_name: str, observer_name: str) -> None:
        self.variant_name = variant_name
        self.observer_name = observer_name
        super().__init__(
            f"Unfold operation '{variant_name}' missing handler for observer '{observer_name}'"
        )


class UnknownObserverHandler(CodataError, ValueError):
    def __init__(self, variant_name: str, observer_name: str) -> None:
        self.variant_name = variant_name
        self.observer_name = observer_name
        super().__init__(
            f"Unfold operation '{variant_name}' defines a handler for undeclared observer '{observer_name}'"
        )


class InvalidHandler(CodataError, TypeError):
    def __init__(self, variant_name: str, observer_name: str) -> None:
        self.variant_name = variant_name
        self.observer_name = observer_name
        super().__init__(
            f"Handler for observer '{observer_name}' in unfold operation '{variant_name}' must be a function"
        )


class InvalidTypeArguments(CodataError, TypeError):
    """Raised when a codata type is parameterized with arguments it does not declare."""


class FrozenInstanceError(CodataError, AttributeError):
    """Raised on any attempt to assign or delete an attribute of a codata instance."""


class InvalidOperation(CodataError, ValueError):
    """Raised when an operation descriptor is malformed or cannot be composed."""


# ------------------------------------------------------------------------------
# Shared BaseModel config helpers
# ------------------------------------------------------------------------------

_IMMUTABLE_CONTRACT_CONFIG = ConfigDict(
    extra="forbid",
    use_enum_values=False,  # keep enums as enums in Python
    frozen=True,
    arbitrary_types_allowed=True,
)

# ------------------------------------------------------------------------------
# Observers
# ------------------------------------------------------------------------------


class ObserverKind(StrEnum):
    SIMPLE = "simple"
    PARAMETRIC = "parametric"
    CONTINUATION = "continuation"


Arity = Literal["none", "one"]


class ObserverDescriptor(BaseModel):
    """
    One declared observation point of a codata type.

    `spec` keeps the declared type tokens verbatim. They document the observer
    and are never checked against observed values.
    """

    model_config = _IMMUTABLE_CONTRACT_CONFIG
    name: str
    kind: ObserverKind
    spec: Any = None
    arity: Arity = "none"

    @property
    def is_simple(self) -> bool:
        return self.kind is ObserverKind.SIMPLE

    @property
    def is_parametric(self) -> bool:
        return self.kind is ObserverKind.PARAMETRIC

    @property
    def is_continuation(self) -> bool:
        return self.kind is ObserverKind.CONTINUATION

    @property
    def in_spec(self) -> Any:
        if self.is_parametric:
            return self.spec.get("in")
        return None

    @property
    def out_spec(self) -> Any:
        if self.is_parametric:
            return self.spec.get("out")
        return self.spec


# ------------------------------------------------------------------------------
# Variants
# ------------------------------------------------------------------------------

Transition = Callable[[Any], Any]


class Variant(BaseModel):
    """A named unfold: one transition function per declared observer."""

    model_config = _IMMUTABLE_CONTRACT_CONFIG
    name: str
    signature: Any = None
    implementation: Mapping[str, Transition] = Field(default_factory=dict)

    def transition(self, observer_name: str) -> Transition:
        return self.implementation[observer_name]
