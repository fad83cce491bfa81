"""
Lapis distribution import namespace.

This package re-exports the public surface of the core `corecursion` package
so that codata types can be declared with a single import.
"""

from importlib.metadata import PackageNotFoundError, version

# src/lapis/__init__.py
from corecursion.contracts import (
    CodataError,
    FrozenInstanceError,
    IncompleteVariantImplementation,
    InvalidCallback,
    InvalidDeclarationShape,
    InvalidHandler,
    InvalidObserverName,
    InvalidOperation,
    InvalidTypeArguments,
    InvalidVariantName,
    ObserverDescriptor,
    ObserverKind,
    UnknownObserverHandler,
    Variant,
)
from corecursion.engine import (
    CodataInstance,
    CodataType,
    ParameterizedCodataType,
    codata,
    codata_type_of,
    seed_of,
    variant_of,
)
from corecursion.markers import SelfReference, TypeParameter
from corecursion.operations import (
    OperationDescriptor,
    OperationType,
    codata_operations,
    compose_many_operations,
    compose_operations,
    create_fold_operation,
    create_operation,
    operations_for,
    register_operation,
)
from corecursion.registry import ObserverRegistry, VariantRegistry, codata_observers
from corecursion.utils import compose_functions

try:
    from ._version import __version__  # canonical
except ImportError:  # pragma: no cover - fallback for editable/local non-built environments
    try:
        __version__ = version("lapis-codata")
    except PackageNotFoundError:
        __version__ = "0+unknown"

__all__ = [
    "CodataError",
    "CodataInstance",
    "CodataType",
    "FrozenInstanceError",
    "IncompleteVariantImplementation",
    "InvalidCallback",
    "InvalidDeclarationShape",
    "InvalidHandler",
    "InvalidObserverName",
    "InvalidOperation",
    "InvalidTypeArguments",
    "InvalidVariantName",
    "ObserverDescriptor",
    "ObserverKind",
    "ObserverRegistry",
    "OperationDescriptor",
    "OperationType",
    "ParameterizedCodataType",
    "SelfReference",
    "TypeParameter",
    "UnknownObserverHandler",
    "Variant",
    "VariantRegistry",
    "__version__",
    "codata",
    "codata_observers",
    "codata_operations",
    "codata_type_of",
    "compose_functions",
    "compose_many_operations",
    "compose_operations",
    "create_fold_operation",
    "create_operation",
    "operations_for",
    "register_operation",
    "seed_of",
    "variant_of",
]
