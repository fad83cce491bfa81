# corecursion/operations.py
"""
Descriptors for operations over codata (unfold, fold, map, merge).

A descriptor records what an operation contributes: a seed generator, fold
cases, or observer/atom transforms. Descriptors compose so that a pipeline
such as unfold -> map -> fold can be described as a single fused operation.
Running such a pipeline over instances is not handled here.
"""
from __future__ import annotations

import logging
import weakref
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict

from corecursion._compat import StrEnum
from corecursion.contracts import InvalidOperation
from corecursion.engine import CodataType, ParameterizedCodataType
from corecursion.utils import compose_functions

logger = logging.getLogger(__name__)


class OperationType(StrEnum):
    UNFOLD = "unfold"
    FOLD = "fold"
    MAP = "map"
    MERGE = "merge"


TransformFactory = Callable[[Any], Callable[[Any], Any]]

_OPERATION_CONFIG = ConfigDict(
    extra="forbid",
    frozen=True,
    arbitrary_types_allowed=True,
)


class OperationDescriptor(BaseModel):
    model_config = _OPERATION_CONFIG
    name: str
    type: OperationType
    in_spec: Any = None
    out_spec: Any = None
    cases: Optional[Mapping[str, Callable[..., Any]]] = None
    generator: Optional[Callable[..., Any]] = None
    get_observer_transform: Optional[TransformFactory] = None
    get_atom_transform: Optional[TransformFactory] = None


def _require_fold_cases(name: str, cases: Any) -> None:
    if not isinstance(cases, Mapping):
        raise InvalidOperation(
            f"Operation '{name}' is a fold operation but missing required 'cases' mapping with Done and Step handlers"
        )
    if not callable(cases.get("Done")):
        raise InvalidOperation(
            f"Operation '{name}' is a fold operation but missing required 'Done' case (termination predicate)"
        )
    if not callable(cases.get("Step")):
        raise InvalidOperation(
            f"Operation '{name}' is a fold operation but missing required 'Step' case (observation step)"
        )


def create_operation(
    *,
    name: Optional[str] = None,
    type: Union[OperationType, str, None] = None,
    in_spec: Any = None,
    out_spec: Any = None,
    cases: Optional[Mapping[str, Callable[..., Any]]] = None,
    generator: Optional[Callable[..., Any]] = None,
    get_observer_transform: Optional[TransformFactory] = None,
    get_atom_transform: Optional[TransformFactory] = None,
) -> OperationDescriptor:
    if not name:
        raise InvalidOperation("Operation must have a name")
    if not type:
        raise InvalidOperation(f"Operation '{name}' must specify a type: 'unfold', 'fold', 'map', or 'merge'")
    try:
        op_type = OperationType(type)
    except ValueError:
        valid = ", ".join(t.value for t in OperationType)
        raise InvalidOperation(f"Operation '{name}' has invalid type '{type}'. Must be one of: {valid}") from None

    if generator is None and cases is None and get_observer_transform is None and get_atom_transform is None:
        raise InvalidOperation(
            f"Operation '{name}' must provide at least one of: generator, cases, get_observer_transform, or get_atom_transform"
        )
    if op_type is OperationType.FOLD:
        _require_fold_cases(name, cases)

    return OperationDescriptor(
        name=name,
        type=op_type,
        in_spec=in_spec,
        out_spec=out_spec,
        cases=cases,
        generator=generator,
        get_observer_transform=get_observer_transform,
        get_atom_transform=get_atom_transform,
    )


def create_fold_operation(
    name: str,
    cases: Mapping[str, Callable[..., Any]],
    out_spec: Any = None,
    in_spec: Any = None,
) -> OperationDescriptor:
    """
    Fold over a possibly infinite structure with bounded consumption.

    `Done` decides when to stop consuming; `Step` performs one observation.
    """
    if not isinstance(cases, Mapping):
        raise InvalidOperation(f"Fold operation '{name}' requires cases mapping with Done and Step handlers")
    _require_fold_cases(name, cases)
    return create_operation(name=name, type=OperationType.FOLD, out_spec=out_spec, in_spec=in_spec, cases=cases)


def _merged_type(
    *,
    cases: Any,
    generator: Any,
    observer_transform: Any,
) -> OperationType:
    # fold > unfold > map > merge
    if cases is not None:
        return OperationType.FOLD
    if generator is not None:
        return OperationType.UNFOLD
    if observer_transform is not None:
        return OperationType.MAP
    return OperationType.MERGE


def _compose_transform_factories(
    first: Optional[TransformFactory], second: Optional[TransformFactory]
) -> Optional[TransformFactory]:
    if first is not None and second is not None:
        return lambda subject: compose_functions(first(subject), second(subject))
    return first or second


def compose_operations(first: OperationDescriptor, second: OperationDescriptor) -> OperationDescriptor:
    if first.generator is not None and second.generator is not None:
        raise InvalidOperation(
            f"Cannot compose operations '{first.name}' and '{second.name}': both have generators (only one unfold allowed)"
        )
    if first.cases is not None and second.cases is not None:
        raise InvalidOperation(
            f"Cannot compose operations '{first.name}' and '{second.name}': both have fold cases (only one fold allowed)"
        )

    cases = first.cases if first.cases is not None else second.cases
    generator = first.generator if first.generator is not None else second.generator
    observer_transform = _compose_transform_factories(first.get_observer_transform, second.get_observer_transform)
    atom_transform = _compose_transform_factories(first.get_atom_transform, second.get_atom_transform)

    in_spec = (first.in_spec if first.generator is not None else second.in_spec) or first.in_spec or second.in_spec
    out_spec = second.out_spec or first.out_spec

    return create_operation(
        name=f"{first.name}_{second.name}",
        type=_merged_type(cases=cases, generator=generator, observer_transform=observer_transform),
        in_spec=in_spec,
        out_spec=out_spec,
        cases=cases,
        generator=generator,
        get_observer_transform=observer_transform,
        get_atom_transform=atom_transform,
    )


def compose_many_operations(operations: Sequence[OperationDescriptor], merge_name: str) -> OperationDescriptor:
    """
    Fuse `operations` left-to-right into one descriptor named `merge_name`.

    At most one operation may carry a generator and at most one may carry fold
    cases. The fused input spec comes from the generating operation and the
    output spec from the last operation that declares one.
    """
    if not operations:
        raise InvalidOperation("Cannot compose empty operation sequence")

    if len(operations) == 1:
        return operations[0].model_copy(update={"name": merge_name})

    generators = [op.name for op in operations if op.generator is not None]
    folds = [op.name for op in operations if op.cases is not None]
    if len(generators) > 1:
        names = ", ".join(f"'{n}'" for n in generators)
        raise InvalidOperation(
            f"Cannot merge operations: multiple unfolds detected ({names}). Only one unfold operation is allowed per merge."
        )
    if len(folds) > 1:
        names = ", ".join(f"'{n}'" for n in folds)
        raise InvalidOperation(
            f"Cannot merge operations: multiple folds detected ({names}). Only one fold operation is allowed per merge."
        )

    composed = operations[0]
    for op in operations[1:]:
        composed = compose_operations(composed, op)

    first_generating = next((op for op in operations if op.generator is not None), None)
    last_with_out = next((op for op in reversed(operations) if op.out_spec is not None), None)

    return create_operation(
        name=merge_name,
        type=_merged_type(
            cases=composed.cases,
            generator=composed.generator,
            observer_transform=composed.get_observer_transform,
        ),
        in_spec=first_generating.in_spec if first_generating is not None else None,
        out_spec=last_with_out.out_spec if last_with_out is not None else None,
        cases=composed.cases,
        generator=composed.generator,
        get_observer_transform=composed.get_observer_transform,
        get_atom_transform=composed.get_atom_transform,
    )


# Process-wide association from a codata type to its named operation descriptors.
codata_operations: weakref.WeakKeyDictionary[CodataType, dict[str, OperationDescriptor]] = weakref.WeakKeyDictionary()


def register_operation(
    codata_type: Union[CodataType, ParameterizedCodataType], operation: OperationDescriptor
) -> OperationDescriptor:
    origin = codata_type.origin if isinstance(codata_type, ParameterizedCodataType) else codata_type
    registry = codata_operations.setdefault(origin, {})
    if operation.name in registry:
        logger.warning("operation %s.%s redefined", origin.name, operation.name)
    registry[operation.name] = operation
    return operation


def operations_for(codata_type: Union[CodataType, ParameterizedCodataType]) -> Mapping[str, OperationDescriptor]:
    origin = codata_type.origin if isinstance(codata_type, ParameterizedCodataType) else codata_type
    return dict(codata_operations.get(origin, {}))
