from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol

_CAMEL_CASE = re.compile(r"[a-z][A-Za-z0-9]*")
_PASCAL_CASE = re.compile(r"[A-Z][A-Za-z0-9]*")


class CheckId(str, Enum):
    OBSERVER_NAME_CAMEL_CASE = "observer_name_camel_case.v1"
    VARIANT_NAME_PASCAL_CASE = "variant_name_pascal_case.v1"
    IMPLEMENTATION_COMPLETENESS = "implementation_completeness.v1"
    IMPLEMENTATION_CLOSURE = "implementation_closure.v1"
    HANDLER_CALLABLE = "handler_callable.v1"


@dataclass(frozen=True)
class CheckOutcome:
    check_id: CheckId
    passed: bool
    code: str
    reason: str
    offending: Optional[str] = None
    details: Mapping[str, Any] = field(default_factory=dict)


class DeclarationContext(Protocol):
    observer_key: Optional[object]
    variant_name: Optional[object]
    observer_names: Sequence[str]
    implementation: Mapping[str, Any]


@dataclass(frozen=True)
class DeclarationCheckContext:
    observer_key: Optional[object] = None
    variant_name: Optional[object] = None
    observer_names: Sequence[str] = ()
    implementation: Mapping[str, Any] = field(default_factory=dict)


Checker = Callable[[DeclarationContext], CheckOutcome]


def is_camel_case(name: object) -> bool:
    return isinstance(name, str) and _CAMEL_CASE.fullmatch(name) is not None


def is_pascal_case(name: object) -> bool:
    return isinstance(name, str) and _PASCAL_CASE.fullmatch(name) is not None


def _ok(check_id: CheckId, code: str, details: Optional[Mapping[str, Any]] = None) -> CheckOutcome:
    return CheckOutcome(check_id=check_id, passed=True, code=code, reason=code, details=dict(details or {}))


def check_observer_name(ctx: DeclarationContext) -> CheckOutcome:
    key = ctx.observer_key
    if is_camel_case(key):
        return _ok(CheckId.OBSERVER_NAME_CAMEL_CASE, "observer_name_valid", {"key": key})
    return CheckOutcome(
        check_id=CheckId.OBSERVER_NAME_CAMEL_CASE,
        passed=False,
        code="observer_name_not_camel_case",
        reason="Observer names must start with a lowercase letter and contain only letters and digits.",
        offending=str(key),
        details={"key": key},
    )


def check_variant_name(ctx: DeclarationContext) -> CheckOutcome:
    name = ctx.variant_name
    if is_pascal_case(name):
        return _ok(CheckId.VARIANT_NAME_PASCAL_CASE, "variant_name_valid", {"variant": name})
    return CheckOutcome(
        check_id=CheckId.VARIANT_NAME_PASCAL_CASE,
        passed=False,
        code="variant_name_not_pascal_case",
        reason="Unfold operation names must start with an uppercase letter and contain only letters and digits.",
        offending=str(name),
        details={"variant": name},
    )


def check_implementation_completeness(ctx: DeclarationContext) -> CheckOutcome:
    missing = [name for name in ctx.observer_names if name not in ctx.implementation]
    if not missing:
        return _ok(CheckId.IMPLEMENTATION_COMPLETENESS, "implementation_complete")
    return CheckOutcome(
        check_id=CheckId.IMPLEMENTATION_COMPLETENESS,
        passed=False,
        code="missing_handler",
        reason="Every declared observer needs a transition function.",
        offending=missing[0],
        details={"missing": tuple(missing)},
    )


def check_implementation_closure(ctx: DeclarationContext) -> CheckOutcome:
    declared = set(ctx.observer_names)
    unknown = [str(name) for name in ctx.implementation if name not in declared]
    if not unknown:
        return _ok(CheckId.IMPLEMENTATION_CLOSURE, "implementation_closed")
    return CheckOutcome(
        check_id=CheckId.IMPLEMENTATION_CLOSURE,
        passed=False,
        code="unknown_handler",
        reason="Transition functions may only be given for declared observers.",
        offending=unknown[0],
        details={"unknown": tuple(unknown)},
    )


def check_handlers_callable(ctx: DeclarationContext) -> CheckOutcome:
    not_callable = [name for name in ctx.observer_names if name in ctx.implementation and not callable(ctx.implementation[name])]
    if not not_callable:
        return _ok(CheckId.HANDLER_CALLABLE, "handlers_callable")
    return CheckOutcome(
        check_id=CheckId.HANDLER_CALLABLE,
        passed=False,
        code="handler_not_callable",
        reason="Transition functions must be callable.",
        offending=not_callable[0],
        details={"not_callable": tuple(not_callable)},
    )


REGISTRY: dict[CheckId, Checker] = {
    CheckId.OBSERVER_NAME_CAMEL_CASE: check_observer_name,
    CheckId.VARIANT_NAME_PASCAL_CASE: check_variant_name,
    CheckId.IMPLEMENTATION_COMPLETENESS: check_implementation_completeness,
    CheckId.IMPLEMENTATION_CLOSURE: check_implementation_closure,
    CheckId.HANDLER_CALLABLE: check_handlers_callable,
}

# Order in which unfold() validates an implementation once the variant name
# has passed; the first failure wins.
UNFOLD_CHECKS: tuple[CheckId, ...] = (
    CheckId.IMPLEMENTATION_COMPLETENESS,
    CheckId.IMPLEMENTATION_CLOSURE,
    CheckId.HANDLER_CALLABLE,
)


def run_checks(check_ids: Sequence[CheckId], ctx: DeclarationContext) -> list[CheckOutcome]:
    return [REGISTRY[check_id](ctx) for check_id in check_ids]


def first_failure(outcomes: Sequence[CheckOutcome]) -> Optional[CheckOutcome]:
    for outcome in outcomes:
        if not outcome.passed:
            return outcome
    return None
