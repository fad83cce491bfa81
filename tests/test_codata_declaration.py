from __future__ import annotations

from typing import Any

import pytest

from corecursion.contracts import (
    InvalidCallback,
    InvalidDeclarationShape,
    InvalidObserverName,
    ObserverKind,
)
from corecursion.engine import CodataType, codata
from corecursion.markers import SelfReference, TypeParameter
from corecursion.registry import codata_observers


def _assert_exclusive_flags(codata_type: CodataType) -> None:
    for descriptor in codata_type.observers.values():
        flags = (descriptor.is_simple, descriptor.is_parametric, descriptor.is_continuation)
        assert sum(flags) == 1, descriptor.name


def test_simple_observers_are_registered_in_declaration_order() -> None:
    Point = codata(lambda Self: {"x": float, "y": float}, name="Point")

    observers = codata_observers[Point]
    assert observers is Point.observers
    assert list(observers) == ["x", "y"]
    assert len(observers) == 2

    x = observers["x"]
    assert x.name == "x"
    assert x.is_simple is True
    assert x.is_parametric is False
    assert x.is_continuation is False
    assert x.spec is float
    _assert_exclusive_flags(Point)


def test_bare_and_called_self_both_declare_continuations() -> None:
    Bare = codata(lambda Self, T: {"head": T, "tail": Self})
    Called = codata(lambda Self, T: {"head": T, "tail": Self(T)})
    Multi = codata(lambda Self, T, U: {"first": T, "rest": Self(T, U)})

    for codata_type, name in ((Bare, "tail"), (Called, "tail"), (Multi, "rest")):
        descriptor = codata_type.observers[name]
        assert descriptor.kind is ObserverKind.CONTINUATION
        assert descriptor.is_simple is False
        _assert_exclusive_flags(codata_type)


def test_parametric_observers_record_in_and_out_specs() -> None:
    Console = codata(
        lambda Self: {
            "log": {"in": str, "out": None},
            "read": {"out": str},
            "write": {"in": {"msg": str, "level": int}, "out": bool},
            "sink": {"in": bytes},
        }
    )

    log = Console.observers["log"]
    read = Console.observers["read"]
    sink = Console.observers["sink"]
    assert log.is_parametric and read.is_parametric and sink.is_parametric
    assert log.arity == "one"
    assert read.arity == "none"
    assert sink.arity == "one"
    assert read.in_spec is None
    assert read.out_spec is str
    assert Console.observers["write"].in_spec == {"msg": str, "level": int}
    _assert_exclusive_flags(Console)


def test_mapping_without_in_or_out_is_a_simple_observer() -> None:
    Record = codata(lambda Self: {"meta": {"kind": str}})

    assert Record.observers["meta"].is_simple


def test_mixed_observer_kinds() -> None:
    Mixed = codata(
        lambda Self, T: {
            "simpleField": int,
            "parametricMethod": {"in": str, "out": bool},
            "continuation": Self(T),
        }
    )

    assert len(Mixed.observers) == 3
    assert Mixed.observers["simpleField"].is_simple
    assert Mixed.observers["parametricMethod"].is_parametric
    assert Mixed.observers["continuation"].is_continuation
    assert Mixed.observers.continuation_names == ("continuation",)
    assert [d.name for d in Mixed.observers.of_kind(ObserverKind.SIMPLE)] == ["simpleField"]


def test_self_marker_of_another_declaration_is_not_a_continuation() -> None:
    captured: list[Any] = []

    def other(Self: SelfReference) -> dict[str, Any]:
        captured.append(Self)
        return {"value": int}

    codata(other)
    Holder = codata(lambda Self: {"foreign": captured[0], "own": Self})

    assert Holder.observers["foreign"].is_simple
    assert Holder.observers["own"].is_continuation


def test_type_parameter_names_follow_callback_parameters() -> None:
    Pair = codata(lambda Self, T, U: {"first": T, "second": U})
    Custom = codata(lambda Self, ItemType: {"current": ItemType, "next": Self(ItemType)})

    assert Pair.type_parameter_names == ("T", "U")
    assert Custom.type_parameter_names == ("ItemType",)
    first = Pair.observers["first"].spec
    assert isinstance(first, TypeParameter)
    assert first.name == "T"
    assert first is not Pair.observers["second"].spec


def test_parameter_named_self_receives_the_self_marker_in_any_position() -> None:
    Pair = codata(lambda T, U, Self: {"first": T, "second": U, "swapped": Self(U, T)}, name="Pair")
    Pair.unfold(
        "Create",
        lambda Pair: {"in": {"x": int, "y": str}, "out": Pair},
        {
            "first": lambda seed: seed["x"],
            "second": lambda seed: seed["y"],
            "swapped": lambda seed: {"x": seed["y"], "y": seed["x"]},
        },
    )

    pair = Pair.Create({"x": 42, "y": "hello"})

    assert Pair.type_parameter_names == ("T", "U")
    assert Pair.observers["first"].is_simple
    assert Pair.observers["swapped"].is_continuation
    assert pair.first == 42
    assert pair.swapped.first == "hello"


def test_first_parameter_is_self_when_none_is_named_self() -> None:
    Pair = codata(lambda T, U: {"first": T, "second": U})

    assert Pair.type_parameter_names == ("U",)
    assert Pair.observers["first"].is_continuation
    assert Pair.observers["second"].is_simple


def test_keyword_only_type_parameters_receive_markers() -> None:
    def declare(Self: SelfReference, *, Key: TypeParameter, Value: TypeParameter) -> dict[str, Any]:
        return {"key": Key, "value": Value, "rest": Self}

    Entries = codata(declare)

    assert Entries.name == "declare"
    assert Entries.type_parameter_names == ("Key", "Value")
    assert Entries.observers["rest"].is_continuation


def test_callback_without_parameters_is_called_without_markers() -> None:
    Constant = codata(lambda: {"value": int}, name="Constant")

    assert Constant.type_parameters == ()
    assert Constant.observers["value"].is_simple


def test_lambda_declarations_get_a_default_name() -> None:
    assert codata(lambda Self: {"x": int}).name == "Codata"
    assert codata(lambda Self: {"x": int}, name="Point").name == "Point"


@pytest.mark.parametrize("bad_key", ["Head", "_head", "head_value", "head-value", "", "1st"])
def test_non_camel_case_observer_names_are_rejected(bad_key: str) -> None:
    with pytest.raises(InvalidObserverName, match=f"Observer '{bad_key}' must be camelCase") as excinfo:
        codata(lambda Self: {"ok": int, bad_key: int})

    assert excinfo.value.key == bad_key
    assert isinstance(excinfo.value, ValueError)


def test_non_string_observer_keys_are_rejected() -> None:
    with pytest.raises(InvalidObserverName) as excinfo:
        codata(lambda Self: {1: int})

    assert excinfo.value.key == 1


@pytest.mark.parametrize("bad_callback", [None, {"head": int}, 42, "head"])
def test_non_callable_declarations_are_rejected(bad_callback: Any) -> None:
    with pytest.raises(InvalidCallback, match=r"codata\(\) requires a callback function"):
        codata(bad_callback)


def test_variadic_callbacks_are_rejected() -> None:
    with pytest.raises(InvalidCallback, match="variadic"):
        codata(lambda *markers: {"x": int})


@pytest.mark.parametrize("result", [None, 42, "head", ["head"]])
def test_callbacks_must_return_a_mapping(result: Any) -> None:
    with pytest.raises(InvalidDeclarationShape, match="callback must return a mapping"):
        codata(lambda Self: result)


def test_callback_errors_propagate_unchanged() -> None:
    boom = RuntimeError("declaration failed")

    def declare(Self: SelfReference) -> dict[str, Any]:
        raise boom

    with pytest.raises(RuntimeError) as excinfo:
        codata(declare)

    assert excinfo.value is boom


def test_each_declaration_gets_its_own_registry() -> None:
    A = codata(lambda Self: {"x": int})
    B = codata(lambda Self: {"y": int})

    assert list(codata_observers[A]) == ["x"]
    assert list(codata_observers[B]) == ["y"]
    assert "variants=[]" in repr(A)
