from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from corecursion.engine import CodataType, codata


@pytest.fixture
def make_stream() -> Callable[..., CodataType]:
    def _make_stream(*, with_nth: bool = False, name: str = "Stream") -> CodataType:
        if with_nth:
            return codata(lambda Self, T: {"head": T, "nth": {"in": int, "out": T}, "tail": Self(T)}, name=name)
        return codata(lambda Self, T: {"head": T, "tail": Self(T)}, name=name)

    return _make_stream


@pytest.fixture
def naturals(make_stream: Callable[..., CodataType]) -> CodataType:
    return make_stream().unfold(
        "From",
        lambda Stream: {"in": int, "out": Stream},
        {
            "head": lambda n: n,
            "tail": lambda n: n + 1,
        },
    )


@pytest.fixture
def counting_handlers() -> Callable[..., tuple[dict[str, Callable[[Any], Any]], dict[str, int]]]:
    """Build head/tail handlers for a naturals stream that count their own calls."""

    def _counting_handlers(*, step: int = 1) -> tuple[dict[str, Callable[[Any], Any]], dict[str, int]]:
        calls = {"head": 0, "tail": 0}

        def head(n: int) -> int:
            calls["head"] += 1
            return n

        def tail(n: int) -> int:
            calls["tail"] += 1
            return n + step

        return {"head": head, "tail": tail}, calls

    return _counting_handlers
