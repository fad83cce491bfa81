from __future__ import annotations

from typing import Any, Callable, Optional

Transform = Callable[[Any], Any]


def identity(value: Any) -> Any:
    return value


def compose_functions(f: Optional[Transform], g: Optional[Transform]) -> Transform:
    """
    Compose two optional transformations left-to-right: the result applies `f`, then `g`.

    A missing side is skipped; with neither present the identity is returned.
    """
    if f is not None and g is not None:
        return lambda value: g(f(value))
    if f is not None:
        return f
    if g is not None:
        return g
    return identity
