# corecursion/registry.py
from __future__ import annotations

import weakref
from collections.abc import Iterable, Iterator, Mapping
from typing import TYPE_CHECKING, Any, Optional

from corecursion.contracts import ObserverDescriptor, ObserverKind, Variant
from corecursion.markers import SelfReference, classify_observer

if TYPE_CHECKING:
    from corecursion.engine import CodataType


class ObserverRegistry(Mapping[str, ObserverDescriptor]):
    """Ordered, read-only mapping from observer name to its descriptor."""

    def __init__(self, descriptors: Iterable[ObserverDescriptor] = ()) -> None:
        self._descriptors: dict[str, ObserverDescriptor] = {d.name: d for d in descriptors}

    @classmethod
    def from_declaration(
        cls, declaration: Mapping[str, Any], *, self_ref: Optional[SelfReference] = None
    ) -> ObserverRegistry:
        descriptors = []
        for name, spec in declaration.items():
            kind = classify_observer(spec, self_ref)
            arity = "one" if kind is ObserverKind.PARAMETRIC and "in" in spec else "none"
            descriptors.append(ObserverDescriptor(name=name, kind=kind, spec=spec, arity=arity))
        return cls(descriptors)

    def __getitem__(self, name: str) -> ObserverDescriptor:
        return self._descriptors[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __repr__(self) -> str:
        inner = ", ".join(f"{name}={d.kind.value}" for name, d in self._descriptors.items())
        return f"ObserverRegistry({inner})"

    def of_kind(self, kind: ObserverKind) -> tuple[ObserverDescriptor, ...]:
        return tuple(d for d in self._descriptors.values() if d.kind is kind)

    @property
    def continuation_names(self) -> tuple[str, ...]:
        return tuple(d.name for d in self.of_kind(ObserverKind.CONTINUATION))


class VariantRegistry(Mapping[str, Variant]):
    """
    Named unfold variants of one codata type.

    Grows through `register` only; registering an existing name replaces the
    previous variant and hands it back to the caller.
    """

    def __init__(self) -> None:
        self._variants: dict[str, Variant] = {}

    def register(self, variant: Variant) -> Optional[Variant]:
        previous = self._variants.get(variant.name)
        self._variants[variant.name] = variant
        return previous

    def __getitem__(self, name: str) -> Variant:
        return self._variants[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._variants)

    def __len__(self) -> int:
        return len(self._variants)

    def __repr__(self) -> str:
        return f"VariantRegistry({', '.join(self._variants)})"


# Process-wide association from a codata type to its observer registry.
codata_observers: weakref.WeakKeyDictionary[CodataType, ObserverRegistry] = weakref.WeakKeyDictionary()
