from __future__ import annotations

import importlib.metadata
import importlib.util
from pathlib import Path

import lapis

ROOT = Path(__file__).resolve().parents[1]
MODULE_PATH = ROOT / "src" / "lapis" / "__init__.py"


def test_lapis_version_falls_back_when_version_module_is_absent(monkeypatch) -> None:
    spec = importlib.util.spec_from_file_location("lapis_init_under_test", MODULE_PATH)
    assert spec and spec.loader

    module = importlib.util.module_from_spec(spec)

    def _raise_not_found(_: str) -> str:
        raise importlib.metadata.PackageNotFoundError

    monkeypatch.setattr(importlib.metadata, "version", _raise_not_found)

    spec.loader.exec_module(module)

    assert module.__version__ == "0+unknown"


def test_lapis_reexports_the_codata_surface() -> None:
    Stream = lapis.codata(lambda Self, T: {"head": T, "tail": Self(T)}, name="Stream").unfold(
        "From", lambda Stream: {"in": int, "out": Stream}, {"head": lambda n: n, "tail": lambda n: n + 1}
    )

    assert isinstance(Stream, lapis.CodataType)
    assert isinstance(Stream.From(0), lapis.CodataInstance)
    assert lapis.codata_observers[Stream]["tail"].is_continuation
    assert set(lapis.__all__) <= set(dir(lapis))
