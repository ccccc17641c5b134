import argparse
import json
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

GENERATOR_DIR = Path(__file__).resolve().parent.parent
if str(GENERATOR_DIR) not in sys.path:
    sys.path.insert(0, str(GENERATOR_DIR))

import xdrgen  # noqa: E402

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture
def fixture_registry_path() -> Path:
    return FIXTURES_DIR / "registry_minimal.json"


@pytest.fixture
def existing_paths(tmp_path: Path) -> dict[str, Path]:
    registry = tmp_path / "registry.json"
    registry.write_text('{"constants": {}, "types": {}}\n', encoding="utf-8")

    output_dir = tmp_path / "out"
    return {
        "registry": registry,
        "static_dir": xdrgen.DEFAULT_STATIC_DIR,
        "output_dir": output_dir,
    }


@pytest.fixture
def make_args(existing_paths: dict[str, Path]) -> Callable[..., argparse.Namespace]:
    def _make_args(**overrides: object) -> argparse.Namespace:
        base_args: dict[str, object] = {
            "registry": existing_paths["registry"],
            "output_dir": existing_paths["output_dir"],
            "profile": "std",
            "types": None,
            "main_file_name": None,
            "static_dir": existing_paths["static_dir"],
            "list_types": False,
            "info": None,
            "filter": None,
        }
        base_args.update(overrides)
        return argparse.Namespace(**base_args)

    return _make_args


@pytest.fixture
def make_descriptor() -> Callable[..., xdrgen.TypeDescriptor]:
    def _make_descriptor(
        kind: str,
        *,
        deps: tuple[str, ...] = (),
        definition: str | None = None,
        implementation: str = "\n    // codec",
        reference: str = "",
    ) -> xdrgen.TypeDescriptor:
        return xdrgen.TypeDescriptor(
            kind=kind,
            definition="pub struct Placeholder;" if definition is None else definition,
            implementation=implementation,
            reference=reference,
            dependencies=deps,
        )

    return _make_descriptor


@pytest.fixture
def make_registry(
    make_descriptor: Callable[..., xdrgen.TypeDescriptor],
) -> Callable[..., xdrgen.TypeRegistry]:
    """Build a registry from a compact {name: (kind, deps)} graph."""

    def _make_registry(
        graph: dict[str, tuple[str, tuple[str, ...]]],
        constants: dict[str, int] | None = None,
    ) -> xdrgen.TypeRegistry:
        types = {}
        for name, (kind, deps) in graph.items():
            if kind == "alias":
                reference = deps[0] if deps else "u32"
                types[name] = make_descriptor(kind, deps=deps, reference=reference)
            else:
                types[name] = make_descriptor(
                    kind, deps=deps, definition=f"pub {kind} {name} {{}}"
                )
        return xdrgen.TypeRegistry(
            types=types, constants={} if constants is None else constants
        )

    return _make_registry


@pytest.fixture
def write_registry(tmp_path: Path) -> Callable[[object], Path]:
    def _write_registry(document: object, name: str = "registry.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(document), encoding="utf-8")
        return path

    return _write_registry
