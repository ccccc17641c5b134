from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from pathlib import Path

import pytest

import xdrgen


def _reachable(roots: Iterable[str], types: Mapping[str, xdrgen.TypeDescriptor]) -> set[str]:
    seen: set[str] = set()
    frontier = list(roots)
    while frontier:
        name = frontier.pop()
        if name in seen:
            continue
        seen.add(name)
        frontier.extend(types[name].dependencies)
    return seen


def _names(rendered: tuple[xdrgen.RenderedType, ...]) -> list[str]:
    return [r.name for r in rendered]


@pytest.fixture
def scenario_registry(make_registry: Callable[..., xdrgen.TypeRegistry]) -> xdrgen.TypeRegistry:
    return make_registry(
        {
            "A": ("struct", ("B",)),
            "B": ("enum", ()),
            "C": ("alias", ("B",)),
        }
    )


def test_t_01_struct_root_pulls_in_enum_but_not_unrelated_alias(
    scenario_registry: xdrgen.TypeRegistry,
) -> None:
    rendered, stats = xdrgen.resolve_closure(["A"], scenario_registry.types)

    assert _names(rendered) == ["A", "B"]
    assert stats.root_count == 1
    assert stats.emitted_count == 2
    assert stats.added_types == frozenset({"B"})


def test_t_02_alias_root_pulls_in_its_target(
    scenario_registry: xdrgen.TypeRegistry,
) -> None:
    rendered, _stats = xdrgen.resolve_closure(["C"], scenario_registry.types)

    assert _names(rendered) == ["C", "B"]
    assert "impl XdrCodec" not in rendered[0].source
    assert "impl XdrCodec for B" in rendered[1].source


def test_t_03_roots_are_processed_last_in_first_out(
    make_registry: Callable[..., xdrgen.TypeRegistry],
) -> None:
    registry = make_registry({"A": ("enum", ()), "B": ("enum", ()), "C": ("enum", ())})

    rendered, _stats = xdrgen.resolve_closure(["A", "B", "C"], registry.types)

    assert _names(rendered) == ["C", "B", "A"]


def test_t_04_emission_follows_discovery_not_dependency_order(
    fixture_registry_path: Path,
) -> None:
    registry = xdrgen.load_registry(fixture_registry_path)

    rendered, stats = xdrgen.resolve_closure(["Asset"], registry.types)

    # Asset is emitted before the types it references.
    assert _names(rendered) == [
        "Asset",
        "AlphaNum4",
        "AccountId",
        "AssetCode4",
        "AssetType",
    ]
    assert stats.added_types == frozenset(
        {"AlphaNum4", "AccountId", "AssetCode4", "AssetType"}
    )


def test_t_05_all_roots_in_registry_order_does_not_requeue_pending_deps(
    fixture_registry_path: Path,
) -> None:
    registry = xdrgen.load_registry(fixture_registry_path)

    rendered, stats = xdrgen.resolve_closure(list(registry.types), registry.types)

    assert _names(rendered) == [
        "String28",
        "Asset",
        "AlphaNum4",
        "AccountId",
        "AssetCode4",
        "AssetType",
    ]
    assert stats.added_types == frozenset()


@pytest.mark.parametrize(
    "roots",
    [["Top"], ["Left"], ["Right", "Leaf"], ["Leaf"], ["Top", "Left", "Right", "Leaf"]],
)
def test_t_06_closure_is_complete_and_duplicate_free_on_diamond(
    make_registry: Callable[..., xdrgen.TypeRegistry], roots: list[str]
) -> None:
    registry = make_registry(
        {
            "Top": ("struct", ("Left", "Right")),
            "Left": ("union", ("Leaf",)),
            "Right": ("struct", ("Leaf",)),
            "Leaf": ("enum", ()),
            "Unused": ("struct", ("Leaf",)),
        }
    )

    rendered, _stats = xdrgen.resolve_closure(roots, registry.types)
    names = _names(rendered)

    assert len(names) == len(set(names))
    assert set(names) == _reachable(roots, registry.types)


def test_t_07_each_type_is_rendered_exactly_once(
    make_registry: Callable[..., xdrgen.TypeRegistry],
) -> None:
    registry = make_registry(
        {
            "A": ("struct", ("Shared", "B")),
            "B": ("struct", ("Shared",)),
            "Shared": ("enum", ()),
        }
    )
    calls: list[str] = []

    def _render(name: str, descriptor: xdrgen.TypeDescriptor) -> str:
        calls.append(name)
        return xdrgen.emit_type(name, descriptor)

    xdrgen.resolve_closure(["A", "B", "Shared"], registry.types, render=_render)

    assert sorted(calls) == ["A", "B", "Shared"]


def test_t_08_type_is_rendered_before_its_dependencies_are_inspected(
    make_registry: Callable[..., xdrgen.TypeRegistry],
) -> None:
    registry = make_registry({"A": ("struct", ("B",)), "B": ("enum", ())})
    events: list[tuple[str, str]] = []

    def _render(name: str, _descriptor: xdrgen.TypeDescriptor) -> str:
        events.append(("render", name))
        return ""

    def _deps(descriptor: xdrgen.TypeDescriptor) -> tuple[str, ...]:
        events.append(("deps", descriptor.definition))
        return descriptor.dependencies

    xdrgen.resolve_closure(["A"], registry.types, render=_render, dependencies=_deps)

    assert events == [
        ("render", "A"),
        ("deps", "pub struct A {}"),
        ("render", "B"),
        ("deps", "pub enum B {}"),
    ]


def test_t_09_mutual_reference_cycle_terminates(
    make_registry: Callable[..., xdrgen.TypeRegistry],
) -> None:
    registry = make_registry({"A": ("struct", ("B",)), "B": ("union", ("A",))})

    rendered, _stats = xdrgen.resolve_closure(["A"], registry.types)

    assert _names(rendered) == ["A", "B"]


def test_t_10_self_reference_terminates(
    make_registry: Callable[..., xdrgen.TypeRegistry],
) -> None:
    registry = make_registry({"Node": ("struct", ("Node", "Leaf")), "Leaf": ("enum", ())})

    rendered, _stats = xdrgen.resolve_closure(["Node"], registry.types)

    assert _names(rendered) == ["Node", "Leaf"]


def test_t_11_duplicate_roots_are_rendered_once(
    make_registry: Callable[..., xdrgen.TypeRegistry],
) -> None:
    registry = make_registry({"A": ("enum", ()), "B": ("enum", ())})

    rendered, stats = xdrgen.resolve_closure(["A", "B", "A"], registry.types)

    assert _names(rendered) == ["B", "A"]
    assert stats.root_count == 2


def test_t_12_empty_root_set_renders_nothing(
    scenario_registry: xdrgen.TypeRegistry,
) -> None:
    rendered, stats = xdrgen.resolve_closure([], scenario_registry.types)

    assert rendered == ()
    assert stats == xdrgen.ResolutionStats(
        root_count=0, emitted_count=0, added_types=frozenset()
    )


def test_t_13_unknown_root_raises_without_referrer(
    scenario_registry: xdrgen.TypeRegistry,
) -> None:
    with pytest.raises(xdrgen.UnknownTypeError) as exc_info:
        xdrgen.resolve_closure(["Missing"], scenario_registry.types)

    assert exc_info.value.type_name == "Missing"
    assert exc_info.value.referenced_by is None


def test_t_14_unknown_dependency_names_the_referencing_type(
    make_registry: Callable[..., xdrgen.TypeRegistry],
) -> None:
    registry = make_registry({"A": ("struct", ("Ghost",))})

    with pytest.raises(xdrgen.UnknownTypeError) as exc_info:
        xdrgen.resolve_closure(["A"], registry.types)

    assert exc_info.value.type_name == "Ghost"
    assert exc_info.value.referenced_by == "A"
    assert "referenced by 'A'" in str(exc_info.value)


def test_t_15_unrecognized_kind_propagates_from_render(
    make_registry: Callable[..., xdrgen.TypeRegistry],
) -> None:
    registry = make_registry({"A": ("struct", ("B",)), "B": ("bitfield", ())})

    with pytest.raises(xdrgen.UnrecognizedKindError):
        xdrgen.resolve_closure(["A"], registry.types)


def test_t_16_resolution_state_push_enforces_membership_invariant() -> None:
    state = xdrgen.ResolutionState()

    assert state.push("A") is True
    assert state.push("A") is False
    assert state.pop() == "A"
    state.emitted.add("A")
    assert state.push("A") is False
    assert state.pending == []


def test_t_17_repeated_runs_are_identical(fixture_registry_path: Path) -> None:
    registry = xdrgen.load_registry(fixture_registry_path)

    first, _ = xdrgen.resolve_closure(list(registry.types), registry.types)
    second, _ = xdrgen.resolve_closure(list(registry.types), registry.types)

    assert first == second
