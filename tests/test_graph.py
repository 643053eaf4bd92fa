# tests/test_graph.py
"""Tests for the dependency graph."""

import pytest

from assetdag.asset import Asset, AssetDef, Dependency, DependencyKind
from assetdag.errors import BuildError, CyclicDependency, TemplateSyntaxError, UnknownAsset
from assetdag.graph import DependencyGraph, build_graph, dependencies_for
from assetdag.template import parse_directives


def include(source, target):
    return Dependency(source, target, DependencyKind.INCLUDE)


def reference(source, target):
    return Dependency(source, target, DependencyKind.REFERENCE)


def make_assets(contents, **options):
    """Create working records from a path -> bytes mapping."""
    return {
        path: Asset(definition=AssetDef(path, content=raw, **options), raw_content=raw)
        for path, raw in contents.items()
    }


def graph_of(*deps, nodes=()):
    graph = DependencyGraph()
    for node in nodes:
        graph.add_asset(node)
    for dep in deps:
        graph.add_dependency(dep)
    return graph


class TestDependenciesFor:
    """Test edge derivation from directives."""

    def test_include_and_reference_edges(self):
        """Test include and hashed reference both become edges."""
        directives = parse_directives(b"{{: include:a.css :}} {{: path:b.png :}}", "x.css")
        deps, errors = dependencies_for("x.css", directives, lambda p: True, lambda p: True)

        assert errors == []
        assert deps == [include("x.css", "a.css"), reference("x.css", "b.png")]

    def test_reference_to_unhashed_is_not_edge(self):
        """Test reference to an unhashed asset produces no edge."""
        directives = parse_directives(b"{{: path:index.html :}}", "x.js")
        deps, errors = dependencies_for("x.js", directives, lambda p: True, lambda p: False)

        assert deps == []
        assert errors == []

    def test_variables_ignored(self):
        """Test variable directives are not edges."""
        directives = parse_directives(b"{{: var:accent :}}", "x.css")
        deps, errors = dependencies_for("x.css", directives, lambda p: False, lambda p: True)

        assert deps == []
        assert errors == []

    def test_unknown_targets_collected(self):
        """Test every unregistered target is reported."""
        directives = parse_directives(
            b"{{: include:missing.css :}} {{: path:gone.png :}}", "x.css"
        )
        deps, errors = dependencies_for("x.css", directives, lambda p: False, lambda p: True)

        assert deps == []
        assert [type(e) for e in errors] == [UnknownAsset, UnknownAsset]
        assert [e.target for e in errors] == ["missing.css", "gone.png"]
        assert errors[1].kind == "reference"

    def test_unknown_unhashed_reference_still_error(self):
        """Test unhashed references must still point at a registered asset."""
        directives = parse_directives(b"{{: path:gone.html :}}", "x.js")
        _, errors = dependencies_for("x.js", directives, lambda p: False, lambda p: False)

        assert len(errors) == 1

    def test_duplicates_collapsed(self):
        """Test repeated directives yield one edge, sorted by target."""
        directives = parse_directives(
            b"{{: include:b :}}{{: include:a :}}{{: include:b :}}", "x"
        )
        deps, _ = dependencies_for("x", directives, lambda p: True, lambda p: True)

        assert deps == [include("x", "a"), include("x", "b")]


class TestDependencyGraph:
    """Test DependencyGraph structure and traversals."""

    def test_add_dependency_adds_nodes(self):
        """Test both ends become nodes."""
        graph = graph_of(include("b", "a"))

        assert "a" in graph
        assert "b" in graph
        assert len(graph) == 2

    def test_dependencies_and_dependents(self):
        """Test direct edge queries."""
        graph = graph_of(include("b", "a"), reference("c", "a"))

        assert graph.dependencies_of("b") == [include("b", "a")]
        assert graph.dependents_of("a") == [include("b", "a"), reference("c", "a")]

    def test_set_dependencies_replaces(self):
        """Test outgoing edges are replaced after a re-parse."""
        graph = graph_of(include("b", "a"))
        graph.set_dependencies("b", [include("b", "c")])

        assert graph.dependencies_of("b") == [include("b", "c")]
        assert graph.dependents_of("a") == []

    def test_closure(self):
        """Test all reachable assets."""
        graph = graph_of(include("c", "b"), include("b", "a"), nodes=["d"])
        assert graph.closure("c") == ["a", "b", "c"]

    def test_transitive_dependents_by_kind(self):
        """Test dependents can be limited to include edges."""
        graph = graph_of(include("b", "a"), include("c", "b"), reference("d", "b"))

        assert graph.transitive_dependents("a") == ["b", "c", "d"]
        assert graph.transitive_dependents("a", {DependencyKind.INCLUDE}) == ["b", "c"]

    def test_topological_order(self):
        """Test dependencies come first."""
        graph = graph_of(include("c", "b"), include("b", "a"))
        assert graph.topological_order() == ["a", "b", "c"]

    def test_topological_order_ties_by_path(self):
        """Test independent assets are ordered by logical path."""
        graph = graph_of(
            include("z.html", "m.css"), reference("z.html", "b.js"),
            nodes=["y.txt", "a.txt"],
        )
        assert graph.topological_order() == ["a.txt", "b.js", "m.css", "y.txt", "z.html"]

    def test_topological_order_deterministic(self):
        """Test insertion order does not affect the result."""
        deps = [include("d", "b"), include("d", "c"), include("b", "a"), include("c", "a")]
        forward = graph_of(*deps).topological_order()
        backward = graph_of(*reversed(deps)).topological_order()

        assert forward == backward == ["a", "b", "c", "d"]

    def test_topological_order_cycle(self):
        """Test ordering a cyclic graph raises."""
        graph = graph_of(include("a", "b"), include("b", "a"))
        with pytest.raises(CyclicDependency):
            graph.topological_order()

    def test_find_cycles_none(self):
        """Test an acyclic diamond has no cycles."""
        graph = graph_of(include("a", "b"), include("a", "c"), include("b", "d"), include("c", "d"))
        assert graph.find_cycles() == []

    def test_find_direct_cycle(self):
        """Test two assets including each other."""
        graph = graph_of(include("b", "a"), include("a", "b"))
        assert graph.find_cycles() == [["a", "b"]]

    def test_find_indirect_cycle(self):
        """Test a cycle through three assets, rotated to its smallest path."""
        graph = graph_of(include("c", "a"), include("a", "b"), include("b", "c"), nodes=["x"])
        assert graph.find_cycles() == [["a", "b", "c"]]

    def test_find_self_cycle(self):
        """Test an asset including itself."""
        graph = graph_of(include("a", "a"))
        assert graph.find_cycles() == [["a"]]

    def test_find_cycle_through_reference(self):
        """Test hashed references participate in cycles."""
        graph = graph_of(reference("a.css", "b.css"), reference("b.css", "a.css"))
        assert graph.find_cycles() == [["a.css", "b.css"]]

    def test_find_separate_cycles(self):
        """Test each distinct cycle is reported."""
        graph = graph_of(
            include("a", "b"), include("b", "a"),
            include("x", "y"), include("y", "x"),
        )
        assert graph.find_cycles() == [["a", "b"], ["x", "y"]]

    def test_deep_chain(self):
        """Test long include chains do not recurse."""
        deps = [include(f"n{i:05d}", f"n{i + 1:05d}") for i in range(5000)]
        graph = graph_of(*deps)

        assert graph.find_cycles() == []
        assert graph.topological_order()[0] == "n05000"

    def test_cycle_through(self):
        """Test the cycle through one asset is found."""
        graph = graph_of(include("a", "b"), include("b", "c"), include("c", "a"), include("c", "d"))

        assert graph.cycle_through("b") == ["b", "c", "a"]
        assert graph.cycle_through("d") is None

    def test_validate(self):
        """Test validate reports cycles as errors."""
        graph = graph_of(include("a", "b"), include("b", "a"))
        errors = graph.validate()

        assert len(errors) == 1
        assert errors[0].cycle == ["a", "b"]


class TestBuildGraph:
    """Test build_graph over working records."""

    def test_build_graph(self):
        """Test directives are parsed and edges added."""
        assets = make_assets({
            "a.txt": b"hello",
            "b.txt": b"{{: include:a.txt :}} world",
        })
        graph = build_graph(assets, assets.__contains__, lambda p: True)

        assert graph.dependencies_of("b.txt") == [include("b.txt", "a.txt")]
        assert graph.topological_order() == ["a.txt", "b.txt"]
        assert assets["b.txt"].directives[0].target == "a.txt"

    def test_non_template_not_scanned(self):
        """Test template=False assets are never parsed."""
        assets = make_assets({"raw.bin": b"{{: include:nowhere :}}"}, template=False)
        graph = build_graph(assets, assets.__contains__, lambda p: True)

        assert graph.dependencies_of("raw.bin") == []

    def test_unhashed_mutual_references(self):
        """Test unhashed assets may reference each other."""
        assets = make_assets({
            "x.html": b"{{: path:y.html :}}",
            "y.html": b"{{: path:x.html :}}",
        })
        graph = build_graph(assets, assets.__contains__, lambda p: False)

        assert graph.topological_order() == ["x.html", "y.html"]

    def test_errors_collected(self):
        """Test all graph errors are raised together."""
        assets = make_assets({
            "a": b"{{: include:b :}}",
            "b": b"{{: include:a :}}",
            "c": b"{{: include:missing :}}",
            "d": b"{{: bogus:x :}}",
        })
        with pytest.raises(BuildError) as exc_info:
            build_graph(assets, assets.__contains__, lambda p: True)

        kinds = sorted(type(e).__name__ for e in exc_info.value.errors)
        assert kinds == ["CyclicDependency", "TemplateSyntaxError", "UnknownAsset"]

    def test_single_error_still_wrapped(self):
        """Test a single graph error is wrapped in BuildError."""
        assets = make_assets({"a": b"{{: bogus:x :}}"})
        with pytest.raises(BuildError) as exc_info:
            build_graph(assets, assets.__contains__, lambda p: True)

        assert isinstance(exc_info.value.errors[0], TemplateSyntaxError)
