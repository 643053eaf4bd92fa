# assetdag/graph.py
"""
Dependency graph over logical paths.

Edges point from an asset to what it needs resolved first:
- include: the target's final content is spliced in
- reference to a hashed target: the target's digest is needed for its path

A reference to an unhashed target is checked for existence but is not an
edge, because the target's public path is its logical path.

Traversals are iterative with explicit stacks so deep include chains cannot
exhaust the interpreter's recursion limit.
"""

import heapq
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Set, Tuple

from .asset import Asset, Dependency, DependencyKind, Directive, DirectiveKind
from .errors import AssetError, BuildError, CyclicDependency, UnknownAsset
from .template import parse_directives

logger = logging.getLogger(__name__)

_WHITE, _GRAY, _BLACK = 0, 1, 2


def dependencies_for(path: str, directives: List[Directive],
                     is_registered: Callable[[str], bool],
                     is_hashed: Callable[[str], bool]) -> Tuple[List[Dependency], List[AssetError]]:
    """
    Derive dependency edges from an asset's directives.

    Returns:
        (edges, errors) where edges are deduplicated and sorted by target
        and errors holds one UnknownAsset per unresolved target
    """
    edges: Dict[Tuple[str, DependencyKind], Dependency] = {}
    errors: List[AssetError] = []

    for directive in directives:
        if directive.kind == DirectiveKind.VARIABLE:
            continue

        target = directive.target
        if directive.kind == DirectiveKind.INCLUDE:
            kind = DependencyKind.INCLUDE
        else:
            kind = DependencyKind.REFERENCE

        if not is_registered(target):
            errors.append(UnknownAsset(path, target, kind.value))
            continue
        if kind == DependencyKind.REFERENCE and not is_hashed(target):
            continue
        edges.setdefault((target, kind), Dependency(source=path, target=target, kind=kind))

    ordered = sorted(edges.values(), key=lambda d: (d.target, d.kind.value))
    return ordered, errors


@dataclass
class DependencyGraph:
    """
    Directed graph of assets and their dependency edges.

    Attributes:
        edges: logical_path -> direct dependency edges (sorted by target)
    """
    edges: Dict[str, List[Dependency]] = field(default_factory=dict)

    def add_asset(self, path: str) -> None:
        """Add a node, regardless of whether it has any edges."""
        self.edges.setdefault(path, [])

    def add_dependency(self, dependency: Dependency) -> None:
        self.add_asset(dependency.target)
        deps = self.edges.setdefault(dependency.source, [])
        if dependency not in deps:
            deps.append(dependency)
            deps.sort(key=lambda d: (d.target, d.kind.value))

    def set_dependencies(self, path: str, dependencies: List[Dependency]) -> None:
        """Replace the outgoing edges of an asset (used after a re-parse)."""
        self.edges[path] = []
        for dep in dependencies:
            self.add_dependency(dep)

    def cycle_through(self, path: str) -> Optional[List[str]]:
        """
        Return a cycle starting at `path`, or None if `path` is not on one.

        Breadth-first from `path`, so the shortest such cycle is returned.
        """
        parent: Dict[str, str] = {}
        queue = [path]
        pos = 0
        while pos < len(queue):
            current = queue[pos]
            pos += 1
            for dep in self.edges.get(current, []):
                if dep.target == path:
                    cycle = [current]
                    while cycle[-1] != path:
                        cycle.append(parent[cycle[-1]])
                    return list(reversed(cycle))
                if dep.target not in parent and dep.target != path:
                    parent[dep.target] = current
                    queue.append(dep.target)
        return None

    def __contains__(self, path: str) -> bool:
        return path in self.edges

    def __len__(self) -> int:
        return len(self.edges)

    def dependencies_of(self, path: str) -> List[Dependency]:
        """Direct dependency edges of an asset."""
        return list(self.edges.get(path, []))

    def dependents_of(self, path: str) -> List[Dependency]:
        """Edges pointing at an asset."""
        return [
            dep
            for source in sorted(self.edges)
            for dep in self.edges[source]
            if dep.target == path
        ]

    def closure(self, path: str) -> List[str]:
        """All assets reachable from `path`, itself included, sorted."""
        seen = {path}
        stack = [path]
        while stack:
            current = stack.pop()
            for dep in self.edges.get(current, []):
                if dep.target not in seen:
                    seen.add(dep.target)
                    stack.append(dep.target)
        return sorted(seen)

    def transitive_dependents(self, path: str,
                              kinds: Optional[Set[DependencyKind]] = None) -> List[str]:
        """
        All assets that (transitively) depend on `path` through edges of the
        given kinds. `path` itself is not included.
        """
        reverse: Dict[str, List[str]] = {}
        for source, deps in self.edges.items():
            for dep in deps:
                if kinds is None or dep.kind in kinds:
                    reverse.setdefault(dep.target, []).append(source)

        seen: Set[str] = set()
        stack = [path]
        while stack:
            current = stack.pop()
            for source in reverse.get(current, []):
                if source not in seen and source != path:
                    seen.add(source)
                    stack.append(source)
        return sorted(seen)

    def find_cycles(self) -> List[List[str]]:
        """
        Find cycles with an iterative three-colour depth-first traversal.

        Nodes and neighbours are visited in ascending path order, so the
        result is reproducible. Each cycle is listed once, rotated to start
        at its smallest path.
        """
        paths = sorted(self.edges)
        index = {p: i for i, p in enumerate(paths)}
        adjacency = [
            [index[d.target] for d in self.edges[p] if d.target in index]
            for p in paths
        ]
        color = [_WHITE] * len(paths)
        cycles: List[List[str]] = []
        seen_cycles: Set[Tuple[str, ...]] = set()

        for root in range(len(paths)):
            if color[root] != _WHITE:
                continue
            # Stack of (node, next neighbour position); `trail` mirrors the
            # gray nodes on the current path.
            stack = [(root, 0)]
            trail = [root]
            color[root] = _GRAY
            while stack:
                node, pos = stack[-1]
                if pos < len(adjacency[node]):
                    stack[-1] = (node, pos + 1)
                    nxt = adjacency[node][pos]
                    if color[nxt] == _WHITE:
                        color[nxt] = _GRAY
                        stack.append((nxt, 0))
                        trail.append(nxt)
                    elif color[nxt] == _GRAY:
                        cycle = [paths[i] for i in trail[trail.index(nxt):]]
                        smallest = cycle.index(min(cycle))
                        cycle = cycle[smallest:] + cycle[:smallest]
                        key = tuple(cycle)
                        if key not in seen_cycles:
                            seen_cycles.add(key)
                            cycles.append(cycle)
                else:
                    color[node] = _BLACK
                    stack.pop()
                    trail.pop()

        return cycles

    def topological_order(self) -> List[str]:
        """
        Return assets dependencies-first.

        Among assets whose dependencies are all placed, the smallest
        logical path goes first. Raises CyclicDependency if the graph
        is not acyclic.
        """
        remaining = {p: len({d.target for d in deps}) for p, deps in self.edges.items()}
        dependents: Dict[str, List[str]] = {}
        for source, deps in self.edges.items():
            for target in {d.target for d in deps}:
                dependents.setdefault(target, []).append(source)

        ready = [p for p, n in remaining.items() if n == 0]
        heapq.heapify(ready)
        order = []
        while ready:
            path = heapq.heappop(ready)
            order.append(path)
            for source in dependents.get(path, []):
                remaining[source] -= 1
                if remaining[source] == 0:
                    heapq.heappush(ready, source)

        if len(order) != len(self.edges):
            cycles = self.find_cycles()
            raise CyclicDependency(cycles[0] if cycles else sorted(set(self.edges) - set(order)))
        return order

    def validate(self) -> List[AssetError]:
        """Validate graph structure. Returns list of errors (empty if valid)."""
        return [CyclicDependency(cycle) for cycle in self.find_cycles()]


def build_graph(assets: Mapping[str, Asset],
                is_registered: Callable[[str], bool],
                is_hashed: Callable[[str], bool]) -> DependencyGraph:
    """
    Parse directives of every asset and build the dependency graph.

    Fills in `asset.directives` for each template asset. All syntax errors,
    unknown targets and cycles are collected and raised together.

    Raises:
        BuildError: If any asset has graph errors
    """
    graph = DependencyGraph()
    errors: List[AssetError] = []

    for path in sorted(assets):
        asset = assets[path]
        graph.add_asset(path)
        if not asset.definition.template:
            asset.directives = []
            continue
        try:
            asset.directives = parse_directives(asset.raw_content, path)
        except AssetError as e:
            errors.append(e)
            continue

        deps, dep_errors = dependencies_for(path, asset.directives, is_registered, is_hashed)
        errors.extend(dep_errors)
        for dep in deps:
            graph.add_dependency(dep)

    errors.extend(graph.validate())
    if errors:
        for e in errors:
            logger.error(f"Graph error: {e}")
        raise BuildError(errors)

    logger.debug(f"Built dependency graph: {len(graph)} assets")
    return graph

