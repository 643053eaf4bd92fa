# assetdag/lazy.py
"""
Lazy resolver: resolve assets on demand and cache the results.

Each asset moves through Unresolved -> Resolving -> Resolved. Concurrent
requests for the same asset share one in-flight resolution, and a
dependency is resolved through the same mechanism, so a diamond
(A includes B and C, both include D) resolves D once.

Staleness comes from outside: either the `is_stale` hook returns True for
a cached asset, or the host calls `invalidate`. Invalidating an asset
drops it and every asset that transitively includes it. Assets that only
reference it keep their cache entry but are re-checked on next access:
they are re-rendered only if a dependency's digest actually changed.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from .asset import Asset, Dependency, DependencyKind, ResolvedAsset
from .codecs import CompressFunction, HashFunction
from .config import Config
from .errors import AssetError, CyclicDependency, NotFound
from .graph import DependencyGraph
from .pipeline import Pipeline, ProgressCallback
from .singleflight import SingleFlight
from .store import ContentStore

logger = logging.getLogger(__name__)

# Host hook: return True if a cached asset's source has changed.
StalenessCheck = Callable[[str, ResolvedAsset], bool]


class AssetState(Enum):
    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    RESOLVED = "resolved"


@dataclass
class CacheEntry:
    """A resolved asset plus what is needed to re-check it."""
    asset: Asset
    resolved: ResolvedAsset
    created_at: float = field(default_factory=time.time)
    needs_check: bool = False


@dataclass
class ResolverStats:
    """Statistics about lazy resolution."""
    hits: int = 0
    misses: int = 0
    resolutions: int = 0
    invalidations: int = 0
    hit_rate: float = 0.0

    def record_hit(self):
        self.hits += 1
        self._update_rate()

    def record_miss(self):
        self.misses += 1
        self._update_rate()

    def _update_rate(self):
        total = self.hits + self.misses
        self.hit_rate = self.hits / total if total > 0 else 0.0


class LazyResolver:
    """
    Per-request resolver with a single-flight guard per logical path.

    Usage:
        resolver = LazyResolver(store, Config(mode="lazy"))
        asset = await resolver.resolve("index.html")
        resolver.invalidate("style.css")   # e.g. from a file watcher
    """

    def __init__(self, store: ContentStore, config: Config,
                 hash_fn: Optional[HashFunction] = None,
                 compress_fn: Optional[CompressFunction] = None,
                 is_stale: Optional[StalenessCheck] = None,
                 progress_callback: Optional[ProgressCallback] = None):
        self.pipeline = Pipeline(store, config, hash_fn=hash_fn, compress_fn=compress_fn)
        self.pipeline.set_progress_callback(progress_callback)
        self.store = store
        self.stats = ResolverStats()
        self._is_stale = is_stale
        self._entries: Dict[str, CacheEntry] = {}
        self._by_public: Dict[str, str] = {}
        self._flights: SingleFlight[ResolvedAsset] = SingleFlight()
        # Holds edges of Resolving and Resolved assets only.
        self._graph = DependencyGraph()
        self._invalidate_on_completion: Set[str] = set()

    def state(self, logical_path: str) -> AssetState:
        if self._flights.in_flight(logical_path):
            return AssetState.RESOLVING
        if logical_path in self._entries:
            return AssetState.RESOLVED
        return AssetState.UNRESOLVED

    def cached(self, logical_path: str) -> Optional[ResolvedAsset]:
        """The cached result for an asset, without resolving or checking it."""
        entry = self._entries.get(logical_path)
        return entry.resolved if entry is not None else None

    async def resolve(self, logical_path: str) -> ResolvedAsset:
        """
        Resolve an asset, reusing the cache when it is still valid.

        Raises:
            NotFound: If the path is not registered
            AssetError: Any error resolving the asset or its dependencies
        """
        self.store.get(logical_path)

        entry = self._entries.get(logical_path)
        if entry is not None and not self._flights.in_flight(logical_path):
            if self._is_stale is not None:
                self._invalidate_stale(logical_path)
                entry = self._entries.get(logical_path)
            if entry is not None and not entry.needs_check:
                self.stats.record_hit()
                self.pipeline.report(logical_path, "cached")
                return entry.resolved

        self.stats.record_miss()
        return await self._flights.do(logical_path, lambda: self._run(logical_path))

    def _invalidate_stale(self, logical_path: str):
        """Run the is_stale hook over every cached asset reachable from `logical_path`."""
        for path in self._graph.closure(logical_path):
            entry = self._entries.get(path)
            if entry is None or self._flights.in_flight(path):
                continue
            if self._check_stale(path, entry.resolved):
                self.invalidate(path)

    def _check_stale(self, logical_path: str, resolved: ResolvedAsset) -> bool:
        try:
            return bool(self._is_stale(logical_path, resolved))
        except Exception as e:
            logger.warning(f"Staleness check for {logical_path} failed, treating as stale: {e}")
            return True

    def logical_for_public(self, public_path: str) -> Optional[str]:
        """
        Map a public path to a logical path: either it is a logical path, or
        a public path produced by the latest resolution of some asset.
        """
        if public_path in self.store:
            return public_path
        return self._by_public.get(public_path)

    async def resolve_public(self, public_path: str) -> ResolvedAsset:
        """Resolve by public path. Raises NotFound if the path is outdated."""
        logical_path = self.logical_for_public(public_path)
        if logical_path is None:
            raise NotFound(public_path)
        resolved = await self.resolve(logical_path)
        if logical_path == public_path:
            return resolved
        if resolved.public_path != public_path:
            raise NotFound(public_path)
        return resolved

    async def _run(self, path: str) -> ResolvedAsset:
        self.pipeline.report(path, "pending")
        try:
            resolved = await self._resolve_uncached(path)
        except asyncio.CancelledError:
            self._invalidate_on_completion.discard(path)
            self._graph.set_dependencies(path, [])
            raise
        except AssetError as e:
            logger.error(f"Asset {path} failed: {e}")
            self._invalidate_on_completion.discard(path)
            self._graph.set_dependencies(path, [])
            self.pipeline.report(path, "failed", str(e))
            raise

        if path in self._invalidate_on_completion:
            # Source changed while resolving: hand the result to the current
            # waiters but do not keep it.
            self._invalidate_on_completion.discard(path)
            self._drop(path)
        self.pipeline.report(path, "completed", resolved.public_path)
        return resolved

    async def _resolve_uncached(self, path: str) -> ResolvedAsset:
        entry = self._entries.get(path)
        if entry is not None and entry.needs_check:
            asset = entry.asset
            deps = list(entry.resolved.dependencies)
        else:
            raw = await self.store.load(path)
            asset = Asset(definition=self.store.get(path), raw_content=raw)
            deps = self.pipeline.prepare(asset)
            self._graph.set_dependencies(path, deps)
            cycle = self._graph.cycle_through(path)
            if cycle is not None:
                raise CyclicDependency(cycle)

        resolved_deps = await self._resolve_dependencies(deps)

        if entry is not None and entry.needs_check and all(
            resolved_deps[target].digest == digest
            for target, digest in entry.resolved.dependency_digests.items()
        ):
            logger.debug(f"Re-checked {path}: dependencies unchanged")
            entry.needs_check = False
            return entry.resolved

        resolved = self.pipeline.resolve(asset, deps, resolved_deps)
        self.stats.resolutions += 1
        self._store(path, CacheEntry(asset=asset, resolved=resolved))
        return resolved

    async def _resolve_dependencies(self, deps: List[Dependency]) -> Dict[str, ResolvedAsset]:
        targets = sorted({d.target for d in deps})
        results = await asyncio.gather(*(self.resolve(t) for t in targets), return_exceptions=True)
        # Report the first failure in path order, not in completion order.
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return dict(zip(targets, results))

    def _store(self, path: str, entry: CacheEntry):
        old = self._entries.get(path)
        if old is not None:
            self._by_public.pop(old.resolved.public_path, None)
        self._entries[path] = entry
        self._by_public[entry.resolved.public_path] = path

    def _drop(self, path: str):
        entry = self._entries.pop(path, None)
        if entry is not None:
            self._by_public.pop(entry.resolved.public_path, None)
        self._graph.set_dependencies(path, [])

    def invalidate(self, logical_path: str) -> Tuple[List[str], List[str]]:
        """
        Signal that an asset's source changed.

        Drops the asset and all assets that transitively include it, and
        marks assets that depend on those through references for a re-check.
        Assets currently resolving are invalidated when their resolution
        completes.

        Returns:
            (dropped paths, paths marked for re-check)
        """
        self.store.get(logical_path)
        self.stats.invalidations += 1

        includers = self._graph.transitive_dependents(logical_path, {DependencyKind.INCLUDE})
        dropped = [logical_path] + includers
        dependents: Set[str] = set()
        for path in dropped:
            dependents.update(self._graph.transitive_dependents(path))
        recheck = sorted(dependents - set(dropped))

        for path in dropped:
            if self._flights.in_flight(path):
                self._invalidate_on_completion.add(path)
            else:
                self._drop(path)
        for path in recheck:
            entry = self._entries.get(path)
            if entry is not None:
                entry.needs_check = True

        logger.debug(f"Invalidated {logical_path}: dropped {dropped}, re-check {recheck}")
        return dropped, recheck

    def clear(self):
        """Drop every cached asset that is not currently resolving."""
        for path in list(self._entries):
            if self._flights.in_flight(path):
                self._invalidate_on_completion.add(path)
            else:
                self._drop(path)
        self.stats = ResolverStats()

    def get_stats(self) -> ResolverStats:
        return self.stats

    @property
    def flights_started(self) -> int:
        """Number of resolutions started (shared flights count once)."""
        return self._flights.started
