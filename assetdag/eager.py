# assetdag/eager.py
"""
Eager resolver: resolve every asset once, then serve from a frozen map.

Build steps:
1. Load raw bytes of all assets (concurrently; results are keyed by path,
   so completion order does not matter)
2. Parse directives and build the dependency graph, collecting all errors
3. Render and hash each asset in topological order
4. Compress embeddable assets
5. Freeze

Any error aborts the build; there is no partially ready resolver.
"""

import asyncio
import logging
import time
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from .asset import Asset, ResolvedAsset
from .codecs import CompressFunction, HashFunction
from .config import Config
from .errors import AssetError, AssetIOError, BuildError, NotFound
from .graph import DependencyGraph, build_graph
from .pipeline import Pipeline, ProgressCallback
from .store import ContentStore

logger = logging.getLogger(__name__)


class ResolverState(Enum):
    BUILDING = "building"
    READY = "ready"


class EagerResolver:
    """
    Immutable snapshot of fully resolved assets.

    Create with `await EagerResolver.build(store, config)`. After that,
    `resolve` is a plain dictionary lookup.
    """

    def __init__(self, pipeline: Pipeline):
        self.pipeline = pipeline
        self.state = ResolverState.BUILDING
        self.order: List[str] = []
        self.graph: Optional[DependencyGraph] = None
        self.build_time = 0.0
        self._assets: Mapping[str, ResolvedAsset] = MappingProxyType({})
        self._by_public: Mapping[str, str] = MappingProxyType({})

    @classmethod
    async def build(cls, store: ContentStore, config: Config,
                    hash_fn: Optional[HashFunction] = None,
                    compress_fn: Optional[CompressFunction] = None,
                    progress_callback: Optional[ProgressCallback] = None) -> "EagerResolver":
        """
        Resolve all assets in `store`.

        Raises:
            BuildError: With every graph, variable or IO error found
        """
        pipeline = Pipeline(store, config, hash_fn=hash_fn, compress_fn=compress_fn)
        pipeline.set_progress_callback(progress_callback)
        resolver = cls(pipeline)
        await resolver._build()
        return resolver

    async def _build(self):
        start_time = time.time()
        store = self.pipeline.store
        paths = store.paths()

        for path in paths:
            self.pipeline.report(path, "pending", "Loading")
        results = await asyncio.gather(*(store.load(p) for p in paths), return_exceptions=True)

        assets: Dict[str, Asset] = {}
        io_errors: List[AssetError] = []
        for path, result in zip(paths, results):
            if isinstance(result, AssetIOError):
                io_errors.append(result)
                self.pipeline.report(path, "failed", str(result))
            elif isinstance(result, BaseException):
                raise result
            else:
                assets[path] = Asset(definition=store.get(path), raw_content=result)
        if io_errors:
            for e in io_errors:
                logger.error(f"Load failed: {e}")
            raise BuildError(io_errors)

        self.graph = build_graph(assets, store.__contains__, self.pipeline.is_hashed)
        self.order = self.graph.topological_order()

        resolved: Dict[str, ResolvedAsset] = {}
        errors: List[AssetError] = []
        failed = set()
        for path in self.order:
            deps = self.graph.dependencies_of(path)
            if any(d.target in failed for d in deps):
                failed.add(path)
                self.pipeline.report(path, "failed", "Dependency failed")
                continue
            try:
                resolved[path] = self.pipeline.resolve(assets[path], deps, resolved)
            except AssetError as e:
                logger.error(f"Asset {path} failed: {e}")
                errors.append(e)
                failed.add(path)
                self.pipeline.report(path, "failed", str(e))
                continue
            self.pipeline.report(path, "completed", resolved[path].public_path)
        if errors:
            raise BuildError(errors)

        for path in self.order:
            if assets[path].definition.embeddable:
                resolved[path] = self.pipeline.compress(resolved[path])

        by_public: Dict[str, str] = {}
        for path in self.order:
            public = resolved[path].public_path
            if public in by_public:
                logger.warning(f"Public path {public} of {path} shadows {by_public[public]}")
            by_public[public] = path

        self._assets = MappingProxyType(resolved)
        self._by_public = MappingProxyType(by_public)
        self.state = ResolverState.READY
        self.build_time = time.time() - start_time
        logger.info(f"Resolved {len(resolved)} assets in {self.build_time:.3f}s")

    def resolve(self, logical_path: str) -> ResolvedAsset:
        """Get a resolved asset. Raises NotFound if not registered."""
        resolved = self._assets.get(logical_path)
        if resolved is None:
            raise NotFound(logical_path)
        return resolved

    def resolve_public(self, public_path: str) -> ResolvedAsset:
        """Get a resolved asset by its public path. Raises NotFound."""
        logical_path = self._by_public.get(public_path)
        if logical_path is None:
            raise NotFound(public_path)
        return self._assets[logical_path]

    def __contains__(self, logical_path: str) -> bool:
        return logical_path in self._assets

    def __len__(self) -> int:
        return len(self._assets)

    def assets(self) -> Mapping[str, ResolvedAsset]:
        """Read-only logical path -> resolved asset mapping."""
        return self._assets
