# assetdag/registry.py
"""
Registry: the lookup surface for resolved assets.

The registry owns no resolution logic. It checks that a path is registered
and served, then forwards to the active resolver:

- eager: handles carry the resolved asset; every accessor is synchronous
- lazy: handles resolve on demand; accessors are coroutines, and any number
  of callers may await the same asset without duplicating work

Example:
    store = ContentStore()
    store.add_static("a.txt", b"hello")
    store.add_static("b.txt", b"{{: include:a.txt :}} world")

    registry = await Registry.create(store, Config())
    handle = registry.lookup("b.txt")
    handle.public_path()   # "b.<hash>.txt"
    handle.content()       # b"hello world"
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Union

from .asset import ResolvedAsset
from .codecs import CompressFunction, HashFunction
from .config import Config
from .eager import EagerResolver
from .errors import NotFound
from .lazy import LazyResolver, ResolverStats, StalenessCheck
from .pipeline import ProgressCallback
from .store import ContentStore

logger = logging.getLogger(__name__)


class EagerHandle:
    """Handle to an eagerly resolved asset. Nothing here suspends."""

    def __init__(self, resolved: ResolvedAsset):
        self._resolved = resolved

    @property
    def logical_path(self) -> str:
        return self._resolved.logical_path

    def resolve(self) -> ResolvedAsset:
        return self._resolved

    def public_path(self) -> str:
        return self._resolved.public_path

    def content(self) -> bytes:
        return self._resolved.final_content

    def compressed_content(self) -> Optional[bytes]:
        """Compressed final bytes, or None if the asset is not embeddable."""
        return self._resolved.compressed_content

    def digest(self) -> bytes:
        return self._resolved.digest

    def __repr__(self) -> str:
        return f"EagerHandle({self._resolved.logical_path!r} -> {self._resolved.public_path!r})"


class LazyHandle:
    """Handle to a lazily resolved asset. Accessors are coroutines."""

    def __init__(self, resolver: LazyResolver, logical_path: str,
                 public_path: Optional[str] = None):
        self._resolver = resolver
        self.logical_path = logical_path
        self._requested_public = public_path

    async def resolve(self) -> ResolvedAsset:
        if self._requested_public is not None:
            return await self._resolver.resolve_public(self._requested_public)
        return await self._resolver.resolve(self.logical_path)

    async def public_path(self) -> str:
        return (await self.resolve()).public_path

    async def content(self) -> bytes:
        return (await self.resolve()).final_content

    async def digest(self) -> bytes:
        return (await self.resolve()).digest

    def __repr__(self) -> str:
        return f"LazyHandle({self.logical_path!r})"


AssetHandle = Union[EagerHandle, LazyHandle]


@dataclass
class AssetInfo:
    """Meta information about a registered asset."""
    logical_path: str
    public_path: Optional[str]  # None until resolved (lazy)
    served: bool
    dynamic: bool
    hashed: bool


class Registry:
    """
    Logical path -> asset handle, backed by an eager or lazy resolver.

    Create with `await Registry.create(store, config)`; the config's mode
    selects the resolver. A registry is a plain value owned by the host;
    there is no process-wide instance.
    """

    def __init__(self, store: ContentStore, config: Config,
                 resolver: Union[EagerResolver, LazyResolver]):
        self.store = store
        self.config = config
        self.resolver = resolver

    @classmethod
    async def create(cls, store: ContentStore, config: Optional[Config] = None,
                     hash_fn: Optional[HashFunction] = None,
                     compress_fn: Optional[CompressFunction] = None,
                     is_stale: Optional[StalenessCheck] = None,
                     progress_callback: Optional[ProgressCallback] = None) -> "Registry":
        """
        Build a registry.

        In eager mode every asset is resolved here and any error is raised.
        In lazy mode nothing is loaded until the first lookup resolves.
        """
        config = config or Config()
        if config.is_lazy:
            resolver = LazyResolver(
                store, config, hash_fn=hash_fn, compress_fn=compress_fn,
                is_stale=is_stale, progress_callback=progress_callback,
            )
        else:
            if is_stale is not None:
                logger.warning("Staleness check is ignored in eager mode")
            resolver = await EagerResolver.build(
                store, config, hash_fn=hash_fn, compress_fn=compress_fn,
                progress_callback=progress_callback,
            )
        logger.info(f"Registry ready: mode={config.mode}, {len(store)} assets")
        return cls(store, config, resolver)

    @property
    def mode(self) -> str:
        return self.config.mode

    @property
    def is_lazy(self) -> bool:
        return isinstance(self.resolver, LazyResolver)

    def _check_served(self, logical_path: str):
        if logical_path not in self.store or not self.store.get(logical_path).serve:
            raise NotFound(logical_path)

    def lookup(self, logical_path: str) -> AssetHandle:
        """Get a handle by logical path. Raises NotFound."""
        self._check_served(logical_path)
        if self.is_lazy:
            return LazyHandle(self.resolver, logical_path)
        return EagerHandle(self.resolver.resolve(logical_path))

    def lookup_public(self, public_path: str) -> AssetHandle:
        """Get a handle by public (possibly hashed) path. Raises NotFound."""
        if self.is_lazy:
            logical_path = self.resolver.logical_for_public(public_path)
            if logical_path is None:
                raise NotFound(public_path)
            self._check_served(logical_path)
            return LazyHandle(self.resolver, logical_path, public_path)

        resolved = self.resolver.resolve_public(public_path)
        self._check_served(resolved.logical_path)
        return EagerHandle(resolved)

    async def get(self, logical_path: str) -> bytes:
        """Final bytes of an asset in either mode."""
        handle = self.lookup(logical_path)
        if isinstance(handle, LazyHandle):
            return await handle.content()
        return handle.content()

    def invalidate(self, logical_path: str) -> List[str]:
        """
        Signal that an asset's source changed (lazy mode only).

        Returns the logical paths whose cached results were dropped.
        """
        if not self.is_lazy:
            raise RuntimeError("Eager registries are immutable; rebuild to pick up changes")
        dropped, _ = self.resolver.invalidate(logical_path)
        return dropped

    def info(self, logical_path: str) -> AssetInfo:
        """Meta information about a registered (served or not) asset."""
        definition = self.store.get(logical_path)
        if self.is_lazy:
            cached = self.resolver.cached(logical_path)
        else:
            cached = self.resolver.resolve(logical_path)
        return AssetInfo(
            logical_path=logical_path,
            public_path=cached.public_path if cached is not None else None,
            served=definition.serve,
            dynamic=definition.is_dynamic,
            hashed=self.resolver.pipeline.is_hashed(logical_path),
        )

    def manifest(self) -> Dict[str, str]:
        """
        Logical path -> public path of served assets.

        Lazy registries only list assets resolved so far.
        """
        out = {}
        for path in self.paths():
            public = self.info(path).public_path
            if public is not None:
                out[path] = public
        return out

    def stats(self) -> Optional[ResolverStats]:
        """Resolution statistics (lazy mode), None in eager mode."""
        if self.is_lazy:
            return self.resolver.get_stats()
        return None

    def paths(self) -> List[str]:
        """Logical paths of served assets, sorted."""
        return [d.logical_path for d in self.store if d.serve]

    def __contains__(self, logical_path: str) -> bool:
        return logical_path in self.store and self.store.get(logical_path).serve

    def __len__(self) -> int:
        return len(self.paths())

    def __iter__(self) -> Iterator[str]:
        return iter(self.paths())
