# assetdag/store.py
"""
Content store: registered asset definitions and raw byte loading.

This is the only component that touches external I/O. Static assets carry
their bytes; dynamic assets carry a loader that is invoked whenever the
active resolver needs fresh bytes. Directory entries are expanded from a
listing the host provides; discovering files is the host's job.
"""

import asyncio
import fnmatch
import inspect
import logging
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .asset import AssetDef, Loader, Origin
from .errors import AssetIOError, NotFound

logger = logging.getLogger(__name__)

# Manifest row handed over by an ahead-of-time build step:
# (logical_path, raw_bytes, embeddable, hashable)
ManifestEntry = Tuple[str, bytes, bool, bool]


def file_loader(path: Path | str) -> Loader:
    """
    Create a loader that reads a file on each call.

    The read runs in a worker thread so the event loop is not blocked.
    """
    path = Path(path)

    async def load() -> bytes:
        return await asyncio.to_thread(path.read_bytes)

    load.__name__ = f"file_loader({path})"
    return load


class ContentStore:
    """
    Registered assets keyed by logical path.

    Usage:
        store = ContentStore()
        store.add_static("index.html", b"...", hashable=False)
        store.add_dynamic("config.js", file_loader("/etc/app/config.js"))
        store.add_directory("img", "*.png", listing, template=False)
    """

    def __init__(self, definitions: Iterable[AssetDef] = ()):
        self._defs: Dict[str, AssetDef] = {}
        for definition in definitions:
            self.add(definition)

    def add(self, definition: AssetDef) -> AssetDef:
        """Register an asset definition, replacing any with the same path."""
        if definition.logical_path in self._defs:
            logger.warning(f"Overwriting asset {definition.logical_path}")
        self._defs[definition.logical_path] = definition
        return definition

    def add_static(self, logical_path: str, content: bytes, **options) -> AssetDef:
        """Register fixed bytes under a logical path."""
        return self.add(AssetDef(
            logical_path=logical_path,
            origin=Origin.STATIC,
            content=bytes(content),
            **options,
        ))

    def add_dynamic(self, logical_path: str, loader: Loader, **options) -> AssetDef:
        """Register a loader invoked according to the active resolver's rules."""
        options.setdefault("embeddable", False)
        return self.add(AssetDef(
            logical_path=logical_path,
            origin=Origin.DYNAMIC,
            loader=loader,
            **options,
        ))

    def add_directory(self, prefix: str, pattern: str,
                      listing: Iterable[Tuple[str, bytes]], **options) -> List[AssetDef]:
        """
        Register every listing entry whose relative name matches `pattern`.

        Args:
            prefix: Logical path prefix ("" for none)
            pattern: fnmatch-style pattern applied to each relative name
            listing: (relative name, bytes) pairs provided by the host
            **options: AssetDef options applied to every entry

        Returns:
            The registered definitions, sorted by logical path
        """
        added = []
        for name, content in sorted(listing, key=lambda item: item[0]):
            name = name.replace("\\", "/").lstrip("/")
            if not fnmatch.fnmatchcase(name, pattern):
                continue
            logical_path = f"{prefix.rstrip('/')}/{name}" if prefix else name
            added.append(self.add(AssetDef(
                logical_path=logical_path,
                origin=Origin.DIRECTORY,
                content=bytes(content),
                **options,
            )))
        logger.debug(f"Expanded {prefix or '.'}/{pattern}: {len(added)} entries")
        return added

    @classmethod
    def from_manifest(cls, entries: Sequence[ManifestEntry]) -> "ContentStore":
        """Create a store from (logical_path, bytes, embeddable, hashable) rows."""
        store = cls()
        for logical_path, content, embeddable, hashable in entries:
            store.add_static(logical_path, content, embeddable=embeddable, hashable=hashable)
        return store

    def get(self, logical_path: str) -> AssetDef:
        """Get a definition. Raises NotFound if the path is not registered."""
        definition = self._defs.get(logical_path)
        if definition is None:
            raise NotFound(logical_path)
        return definition

    def paths(self) -> List[str]:
        """All registered logical paths, sorted."""
        return sorted(self._defs)

    def __contains__(self, logical_path: str) -> bool:
        return logical_path in self._defs

    def __len__(self) -> int:
        return len(self._defs)

    def __iter__(self) -> Iterator[AssetDef]:
        return iter(self._defs[p] for p in self.paths())

    async def load(self, logical_path: str) -> bytes:
        """
        Fetch an asset's raw bytes, with prepend/append applied.

        Raises:
            NotFound: If the path is not registered
            AssetIOError: If a dynamic loader fails
        """
        definition = self.get(logical_path)
        if definition.is_dynamic:
            content = await self._invoke(definition)
        else:
            content = definition.content

        if definition.prepend or definition.append:
            content = (definition.prepend or b"") + content + (definition.append or b"")
        logger.debug(f"Loaded {logical_path} ({len(content)} bytes)")
        return content

    async def _invoke(self, definition: AssetDef) -> bytes:
        try:
            result = definition.loader()
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            raise AssetIOError(definition.logical_path, e) from e

        if not isinstance(result, (bytes, bytearray, memoryview)):
            raise AssetIOError(
                definition.logical_path,
                TypeError(f"loader returned {type(result).__name__}, expected bytes"),
            )
        return bytes(result)

    def definitions(self) -> Dict[str, AssetDef]:
        """Snapshot of logical path -> definition."""
        return dict(self._defs)

    def resolve_hashable(self, logical_path: str,
                         overrides: Optional[Dict[str, bool]] = None) -> bool:
        """Whether an asset's public path carries its digest."""
        if overrides and logical_path in overrides:
            return bool(overrides[logical_path])
        return self.get(logical_path).hashable
