# assetdag/builder.py
"""
Fluent builder for registries.

Example:
    registry = await (
        RegistryBuilder(mode="lazy")
        .static("a.txt", b"hello")
        .static("b.txt", b"{{: include:a.txt :}} world")
        .dynamic("config.js", file_loader("/etc/app/config.js"))
        .variable("accent", "#ff0066")
        .build()
    )
"""

import dataclasses
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

from .asset import Loader
from .codecs import CompressFunction, HashFunction
from .config import Config
from .lazy import StalenessCheck
from .pipeline import ProgressCallback
from .registry import Registry
from .store import ContentStore, file_loader


class RegistryBuilder:
    """Collects asset registrations and options, then builds a Registry."""

    def __init__(self, config: Optional[Config] = None, **config_options):
        if config is not None and config_options:
            raise ValueError("Pass either a Config or config options, not both")
        self.store = ContentStore()
        self._config_options = (
            config.to_dict() if config is not None else dict(config_options)
        )
        self._hash_fn: Optional[HashFunction] = None
        self._compress_fn: Optional[CompressFunction] = None
        self._is_stale: Optional[StalenessCheck] = None
        self._progress_callback: Optional[ProgressCallback] = None

    # Registration

    def static(self, logical_path: str, content: bytes, **options) -> "RegistryBuilder":
        """Register fixed bytes."""
        self.store.add_static(logical_path, content, **options)
        return self

    def dynamic(self, logical_path: str, loader: Loader, **options) -> "RegistryBuilder":
        """Register a loader."""
        self.store.add_dynamic(logical_path, loader, **options)
        return self

    def file(self, logical_path: str, path: Path | str, **options) -> "RegistryBuilder":
        """Register a file read each time the resolver loads the asset."""
        return self.dynamic(logical_path, file_loader(path), **options)

    def directory(self, prefix: str, pattern: str,
                  listing: Iterable[Tuple[str, bytes]], **options) -> "RegistryBuilder":
        """Register matching entries of a host-provided directory listing."""
        self.store.add_directory(prefix, pattern, listing, **options)
        return self

    # Options

    def mode(self, mode: str) -> "RegistryBuilder":
        self._config_options["mode"] = mode
        return self

    def variable(self, name: str, value: str) -> "RegistryBuilder":
        self._config_options.setdefault("variables", {})[name] = value
        return self

    def variables(self, values: Dict[str, str]) -> "RegistryBuilder":
        self._config_options.setdefault("variables", {}).update(values)
        return self

    def hash_enabled(self, logical_path: str, enabled: bool) -> "RegistryBuilder":
        """Override hashing for one asset."""
        self._config_options.setdefault("per_asset_hash_enabled", {})[logical_path] = enabled
        return self

    def hash_function(self, hash_fn: HashFunction) -> "RegistryBuilder":
        self._hash_fn = hash_fn
        return self

    def compress_function(self, compress_fn: CompressFunction) -> "RegistryBuilder":
        self._compress_fn = compress_fn
        return self

    def staleness_check(self, is_stale: StalenessCheck) -> "RegistryBuilder":
        self._is_stale = is_stale
        return self

    def on_progress(self, callback: ProgressCallback) -> "RegistryBuilder":
        self._progress_callback = callback
        return self

    def config(self) -> Config:
        """The Config the registry will be built with. Raises ValueError if invalid."""
        known = {f.name for f in dataclasses.fields(Config)}
        unknown = set(self._config_options) - known
        if unknown:
            raise ValueError(f"Unknown config option(s): {sorted(unknown)}")
        return Config(**self._config_options)

    async def build(self) -> Registry:
        """Build the registry. Eager mode resolves everything here."""
        return await Registry.create(
            self.store,
            self.config(),
            hash_fn=self._hash_fn,
            compress_fn=self._compress_fn,
            is_stale=self._is_stale,
            progress_callback=self._progress_callback,
        )
