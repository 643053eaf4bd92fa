# assetdag/pipeline.py
"""
Per-asset resolution step shared by the eager and lazy resolvers.

For one asset whose dependencies are already resolved:
1. Render directives (include -> final content, path -> public path,
   var -> context value)
2. Compute the digest from the final content and direct dependency digests
3. Derive the public path

The resolvers only decide when and in which order this runs.
"""

import dataclasses
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, List, Mapping, Optional, Tuple

from .asset import Asset, Dependency, Directive, DirectiveKind, ResolvedAsset
from .codecs import CompressFunction, HashFunction
from .config import Config
from .errors import BuildError, MissingVariable
from .graph import dependencies_for
from .hashing import compute_digest, hashed_path
from .store import ContentStore
from .template import parse_directives, render

logger = logging.getLogger(__name__)


@dataclass
class ResolveProgress:
    """Progress update for one asset."""
    logical_path: str
    status: str  # "pending", "cached", "completed", "failed"
    message: str = ""


# Progress callback type
ProgressCallback = Callable[[ResolveProgress], None]


class Pipeline:
    """
    Render and hash single assets.

    Holds the resolution context (variables) for the lifetime of the
    resolver; the context is read-only.
    """

    def __init__(self, store: ContentStore, config: Config,
                 hash_fn: Optional[HashFunction] = None,
                 compress_fn: Optional[CompressFunction] = None):
        self.store = store
        self.config = config
        self.variables: Mapping[str, str] = MappingProxyType(dict(config.variables))
        self.hash_fn = hash_fn or config.hash_fn()
        self.compress_fn = compress_fn or config.compress_fn()
        self._progress_callback: Optional[ProgressCallback] = None

        digest_size = len(self.hash_fn(b""))
        if config.hash_length > digest_size:
            raise ValueError(
                f"hash_length {config.hash_length} exceeds digest size {digest_size}"
            )

    def set_progress_callback(self, callback: Optional[ProgressCallback]):
        """Set callback for progress updates."""
        self._progress_callback = callback

    def report(self, logical_path: str, status: str, message: str = ""):
        """Report progress to callback if set."""
        if self._progress_callback:
            try:
                self._progress_callback(ResolveProgress(logical_path, status, message))
            except Exception as e:
                logger.warning(f"Progress callback error: {e}")

    def is_hashed(self, logical_path: str) -> bool:
        return self.store.resolve_hashable(logical_path, self.config.per_asset_hash_enabled)

    def prepare(self, asset: Asset) -> List[Dependency]:
        """
        Parse one asset's directives and derive its dependency edges.

        Raises the asset's graph errors: a single error as itself, several
        as a BuildError.
        """
        if not asset.definition.template:
            asset.directives = []
            return []

        asset.directives = parse_directives(asset.raw_content, asset.logical_path)
        deps, errors = dependencies_for(
            asset.logical_path, asset.directives, self.store.__contains__, self.is_hashed,
        )
        if len(errors) == 1:
            raise errors[0]
        if errors:
            raise BuildError(errors)
        return deps

    def resolve(self, asset: Asset, dependencies: List[Dependency],
                resolved: Mapping[str, ResolvedAsset]) -> ResolvedAsset:
        """
        Render and hash `asset`.

        Args:
            asset: Working record with raw_content and directives set
            dependencies: The asset's dependency edges
            resolved: Already resolved assets, must contain every edge target

        Raises:
            MissingVariable: If a variable directive has no value
        """
        path = asset.logical_path

        def replace(directive: Directive) -> bytes:
            if directive.kind == DirectiveKind.INCLUDE:
                return resolved[directive.target].final_content
            if directive.kind == DirectiveKind.REFERENCE:
                target = directive.target
                # Unhashed targets are not edges; their public path is the logical path.
                if self.is_hashed(target):
                    return resolved[target].public_path.encode("utf-8")
                return target.encode("utf-8")
            value = self.variables.get(directive.target)
            if value is None:
                raise MissingVariable(path, directive.target)
            return value.encode("utf-8")

        asset.final_content = render(asset.raw_content, asset.directives, replace)

        dep_digests: List[Tuple[str, bytes]] = [
            (target, resolved[target].digest)
            for target in sorted({d.target for d in dependencies})
        ]
        asset.digest = compute_digest(asset.final_content, dep_digests, self.hash_fn)

        hashed = self.is_hashed(path)
        if hashed:
            asset.public_path = hashed_path(
                path, asset.digest, self.config.hash_length, asset.definition.hash_between,
            )
        else:
            asset.public_path = path

        logger.debug(f"Resolved {path} -> {asset.public_path} ({len(asset.final_content)} bytes)")
        return ResolvedAsset(
            logical_path=path,
            public_path=asset.public_path,
            digest=asset.digest,
            final_content=asset.final_content,
            hashed=hashed,
            dependencies=tuple(dependencies),
            dependency_digests=dict(dep_digests),
        )

    def compress(self, resolved: ResolvedAsset) -> ResolvedAsset:
        """Return a copy of `resolved` carrying compressed content."""
        return dataclasses.replace(resolved, compressed_content=self.compress_fn(resolved.final_content))
