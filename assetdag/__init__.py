# assetdag - Content-hashed asset resolution with eager and lazy strategies
#
# Assets reference and include one another through template directives.
# Each asset's digest folds in the digests of its dependencies, and its
# public path carries that digest, so a change anywhere below an asset
# changes the asset's URL.
#
# Core concepts:
# - ContentStore: Registered assets (static bytes, loaders, directory entries)
# - DependencyGraph: Include/reference edges, cycle detection, evaluation order
# - EagerResolver: Resolves everything once into an immutable snapshot
# - LazyResolver: Resolves on demand with single-flight deduplication
# - Registry: Lookup surface handing out asset handles

from .asset import AssetDef, ResolvedAsset, Dependency, DependencyKind, Origin
from .errors import (
    AssetError,
    AssetIOError,
    BuildError,
    CyclicDependency,
    MissingVariable,
    NotFound,
    TemplateSyntaxError,
    UnknownAsset,
)
from .store import ContentStore, file_loader
from .graph import DependencyGraph
from .config import Config
from .codecs import register_hasher, register_compressor, get_hasher, get_compressor
from .eager import EagerResolver
from .lazy import LazyResolver, ResolverStats
from .registry import Registry, EagerHandle, LazyHandle, AssetInfo
from .builder import RegistryBuilder

__all__ = [
    # Model
    "AssetDef",
    "ResolvedAsset",
    "Dependency",
    "DependencyKind",
    "Origin",
    # Errors
    "AssetError",
    "AssetIOError",
    "BuildError",
    "CyclicDependency",
    "MissingVariable",
    "NotFound",
    "TemplateSyntaxError",
    "UnknownAsset",
    # Core
    "ContentStore",
    "file_loader",
    "DependencyGraph",
    "Config",
    "register_hasher",
    "register_compressor",
    "get_hasher",
    "get_compressor",
    "EagerResolver",
    "LazyResolver",
    "ResolverStats",
    "Registry",
    "EagerHandle",
    "LazyHandle",
    "AssetInfo",
    "RegistryBuilder",
]

__version__ = "0.1.0"
