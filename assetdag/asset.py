# assetdag/asset.py
"""
Core asset data structures.

An AssetDef is what the host registers (a logical path plus where the bytes
come from). An Asset is the working record the resolution pipeline fills in.
A ResolvedAsset is the immutable result handed out to consumers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

# A loader returns the raw bytes of a dynamic asset, either directly or as an
# awaitable.
Loader = Callable[[], Union[bytes, Awaitable[bytes]]]


class Origin(Enum):
    """Where an asset's raw bytes come from."""
    STATIC = "static"          # Bytes handed over at registration
    DYNAMIC = "dynamic"        # Loader invoked by the resolver
    DIRECTORY = "directory"    # Entry expanded from a directory listing


class DirectiveKind(Enum):
    """Template directive kinds."""
    INCLUDE = "include"   # Splice the target's final content
    REFERENCE = "path"    # Splice the target's public path
    VARIABLE = "var"      # Splice a context variable


class DependencyKind(Enum):
    """Kind of a dependency edge between two assets."""
    INCLUDE = "include"
    REFERENCE = "reference"


@dataclass(frozen=True)
class Directive:
    """
    One directive occurrence inside an asset's raw bytes.

    Attributes:
        kind: Directive kind
        target: Logical path (include/reference) or variable name
        start: Byte offset of the opening token
        end: Byte offset just past the closing token
    """
    kind: DirectiveKind
    target: str
    start: int
    end: int


@dataclass(frozen=True)
class Dependency:
    """A dependency edge `source -> target`."""
    source: str
    target: str
    kind: DependencyKind


@dataclass
class AssetDef:
    """
    A registered asset definition.

    Attributes:
        logical_path: Stable, author-facing identifier
        origin: Where the raw bytes come from
        content: Raw bytes for static and directory origins
        loader: Callable producing bytes for dynamic origins
        embeddable: Compress the final bytes in eager mode
        hashable: Splice the digest into the public path
        serve: Whether lookups may return this asset
        template: Whether the raw bytes are scanned for directives
        prepend: Bytes prepended to the raw content before templating
        append: Bytes appended to the raw content before templating
        hash_between: Explicit (prefix, suffix) placement of the hash
    """
    logical_path: str
    origin: Origin = Origin.STATIC
    content: Optional[bytes] = None
    loader: Optional[Loader] = None
    embeddable: bool = True
    hashable: bool = True
    serve: bool = True
    template: bool = True
    prepend: Optional[bytes] = None
    append: Optional[bytes] = None
    hash_between: Optional[Tuple[str, str]] = None

    def __post_init__(self):
        if not self.logical_path:
            raise ValueError("Asset logical_path must not be empty")
        if self.origin == Origin.DYNAMIC:
            if self.loader is None:
                raise ValueError(f"Dynamic asset '{self.logical_path}' requires a loader")
        elif self.content is None:
            raise ValueError(f"Asset '{self.logical_path}' requires content")

    @property
    def is_dynamic(self) -> bool:
        return self.origin == Origin.DYNAMIC


@dataclass
class Asset:
    """
    Working record of an asset during one resolution pass.

    Filled in by the pipeline: the store sets raw_content, the template
    parser sets directives, the renderer sets final_content, the hash
    resolver sets digest and public_path.
    """
    definition: AssetDef
    raw_content: bytes = b""
    directives: List[Directive] = field(default_factory=list)
    final_content: Optional[bytes] = None
    digest: Optional[bytes] = None
    public_path: Optional[str] = None
    compressed_content: Optional[bytes] = None

    @property
    def logical_path(self) -> str:
        return self.definition.logical_path


@dataclass(frozen=True)
class ResolvedAsset:
    """
    Immutable result of resolving one asset.

    Attributes:
        logical_path: Author-facing identifier
        public_path: Identifier exposed to consumers (possibly hashed)
        digest: Content digest folding in direct dependency digests
        final_content: Bytes after template expansion
        compressed_content: Compressed final bytes (eager, embeddable only)
        hashed: Whether public_path carries the digest
        dependencies: Direct dependency edges, sorted by target
        dependency_digests: Digest of each dependency target when resolved
    """
    logical_path: str
    public_path: str
    digest: bytes
    final_content: bytes
    compressed_content: Optional[bytes] = None
    hashed: bool = False
    dependencies: Tuple[Dependency, ...] = ()
    dependency_digests: Dict[str, bytes] = field(default_factory=dict, hash=False)

    @property
    def digest_hex(self) -> str:
        return self.digest.hex()

    def includes(self) -> List[str]:
        """Logical paths this asset includes directly."""
        return [d.target for d in self.dependencies if d.kind == DependencyKind.INCLUDE]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize metadata (not content) to a dictionary."""
        return {
            "logical_path": self.logical_path,
            "public_path": self.public_path,
            "digest": self.digest_hex,
            "size_bytes": len(self.final_content),
            "compressed_size_bytes": (
                len(self.compressed_content) if self.compressed_content is not None else None
            ),
            "hashed": self.hashed,
            "dependencies": [
                {"target": d.target, "kind": d.kind.value} for d in self.dependencies
            ],
        }
