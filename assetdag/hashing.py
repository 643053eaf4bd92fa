# assetdag/hashing.py
"""
Digest computation and hashed public paths.

digest = H(final_content || digest(dep_1) || ... || digest(dep_n))

where dep_1..dep_n are the direct dependencies sorted by logical path. Each
dependency digest already folds in its own dependencies, so a change
anywhere below an asset changes the asset's digest.
"""

import base64
from typing import Iterable, Optional, Tuple

from .codecs import HashFunction, sha256

# Bytes of the digest encoded into a public path. A multiple of 3 wastes no
# base64 characters: 9 bytes -> 12 characters.
DEFAULT_HASH_LENGTH = 9


def compute_digest(final_content: bytes,
                   dependency_digests: Iterable[Tuple[str, bytes]] = (),
                   hash_fn: HashFunction = sha256) -> bytes:
    """
    Compute an asset's digest.

    Args:
        final_content: The asset's expanded bytes
        dependency_digests: (logical_path, digest) of each direct dependency,
            in any order
        hash_fn: Pluggable hash function

    Returns:
        Raw digest bytes
    """
    ordered = sorted(dependency_digests, key=lambda item: item[0])
    return hash_fn(final_content + b"".join(digest for _, digest in ordered))


def encode_hash(digest: bytes, hash_length: int = DEFAULT_HASH_LENGTH) -> str:
    """URL-safe, unpadded base64 of the first `hash_length` digest bytes."""
    if hash_length < 1 or hash_length > len(digest):
        raise ValueError(f"hash_length must be between 1 and {len(digest)}, got {hash_length}")
    return base64.urlsafe_b64encode(digest[:hash_length]).rstrip(b"=").decode("ascii")


def hashed_path(logical_path: str, digest: bytes,
                hash_length: int = DEFAULT_HASH_LENGTH,
                hash_between: Optional[Tuple[str, str]] = None) -> str:
    """
    Splice the encoded digest into a logical path.

    The hash goes before the final extension of the last path segment
    (`css/style.css` -> `css/style.<hash>.css`). A segment without an
    extension gets `-<hash>` appended. `hash_between` overrides placement
    with an explicit prefix and suffix.
    """
    text = encode_hash(digest, hash_length)
    if hash_between is not None:
        prefix, suffix = hash_between
        return f"{prefix}{text}{suffix}"

    segment_start = logical_path.rfind("/") + 1
    dot = logical_path.rfind(".", segment_start)
    # A leading dot (".env") is part of the name, not an extension.
    if dot <= segment_start:
        return f"{logical_path}-{text}"
    return f"{logical_path[:dot]}.{text}{logical_path[dot:]}"
