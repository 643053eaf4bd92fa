# assetdag/codecs.py
"""
Hash and compression function registries.

The resolvers treat hashing and compression as plain functions
(`bytes -> bytes`). Named implementations are registered here so that
configuration files can select them by name.
"""

import gzip
import hashlib
import logging
import zlib
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

HashFunction = Callable[[bytes], bytes]
CompressFunction = Callable[[bytes], bytes]

_HASHERS: Dict[str, HashFunction] = {}
_COMPRESSORS: Dict[str, CompressFunction] = {}


def register_hasher(name: str) -> Callable:
    """
    Decorator to register a hash function under a name.

    Usage:
        @register_hasher("sha256")
        def sha256(data: bytes) -> bytes:
            ...
    """
    def decorator(fn: HashFunction) -> HashFunction:
        if name in _HASHERS:
            logger.warning(f"Overwriting hasher {name}")
        _HASHERS[name] = fn
        return fn
    return decorator


def register_compressor(name: str) -> Callable:
    """Decorator to register a compression function under a name."""
    def decorator(fn: CompressFunction) -> CompressFunction:
        if name in _COMPRESSORS:
            logger.warning(f"Overwriting compressor {name}")
        _COMPRESSORS[name] = fn
        return fn
    return decorator


def get_hasher(name: str) -> HashFunction:
    """Get a registered hash function. Raises ValueError if unknown."""
    fn = _HASHERS.get(name)
    if fn is None:
        raise ValueError(f"Unknown hash algorithm: {name} (known: {', '.join(list_hashers())})")
    return fn


def get_compressor(name: str) -> CompressFunction:
    """Get a registered compression function. Raises ValueError if unknown."""
    fn = _COMPRESSORS.get(name)
    if fn is None:
        raise ValueError(f"Unknown compression: {name} (known: {', '.join(list_compressors())})")
    return fn


def list_hashers() -> List[str]:
    return sorted(_HASHERS)


def list_compressors() -> List[str]:
    return sorted(_COMPRESSORS)


def clear_hashers():
    """Clear all registered hashers (for testing)."""
    _HASHERS.clear()


def clear_compressors():
    """Clear all registered compressors (for testing)."""
    _COMPRESSORS.clear()


def register_builtins():
    """(Re-)register the built-in hashers and compressors."""
    register_hasher("sha256")(sha256)
    register_hasher("sha3_256")(sha3_256)
    register_hasher("blake2b")(blake2b)
    register_compressor("deflate")(deflate)
    register_compressor("gzip")(gzip_compress)
    register_compressor("none")(identity)


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def sha3_256(data: bytes) -> bytes:
    return hashlib.sha3_256(data).digest()


def blake2b(data: bytes) -> bytes:
    return hashlib.blake2b(data).digest()


def deflate(data: bytes) -> bytes:
    """Raw deflate stream (no zlib header), maximum compression."""
    compressor = zlib.compressobj(9, zlib.DEFLATED, -zlib.MAX_WBITS)
    return compressor.compress(data) + compressor.flush()


def gzip_compress(data: bytes) -> bytes:
    # mtime=0 keeps the output deterministic
    return gzip.compress(data, compresslevel=9, mtime=0)


def identity(data: bytes) -> bytes:
    return data


register_builtins()
