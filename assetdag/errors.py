# assetdag/errors.py
"""
Error kinds raised while building or resolving assets.

Graph errors (unknown targets, cycles, malformed directives) found during a
build are collected and raised together as a BuildError so that all of them
can be fixed in one go.
"""

from typing import List, Optional, Sequence


class AssetError(Exception):
    """Base class for all assetdag errors."""


class UnknownAsset(AssetError):
    """A directive names a logical path that is not registered."""

    def __init__(self, in_path: str, target: str, kind: str = "include"):
        self.in_path = in_path
        self.target = target
        self.kind = kind
        super().__init__(
            f"unresolved {kind} in '{in_path}': asset '{target}' does not exist"
        )


class CyclicDependency(AssetError):
    """The dependency graph contains a cycle."""

    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__(f"cyclic dependency detected: {' -> '.join(self.cycle + self.cycle[:1])}")


class TemplateSyntaxError(AssetError):
    """A directive in an asset is malformed."""

    def __init__(self, path: str, offset: int, reason: str):
        self.path = path
        self.offset = offset
        self.reason = reason
        super().__init__(f"template error in '{path}' at byte {offset}: {reason}")


class MissingVariable(AssetError):
    """A variable directive names a variable absent from the context."""

    def __init__(self, path: str, name: str):
        self.path = path
        self.name = name
        super().__init__(
            f"variable '{name}' is used in '{path}', but that variable has not been defined"
        )


class AssetIOError(AssetError):
    """Fetching an asset's raw bytes from its origin failed."""

    def __init__(self, path: str, cause: Optional[BaseException] = None):
        self.path = path
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"IO error while loading '{path}'{detail}")


class NotFound(AssetError, KeyError):
    """Lookup of a path that is not registered (or not served)."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(path)

    def __str__(self) -> str:
        return f"asset '{self.path}' not found"


class BuildError(AssetError):
    """One or more errors found while building the dependency graph."""

    def __init__(self, errors: List[AssetError]):
        self.errors = list(errors)
        lines = "\n".join(f"  - {e}" for e in self.errors)
        super().__init__(f"{len(self.errors)} error(s) while building assets:\n{lines}")
