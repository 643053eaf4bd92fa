# assetdag/config.py
"""
Resolution configuration.

Config can be built in code or loaded from YAML:

    mode: eager
    hash_length: 9
    hash_algorithm: sha256
    compression: deflate
    variables:
      accent: "#ff0066"
    per_asset_hash_enabled:
      index.html: false
    assets:
      - path: index.html
      - path: logo.png
        template: false
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .codecs import get_compressor, get_hasher
from .hashing import DEFAULT_HASH_LENGTH

logger = logging.getLogger(__name__)

MODES = ("eager", "lazy")

_ASSET_KEYS = {"path", "hash", "embed", "serve", "template", "prepend", "append", "dynamic"}


@dataclass
class AssetEntry:
    """An asset listed in a configuration file (used by file-based hosts)."""
    path: str
    hash: bool = True
    embed: bool = True
    serve: bool = True
    template: bool = True
    dynamic: bool = False
    prepend: Optional[str] = None
    append: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "AssetEntry":
        if isinstance(data, str):
            return cls(path=data)
        if not isinstance(data, dict) or "path" not in data:
            raise ValueError(f"Asset entry must be a path or a mapping with 'path': {data!r}")
        unknown = set(data) - _ASSET_KEYS
        if unknown:
            raise ValueError(f"Unknown asset option(s) for {data['path']}: {sorted(unknown)}")
        return cls(
            path=str(data["path"]),
            hash=bool(data.get("hash", True)),
            embed=bool(data.get("embed", True)),
            serve=bool(data.get("serve", True)),
            template=bool(data.get("template", True)),
            dynamic=bool(data.get("dynamic", False)),
            prepend=data.get("prepend"),
            append=data.get("append"),
        )

    def options(self) -> Dict[str, Any]:
        """Keyword options for ContentStore.add_* calls."""
        return {
            "hashable": self.hash,
            "embeddable": self.embed,
            "serve": self.serve,
            "template": self.template,
            "prepend": self.prepend.encode() if self.prepend is not None else None,
            "append": self.append.encode() if self.append is not None else None,
        }


@dataclass
class Config:
    """
    Options for a resolution pass.

    Attributes:
        mode: "eager" (resolve everything once) or "lazy" (per request)
        variables: Values for `{{: var:name :}}` directives
        hash_length: Digest bytes encoded into hashed public paths
        per_asset_hash_enabled: Per-path override of the asset's hash flag
        hash_algorithm: Registered hasher name
        compression: Registered compressor name ("none" to disable)
        assets: Asset entries listed in a configuration file
    """
    mode: str = "eager"
    variables: Dict[str, str] = field(default_factory=dict)
    hash_length: int = DEFAULT_HASH_LENGTH
    per_asset_hash_enabled: Dict[str, bool] = field(default_factory=dict)
    hash_algorithm: str = "sha256"
    compression: str = "deflate"
    assets: List[AssetEntry] = field(default_factory=list)

    def __post_init__(self):
        errors = self.validate()
        if errors:
            raise ValueError(f"Invalid config: {errors}")

    def validate(self) -> List[str]:
        """Validate configuration. Returns list of errors (empty if valid)."""
        errors = []
        if self.mode not in MODES:
            errors.append(f"mode must be one of {MODES}, got {self.mode!r}")
        if not isinstance(self.hash_length, int) or isinstance(self.hash_length, bool) \
                or self.hash_length < 1:
            errors.append(f"hash_length must be a positive integer, got {self.hash_length!r}")
        for key, value in self.variables.items():
            if not isinstance(key, str) or not isinstance(value, str):
                errors.append(f"variable {key!r} must map a string to a string")
        for key, value in self.per_asset_hash_enabled.items():
            if not isinstance(value, bool):
                errors.append(f"per_asset_hash_enabled[{key!r}] must be a boolean")
        try:
            get_hasher(self.hash_algorithm)
        except ValueError as e:
            errors.append(str(e))
        try:
            get_compressor(self.compression)
        except ValueError as e:
            errors.append(str(e))
        return errors

    @property
    def is_lazy(self) -> bool:
        return self.mode == "lazy"

    def hash_fn(self):
        return get_hasher(self.hash_algorithm)

    def compress_fn(self):
        return get_compressor(self.compression)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "variables": dict(self.variables),
            "hash_length": self.hash_length,
            "per_asset_hash_enabled": dict(self.per_asset_hash_enabled),
            "hash_algorithm": self.hash_algorithm,
            "compression": self.compression,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Config":
        """Create a Config from a plain dictionary (e.g. parsed YAML)."""
        data = data or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config must be a mapping, got {type(data).__name__}")
        known = {"mode", "variables", "hash_length", "per_asset_hash_enabled",
                 "hash_algorithm", "compression", "assets"}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config key(s): {sorted(unknown)}")

        variables = data.get("variables") or {}
        # YAML turns unquoted numbers and booleans into non-strings
        variables = {str(k): v if isinstance(v, str) else str(v) for k, v in variables.items()}

        return cls(
            mode=data.get("mode", "eager"),
            variables=variables,
            hash_length=data.get("hash_length", DEFAULT_HASH_LENGTH),
            per_asset_hash_enabled=dict(data.get("per_asset_hash_enabled") or {}),
            hash_algorithm=data.get("hash_algorithm", "sha256"),
            compression=data.get("compression", "deflate"),
            assets=[AssetEntry.from_dict(a) for a in data.get("assets") or []],
        )

    @classmethod
    def from_yaml(cls, yaml_content: str) -> "Config":
        """Parse config from a YAML string."""
        try:
            data = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML config: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, path: Path | str) -> "Config":
        """Load config from a YAML file."""
        with open(path, "r") as f:
            config = cls.from_yaml(f.read())
        logger.debug(f"Loaded config from {path}: mode={config.mode}, {len(config.assets)} assets")
        return config
