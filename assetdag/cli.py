#!/usr/bin/env python3
"""
assetdag CLI

Command-line host for file-based asset trees:
  assetdag bundle  - Resolve all assets and write them under their public paths
  assetdag inspect - Show evaluation order and dependencies

Usage:
  assetdag bundle <config.yaml> --root <dir> --out <dir>
  assetdag inspect <config.yaml> --root <dir>
"""

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path

from .config import Config
from .errors import AssetError, AssetIOError
from .registry import Registry
from .store import ContentStore, file_loader

logger = logging.getLogger(__name__)


def load_store(config: Config, root: Path) -> ContentStore:
    """
    Register every asset listed in the config, reading files under `root`.

    Static entries are read now; dynamic entries get a file loader.
    """
    store = ContentStore()
    for entry in config.assets:
        path = root / entry.path
        if entry.dynamic:
            store.add_dynamic(entry.path, file_loader(path), **entry.options())
            continue
        try:
            content = path.read_bytes()
        except OSError as e:
            raise AssetIOError(entry.path, e) from e
        store.add_static(entry.path, content, **entry.options())
    return store


async def build_registry(args) -> Registry:
    config = Config.from_file(Path(args.config))
    if config.is_lazy:
        logger.info("Config selects lazy mode; the CLI always resolves eagerly")
        config = dataclasses.replace(config, mode="eager")
    store = load_store(config, Path(args.root))
    return await Registry.create(store, config)


def cmd_bundle(args):
    """Write every served asset under its public path, plus manifest.json."""
    registry = asyncio.run(build_registry(args))
    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    out_root = out_dir.resolve()

    for logical_path in registry.paths():
        handle = registry.lookup(logical_path)
        target = (out_root / handle.public_path()).resolve()
        if not target.is_relative_to(out_root) or target == out_root:
            raise ValueError(
                f"Public path {handle.public_path()!r} of {logical_path} is outside {out_dir}"
            )
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(handle.content())
        print(f"  {logical_path} -> {handle.public_path()}")

    manifest = registry.manifest()
    manifest_path = out_dir / "manifest.json"
    with open(manifest_path, "w") as f:
        json.dump(manifest, f, indent=2, sort_keys=True)

    print(f"\nBundled {len(manifest)} assets into {out_dir}")
    print(f"Manifest: {manifest_path}")


def cmd_inspect(args):
    """Print evaluation order and direct dependencies."""
    registry = asyncio.run(build_registry(args))
    resolver = registry.resolver

    print(f"Assets: {len(resolver)}")
    print(f"Build time: {resolver.build_time:.3f}s")
    print("\nEvaluation order:")
    for index, logical_path in enumerate(resolver.order):
        resolved = resolver.resolve(logical_path)
        flags = []
        if not registry.info(logical_path).served:
            flags.append("not served")
        suffix = f" ({', '.join(flags)})" if flags else ""
        print(f"  {index + 1}. {logical_path} -> {resolved.public_path}{suffix}")
        for dep in resolved.dependencies:
            print(f"       {dep.kind.value}: {dep.target}")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="assetdag",
        description="assetdag - Content-hashed asset resolution",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # bundle command
    bundle_parser = subparsers.add_parser("bundle", help="Write resolved assets and manifest")
    bundle_parser.add_argument("config", help="Config YAML file")
    bundle_parser.add_argument("--root", required=True, help="Directory holding the asset files")
    bundle_parser.add_argument("--out", required=True, help="Output directory")

    # inspect command
    inspect_parser = subparsers.add_parser("inspect", help="Show evaluation order and dependencies")
    inspect_parser.add_argument("config", help="Config YAML file")
    inspect_parser.add_argument("--root", required=True, help="Directory holding the asset files")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "bundle":
        command = cmd_bundle
    elif args.command == "inspect":
        command = cmd_inspect
    else:
        parser.print_help()
        sys.exit(1)

    try:
        command(args)
    except (AssetError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
