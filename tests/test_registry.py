# tests/test_registry.py
"""Tests for the Registry façade and the builder."""

import asyncio

import pytest

from assetdag.builder import RegistryBuilder
from assetdag.config import Config
from assetdag.errors import BuildError, NotFound
from assetdag.registry import EagerHandle, LazyHandle, Registry
from assetdag.store import ContentStore


@pytest.fixture
def store():
    """Create a small site: a page, its stylesheet and a hidden partial."""
    store = ContentStore()
    store.add_static("index.html", b'<link href="/{{: path:style.css :}}">', hashable=False)
    store.add_static("style.css", b"{{: include:_colors.css :}} body {}")
    store.add_static("_colors.css", b":root { --accent: {{: var:accent :}}; }", serve=False)
    return store


@pytest.fixture
def config():
    return Config(variables={"accent": "red"})


@pytest.fixture
def lazy_config():
    return Config(mode="lazy", variables={"accent": "red"})


class TestEagerRegistry:
    """Test registry lookups in eager mode."""

    def test_lookup(self, store, config):
        """Test handles expose resolved data synchronously."""
        registry = asyncio.run(Registry.create(store, config))
        handle = registry.lookup("style.css")

        assert registry.mode == "eager"
        assert isinstance(handle, EagerHandle)
        assert handle.content() == b":root { --accent: red; } body {}"
        assert handle.public_path().startswith("style.")
        assert handle.compressed_content() is not None
        assert handle.digest() == handle.resolve().digest

    def test_reference_rewritten(self, store, config):
        """Test the page links the hashed stylesheet."""
        registry = asyncio.run(Registry.create(store, config))
        css = registry.lookup("style.css").public_path()

        assert registry.lookup("index.html").content() == f'<link href="/{css}">'.encode()

    def test_unknown_path(self, store, config):
        """Test NotFound for unregistered paths."""
        registry = asyncio.run(Registry.create(store, config))
        with pytest.raises(NotFound):
            registry.lookup("missing.css")

    def test_not_served(self, store, config):
        """Test non-served assets can be included but not looked up."""
        registry = asyncio.run(Registry.create(store, config))

        with pytest.raises(NotFound):
            registry.lookup("_colors.css")
        assert "_colors.css" not in registry
        assert registry.paths() == ["index.html", "style.css"]
        assert len(registry) == 2

    def test_lookup_public(self, store, config):
        """Test lookup by hashed public path."""
        registry = asyncio.run(Registry.create(store, config))
        public = registry.lookup("style.css").public_path()

        assert registry.lookup_public(public).logical_path == "style.css"
        assert registry.lookup_public("index.html").logical_path == "index.html"
        with pytest.raises(NotFound):
            registry.lookup_public("style.css")

    def test_lookup_public_not_served(self, store, config):
        """Test hidden assets stay hidden by public path."""
        registry = asyncio.run(Registry.create(store, config))
        hidden = registry.resolver.resolve("_colors.css").public_path

        with pytest.raises(NotFound):
            registry.lookup_public(hidden)

    def test_get(self, store, config):
        """Test get returns final bytes."""
        registry = asyncio.run(Registry.create(store, config))
        assert asyncio.run(registry.get("style.css")).endswith(b"body {}")

    def test_manifest(self, store, config):
        """Test the logical -> public mapping of served assets."""
        registry = asyncio.run(Registry.create(store, config))
        manifest = registry.manifest()

        assert set(manifest) == {"index.html", "style.css"}
        assert manifest["index.html"] == "index.html"
        assert manifest["style.css"] == registry.lookup("style.css").public_path()

    def test_info(self, store, config):
        """Test asset meta information."""
        registry = asyncio.run(Registry.create(store, config))
        info = registry.info("_colors.css")

        assert not info.served
        assert not info.dynamic
        assert info.hashed
        assert info.public_path.startswith("_colors.")

    def test_invalidate_rejected(self, store, config):
        """Test eager registries cannot be invalidated."""
        registry = asyncio.run(Registry.create(store, config))
        with pytest.raises(RuntimeError):
            registry.invalidate("style.css")

    def test_build_errors_abort(self, store):
        """Test a missing variable aborts construction."""
        with pytest.raises(BuildError):
            asyncio.run(Registry.create(store, Config()))

    def test_default_config(self):
        """Test a registry without config is eager."""
        store = ContentStore()
        store.add_static("a.txt", b"hello")
        registry = asyncio.run(Registry.create(store))

        assert registry.mode == "eager"
        assert registry.stats() is None


class TestLazyRegistry:
    """Test registry lookups in lazy mode."""

    def test_lookup(self, store, lazy_config):
        """Test handles resolve on demand."""
        registry = asyncio.run(Registry.create(store, lazy_config))
        handle = registry.lookup("style.css")

        async def scenario():
            return await handle.content(), await handle.public_path()

        content, public = asyncio.run(scenario())

        assert isinstance(handle, LazyHandle)
        assert content == b":root { --accent: red; } body {}"
        assert public.startswith("style.")

    def test_concurrent_handle_users(self, lazy_config):
        """Test many callers of one handle share one resolution."""
        calls = []

        async def loader():
            calls.append(1)
            await asyncio.sleep(0.01)
            return b"payload"

        store = ContentStore()
        store.add_dynamic("data.json", loader)
        registry = asyncio.run(Registry.create(store, lazy_config))
        handle = registry.lookup("data.json")

        async def scenario():
            return await asyncio.gather(*(handle.content() for _ in range(20)))

        assert asyncio.run(scenario()) == [b"payload"] * 20
        assert len(calls) == 1

    def test_not_served(self, store, lazy_config):
        """Test non-served assets are rejected before resolving."""
        registry = asyncio.run(Registry.create(store, lazy_config))
        with pytest.raises(NotFound):
            registry.lookup("_colors.css")

    def test_lookup_public(self, store, lazy_config):
        """Test public paths become known once resolved."""
        registry = asyncio.run(Registry.create(store, lazy_config))

        async def scenario():
            public = await registry.lookup("style.css").public_path()
            content = await registry.lookup_public(public).content()
            return public, content

        public, content = asyncio.run(scenario())
        assert content.endswith(b"body {}")

    def test_lookup_public_unknown(self, store, lazy_config):
        """Test public paths not produced yet are not found."""
        registry = asyncio.run(Registry.create(store, lazy_config))
        with pytest.raises(NotFound):
            registry.lookup_public("style.AAAAAAAAAAAA.css")

    def test_manifest_lists_resolved(self, store, lazy_config):
        """Test the lazy manifest only holds resolved assets."""
        registry = asyncio.run(Registry.create(store, lazy_config))
        assert registry.manifest() == {}

        asyncio.run(registry.get("index.html"))

        assert set(registry.manifest()) == {"index.html", "style.css"}
        assert registry.info("index.html").public_path == "index.html"

    def test_invalidate(self, lazy_config):
        """Test invalidation picks up changed content."""
        content = {"a.txt": b"one"}
        store = ContentStore()
        store.add_dynamic("a.txt", lambda: content["a.txt"])
        store.add_static("b.txt", b"<{{: include:a.txt :}}>")
        registry = asyncio.run(Registry.create(store, lazy_config))

        assert asyncio.run(registry.get("b.txt")) == b"<one>"
        content["a.txt"] = b"two"
        assert asyncio.run(registry.get("b.txt")) == b"<one>"

        assert registry.invalidate("a.txt") == ["a.txt", "b.txt"]
        assert asyncio.run(registry.get("b.txt")) == b"<two>"
        assert registry.stats().invalidations == 1


class TestRegistryBuilder:
    """Test the fluent builder."""

    def test_build_eager(self):
        """Test the hello world example."""
        registry = asyncio.run(
            RegistryBuilder()
            .static("a.txt", b"hello")
            .static("b.txt", b"{{: include:a.txt :}} world")
            .build()
        )

        assert registry.lookup("b.txt").content() == b"hello world"

    def test_build_lazy(self):
        """Test mode, variables and loaders."""
        registry = asyncio.run(
            RegistryBuilder(mode="lazy")
            .dynamic("greeting.txt", lambda: b"{{: var:name :}}")
            .variable("name", "v1")
            .build()
        )

        assert registry.mode == "lazy"
        assert asyncio.run(registry.get("greeting.txt")) == b"v1"

    def test_file_and_directory(self, tmp_path):
        """Test file-backed and directory-listed assets."""
        path = tmp_path / "app.js"
        path.write_bytes(b"run();")

        registry = asyncio.run(
            RegistryBuilder()
            .file("app.js", path, embeddable=True)
            .directory("img", "*.png", [("a.png", b"A"), ("b.gif", b"B")], template=False)
            .hash_enabled("app.js", False)
            .build()
        )

        assert registry.paths() == ["app.js", "img/a.png"]
        assert registry.lookup("app.js").public_path() == "app.js"
        assert registry.lookup("app.js").compressed_content() is not None

    def test_config_object(self):
        """Test passing a Config."""
        builder = RegistryBuilder(Config(mode="lazy", hash_length=6))
        assert builder.config().hash_length == 6

    def test_config_and_options_conflict(self):
        """Test Config and keyword options are exclusive."""
        with pytest.raises(ValueError):
            RegistryBuilder(Config(), mode="lazy")

    def test_invalid_option(self):
        """Test invalid options are reported at build."""
        with pytest.raises(ValueError):
            RegistryBuilder(mode="sometimes").config()
        with pytest.raises(ValueError, match="Unknown config option"):
            RegistryBuilder(colour="blue").config()

    def test_progress_and_hash_function(self):
        """Test callbacks and custom functions reach the resolver."""
        events = []
        registry = asyncio.run(
            RegistryBuilder()
            .static("a.txt", b"x")
            .hash_function(lambda data: bytes(9))
            .compress_function(lambda data: b"z")
            .on_progress(events.append)
            .build()
        )
        handle = registry.lookup("a.txt")

        assert handle.public_path() == "a.AAAAAAAAAAAA.txt"
        assert handle.compressed_content() == b"z"
        assert any(e.status == "completed" for e in events)
