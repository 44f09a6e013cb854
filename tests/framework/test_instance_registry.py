"""
Tests for sitefactory.framework.instances.

Tests cover:
- Tenant id resolution from arguments and the environment
- One Factory per tenant, even under concurrent first calls
- Refresh on repeat lookups
- Clearing the registry
"""

import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from sitefactory.framework.factory import Factory
from sitefactory.framework.instances import SINGLETON_KEY, InstanceRegistry


class CountingFactory(Factory):
    """Factory that counts constructions and is slow to build."""

    built = 0
    lock = threading.Lock()

    def __init__(self, *args, **kwargs):
        time.sleep(0.05)
        with CountingFactory.lock:
            CountingFactory.built += 1
        super().__init__(*args, **kwargs)


class TestResolve:
    """Tests for InstanceRegistry.resolve."""

    def test_explicit_id(self):
        assert InstanceRegistry().resolve("music") == "music"

    def test_environment_variables(self, monkeypatch):
        registry = InstanceRegistry()
        monkeypatch.setenv("SITE_NAME", "by-name")
        assert registry.resolve() == "by-name"

        monkeypatch.setenv("_SITE_ID", "by-id")
        assert registry.resolve() == "by-id"

    def test_custom_variable(self, monkeypatch):
        monkeypatch.setenv("MUSIC_SITE", "jazz")

        assert InstanceRegistry(site_id_variable="MUSIC_SITE").resolve() == "jazz"

    def test_singleton_fallback(self):
        assert InstanceRegistry().resolve() == SINGLETON_KEY


class TestInstance:
    """Tests for InstanceRegistry.instance."""

    def test_same_factory_per_tenant(self, site_files):
        registry = InstanceRegistry()
        first = registry.instance("music", *map(str, site_files))

        assert registry.instance("music") is first
        assert registry.instance("jazz") is not first
        assert first.id == "music"
        assert "music" in registry
        assert sorted(registry.keys()) == ["jazz", "music"]

    def test_concurrent_first_calls_build_once(self):
        registry = InstanceRegistry()
        CountingFactory.built = 0

        with ThreadPoolExecutor(max_workers=8) as pool:
            factories = list(pool.map(lambda _: registry.instance("busy", factory_class=CountingFactory), range(8)))

        assert CountingFactory.built == 1
        assert all(factory is factories[0] for factory in factories)
        assert len(registry) == 1

    def test_repeat_lookup_refreshes_config(self, write_config):
        path = write_config("site.conf", "refresh_interval = 0\nsite_title = Before")
        registry = InstanceRegistry()
        factory = registry.instance("music", str(path))
        assert factory.config.get("site_title") == "Before"

        path.write_text("refresh_interval = 0\nsite_title = After\n", encoding="utf-8")
        stat = path.stat()
        os.utime(path, (stat.st_atime, stat.st_mtime + 10))

        assert registry.instance("music").config.get("site_title") == "After"

    def test_clear_closes_factories(self, site_files):
        registry = InstanceRegistry()
        factory = registry.instance("music", *map(str, site_files))
        assert factory.engine is not None

        registry.clear()

        assert len(registry) == 0
        assert factory.status()["engine_built"] is False

    def test_status_report(self, site_files):
        registry = InstanceRegistry()
        registry.instance("music", *map(str, site_files))

        (report,) = registry.status_report()

        assert report["site"] == "music"


def test_factory_instance_uses_shared_registry(site_files):
    """Factory.instance goes through the process-wide registry."""
    factory = Factory.instance("music", *map(str, site_files))

    assert Factory.instance("music") is factory
    assert isinstance(factory, Factory)
