"""
Tests for the script registry and cross-instance ownership warnings.
"""

import logging
import threading
import time

import pytest

from bundle_plugins.rollup.registry import OwnershipRegistry, ScriptRegistry


class CountingNamer:
    def __init__(self):
        self.calls = []

    def __call__(self, path):
        self.calls.append(path)
        return f"{path.replace('/', '_')}-000000.js"


class TestScriptRegistry:
    """Test per-instance registration."""

    def test_names_once(self):
        """Test: Registering a path twice names it once and returns the same name."""
        namer = CountingNamer()
        registry = ScriptRegistry(naming=namer, owners=OwnershipRegistry())

        first = registry.register("js/a.js")
        second = registry.register("js/a.js")

        assert first == second
        assert namer.calls == ["js/a.js"]
        assert registry.input_files == {"js/a.js": first}

    def test_insertion_order(self):
        """Test: Keys keep first-registration order."""
        registry = ScriptRegistry(naming=CountingNamer(), owners=OwnershipRegistry())
        for src in ("b.js", "a.js", "b.js", "c.js"):
            registry.register(src)
        assert list(registry.keys()) == ["b.js", "a.js", "c.js"]

    def test_reset(self):
        """Test: Reset empties the registry whatever it held."""
        registry = ScriptRegistry(naming=CountingNamer(), owners=OwnershipRegistry())
        registry.register("a.js")
        registry.register("b.js")

        registry.reset()
        assert len(registry) == 0
        assert "a.js" not in registry
        assert registry.name_for("a.js") is None

    def test_naming_errors_propagate(self):
        """Test: A failing naming strategy fails the registration and caches nothing."""

        def broken(path):
            raise OSError("unreadable")

        registry = ScriptRegistry(naming=broken, owners=OwnershipRegistry())
        with pytest.raises(OSError):
            registry.register("a.js")
        assert "a.js" not in registry

    def test_threaded_registration_names_once(self):
        """Test: Concurrent registrations of one path call the naming strategy once."""
        calls = []

        def slow(path):
            calls.append(path)
            time.sleep(0.05)
            return "a-000000.js"

        registry = ScriptRegistry(naming=slow, owners=OwnershipRegistry())
        results = []
        start = threading.Barrier(8)

        def worker():
            start.wait()
            results.append(registry.register("a.js"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert calls == ["a.js"]
        assert results == ["a-000000.js"] * 8
        assert registry.input_files == {"a.js": "a-000000.js"}


class TestOwnershipRegistry:
    """Test warnings for scripts shared across plugin instances."""

    def test_shared_script_warns_once(self, caplog):
        """Test: Two instances declaring one script log one warning and both keep it."""
        owners = OwnershipRegistry()
        first = ScriptRegistry(naming=CountingNamer(), owners=owners)
        second = ScriptRegistry(naming=CountingNamer(), owners=owners)

        with caplog.at_level(logging.WARNING):
            first.register("shared.js")
            second.register("shared.js")

        warnings = [r for r in caplog.records if "used in multiple bundles" in r.getMessage()]
        assert len(warnings) == 1
        assert "shared.js" in warnings[0].getMessage()
        assert "shared.js" in first and "shared.js" in second
        assert owners.owner_of("shared.js") is second

    def test_same_instance_does_not_warn(self, caplog):
        """Test: One instance reusing a script across pages is not a collision."""
        registry = ScriptRegistry(naming=CountingNamer(), owners=OwnershipRegistry())

        with caplog.at_level(logging.WARNING):
            registry.register("a.js")
            registry.register("a.js")

        assert not [r for r in caplog.records if "used in multiple bundles" in r.getMessage()]

    def test_claim_and_reset(self):
        """Test: Claims report previous foreign owners; reset forgets them."""
        owners = OwnershipRegistry()
        a, b = object(), object()

        assert owners.claim("x.js", a) is False
        assert owners.claim("x.js", a) is False
        assert owners.claim("x.js", b) is True
        assert len(owners) == 1

        owners.reset()
        assert len(owners) == 0
        assert owners.claim("x.js", a) is False

    def test_failed_naming_claims_nothing(self, caplog):
        """Test: A registration that fails to name leaves no owner to warn about later."""

        def broken(path):
            raise OSError("unreadable")

        owners = OwnershipRegistry()
        first = ScriptRegistry(naming=broken, owners=owners)
        second = ScriptRegistry(naming=CountingNamer(), owners=owners)

        with pytest.raises(OSError):
            first.register("a.js")
        assert len(owners) == 0

        with caplog.at_level(logging.WARNING):
            second.register("a.js")

        assert not [r for r in caplog.records if "used in multiple bundles" in r.getMessage()]
        assert owners.owner_of("a.js") is second
