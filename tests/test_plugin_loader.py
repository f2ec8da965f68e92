"""
Plugin Loader Tests
-------------------
Tests for the plugin lifecycle.

Tests cover:
- Load pipeline order and failure categories
- Registry left untouched by failed loads
- Unload / reload
- Lifecycle state machine
- Concurrent health probes
"""

import asyncio

import pytest

from conftest import make_fiber
from commands.registry import CommandRegistry
from core.context import create_execution_context
from core.errors import ErrorCategory, PluginNotLoadedError
from core.state_machine import LifecycleStateMachine, PluginState
from core.types import ResolutionContext
from plugins.base import Plugin, PluginConfig, PluginMetadata, fiber_from_plugin
from plugins.loader import PluginLoader


class FakePlugin(Plugin):
    """Configurable plugin for lifecycle tests."""

    def __init__(self, id="uniswap", fiber_id=None, valid=True, validate_raises=False,
                 init_raises=False, health=None):
        self.metadata = PluginMetadata(id=id, name=id.title(), version="1.0.0")
        self._fiber_id = fiber_id or id
        self._valid = valid
        self._validate_raises = validate_raises
        self._init_raises = init_raises
        self.calls = []
        self.cleaned_up = False
        if health is not None:
            self.health_check = health

    async def initialize(self, context):
        self.calls.append("initialize")
        if self._init_raises:
            raise RuntimeError("initialize exploded")
        return make_fiber(self._fiber_id, ("swap", ("s",)))

    def validate_config(self, config):
        self.calls.append("validate")
        if self._validate_raises:
            raise KeyError("chains")
        return self._valid

    async def cleanup(self, context):
        self.cleaned_up = True


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def loader():
    return PluginLoader(CommandRegistry(), health_timeout_seconds=0.05)


class TestLoadPipeline:
    """Each stage fails with its own category."""

    def test_successful_load(self, loader, context):
        plugin = FakePlugin()
        result = run(loader.load_plugin(plugin, None, context))

        assert result.success
        assert result.fiber.id == "uniswap"
        assert loader.is_plugin_loaded("uniswap")
        assert loader.get_state("uniswap") == PluginState.LOADED
        assert loader.get_plugin("uniswap").loaded_at is not None

    def test_disabled_checked_first(self, loader, context):
        """A disabled plugin is never validated or initialized."""
        plugin = FakePlugin(valid=False)
        result = run(loader.load_plugin(plugin, PluginConfig(enabled=False), context))

        assert not result.success
        assert result.error.category == ErrorCategory.DISABLED
        assert plugin.calls == []

    def test_invalid_config(self, loader, context):
        plugin = FakePlugin(valid=False)
        result = run(loader.load_plugin(plugin, None, context))

        assert result.error.category == ErrorCategory.INVALID_CONFIG
        assert plugin.calls == ["validate"]

    def test_raising_validator_is_invalid_config(self, loader, context):
        result = run(loader.load_plugin(FakePlugin(validate_raises=True), None, context))
        assert result.error.category == ErrorCategory.INVALID_CONFIG

    def test_fiber_identity_mismatch(self, loader, context):
        run(loader.load_plugin(FakePlugin(id="1inch"), None, context))
        before = loader._registry.get_protocols()

        plugin = FakePlugin(id="uniswap", fiber_id="sushiswap")
        result = run(loader.load_plugin(plugin, None, context))

        assert result.error.category == ErrorCategory.FIBER_IDENTITY_MISMATCH
        assert loader.get_state("uniswap") == PluginState.FAILED
        assert before == ["1inch"]
        assert loader._registry.get_protocols() == before
        assert loader._registry.get_fiber("sushiswap") is None

    def test_initialize_exception_recorded(self, loader, context):
        result = run(loader.load_plugin(FakePlugin(init_raises=True), None, context))

        assert not result.success
        assert "initialize exploded" in result.error.message

    def test_failed_entry_recorded(self, loader, context):
        run(loader.load_plugin(FakePlugin(valid=False), None, context))
        entry = loader.get_plugin("uniswap")

        assert entry is not None
        assert not entry.loaded
        assert entry.error.category == ErrorCategory.INVALID_CONFIG
        assert loader.get_loaded_plugin_ids() == []

    def test_default_config_used(self, loader, context):
        run(loader.load_plugin(FakePlugin(), None, context))
        assert loader.get_plugin("uniswap").config.enabled

    def test_fiber_from_plugin_checks_id(self, context):
        from core.errors import FiberIdentityMismatchError

        with pytest.raises(FiberIdentityMismatchError):
            run(fiber_from_plugin(FakePlugin(id="a", fiber_id="b"), context))


class TestUnloadReload:
    """Unload removes the fiber; reload restores it."""

    def test_unload_removes_fiber(self, loader, context):
        plugin = FakePlugin()
        run(loader.load_plugin(plugin, None, context))
        run(loader.unload_plugin("uniswap", context))

        assert plugin.cleaned_up
        assert loader.get_plugin("uniswap") is None
        assert loader._registry.get_fiber("uniswap") is None
        assert loader.get_state("uniswap") == PluginState.UNLOADED

    def test_unload_unknown_raises(self, loader, context):
        with pytest.raises(PluginNotLoadedError):
            run(loader.unload_plugin("aave", context))

    def test_unload_failed_entry(self, loader, context):
        plugin = FakePlugin(valid=False)
        run(loader.load_plugin(plugin, None, context))
        run(loader.unload_plugin("uniswap", context))

        assert not plugin.cleaned_up
        assert loader.get_state("uniswap") == PluginState.UNLOADED

    def test_reload_keeps_config(self, loader, context):
        config = PluginConfig(config={"key": "value"})
        run(loader.load_plugin(FakePlugin(), config, context))

        result = run(loader.reload_plugin("uniswap", context))

        assert result.success
        assert loader.get_plugin("uniswap").config.config == {"key": "value"}
        states = [t.to_state for t in loader.get_lifecycle("uniswap").history]
        assert states == [
            PluginState.LOADING, PluginState.LOADED,
            PluginState.UNLOADED,
            PluginState.LOADING, PluginState.LOADED,
        ]

    def test_reload_unknown_raises(self, loader, context):
        with pytest.raises(PluginNotLoadedError):
            run(loader.reload_plugin("aave", context))

    def test_loading_twice_replaces(self, loader, context):
        first = FakePlugin()
        run(loader.load_plugin(first, None, context))
        run(loader.load_plugin(FakePlugin(), None, context))

        assert first.cleaned_up
        assert loader.get_loaded_plugin_ids() == ["uniswap"]
        states = [t.to_state for t in loader.get_lifecycle("uniswap").history]
        assert states == [
            PluginState.LOADING, PluginState.LOADED,
            PluginState.LOADING, PluginState.LOADED,
        ]

    @pytest.mark.parametrize("replacement,config,category", [
        (dict(fiber_id="evil"), None, ErrorCategory.FIBER_IDENTITY_MISMATCH),
        (dict(valid=False), None, ErrorCategory.INVALID_CONFIG),
        (dict(), PluginConfig(enabled=False), ErrorCategory.DISABLED),
        (dict(init_raises=True), None, ErrorCategory.ACTION_FAILURE),
    ])
    def test_rejected_replacement_keeps_loaded_fiber(
        self, loader, context, replacement, config, category
    ):
        first = FakePlugin()
        run(loader.load_plugin(first, None, context))
        fiber = loader._registry.get_fiber("uniswap")

        result = run(loader.load_plugin(FakePlugin(**replacement), config, context))

        assert not result.success
        assert result.error.category == category
        assert loader._registry.get_protocols() == ["uniswap"]
        assert loader._registry.get_fiber("uniswap") is fiber
        assert loader.get_plugin("uniswap").plugin is first
        assert loader.get_state("uniswap") == PluginState.LOADED
        assert not first.cleaned_up

        resolved = loader._registry.resolve(ResolutionContext(
            input="swap", execution_context=context
        ))
        assert resolved.command.id == "swap"
        assert resolved.protocol == "uniswap"

    def test_failed_plugin_can_retry(self, loader, context):
        run(loader.load_plugin(FakePlugin(valid=False), None, context))
        result = run(loader.load_plugin(FakePlugin(), None, context))

        assert result.success
        assert loader.get_state("uniswap") == PluginState.LOADED


class TestLoadAll:
    def test_overrides_by_id(self, loader, context):
        plugins = [FakePlugin("uniswap"), FakePlugin("1inch")]
        results = run(loader.load_all(
            plugins, {"1inch": PluginConfig(enabled=False)}, context
        ))

        assert [r.success for r in results] == [True, False]
        assert loader.get_loaded_plugin_ids() == ["uniswap"]
        assert len(loader.get_all_plugins()) == 2


class TestHealthChecks:
    """Probes run concurrently and fail independently."""

    def test_mixed_health(self, loader, context):
        async def healthy(ctx):
            return True

        async def unhealthy(ctx):
            return False

        async def raising(ctx):
            raise ConnectionError("down")

        async def slow(ctx):
            await asyncio.sleep(1)
            return True

        plugins = [
            FakePlugin("a", health=healthy),
            FakePlugin("b", health=unhealthy),
            FakePlugin("c", health=raising),
            FakePlugin("d", health=slow),
            FakePlugin("e"),
            FakePlugin("f", valid=False),
        ]

        async def scenario():
            await loader.load_all(plugins, None, context)
            return await loader.health_check_all(context)

        health = run(scenario())

        assert health == {
            "a": True, "b": False, "c": False, "d": False, "e": True, "f": False,
        }

    def test_no_plugins(self, loader, context):
        assert run(loader.health_check_all(context)) == {}


class TestLifecycleStateMachine:
    """Validated lifecycle transitions."""

    def test_valid_path(self):
        machine = LifecycleStateMachine("uniswap")
        machine.transition(PluginState.LOADING, "load")
        machine.transition(PluginState.LOADED, "ok")

        assert machine.state == PluginState.LOADED
        assert [t.reason for t in machine.history] == ["load", "ok"]

    def test_invalid_transition(self):
        machine = LifecycleStateMachine("uniswap")
        with pytest.raises(ValueError):
            machine.transition(PluginState.LOADED, "skip loading")

    def test_failed_can_retry(self):
        machine = LifecycleStateMachine("uniswap", PluginState.FAILED)
        assert machine.can_transition(PluginState.LOADING)
        assert machine.can_transition(PluginState.UNLOADED)
        assert not machine.can_transition(PluginState.LOADED)

    def test_loaded_can_start_replacement(self):
        machine = LifecycleStateMachine("uniswap", PluginState.LOADED)
        assert machine.can_transition(PluginState.LOADING)
        assert not machine.can_transition(PluginState.FAILED)
