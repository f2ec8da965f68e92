"""
Plugin Loader
-------------
Loads and unloads protocol plugins while keeping the registry valid.

Load pipeline (first failure wins, registry untouched on failure):
1. enabled check            -> DISABLED
2. validate_config()        -> INVALID_CONFIG
3. initialize() + id check  -> FIBER_IDENTITY_MISMATCH
4. register_fiber()         -> CLOSURE_VIOLATION

Every plugin id has a lifecycle state machine:
UNLOADED -> LOADING -> LOADED | FAILED

Lifecycle calls for the same plugin id must not overlap.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional
import asyncio
import logging

from commands.registry import CommandRegistry
from core.context import ExecutionContext
from core.errors import (
    ErrorCategory,
    FiberIdentityMismatchError,
    InvalidConfigError,
    PluginDisabledError,
    PluginNotLoadedError,
    TerminalError,
    TerminalException,
)
from core.state_machine import LifecycleStateMachine, PluginState
from core.types import ProtocolId

from .base import (
    Plugin,
    PluginConfig,
    PluginLoadResult,
    PluginRegistryEntry,
    fiber_from_plugin,
)


class PluginLoader:
    """
    Plugin lifecycle manager.

    Responsibilities:
    - Run the load pipeline and register fibers
    - Remove fibers on unload
    - Track per-plugin lifecycle state and entries
    - Probe plugin health concurrently
    """

    def __init__(self, registry: CommandRegistry, health_timeout_seconds: float = 5.0):
        self._registry = registry
        self._entries: Dict[ProtocolId, PluginRegistryEntry] = {}
        self._machines: Dict[ProtocolId, LifecycleStateMachine] = {}
        self._health_timeout = health_timeout_seconds
        self._logger = logging.getLogger("terminal.plugins.loader")

    def _machine(self, plugin_id: ProtocolId) -> LifecycleStateMachine:
        if plugin_id not in self._machines:
            self._machines[plugin_id] = LifecycleStateMachine(plugin_id)
        return self._machines[plugin_id]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def load_plugin(
        self,
        plugin: Plugin,
        config: Optional[PluginConfig],
        context: ExecutionContext
    ) -> PluginLoadResult:
        """
        Load a plugin and register its fiber.

        Args:
            plugin: Plugin to load
            config: Config to use (plugin.default_config if None)
            context: Execution context handed to initialize()

        Returns:
            PluginLoadResult; failures are reported, never raised
        """
        plugin_id = plugin.metadata.id
        effective = config if config is not None else plugin.default_config

        # A loaded fiber stays registered until its replacement is accepted
        previous = self._entries.get(plugin_id)
        if previous is not None and not previous.loaded:
            previous = None
        if previous is not None:
            self._logger.warning(f"Plugin {plugin_id} already loaded, replacing")

        machine = self._machine(plugin_id)
        machine.transition(PluginState.LOADING, "load requested")

        try:
            if not effective.enabled:
                raise PluginDisabledError(
                    f"Plugin {plugin_id} is disabled",
                    details={"plugin": plugin_id}
                )

            try:
                valid = plugin.validate_config(effective)
            except Exception as e:
                raise InvalidConfigError(
                    f"Config validation for plugin {plugin_id} raised: {e}",
                    details={"plugin": plugin_id}
                ) from e
            if not valid:
                raise InvalidConfigError(
                    f"Invalid configuration for plugin {plugin_id}",
                    details={"plugin": plugin_id}
                )

            fiber = await fiber_from_plugin(plugin, context)
            self._registry.register_fiber(fiber)

        except Exception as e:
            return self._record_failure(plugin, effective, e, previous)

        self._entries[plugin_id] = PluginRegistryEntry(
            plugin=plugin,
            fiber=fiber,
            config=effective,
            loaded=True,
            loaded_at=datetime.now(),
        )
        machine.transition(
            PluginState.LOADED,
            "fiber registered",
            {"commands": len(fiber.visible_commands())}
        )

        if previous is not None and previous.plugin is not plugin:
            try:
                await previous.plugin.cleanup(context)
            except Exception as e:
                self._logger.warning(f"Cleanup of replaced plugin {plugin_id} failed: {e}")

        return PluginLoadResult(plugin_id=plugin_id, success=True, fiber=fiber)

    def _record_failure(
        self,
        plugin: Plugin,
        config: PluginConfig,
        exception: Exception,
        previous: Optional[PluginRegistryEntry] = None
    ) -> PluginLoadResult:
        plugin_id = plugin.metadata.id

        if isinstance(exception, TerminalException):
            error = exception.error
        else:
            error = TerminalError.from_exception(
                exception, ErrorCategory.ACTION_FAILURE, {"plugin": plugin_id}
            )

        if isinstance(exception, FiberIdentityMismatchError) or not error.recoverable:
            self._logger.error(f"Plugin {plugin_id} rejected: {error.message}")
        elif error.category == ErrorCategory.DISABLED:
            self._logger.info(f"Plugin {plugin_id} skipped: disabled")
        else:
            self._logger.warning(f"Plugin {plugin_id} failed to load: {error.message}")

        if previous is not None:
            self._machine(plugin_id).transition(
                PluginState.LOADED,
                f"replacement rejected ({error.category.name.lower()}), previous fiber kept"
            )
            return PluginLoadResult(plugin_id=plugin_id, success=False, error=error)

        self._entries[plugin_id] = PluginRegistryEntry(
            plugin=plugin,
            config=config,
            loaded=False,
            error=error,
        )
        self._machine(plugin_id).transition(
            PluginState.FAILED, error.category.name.lower()
        )

        return PluginLoadResult(plugin_id=plugin_id, success=False, error=error)

    async def unload_plugin(self, plugin_id: ProtocolId, context: ExecutionContext) -> None:
        """
        Unload a plugin and remove its fiber from the registry.

        Raises:
            PluginNotLoadedError: If the plugin has no entry
        """
        entry = self._entries.get(plugin_id)
        if entry is None:
            raise PluginNotLoadedError(
                f"Plugin {plugin_id} is not loaded",
                details={"plugin": plugin_id}
            )

        if entry.loaded:
            await entry.plugin.cleanup(context)
            self._registry.unregister_fiber(plugin_id)

        del self._entries[plugin_id]
        self._machine(plugin_id).transition(PluginState.UNLOADED, "unload requested")

    async def reload_plugin(
        self,
        plugin_id: ProtocolId,
        context: ExecutionContext
    ) -> PluginLoadResult:
        """
        Unload then load a plugin with its stored config.

        Raises:
            PluginNotLoadedError: If the plugin has no entry
        """
        entry = self._entries.get(plugin_id)
        if entry is None:
            raise PluginNotLoadedError(
                f"Plugin {plugin_id} is not loaded",
                details={"plugin": plugin_id}
            )

        await self.unload_plugin(plugin_id, context)
        return await self.load_plugin(entry.plugin, entry.config, context)

    async def load_all(
        self,
        plugins: Iterable[Plugin],
        configs: Optional[Mapping[ProtocolId, PluginConfig]],
        context: ExecutionContext
    ) -> List[PluginLoadResult]:
        """Load plugins one after another, each with its configured override."""
        configs = configs or {}
        results = []
        for plugin in plugins:
            results.append(await self.load_plugin(
                plugin, configs.get(plugin.metadata.id), context
            ))

        loaded = sum(1 for r in results if r.success)
        self._logger.info(f"Loaded {loaded}/{len(results)} plugins")
        return results

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_plugin(self, plugin_id: ProtocolId) -> Optional[PluginRegistryEntry]:
        return self._entries.get(plugin_id)

    def get_all_plugins(self) -> List[PluginRegistryEntry]:
        return list(self._entries.values())

    def get_loaded_plugin_ids(self) -> List[ProtocolId]:
        return [pid for pid, entry in self._entries.items() if entry.loaded]

    def is_plugin_loaded(self, plugin_id: ProtocolId) -> bool:
        entry = self._entries.get(plugin_id)
        return entry is not None and entry.loaded

    def get_state(self, plugin_id: ProtocolId) -> PluginState:
        machine = self._machines.get(plugin_id)
        return machine.state if machine else PluginState.UNLOADED

    def get_lifecycle(self, plugin_id: ProtocolId) -> Optional[LifecycleStateMachine]:
        return self._machines.get(plugin_id)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def _probe(self, entry: PluginRegistryEntry, context: ExecutionContext) -> bool:
        plugin_id = entry.plugin.metadata.id

        if not entry.loaded:
            return False

        probe = entry.plugin.health_check
        if probe is None:
            return True

        try:
            healthy = await asyncio.wait_for(probe(context), timeout=self._health_timeout)
        except asyncio.TimeoutError:
            self._logger.warning(f"Health probe for {plugin_id} timed out")
            return False
        except Exception as e:
            self._logger.warning(f"Health probe for {plugin_id} failed: {e}")
            return False

        if not healthy:
            self._logger.warning(f"Plugin {plugin_id} reported unhealthy")
        return bool(healthy)

    async def health_check_all(self, context: ExecutionContext) -> Dict[ProtocolId, bool]:
        """
        Probe every plugin entry concurrently.

        Returns:
            plugin id -> healthy. Failed entries are False; plugins without
            a probe are True; a raising or slow probe only affects itself.
        """
        entries = list(self._entries.items())
        results = await asyncio.gather(
            *(self._probe(entry, context) for _, entry in entries)
        )
        return {pid: healthy for (pid, _), healthy in zip(entries, results)}
