"""
Plugin Contract
---------------
What a protocol integration provides to the terminal.

A plugin:
- declares metadata (its id is the id of the fiber it contributes)
- ships a default config (enabled flag, settings, credentials)
- builds its fiber in initialize()
- optionally validates config, cleans up, and answers health probes
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from core.context import ExecutionContext
from core.errors import FiberIdentityMismatchError, TerminalError
from core.monoid import add_command_to_fiber, create_protocol_fiber
from core.types import Command, CommandAction, CommandScope, ProtocolFiber, ProtocolId


@dataclass(frozen=True)
class PluginMetadata:
    """Descriptive plugin information."""
    id: ProtocolId
    name: str
    version: str
    description: str = ""
    author: str = ""
    homepage: str = ""
    tags: tuple = ()
    dependencies: tuple = ()


class PluginConfig(BaseModel):
    """Per-plugin configuration (from defaults or the config file)."""
    enabled: bool = True
    config: Dict[str, Any] = Field(default_factory=dict)
    credentials: Dict[str, str] = Field(default_factory=dict)


class Plugin(ABC):
    """
    Base class for protocol plugins.

    Subclasses set `metadata` and implement initialize(). A plugin that
    can be probed defines `async health_check(context) -> bool`; the
    loader treats plugins without one as healthy.
    """

    metadata: PluginMetadata
    health_check: Optional[Callable[[ExecutionContext], Any]] = None

    @property
    def id(self) -> ProtocolId:
        return self.metadata.id

    @property
    def default_config(self) -> PluginConfig:
        return PluginConfig()

    @abstractmethod
    async def initialize(self, context: ExecutionContext) -> ProtocolFiber:
        """Build the plugin's protocol fiber."""

    async def cleanup(self, context: ExecutionContext) -> None:
        """Release plugin resources. Default: nothing to release."""

    def validate_config(self, config: PluginConfig) -> bool:
        return True

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.metadata.id}, version={self.metadata.version})"


@dataclass
class PluginLoadResult:
    """Outcome of load_plugin."""
    plugin_id: ProtocolId
    success: bool
    fiber: Optional[ProtocolFiber] = None
    error: Optional[TerminalError] = None

    def __repr__(self) -> str:
        if self.success:
            return f"PluginLoadResult({self.plugin_id}: loaded)"
        return f"PluginLoadResult({self.plugin_id}: {self.error!r})"


@dataclass
class PluginRegistryEntry:
    """Loader bookkeeping for one plugin."""
    plugin: Plugin
    config: PluginConfig
    loaded: bool
    fiber: Optional[ProtocolFiber] = None
    loaded_at: Optional[datetime] = None
    error: Optional[TerminalError] = None


async def fiber_from_plugin(plugin: Plugin, context: ExecutionContext) -> ProtocolFiber:
    """
    Initialize a plugin and return its fiber.

    This is the only way the loader obtains a fiber from a plugin.

    Raises:
        FiberIdentityMismatchError: If the fiber id differs from the plugin id
    """
    fiber = await plugin.initialize(context)

    if fiber.id != plugin.metadata.id:
        raise FiberIdentityMismatchError(
            f"Plugin '{plugin.metadata.id}' returned fiber '{fiber.id}'; "
            f"a plugin's fiber must carry the plugin id",
            details={"plugin": plugin.metadata.id, "fiber": fiber.id}
        )

    return fiber


def protocol_command(
    protocol: ProtocolId,
    id: str,
    action: CommandAction,
    aliases: Iterable[str] = (),
    description: str = "",
) -> Command:
    """Shortcut for a protocol-scoped command."""
    return Command(
        id=id,
        scope=CommandScope.PROTOCOL,
        protocol=protocol,
        action=action,
        aliases=tuple(aliases),
        description=description,
    )


def build_fiber(metadata: PluginMetadata, commands: List[Command]) -> ProtocolFiber:
    """Create a fiber for the plugin and add its commands (closure-checked)."""
    fiber = create_protocol_fiber(metadata.id, metadata.name, metadata.description)
    for command in commands:
        add_command_to_fiber(fiber, command)
    return fiber
