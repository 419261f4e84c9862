"""Plugin base class.

``Plugin`` is the handle the host holds for one loaded plugin and the base
class plugin authors subclass. It composes the data directory, resource
bundle, configuration store and lifecycle state, and carries the host
services injected at construction.

Plugin authors override the ``on_load``/``on_enable``/``on_disable`` hooks
and optionally ``on_command``. The host drives the lifecycle through
``load``/``enable``/``disable``/``discard``.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any, BinaryIO

from core.exceptions import InvalidArgumentError, LifecycleError
from core.logger import PluginLogger
from core.services import HostServices

from .configuration import ConfigDocument, ConfigStore
from .datadir import DataDirectory
from .descriptor import ModuleDescriptor
from .lifecycle import LifecycleState, PluginState
from .resources import ResourceBundle


class Plugin:
    """Base class for all plugins.

    Args:
        descriptor: Metadata parsed from the bundle's ``plugin.yml``.
        data_directory: Data directory assigned by the host.
        resources: Packaged assets of the plugin.
        services: Host collaborators shared by all plugins.
    """

    def __init__(
        self,
        descriptor: ModuleDescriptor,
        data_directory: DataDirectory,
        resources: ResourceBundle,
        services: HostServices,
    ) -> None:
        if descriptor.database and services.database is None:
            raise InvalidArgumentError(
                "Plugin requires a database but the host provides none",
                context={"plugin": descriptor.name},
            )
        self._descriptor = descriptor
        self._data_directory = data_directory
        self._resources = resources
        self._services = services
        self._lifecycle = LifecycleState()
        self._logger = PluginLogger(descriptor.name, descriptor.log_prefix)
        self._config_store = ConfigStore(data_directory, resources, log=self._logger)

    # Lifecycle hooks

    def on_load(self) -> None:
        """Run setup that must happen before any plugin is enabled."""

    def on_enable(self) -> None:
        """Start the plugin."""

    def on_disable(self) -> None:
        """Stop the plugin and release resources."""

    def on_command(
        self, sender: Any, command: str, label: str, args: Sequence[str]
    ) -> bool:
        """Handle a dispatched command. Unhandled by default."""
        _ = (sender, command, label, args)
        return False

    # Host-driven transitions

    def load(self) -> None:
        """Call ``on_load`` and mark the plugin prepared."""
        self._ensure_transition(PluginState.PREPARED)
        self.on_load()
        self._lifecycle.transition(PluginState.PREPARED)

    def enable(self) -> None:
        """Call ``on_enable`` and mark the plugin enabled.

        If ``on_enable`` raises, the plugin stays prepared.
        """
        self._ensure_transition(PluginState.ENABLED)
        self._logger.info("Enabling %s", self._descriptor.full_name)
        self.on_enable()
        self._lifecycle.transition(PluginState.ENABLED)

    def disable(self) -> None:
        """Mark the plugin disabled and call ``on_disable``.

        The plugin is disabled even if ``on_disable`` raises.
        """
        self._lifecycle.transition(PluginState.DISABLED)
        self._logger.info("Disabling %s", self._descriptor.full_name)
        self.on_disable()

    def discard(self) -> None:
        """Retire the instance; no further calls are valid."""
        self._lifecycle.transition(PluginState.DISCARDED)

    @property
    def state(self) -> PluginState:
        return self._lifecycle.state

    def is_enabled(self) -> bool:
        """Return whether the plugin is enabled."""
        return self._lifecycle.enabled

    def is_naggable(self) -> bool:
        return self._lifecycle.naggable

    def set_naggable(self, can_nag: bool) -> None:
        self._lifecycle.naggable = can_nag

    def nag(self, message: str, *args: Any) -> bool:
        """Log a warning once, then stop nagging.

        Returns:
            Whether the warning was logged.
        """
        if not self._lifecycle.naggable:
            return False
        self._logger.warning(message, *args)
        self._lifecycle.naggable = False
        return True

    # Identity and resources

    @property
    def descriptor(self) -> ModuleDescriptor:
        return self._descriptor

    @property
    def name(self) -> str:
        return self._descriptor.name

    @property
    def data_directory(self) -> DataDirectory:
        return self._data_directory

    @property
    def data_folder(self) -> Path:
        """Root of the data directory; it may not exist yet."""
        return self._data_directory.root

    @property
    def logger(self) -> PluginLogger:
        return self._logger

    def get_resource(self, path: str) -> BinaryIO | None:
        """Open an embedded resource, ``None`` if it does not exist."""
        return self._resources.get_resource(path)

    # Configuration

    def get_config(self) -> ConfigDocument:
        return self._config_store.get_config()

    def reload_config(self) -> None:
        self._config_store.reload_config()

    def save_config(self) -> None:
        self._config_store.save_config()

    def save_default_config(self) -> None:
        self._config_store.save_default_config()

    def save_resource(self, resource_path: str, replace: bool = False) -> None:
        self._config_store.save_resource(resource_path, replace)

    # Host services

    @property
    def server(self) -> Any:
        return self._live_services().server

    @property
    def loader(self) -> Any:
        return self._live_services().loader

    @property
    def database(self) -> Any:
        return self._live_services().database

    def get_default_world_generator(
        self, world_name: str, generator_id: str | None = None
    ) -> Any | None:
        """Return a generator for a default world, ``None`` if not provided.

        Plugins that ship their own generator override this method.
        """
        services = self._live_services()
        return services.default_world_generator(world_name, generator_id)

    def _live_services(self) -> HostServices:
        if self._lifecycle.discarded:
            raise LifecycleError(
                "Host services are no longer valid for a discarded plugin",
                context={"plugin": self.name},
            )
        return self._services

    def _ensure_transition(self, target: PluginState) -> None:
        if not self._lifecycle.can_transition(target):
            raise LifecycleError(
                "Invalid lifecycle transition",
                context={
                    "plugin": self.name,
                    "from": self._lifecycle.state.value,
                    "to": target.value,
                },
            )

    def __repr__(self) -> str:
        name = type(self).__name__
        return f"<{name} {self.descriptor.full_name} ({self.state.value})>"
