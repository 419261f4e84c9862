"""Protocol definitions for plugin capability contracts.

A plugin is the combination of independent capabilities. Code that only
needs one of them should depend on that protocol rather than on
:class:`plugins.base.Plugin`.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, BinaryIO, Protocol, runtime_checkable

from .configuration import ConfigDocument


@runtime_checkable
class LifecycleProtocol(Protocol):
    """Contract for objects driven through load/enable/disable."""

    def on_load(self) -> None:
        """Called after construction, before any plugin is enabled."""

    def on_enable(self) -> None:
        """Called when the plugin becomes live."""

    def on_disable(self) -> None:
        """Called when the plugin is shut down."""

    def is_enabled(self) -> bool:
        """Return whether the plugin is currently enabled."""


@runtime_checkable
class ConfigurableProtocol(Protocol):
    """Contract for objects owning a layered configuration file."""

    def get_config(self) -> ConfigDocument:
        """Return the loaded configuration document."""

    def reload_config(self) -> None:
        """Discard in-memory configuration and read it again."""

    def save_config(self) -> None:
        """Persist the in-memory configuration."""

    def save_default_config(self) -> None:
        """Write the embedded default if no file exists."""

    def save_resource(self, resource_path: str, replace: bool = False) -> None:
        """Extract an embedded resource to the data directory."""

    def get_resource(self, path: str) -> BinaryIO | None:
        """Open an embedded resource, ``None`` if absent."""


@runtime_checkable
class CommandHandlerProtocol(Protocol):
    """Contract for objects receiving dispatched commands."""

    def on_command(
        self, sender: Any, command: str, label: str, args: Sequence[str]
    ) -> bool:
        """Handle a command; return ``False`` to signal incorrect usage."""
