"""Plugin contract for the modhost plugin host."""

from .base import Plugin
from .configuration import ConfigDocument, ConfigOptions, ConfigStore
from .datadir import DataDirectory
from .descriptor import CommandSpec, ModuleDescriptor
from .lifecycle import LifecycleState, PluginState
from .loader import PluginLoader
from .manager import PluginManager
from .protocols import (
    CommandHandlerProtocol,
    ConfigurableProtocol,
    LifecycleProtocol,
)
from .resources import (
    DirectoryResourceBundle,
    MappingResourceBundle,
    ResourceBundle,
    ZipResourceBundle,
)

__all__ = [
    "Plugin",
    "PluginManager",
    "PluginLoader",
    "PluginState",
    "LifecycleState",
    "ModuleDescriptor",
    "CommandSpec",
    "ConfigDocument",
    "ConfigOptions",
    "ConfigStore",
    "DataDirectory",
    "ResourceBundle",
    "MappingResourceBundle",
    "DirectoryResourceBundle",
    "ZipResourceBundle",
    "LifecycleProtocol",
    "ConfigurableProtocol",
    "CommandHandlerProtocol",
]
