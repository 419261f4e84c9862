"""Plugin construction.

Builds plugin instances from a plugin class and a resource bundle and
assigns each one its own data directory. Importing plugin code from disk is
left to the embedding application.
"""

from __future__ import annotations

import threading
import zipfile
from pathlib import Path
from typing import TypeVar

from core.exceptions import (
    DataIOError,
    DescriptorError,
    InvalidArgumentError,
    wrap_exception,
)
from core.logger import get_logger
from core.services import HostServices

from .base import Plugin
from .datadir import DataDirectory
from .descriptor import ModuleDescriptor
from .resources import DESCRIPTOR_RESOURCE, ResourceBundle, open_bundle

logger = get_logger(__name__)

TPlugin = TypeVar("TPlugin", bound=Plugin)


class PluginLoader:
    """Create plugin instances with unique data directories.

    Args:
        data_dir: Parent directory; each plugin gets ``<data_dir>/<name>``.
    """

    def __init__(self, data_dir: str | Path) -> None:
        self._data_dir = Path(data_dir)
        self._assigned: dict[str, Path] = {}
        self._lock = threading.Lock()

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def open_bundle(self, path: str | Path) -> ResourceBundle:
        """Open a plugin bundle from a directory or zip file.

        Raises:
            DataIOError: If the path cannot be read.
            DescriptorError: If the file is not a valid archive.
        """
        try:
            return open_bundle(path)
        except zipfile.BadZipFile as exc:
            raise wrap_exception(
                exc,
                DescriptorError,
                "Plugin bundle is not a zip archive or directory",
                context={"path": str(path)},
            ) from exc
        except OSError as exc:
            raise wrap_exception(
                exc,
                DataIOError,
                "Could not open plugin bundle",
                context={"path": str(path)},
            ) from exc

    def discover(self, bundles_dir: str | Path) -> list[Path]:
        """List plugin bundles in ``bundles_dir``, sorted by file name.

        A bundle is a ``.zip`` archive or a directory holding a
        ``plugin.yml``. Other entries, such as plugin data directories
        sharing the folder, are skipped. A missing folder holds no bundles.

        Raises:
            DataIOError: If the folder exists but cannot be listed.
        """
        root = Path(bundles_dir)
        if not root.is_dir():
            return []
        try:
            entries = sorted(root.iterdir())
        except OSError as exc:
            raise wrap_exception(
                exc,
                DataIOError,
                "Could not list plugin bundles",
                context={"path": str(root)},
            ) from exc

        bundles: list[Path] = []
        for entry in entries:
            if entry.is_file() and entry.suffix.lower() == ".zip":
                bundles.append(entry)
            elif (entry / DESCRIPTOR_RESOURCE).is_file():
                bundles.append(entry)
        return bundles

    def descriptor_from_bundle(self, bundle: ResourceBundle) -> ModuleDescriptor:
        return ModuleDescriptor.from_bundle(bundle)

    def create_plugin(
        self,
        plugin_cls: type[TPlugin],
        bundle: ResourceBundle,
        services: HostServices,
    ) -> TPlugin:
        """Instantiate ``plugin_cls`` for ``bundle``.

        Raises:
            DescriptorError: If the bundle has no valid ``plugin.yml``.
            InvalidArgumentError: If a plugin with the same name was already
                created by this loader.
        """
        descriptor = self.descriptor_from_bundle(bundle)
        root = self._data_dir / descriptor.name

        with self._lock:
            if descriptor.name in self._assigned:
                raise InvalidArgumentError(
                    "Duplicate plugin name",
                    context={"plugin": descriptor.name, "root": str(root)},
                )
            self._assigned[descriptor.name] = root

        try:
            plugin = plugin_cls(descriptor, DataDirectory(root), bundle, services)
        except Exception:
            self.release(descriptor.name)
            raise
        logger.info("Loaded plugin %s", descriptor.full_name)
        return plugin

    def release(self, name: str) -> None:
        """Forget a plugin name so its data directory may be assigned again."""
        with self._lock:
            self._assigned.pop(name, None)
