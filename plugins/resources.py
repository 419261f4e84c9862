"""Read-only access to the assets packaged with a plugin.

Resource keys are forward-slash separated, case-sensitive and carry no
leading separator, e.g. ``"config.yml"`` or ``"lang/en.yml"``. Looking up a
key that does not exist returns ``None``; absence is an expected outcome.
"""

from __future__ import annotations

import io
import zipfile
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import BinaryIO

DESCRIPTOR_RESOURCE = "plugin.yml"
CONFIG_RESOURCE = "config.yml"


def normalize_key(path: str) -> str | None:
    """Return ``path`` if it is a well-formed resource key, else ``None``."""
    if not path or path.startswith("/") or "\\" in path:
        return None
    parts = path.split("/")
    if any(part in ("", ".", "..") for part in parts):
        return None
    return path


class ResourceBundle(ABC):
    """Immutable set of packaged assets addressed by resource key."""

    def get_resource(self, path: str) -> BinaryIO | None:
        """Open a resource for reading.

        Args:
            path: Resource key.

        Returns:
            A binary stream positioned at the start, or ``None`` if the key is
            malformed or absent.
        """
        data = self.read_bytes(path)
        if data is None:
            return None
        return io.BytesIO(data)

    def has_resource(self, path: str) -> bool:
        """Return whether ``path`` resolves to an asset."""
        key = normalize_key(path)
        return key is not None and self._read(key) is not None

    def read_bytes(self, path: str) -> bytes | None:
        """Return the raw contents of a resource, or ``None`` if absent."""
        key = normalize_key(path)
        if key is None:
            return None
        return self._read(key)

    @abstractmethod
    def list_resources(self) -> list[str]:
        """Return all resource keys in sorted order."""

    @abstractmethod
    def _read(self, key: str) -> bytes | None:
        """Read a normalized key."""


class MappingResourceBundle(ResourceBundle):
    """Bundle backed by an in-memory mapping of key to bytes."""

    def __init__(self, entries: Mapping[str, bytes | str] | None = None) -> None:
        self._entries: dict[str, bytes] = {}
        for key, value in (entries or {}).items():
            if normalize_key(key) is None:
                raise ValueError(f"Invalid resource key: {key!r}")
            if isinstance(value, str):
                value = value.encode("utf-8")
            self._entries[key] = bytes(value)

    def list_resources(self) -> list[str]:
        return sorted(self._entries)

    def _read(self, key: str) -> bytes | None:
        return self._entries.get(key)


class DirectoryResourceBundle(ResourceBundle):
    """Bundle backed by an unpacked directory on disk."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def list_resources(self) -> list[str]:
        if not self._root.is_dir():
            return []
        return sorted(
            path.relative_to(self._root).as_posix()
            for path in self._root.rglob("*")
            if path.is_file()
        )

    def _read(self, key: str) -> bytes | None:
        target = self._root.joinpath(*key.split("/"))
        if not target.is_file():
            return None
        return target.read_bytes()


class ZipResourceBundle(ResourceBundle):
    """Bundle backed by a zip archive, the packaged form of a plugin."""

    def __init__(self, archive: str | Path) -> None:
        self._archive = Path(archive)
        with zipfile.ZipFile(self._archive) as zf:
            self._names = frozenset(
                info.filename for info in zf.infolist() if not info.is_dir()
            )

    @property
    def archive(self) -> Path:
        return self._archive

    def list_resources(self) -> list[str]:
        return sorted(self._names)

    def _read(self, key: str) -> bytes | None:
        if key not in self._names:
            return None
        with zipfile.ZipFile(self._archive) as zf:
            return zf.read(key)


def open_bundle(path: str | Path) -> ResourceBundle:
    """Open a plugin bundle from a directory or a zip archive."""
    bundle_path = Path(path)
    if bundle_path.is_dir():
        return DirectoryResourceBundle(bundle_path)
    return ZipResourceBundle(bundle_path)
