"""Layered YAML configuration for plugins.

Each plugin owns one ``config.yml`` in its data directory. The copy packaged
inside the plugin bundle (the embedded default) plays two roles:

* it is the template written by :meth:`ConfigStore.save_default_config`;
* it is a fallback layer under the user document, so the user file never
  needs to be complete.

Layering is shallow: a top-level key present in the user document hides the
whole default value for that key, nested mappings are not merged.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from core.exceptions import (
    ConfigParseError,
    DataIOError,
    InvalidArgumentError,
    wrap_exception,
)
from core.logger import get_logger

from .datadir import DataDirectory
from .resources import CONFIG_RESOURCE, ResourceBundle

logger = get_logger(__name__)

_MISSING = object()


@dataclass(slots=True)
class ConfigOptions:
    """Per-document behaviour switches.

    Attributes:
        path_separator: Separator used in dotted lookup paths.
        copy_defaults: Whether :meth:`ConfigDocument.dump` also writes keys
            that only exist in the defaults layer.
        indent: YAML indentation width.
    """

    path_separator: str = "."
    copy_defaults: bool = False
    indent: int = 2


def parse_yaml(text: str | bytes, *, source: str) -> dict[str, Any]:
    """Parse a YAML mapping, treating an empty document as ``{}``.

    Raises:
        ConfigParseError: On invalid YAML or a non-mapping top level.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise wrap_exception(
            exc,
            ConfigParseError,
            "Configuration is not valid YAML",
            context={"source": source},
        ) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigParseError(
            "Configuration top level must be a mapping",
            context={"source": source, "type": type(data).__name__},
        )
    return _stringify_keys(data)


def _stringify_keys(data: dict[Any, Any]) -> dict[str, Any]:
    """Copy a mapping with every key, at any depth, turned into a string."""
    return {str(key): _stringify_value(value) for key, value in data.items()}


def _stringify_value(value: Any) -> Any:
    if isinstance(value, dict):
        return _stringify_keys(value)
    if isinstance(value, list):
        return [_stringify_value(item) for item in value]
    return deepcopy(value)


class ConfigDocument:
    """Mutable key-value tree with an optional read-only defaults layer."""

    def __init__(
        self,
        values: dict[str, Any] | None = None,
        defaults: dict[str, Any] | None = None,
        options: ConfigOptions | None = None,
    ) -> None:
        self._values: dict[str, Any] = _stringify_keys(values) if values else {}
        self._defaults: dict[str, Any] = _stringify_keys(defaults) if defaults else {}
        self.options = options or ConfigOptions()

    @classmethod
    def from_yaml(
        cls,
        text: str | bytes,
        *,
        defaults: dict[str, Any] | None = None,
        source: str = "<string>",
    ) -> ConfigDocument:
        return cls(parse_yaml(text, source=source), defaults=defaults)

    @property
    def defaults(self) -> dict[str, Any]:
        """Copy of the defaults layer."""
        return deepcopy(self._defaults)

    def set_defaults(self, defaults: dict[str, Any] | None) -> None:
        self._defaults = _stringify_keys(defaults) if defaults else {}

    def get(self, path: str, default: Any = None) -> Any:
        """Resolve a dotted path, falling back to the defaults layer.

        Args:
            path: Dotted key path, e.g. ``"database.port"``.
            default: Returned when neither layer resolves ``path``.
        """
        value = self._lookup(path)
        return default if value is _MISSING else value

    def contains(self, path: str, *, ignore_defaults: bool = False) -> bool:
        keys = self._split(path)
        if keys[0] in self._values:
            return _walk(self._values, keys) is not _MISSING
        if ignore_defaults:
            return False
        return _walk(self._defaults, keys) is not _MISSING

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.contains(path)

    def __getitem__(self, path: str) -> Any:
        value = self._lookup(path)
        if value is _MISSING:
            raise KeyError(path)
        return value

    def __setitem__(self, path: str, value: Any) -> None:
        self.set(path, value)

    def set(self, path: str, value: Any) -> None:
        """Set a value in the user layer; ``None`` removes the key.

        Intermediate mappings are created as needed. Setting a nested path
        under a key that only exists in the defaults layer creates a new user
        mapping for that key, which then hides the default.
        """
        keys = self._split(path)
        current = self._values
        for key in keys[:-1]:
            child = current.get(key)
            if not isinstance(child, dict):
                if value is None:
                    return
                child = {}
                current[key] = child
            current = child

        if value is None:
            current.pop(keys[-1], None)
        else:
            current[keys[-1]] = _stringify_value(value)

    def get_str(self, path: str, default: str | None = None) -> str | None:
        value = self.get(path)
        return value if isinstance(value, str) else default

    def get_int(self, path: str, default: int = 0) -> int:
        value = self.get(path)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return default
        return int(value)

    def get_float(self, path: str, default: float = 0.0) -> float:
        value = self.get(path)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return default
        return float(value)

    def get_bool(self, path: str, default: bool = False) -> bool:
        value = self.get(path)
        return value if isinstance(value, bool) else default

    def get_list(self, path: str, default: list[Any] | None = None) -> list[Any]:
        value = self.get(path)
        if isinstance(value, list):
            return value
        return list(default) if default is not None else []

    def keys(self, *, deep: bool = False) -> list[str]:
        """Return top-level keys of both layers, or every leaf path if ``deep``."""
        merged = self.to_dict()
        if not deep:
            return list(merged)
        return list(_leaf_paths(merged, self.options.path_separator))

    def to_dict(self, *, include_defaults: bool = True) -> dict[str, Any]:
        """Return a detached copy of the document.

        With ``include_defaults`` the shallow overlay of user values onto the
        defaults layer is returned, otherwise only the user layer.
        """
        if not include_defaults:
            return deepcopy(self._values)
        merged = deepcopy(self._defaults)
        merged.update(deepcopy(self._values))
        return merged

    def dump(self) -> str:
        """Serialize to YAML text, honouring ``options.copy_defaults``."""
        data = self.to_dict(include_defaults=self.options.copy_defaults)
        if not data:
            return ""
        return yaml.safe_dump(
            data,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
            indent=self.options.indent,
        )

    def _lookup(self, path: str) -> Any:
        keys = self._split(path)
        layer = self._values if keys[0] in self._values else self._defaults
        return _walk(layer, keys)

    def _split(self, path: str) -> list[str]:
        if not path:
            raise InvalidArgumentError("Configuration path must not be empty")
        return path.split(self.options.path_separator)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConfigDocument):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"ConfigDocument({self.to_dict()!r})"


def _walk(data: dict[str, Any], keys: list[str]) -> Any:
    current: Any = data
    for key in keys:
        if not isinstance(current, dict) or key not in current:
            return _MISSING
        current = current[key]
    return current


def _leaf_paths(
    data: dict[str, Any], separator: str, prefix: str = ""
) -> Iterator[str]:
    for key, value in data.items():
        path = f"{prefix}{separator}{key}" if prefix else str(key)
        if isinstance(value, dict) and value:
            yield from _leaf_paths(value, separator, path)
        else:
            yield path


class ConfigStore:
    """Loads, saves and reloads one plugin's ``config.yml``.

    All operations share one reentrant lock, so a reload and a save from
    different threads never interleave.
    """

    def __init__(
        self,
        data_directory: DataDirectory,
        resources: ResourceBundle,
        *,
        filename: str = CONFIG_RESOURCE,
        log: Any = None,
    ) -> None:
        self._data_directory = data_directory
        self._resources = resources
        self._filename = filename
        self._log = log or logger
        self._lock = threading.RLock()
        self._document: ConfigDocument | None = None

    @property
    def config_path(self) -> Path:
        return self._data_directory.resolve(self._filename)

    def get_config(self) -> ConfigDocument:
        """Return the live document, loading it on first use.

        The first load never writes to disk.
        """
        with self._lock:
            if self._document is None:
                return self._load()
            return self._document

    def reload_config(self) -> None:
        """Discard the in-memory document and read it again from disk.

        Raises:
            ConfigParseError: If the file or the embedded default is
                malformed. The previous document stays in place.
            DataIOError: If the file exists but cannot be read.
        """
        self._load()

    def _load(self) -> ConfigDocument:
        with self._lock:
            defaults = self._embedded_defaults()
            path = self.config_path
            values: dict[str, Any] = {}
            try:
                if path.is_file():
                    values = parse_yaml(path.read_bytes(), source=str(path))
            except OSError as exc:
                raise wrap_exception(
                    exc,
                    DataIOError,
                    "Could not read configuration",
                    context={"path": str(path)},
                ) from exc

            options = self._document.options if self._document is not None else None
            self._document = ConfigDocument(values, defaults=defaults, options=options)
            self._log.debug("Loaded configuration from %s", path)
            return self._document

    def save_config(self) -> None:
        """Write the current document to ``config.yml`` atomically.

        Raises:
            DataIOError: If the write fails.
        """
        with self._lock:
            document = self.get_config()
            self._data_directory.write_atomic(
                self._filename, document.dump().encode("utf-8")
            )
            self._log.debug("Saved configuration to %s", self.config_path)

    def save_default_config(self) -> None:
        """Write the raw embedded default unless a user file already exists.

        Without an embedded default an empty file is written.
        """
        with self._lock:
            if self.config_path.exists():
                return
            payload = self._resources.read_bytes(CONFIG_RESOURCE) or b""
            self._data_directory.write_atomic(self._filename, payload)
            self._log.info("Wrote default configuration to %s", self.config_path)

    def save_resource(self, resource_path: str, replace: bool = False) -> bool:
        """Copy an embedded resource to the same relative path on disk.

        Args:
            resource_path: Bundle key, forward-slash separated.
            replace: Overwrite an existing file when true.

        Returns:
            Whether the file was written. An existing file is kept and
            ``False`` returned unless ``replace`` is set.

        Raises:
            InvalidArgumentError: If the path is empty or not in the bundle.
            DataIOError: If the copy cannot be written.
        """
        if not resource_path:
            raise InvalidArgumentError("Resource path cannot be empty")

        key = resource_path.replace("\\", "/")
        payload = self._resources.read_bytes(key)
        if payload is None:
            raise InvalidArgumentError(
                "Embedded resource not found",
                context={"resource": resource_path},
            )

        with self._lock:
            target = self._data_directory.resolve(key)
            if target.exists() and not replace:
                self._log.warning(
                    "Could not save %s to %s because it already exists",
                    target.name,
                    target,
                )
                return False
            self._data_directory.write_atomic(key, payload)
            return True

    def _embedded_defaults(self) -> dict[str, Any] | None:
        payload = self._resources.read_bytes(CONFIG_RESOURCE)
        if payload is None:
            return None
        return parse_yaml(payload, source=f"<embedded {CONFIG_RESOURCE}>")

