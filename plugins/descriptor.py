"""Plugin descriptor parsed from ``plugin.yml``."""

from __future__ import annotations

import re
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from core.exceptions import ConfigParseError, DescriptorError, wrap_exception

from .configuration import parse_yaml
from .resources import DESCRIPTOR_RESOURCE, ResourceBundle

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9 _.-]+$")


class CommandSpec(BaseModel):
    """One command declared by a plugin."""

    model_config = ConfigDict(extra="allow", frozen=True)

    description: str = ""
    usage: str = ""
    aliases: tuple[str, ...] = ()
    permission: str | None = None

    @field_validator("aliases", mode="before")
    @classmethod
    def _coerce_aliases(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            return (value,)
        return value


class ModuleDescriptor(BaseModel):
    """Immutable plugin metadata, parsed once when the plugin is loaded."""

    model_config = ConfigDict(extra="allow", frozen=True)

    name: str
    version: str
    main: str | None = None
    description: str = ""
    authors: tuple[str, ...] = ()
    website: str | None = None
    prefix: str | None = None
    depend: tuple[str, ...] = ()
    softdepend: tuple[str, ...] = ()
    loadbefore: tuple[str, ...] = ()
    commands: dict[str, CommandSpec] = Field(default_factory=dict)
    database: bool = False

    @model_validator(mode="before")
    @classmethod
    def _merge_author(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "author" not in data:
            return data
        data = dict(data)
        author = data.pop("author")
        authors = data.get("authors") or []
        if isinstance(authors, str):
            authors = [authors]
        data["authors"] = [author, *authors] if author else list(authors)
        return data

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        if not _NAME_PATTERN.match(value):
            raise ValueError(f"name '{value}' contains invalid characters")
        return value.replace(" ", "_")

    @field_validator("version", mode="before")
    @classmethod
    def _coerce_version(cls, value: Any) -> Any:
        return str(value) if isinstance(value, (int, float)) else value

    @field_validator("depend", "softdepend", "loadbefore", "authors", mode="before")
    @classmethod
    def _coerce_list(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            return (value,)
        return value

    @field_validator("commands", mode="before")
    @classmethod
    def _coerce_commands(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {name: spec or {} for name, spec in value.items()}
        return value

    @property
    def full_name(self) -> str:
        return f"{self.name} v{self.version}"

    @property
    def log_prefix(self) -> str:
        return self.prefix or self.name

    def command_for(self, label: str) -> str | None:
        """Resolve a label (command name or alias) to the declared name."""
        lowered = label.lower()
        for name, spec in self.commands.items():
            aliases = {alias.lower() for alias in spec.aliases}
            if name.lower() == lowered or lowered in aliases:
                return name
        return None

    @classmethod
    def from_yaml(
        cls, text: str | bytes, *, source: str = DESCRIPTOR_RESOURCE
    ) -> ModuleDescriptor:
        """Parse descriptor YAML.

        Raises:
            DescriptorError: On malformed YAML or invalid fields.
        """
        try:
            data = parse_yaml(text, source=source)
        except ConfigParseError as exc:
            raise wrap_exception(
                exc,
                DescriptorError,
                "Plugin descriptor is not valid YAML",
                context={"source": source},
            ) from exc

        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise wrap_exception(
                exc,
                DescriptorError,
                "Invalid plugin descriptor",
                context={"source": source, "errors": exc.error_count()},
            ) from exc

    @classmethod
    def from_bundle(cls, bundle: ResourceBundle) -> ModuleDescriptor:
        """Read ``plugin.yml`` from a bundle.

        Raises:
            DescriptorError: If the bundle has no descriptor or it is invalid.
        """
        payload = bundle.read_bytes(DESCRIPTOR_RESOURCE)
        if payload is None:
            raise DescriptorError(f"Bundle does not contain {DESCRIPTOR_RESOURCE}")
        return cls.from_yaml(payload)
