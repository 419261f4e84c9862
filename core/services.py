"""Host-owned services handed to every plugin at construction.

The host builds one :class:`HostServices` per process and injects it into
each plugin instead of exposing globals. The objects are opaque here: the
host only stores and forwards references.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .exceptions import InvalidArgumentError

WorldGeneratorFactory = Callable[[str, str | None], Any]
"""Callable ``(world_name, generator_id) -> generator | None``."""


@dataclass(frozen=True, slots=True)
class HostServices:
    """References to host collaborators shared by all plugins.

    Attributes:
        server: Server/runtime handle.
        loader: Loader responsible for the plugins.
        database: Persistent-storage handle, if the host provides one.
        world_generators: Factory for default world generators, if any.
    """

    server: Any
    loader: Any
    database: Any = None
    world_generators: WorldGeneratorFactory | None = None

    def __post_init__(self) -> None:
        if self.server is None:
            raise InvalidArgumentError("HostServices.server must not be None")
        if self.loader is None:
            raise InvalidArgumentError("HostServices.loader must not be None")

    def default_world_generator(
        self, world_name: str, generator_id: str | None = None
    ) -> Any | None:
        """Ask the host factory for a generator, ``None`` when unavailable."""
        if self.world_generators is None:
            return None
        return self.world_generators(world_name, generator_id)
