"""Plugin manager implementation.

This module provides the plugin registry, the load/enable barrier, dependency
ordering, shutdown, and command dispatching for a batch of plugins.

A failure raised by one plugin never aborts the batch: it is logged,
recorded in :attr:`PluginManager.failures` and the plugin is left out of the
following phases.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from core.exceptions import HostError, LifecycleError
from core.logger import get_logger

from .base import Plugin
from .lifecycle import PluginState

logger = get_logger(__name__)


class PluginManager:
    """Manage plugin registration, lifecycle ordering and command calls."""

    def __init__(self) -> None:
        """Initialize an empty plugin manager."""
        self._plugins: dict[str, Plugin] = {}
        self._enable_order: list[str] = []
        self._failures: dict[str, Exception] = {}

    def register(self, plugin: Plugin) -> None:
        """Register a plugin instance.

        Args:
            plugin: Plugin instance to register.

        Raises:
            ValueError: If a plugin with the same name is already registered.
        """
        if plugin.name in self._plugins:
            raise ValueError(f"Plugin already registered: {plugin.name}")
        self._plugins[plugin.name] = plugin

    def unregister(self, name: str) -> None:
        """Unregister plugin by name, disabling and discarding it first."""
        plugin = self._plugins.pop(name, None)
        if plugin is None:
            return
        if plugin.is_enabled():
            self._disable_one(plugin)
        self._discard_one(plugin)
        if name in self._enable_order:
            self._enable_order.remove(name)

    def get(self, name: str) -> Plugin | None:
        """Get plugin by name."""
        return self._plugins.get(name)

    def get_all(self) -> list[Plugin]:
        """Return all registered plugins in registration order."""
        return list(self._plugins.values())

    def has(self, name: str) -> bool:
        """Return whether a plugin is registered."""
        return name in self._plugins

    @property
    def failures(self) -> dict[str, Exception]:
        """Errors raised by plugins during the lifecycle, keyed by plugin name."""
        return dict(self._failures)

    @property
    def enable_order(self) -> list[str]:
        return list(self._enable_order)

    def load_plugins(self, max_workers: int = 1) -> list[str]:
        """Run ``on_load`` for every registered plugin still in ``LOADED``.

        Calls for different plugins may run concurrently on up to
        ``max_workers`` threads. The method returns only after every load
        call has finished, so no plugin is enabled before all are loaded.
        A plugin whose ``on_load`` raises is discarded.

        Returns:
            Names of the plugins that loaded successfully.
        """
        pending = [p for p in self._plugins.values() if p.state is PluginState.LOADED]
        if not pending:
            return []

        if max_workers > 1 and len(pending) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                outcomes = list(pool.map(_call_load, pending))
        else:
            outcomes = [_call_load(plugin) for plugin in pending]

        loaded: list[str] = []
        for plugin, error in zip(pending, outcomes):
            if error is None:
                loaded.append(plugin.name)
                continue
            logger.error(
                "Error occurred while loading %s",
                plugin.descriptor.full_name,
                exc_info=error,
            )
            self._failures[plugin.name] = error
            self._discard_one(plugin)
        return loaded

    def enable_plugins(self) -> list[str]:
        """Enable prepared plugins in dependency order.

        Raises:
            LifecycleError: If any registered plugin has not been loaded yet.

        Returns:
            Names of the plugins enabled by this call, in order.
        """
        not_loaded = [
            name
            for name, plugin in self._plugins.items()
            if plugin.state is PluginState.LOADED
        ]
        if not_loaded:
            raise LifecycleError(
                "All plugins must be loaded before any is enabled",
                context={"pending": not_loaded},
            )

        candidates = [
            name
            for name, plugin in self._plugins.items()
            if plugin.state is PluginState.PREPARED
        ]
        enabled: list[str] = []
        for name in self._resolve_order(candidates):
            plugin = self._plugins[name]
            missing = [
                dep for dep in plugin.descriptor.depend if not self._is_enabled(dep)
            ]
            if missing:
                self._fail(
                    plugin,
                    LifecycleError(
                        "Dependency is not enabled",
                        context={"plugin": name, "missing": missing},
                    ),
                )
                continue
            try:
                plugin.enable()
            except Exception as exc:
                logger.exception("Error occurred while enabling %s", name)
                self._failures[name] = exc
                continue
            self._enable_order.append(name)
            enabled.append(name)
        return enabled

    def disable_plugins(self) -> None:
        """Disable enabled plugins in reverse enable order."""
        for name in reversed(self._enable_order):
            plugin = self._plugins.get(name)
            if plugin is not None and plugin.is_enabled():
                self._disable_one(plugin)
        self._enable_order = []

    def discard_plugins(self) -> None:
        """Disable everything still running, retire every plugin and clear."""
        self.disable_plugins()
        for plugin in self._plugins.values():
            self._discard_one(plugin)
        self._plugins.clear()

    def find_command_owner(self, label: str) -> Plugin | None:
        """Return the enabled plugin declaring ``label`` as command or alias."""
        resolved = self._resolve_command(label)
        return resolved[0] if resolved else None

    def dispatch_command(self, sender: Any, label: str, args: Sequence[str]) -> bool:
        """Route a command to its enabled owner.

        Returns:
            The owner's ``on_command`` result, ``False`` when no enabled
            plugin declares the command or the handler raised.
        """
        resolved = self._resolve_command(label)
        if resolved is None:
            return False

        plugin, command = resolved
        try:
            return bool(plugin.on_command(sender, command, label, list(args)))
        except Exception:
            logger.exception(
                "Unhandled exception executing command '%s' in plugin %s",
                label,
                plugin.descriptor.full_name,
            )
            return False

    def _resolve_command(self, label: str) -> tuple[Plugin, str] | None:
        for plugin in self._plugins.values():
            if not plugin.is_enabled():
                continue
            command = plugin.descriptor.command_for(label)
            if command is not None:
                return plugin, command
        return None

    def _resolve_order(self, candidates: list[str]) -> list[str]:
        """Order candidates so dependencies come first (topological sort).

        ``depend`` and ``softdepend`` entries order a plugin after the named
        plugins, ``loadbefore`` orders it before them. Names outside the
        candidate set are ignored here. Plugins caught in a dependency cycle
        are recorded as failures and left out, as are plugins that only
        depend on such a cycle.
        """
        available = set(candidates)
        graph: dict[str, list[str]] = {name: [] for name in candidates}
        indegree: dict[str, int] = {name: 0 for name in candidates}

        def edge(before: str, after: str) -> None:
            if before in available and after in available and before != after:
                graph[before].append(after)
                indegree[after] += 1

        for name in candidates:
            descriptor = self._plugins[name].descriptor
            for dependency in (*descriptor.depend, *descriptor.softdepend):
                edge(dependency, name)
            for later in descriptor.loadbefore:
                edge(name, later)

        queue: deque[str] = deque(name for name in candidates if indegree[name] == 0)
        order: list[str] = []

        while queue:
            current = queue.popleft()
            order.append(current)

            for neighbor in graph[current]:
                indegree[neighbor] -= 1
                if indegree[neighbor] == 0:
                    queue.append(neighbor)

        stuck = [name for name in candidates if name not in order]
        for name in stuck:
            if _on_cycle(name, graph, set(stuck)):
                error = LifecycleError(
                    "Dependency cycle detected", context={"plugin": name}
                )
            else:
                error = LifecycleError(
                    "Blocked by a dependency that is part of a cycle",
                    context={"plugin": name},
                )
            self._fail(self._plugins[name], error)
        return order

    def _is_enabled(self, name: str) -> bool:
        plugin = self._plugins.get(name)
        return plugin is not None and plugin.is_enabled()

    def _fail(self, plugin: Plugin, error: HostError) -> None:
        logger.error("Could not enable %s: %s", plugin.descriptor.full_name, error)
        self._failures[plugin.name] = error

    def _disable_one(self, plugin: Plugin) -> None:
        try:
            plugin.disable()
        except Exception as exc:
            logger.exception(
                "Error occurred while disabling %s", plugin.descriptor.full_name
            )
            self._failures[plugin.name] = exc

    def _discard_one(self, plugin: Plugin) -> None:
        if plugin.state is not PluginState.DISCARDED:
            plugin.discard()


def _on_cycle(start: str, graph: dict[str, list[str]], members: set[str]) -> bool:
    """Return whether ``start`` can reach itself through ``members``."""
    stack = [node for node in graph[start] if node in members]
    seen: set[str] = set()
    while stack:
        node = stack.pop()
        if node == start:
            return True
        if node in seen:
            continue
        seen.add(node)
        stack.extend(child for child in graph[node] if child in members)
    return False


def _call_load(plugin: Plugin) -> Exception | None:
    try:
        plugin.load()
    except Exception as exc:
        return exc
    return None
