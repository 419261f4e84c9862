"""Exception hierarchy and helpers for the plugin host.

This module provides a consistent exception model used by host components:

- ``HostError`` as the base class with error code, context and root cause.
- Subclasses for configuration parsing, filesystem I/O, invalid arguments,
  plugin descriptors and lifecycle misuse.
- Utility helpers to wrap external exceptions and to format errors.

A missing resource or a missing configuration file is never an error; those
cases are reported as ``None`` or an empty document by the callers.
"""

from __future__ import annotations

from typing import Any, Mapping, TypeVar

THostError = TypeVar("THostError", bound="HostError")


class HostError(Exception):
    """Base exception for all host-level errors.

    Attributes:
        message: Human-readable error message.
        code: Stable error code for programmatic processing.
        context: Extra metadata useful for debugging and logging.
        cause: Original exception that triggered this error.
    """

    def __init__(
        self,
        message: str,
        code: str = "HOST_ERROR",
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.message: str = message
        self.code: str = code
        self.context: dict[str, Any] = dict(context) if context is not None else {}
        self.cause: Exception | None = cause

        super().__init__(message)

        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        """Return a formatted, readable exception string."""
        return format_exception(self)


class ConfigError(HostError):
    """Configuration related error."""

    def __init__(
        self,
        message: str,
        code: str = "CONFIG_ERROR",
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message=message, code=code, context=context, cause=cause)


class ConfigParseError(ConfigError):
    """Malformed configuration content on disk or in a bundle."""

    def __init__(
        self,
        message: str,
        code: str = "CONFIG_PARSE_ERROR",
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message=message, code=code, context=context, cause=cause)


class DescriptorError(ConfigError):
    """Missing or invalid ``plugin.yml`` descriptor."""

    def __init__(
        self,
        message: str,
        code: str = "DESCRIPTOR_ERROR",
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message=message, code=code, context=context, cause=cause)


class DataIOError(HostError):
    """Filesystem failure while creating, reading or writing plugin data."""

    def __init__(
        self,
        message: str,
        code: str = "IO_ERROR",
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message=message, code=code, context=context, cause=cause)


class InvalidArgumentError(HostError, ValueError):
    """Invalid argument passed by a caller, e.g. an unknown resource path."""

    def __init__(
        self,
        message: str,
        code: str = "INVALID_ARGUMENT",
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message=message, code=code, context=context, cause=cause)


class LifecycleError(HostError):
    """Lifecycle transition or service access outside the valid window."""

    def __init__(
        self,
        message: str,
        code: str = "LIFECYCLE_ERROR",
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message=message, code=code, context=context, cause=cause)


def wrap_exception(
    exc: Exception,
    error_class: type[THostError],
    message: str,
    *,
    code: str | None = None,
    context: Mapping[str, Any] | None = None,
) -> THostError:
    """Wrap an external exception with a host exception class.

    Args:
        exc: Original exception raised by external dependency or lower layer.
        error_class: Target ``HostError`` subclass to construct.
        message: Message for the wrapped exception.
        code: Optional explicit error code overriding class default.
        context: Optional context payload.

    Returns:
        An instance of ``error_class`` that chains ``exc`` as its cause.
    """
    kwargs: dict[str, Any] = {"context": context, "cause": exc}
    if code is not None:
        kwargs["code"] = code
    return error_class(message, **kwargs)


def format_exception(exc: BaseException) -> str:
    """Format exception into a readable one-line text.

    For ``HostError`` it includes code, message, context and cause.
    For generic exceptions, it returns ``<Type>: <message>``.
    """
    if isinstance(exc, HostError):
        base = f"[{exc.code}] {exc.message}"
        context_part = ""
        if exc.context:
            context_items = ", ".join(
                f"{key}={value!r}" for key, value in sorted(exc.context.items())
            )
            context_part = f" | context: {context_items}"

        cause_part = ""
        if exc.cause is not None:
            cause_part = f" | cause: {type(exc.cause).__name__}: {exc.cause}"

        return f"{base}{context_part}{cause_part}"

    return f"{type(exc).__name__}: {exc}"


__all__ = [
    "HostError",
    "ConfigError",
    "ConfigParseError",
    "DescriptorError",
    "DataIOError",
    "InvalidArgumentError",
    "LifecycleError",
    "wrap_exception",
    "format_exception",
]
