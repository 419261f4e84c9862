"""Per-plugin data directory."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path, PurePosixPath

from core.exceptions import DataIOError, InvalidArgumentError, wrap_exception


class DataDirectory:
    """Filesystem namespace owned by exactly one plugin.

    The directory may not exist until something is written into it. It is
    created on demand by :meth:`ensure_exists` and never removed by the host.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        """Absolute-or-relative root path as assigned by the host."""
        return self._root

    def exists(self) -> bool:
        return self._root.is_dir()

    def ensure_exists(self) -> Path:
        """Create the directory and its parents if missing.

        Returns:
            The root path.

        Raises:
            DataIOError: If the directory cannot be created.
        """
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise wrap_exception(
                exc,
                DataIOError,
                "Could not create data directory",
                context={"path": str(self._root)},
            ) from exc
        return self._root

    def resolve(self, relative: str) -> Path:
        """Map a forward-slash relative path to a location under the root.

        Raises:
            InvalidArgumentError: If ``relative`` is empty, absolute or
                escapes the root through ``..`` segments.
        """
        pure = PurePosixPath(relative)
        if not relative or pure.is_absolute() or ".." in pure.parts:
            raise InvalidArgumentError(
                "Path must be relative to the data directory",
                context={"path": relative},
            )
        return self._root.joinpath(*pure.parts)

    def write_atomic(self, relative: str, payload: bytes) -> Path:
        """Write ``payload`` to ``relative`` via temp file + ``os.replace``.

        Readers observe either the previous file or the complete new one.
        Parent directories (including the root) are created first.

        Raises:
            DataIOError: If any filesystem step fails.
        """
        target = self.resolve(relative)
        self.ensure_exists()
        tmp_path: Path | None = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{target.name}.", suffix=".tmp", dir=target.parent
            )
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, target)
            tmp_path = None
        except OSError as exc:
            raise wrap_exception(
                exc,
                DataIOError,
                "Could not write file in data directory",
                context={"path": str(target)},
            ) from exc
        finally:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
        return target

    def __repr__(self) -> str:
        return f"DataDirectory({str(self._root)!r})"
