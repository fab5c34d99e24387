from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any


class ConfigRepository:
    """Repository for the bot's JSON configuration file.

    Loads with an mtime/size cache so repeated reads of an unchanged file
    skip parsing.
    """

    def __init__(self, path: str | os.PathLike[str]):
        """Initialize the ConfigRepository.

        Args:
            path: Path to the configuration file.
        """
        if not isinstance(path, str | os.PathLike):
            raise TypeError("path must be str or os.PathLike")
        self.path = str(path)
        self._file_mtime: float | None = None
        self._file_size: int | None = None
        self._cached: dict[str, Any] | None = None

    def load_raw(self) -> dict[str, Any]:
        """Load the raw configuration mapping from the file.

        A top level list is read as a bare ``servers`` list.

        Returns:
            The configuration mapping, empty when the file is missing or unreadable.
        """
        try:
            st = os.stat(self.path)
            if (
                self._cached is not None
                and self._file_mtime == st.st_mtime
                and self._file_size == st.st_size
            ):
                return self._cached

            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, list):
                data = {"servers": [s for s in data if isinstance(s, dict)]}
            if not isinstance(data, dict):
                return {}
            self._cached = data
            self._file_mtime = st.st_mtime
            self._file_size = st.st_size
            return data
        except FileNotFoundError:
            return {}
        except (OSError, ValueError, RuntimeError) as e:
            logging.error(f"Configuration load error: {e}")
            return {}


def atomic_write_json(path: Path, data: Any) -> None:
    """Write JSON next to ``path`` under an exclusive lock, then rename over it."""
    lock_path = path.with_suffix(path.suffix + ".lock")
    temp_path: str | None = None
    try:
        with open(lock_path, "w", encoding="utf-8") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            with tempfile.NamedTemporaryFile(
                mode="w",
                dir=path.parent,
                prefix=f".{path.name}.",
                suffix=".tmp",
                delete=False,
                encoding="utf-8",
            ) as tmp:
                json.dump(data, tmp, indent=2, default=str)
                tmp.flush()
                os.fsync(tmp.fileno())
                temp_path = tmp.name
            os.chmod(temp_path, 0o600)
            os.rename(temp_path, path)
    except (OSError, ValueError, RuntimeError) as e:
        if temp_path and os.path.exists(temp_path):
            try:
                os.unlink(temp_path)
            except OSError:
                pass
        logging.error(f"💥 Atomic save failed path={path} error={type(e).__name__}")
        raise
    finally:
        try:
            os.unlink(lock_path)
        except OSError:
            pass
