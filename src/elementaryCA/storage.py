"""Key-value storage backends shared by several independent views.

Consistency across views comes from change notifications followed by a
fresh read, not from locking.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

StorageListener = Callable[[str], None]


class KeyValueStorage(Protocol):
    """String key to string value store with change notifications."""

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value or ``None``."""

    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``."""

    def remove_item(self, key: str) -> None:
        """Delete ``key`` if present."""

    def subscribe(self, listener: StorageListener) -> Callable[[], None]:
        """Call ``listener(key)`` whenever ``key`` changes; returns an unsubscribe."""

    def poll(self) -> None:
        """Check for external changes and notify listeners."""


class _Listeners:
    def __init__(self) -> None:
        self._listeners: List[StorageListener] = []

    def subscribe(self, listener: StorageListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, key: str) -> None:
        for listener in list(self._listeners):
            listener(key)


class MemoryStorage(_Listeners):
    """In-process storage; every write notifies all subscribers at once."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        super().__init__()
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = str(value)
        self._notify(key)

    def remove_item(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._notify(key)

    def poll(self) -> None:
        return None


class JsonFileStorage(_Listeners):
    """Storage backed by one JSON object on disk.

    Writes go through a temporary file and an atomic replace. Writers in
    other processes are picked up by `poll`, which compares the file's
    modification time and size with the last state this instance saw.
    """

    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)
        self._stamp = self._file_stamp()
        self._seen = self._read()

    def _file_stamp(self) -> Optional[Tuple[int, int]]:
        try:
            st = self.path.stat()
        except FileNotFoundError:
            return None
        return st.st_mtime_ns, st.st_size

    def _read(self) -> Dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except UnicodeDecodeError:
            logger.warning("ignoring undecodable storage file %s", self.path)
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("ignoring corrupt storage file %s", self.path)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        self._stamp = self._file_stamp()
        self._seen = dict(data)

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = str(value)
        self._write(data)
        self._notify(key)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if key not in data:
            return
        del data[key]
        self._write(data)
        self._notify(key)

    def poll(self) -> None:
        stamp = self._file_stamp()
        if stamp == self._stamp:
            return
        self._stamp = stamp
        current = self._read()
        changed = sorted(
            k for k in set(current) | set(self._seen) if current.get(k) != self._seen.get(k)
        )
        self._seen = current
        for key in changed:
            logger.debug("external change to %s in %s", key, self.path)
            self._notify(key)


__all__ = ["JsonFileStorage", "KeyValueStorage", "MemoryStorage", "StorageListener"]
