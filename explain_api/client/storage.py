"""Synchronous key-value persistence for client-side state.

The stores mimic browser local storage: string keys, string values, and
read-modify-write done by the caller. Any backend failure surfaces as
:class:`StorageAppError` so callers can degrade to "no prior state".
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from explain_api.core.errors import StorageAppError

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Interface for client state persistence."""

    @abstractmethod
    def get_item(self, key: str) -> str | None:
        """Return the stored value, or None when the key is absent.

        Raises:
            StorageAppError: If the backend cannot be read.
        """
        raise NotImplementedError

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``.

        Raises:
            StorageAppError: If the backend cannot be written (e.g. disk full).
        """
        raise NotImplementedError

    @abstractmethod
    def remove_item(self, key: str) -> None:
        raise NotImplementedError


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store; state is lost when the process exits."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()


class JsonFileKeyValueStore(KeyValueStore):
    """All keys in one JSON object on disk.

    Writes go through a temporary file and ``os.replace`` so a crash never
    leaves a half-written document behind. A missing file reads as empty.
    Reading a corrupt document raises ``storage_corrupted``; the next write
    starts over from an empty document.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise StorageAppError(
                code="storage_unavailable",
                message=f"Cannot read client state: {exc}",
            ) from exc

        try:
            data = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as exc:
            raise StorageAppError(
                code="storage_corrupted",
                message=f"Client state file is not valid JSON: {exc}",
            ) from exc
        if not isinstance(data, dict):
            raise StorageAppError(
                code="storage_corrupted",
                message="Client state file must contain a JSON object",
            )
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _dump(self, data: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(data, fh, separators=(",", ":"))
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageAppError(
                code="storage_unavailable",
                message=f"Cannot write client state: {exc}",
            ) from exc

    def _load_for_write(self) -> dict[str, str]:
        """Like ``_load``, but a corrupt document is replaced by an empty one."""
        try:
            return self._load()
        except StorageAppError as exc:
            if exc.code != "storage_corrupted":
                raise
            logger.warning(
                "storage.corrupted_document_replaced",
                extra={"storage_path": str(self._path), "error_msg": exc.message},
            )
            return {}

    def get_item(self, key: str) -> str | None:
        with self._lock:
            return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            data = self._load_for_write()
            data[key] = value
            self._dump(data)

    def remove_item(self, key: str) -> None:
        with self._lock:
            data = self._load_for_write()
            data.pop(key, None)
            self._dump(data)
