"""
=============================================================================
SECRET STORE
=============================================================================

A durable key-value store holding the shared secret used to pair a
client with the device.

    SecretStore (interface)
        get(key) -> Optional[str]
        set(key, value)

    MemorySecretStore   dict + lock, for tests and throwaway runs
    FileSecretStore     JSON preferences file, survives restarts

Concurrency contract:
    Each get/set is atomic. Reads can race with a /set-secret write;
    whichever write lands last wins. No transaction spans two calls.

=============================================================================
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union


logger = logging.getLogger(__name__)


SECRET_KEY_PREF = "secret_key"
"""Key under which the shared secret is stored."""


class SecretStore(ABC):
    """Key-value store contract."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key was never set."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        pass


class MemorySecretStore(SecretStore):
    """In-process store. Nothing survives the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value


class FileSecretStore(SecretStore):
    """
    Store backed by a small JSON file.

    The file holds a flat {"key": "value"} object. Writes go to a temporary
    file in the same directory which is then renamed over the original,
    so a crash mid-write leaves either the old or the new file, never a
    truncated one. The file is created with mode 0600.

    The file is re-read on every get() so that a secret written by another
    process (or edited by hand) is picked up without a restart.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            values = self._load()
            values[key] = value
            self._save(values)

    def _load(self) -> Dict[str, object]:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return {}

        try:
            data = json.loads(raw.decode("utf-8"))
        except ValueError:
            logger.warning(f"Ignoring unreadable secret store {self.path}")
            return {}

        return data if isinstance(data, dict) else {}


    def _save(self, values: Dict[str, object]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(values, f)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise
