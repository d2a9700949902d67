import os
import json
import pathlib
import tempfile
import threading
from typing import Optional, Dict, Protocol

from hanzi_flashcards.utils.logger import get_logger

LOG = get_logger()

WORD_STORE_BACKEND = os.getenv('WORD_STORE_BACKEND', 'file').lower()
WORD_STORE_PATH = os.getenv('WORD_STORE_PATH', 'data/local_storage.json')


class StorageError(Exception):
    """Raised when the backing store cannot be read or written."""


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def ping(self) -> bool: ...


class MemoryKeyValueStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def ping(self) -> bool:
        return True


class FileKeyValueStore:
    """String values kept in one JSON object on disk, like browser localStorage."""

    def __init__(self, path: str = WORD_STORE_PATH):
        self.path = pathlib.Path(path)
        self._lock = threading.Lock()

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = self.path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f'Cannot read {self.path}: {e}') from e
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f'Store file {self.path} is not valid JSON: {e}') from e
        if not isinstance(data, dict):
            raise StorageError(f'Store file {self.path} does not hold an object')
        return data

    def _write_all(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name, suffix='.tmp')
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp, self.path)
        except OSError as e:
            raise StorageError(f'Cannot write {self.path}: {e}') from e

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if data.pop(key, None) is not None:
                self._write_all(data)

    def ping(self) -> bool:
        with self._lock:
            self._read_all()
        return True


class RedisKeyValueStore:
    def __init__(self, client=None):
        if client is None:
            import redis
            host = os.getenv('REDIS_HOST', 'localhost')
            port = int(os.getenv('REDIS_PORT', '6379'))
            password = os.getenv('REDIS_PASSWORD') or None
            client = redis.Redis(host=host, port=port, password=password, decode_responses=True)
            LOG.info('redis_store_configured', extra={'host': host, 'port': port})
        self._client = client

    def get(self, key: str) -> Optional[str]:
        try:
            return self._client.get(key)
        except Exception as e:
            raise StorageError(f'redis get failed: {e}') from e

    def set(self, key: str, value: str) -> None:
        try:
            self._client.set(key, value)
        except Exception as e:
            raise StorageError(f'redis set failed: {e}') from e

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except Exception as e:
            raise StorageError(f'redis delete failed: {e}') from e

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except Exception as e:
            raise StorageError(f'redis ping failed: {e}') from e


def create_store(backend: Optional[str] = None) -> KeyValueStore:
    backend = (backend or WORD_STORE_BACKEND).lower()
    if backend == 'redis':
        return RedisKeyValueStore()
    if backend == 'memory':
        return MemoryKeyValueStore()
    if backend == 'file':
        return FileKeyValueStore(WORD_STORE_PATH)
    raise ValueError(f'Unknown WORD_STORE_BACKEND: {backend}')
