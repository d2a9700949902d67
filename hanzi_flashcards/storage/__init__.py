"""Persistence for the word collection: key-value string stores and the word repository."""

from .kv_store import (
	StorageError,
	KeyValueStore,
	MemoryKeyValueStore,
	FileKeyValueStore,
	RedisKeyValueStore,
	create_store,
)
from .repository import WordRepository, LoadError, WORDS_KEY

__all__ = [
	'StorageError',
	'KeyValueStore',
	'MemoryKeyValueStore',
	'FileKeyValueStore',
	'RedisKeyValueStore',
	'create_store',
	'WordRepository',
	'LoadError',
	'WORDS_KEY',
]
