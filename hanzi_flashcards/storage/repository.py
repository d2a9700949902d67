"""Load and save the whole word collection as one JSON array under a fixed key."""
from __future__ import annotations

import json
from typing import List, Sequence

from pydantic import TypeAdapter, ValidationError

from hanzi_flashcards.models import Word
from hanzi_flashcards.utils.logger import get_logger
from .kv_store import KeyValueStore, StorageError

LOG = get_logger()

WORDS_KEY = 'chinese-words'

_WORD_LIST = TypeAdapter(List[Word])


class LoadError(Exception):
    """The persisted snapshot exists but cannot be decoded."""


class WordRepository:
    def __init__(self, store: KeyValueStore, key: str = WORDS_KEY):
        self.store = store
        self.key = key

    def _decode(self, raw: str) -> List[Word]:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise LoadError(f'invalid JSON: {e}') from e
        if not isinstance(data, list):
            raise LoadError(f'expected a JSON array, got {type(data).__name__}')
        try:
            return _WORD_LIST.validate_python(data)
        except ValidationError as e:
            raise LoadError(str(e)) from e

    def load(self) -> List[Word]:
        try:
            raw = self.store.get(self.key)
            if raw is None:
                return []
            words = self._decode(raw)
        except (LoadError, StorageError) as e:
            LOG.error('words_load_failed', extra={'key': self.key, 'error': str(e)})
            return []
        LOG.info('words_loaded', extra={'key': self.key, 'count': len(words)})
        return words

    def save(self, words: Sequence[Word]) -> None:
        payload = json.dumps([w.to_json_dict() for w in words], ensure_ascii=False)
        self.store.set(self.key, payload)
        LOG.info('words_saved', extra={'key': self.key, 'count': len(words)})
