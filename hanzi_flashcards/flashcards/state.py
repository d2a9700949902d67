from __future__ import annotations

import threading
from typing import Iterable, List, Optional, Set

from hanzi_flashcards.models import Word
from hanzi_flashcards.storage.repository import WordRepository
from hanzi_flashcards.utils.logger import get_logger

LOG = get_logger()


class DuplicateWordError(Exception):
    def __init__(self, character: str):
        super().__init__(f'Word already exists: {character}')
        self.character = character


class WordState:
    """The process-wide word collection, newest first.

    Every accepted mutation is saved through the repository before the
    in-memory list is replaced; a failed save leaves the collection as it was.
    """

    def __init__(self, repository: WordRepository, words: Optional[Iterable[Word]] = None):
        self.repository = repository
        self._words: List[Word] = list(words or [])
        self._lock = threading.RLock()

    @classmethod
    def from_repository(cls, repository: WordRepository) -> 'WordState':
        return cls(repository, repository.load())

    @property
    def words(self) -> List[Word]:
        with self._lock:
            return list(self._words)

    def __len__(self) -> int:
        return len(self._words)

    def characters(self) -> Set[str]:
        with self._lock:
            return {w.character for w in self._words}

    def _commit(self, words: List[Word]) -> None:
        self.repository.save(words)
        self._words = words

    def add_word(self, word: Word) -> Word:
        with self._lock:
            if word.character in self.characters():
                raise DuplicateWordError(word.character)
            self._commit([word] + self._words)
        LOG.info('word_added', extra={'character': word.character, 'word_id': word.id})
        return word

    def add_words(self, words: Iterable[Word]) -> List[Word]:
        """Bulk commit; entries whose character already exists are skipped."""
        added = self.merge_new_words(words)
        LOG.info('words_added', extra={'count': len(added)})
        return added

    def merge_new_words(self, words: Iterable[Word]) -> List[Word]:
        """Prepend freshly enriched words, re-checking characters against the current state."""
        with self._lock:
            added = self._unique_against(words, self.characters())
            if added:
                self._commit(added + self._words)
        return added

    @staticmethod
    def _unique_against(words: Iterable[Word], existing: Set[str]) -> List[Word]:
        seen = set(existing)
        unique = []
        for w in words:
            if w.character in seen:
                continue
            seen.add(w.character)
            unique.append(w)
        return unique
