"""
Flashcard collection: the process-wide word state, word-list sync and review deck.
"""

from .state import WordState, DuplicateWordError
from .sync import SyncReport, compute_new_terms, sync_words, import_snapshot, STATUS_UP_TO_DATE
from .review import ReviewDeck, shuffle_words

__all__ = [
	'WordState',
	'DuplicateWordError',
	'SyncReport',
	'compute_new_terms',
	'sync_words',
	'import_snapshot',
	'STATUS_UP_TO_DATE',
	'ReviewDeck',
	'shuffle_words',
]
