"""Bring the cached word collection up to date with a source word list.

Only terms missing from the cache are sent for enrichment. Results are
merged newest-first, and the merge checks characters against the cache again
because the collection may have changed while the batch was running.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Set

from hanzi_flashcards.enrichment.batch import BatchResult, ChunkError, enrich_batch
from hanzi_flashcards.models import Word
from hanzi_flashcards.utils.logger import get_logger, log_sync
from .state import WordState

LOG = get_logger()

StatusCallback = Callable[[str], None]
BatchEnricher = Callable[..., BatchResult]

STATUS_UP_TO_DATE = 'Word list matches cache. No API call needed.'


@dataclass
class SyncReport:
    words: List[Word]
    added: List[Word] = field(default_factory=list)
    new_terms: List[str] = field(default_factory=list)
    statuses: List[str] = field(default_factory=list)
    errors: List[ChunkError] = field(default_factory=list)

    @property
    def enrichment_called(self) -> bool:
        return bool(self.new_terms)


def compute_new_terms(source_terms: Iterable[str], existing: Set[str]) -> List[str]:
    new_terms = []
    seen = set(existing)
    for t in source_terms:
        t = (t or '').strip()
        if not t or t in seen:
            continue
        seen.add(t)
        new_terms.append(t)
    return new_terms


def sync_words(
    source_terms: Iterable[str],
    state: WordState,
    batch: BatchEnricher = enrich_batch,
    on_status: Optional[StatusCallback] = None,
    request_id: Optional[str] = None,
) -> SyncReport:
    start = time.time()
    source_terms = list(source_terms)
    statuses: List[str] = []

    def _status(msg: str):
        statuses.append(msg)
        if on_status:
            on_status(msg)

    new_terms = compute_new_terms(source_terms, state.characters())
    if not new_terms:
        LOG.info('sync_up_to_date', extra={'source_count': len(source_terms)})
        _status(STATUS_UP_TO_DATE)
        return SyncReport(words=state.words, statuses=statuses)

    _status(f'Found {len(new_terms)} new words. Fetching meanings...')

    def _progress(done: int, total: int):
        _status(f'Analyzing new words: {done}/{total}...')

    result = batch(new_terms, on_progress=_progress, request_id=request_id)
    candidates = [Word.from_details(d) for d in result.items]
    added = state.merge_new_words(candidates)

    _status(f'Enriched & Cached {len(added)} new words.')
    log_sync(request_id, len(source_terms), len(new_terms), len(added), int((time.time() - start) * 1000))
    return SyncReport(words=state.words, added=added, new_terms=new_terms, statuses=statuses, errors=list(result.errors))


def import_snapshot(words: Iterable[Word], state: WordState) -> List[Word]:
    """Merge pre-built Words (static JSON snapshot) without calling the enricher."""
    added = state.merge_new_words(words)
    LOG.info('snapshot_imported', extra={'added_count': len(added)})
    return added
