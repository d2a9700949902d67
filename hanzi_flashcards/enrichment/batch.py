"""Chunked, sequential bulk enrichment.

Terms are cleaned (trimmed, blanks and repeats dropped), split into
fixed-size chunks and sent to the enricher one chunk at a time. A failed
chunk contributes nothing and is recorded in ``BatchResult.errors``; the
batch itself never raises because of one bad chunk.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from functools import reduce
from typing import Callable, Iterable, List, Optional, Sequence

from hanzi_flashcards.utils.logger import get_logger, log_enrichment_batch
from .llm_enricher import CharacterWordDetails, WordEnricher

LOG = get_logger()

CHUNK_SIZE = 20

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class ChunkError:
    index: int
    terms: List[str]
    message: str
    error_type: str


@dataclass(frozen=True)
class ChunkOutcome:
    index: int
    terms: List[str]
    items: List[CharacterWordDetails] = field(default_factory=list)
    error: Optional[ChunkError] = None


@dataclass(frozen=True)
class BatchResult:
    items: List[CharacterWordDetails] = field(default_factory=list)
    errors: List[ChunkError] = field(default_factory=list)
    processed: int = 0
    total: int = 0

    @property
    def chunk_failures(self) -> int:
        return len(self.errors)


def clean_terms(terms: Iterable[str]) -> List[str]:
    seen = set()
    cleaned = []
    for t in terms:
        t = (t or '').strip()
        if not t or t in seen:
            continue
        seen.add(t)
        cleaned.append(t)
    return cleaned


def chunk_terms(terms: Sequence[str], size: int = CHUNK_SIZE) -> List[List[str]]:
    return [list(terms[i:i + size]) for i in range(0, len(terms), size)]


def _run_chunk(enricher: Optional[WordEnricher], index: int, chunk: List[str], request_id: Optional[str]) -> ChunkOutcome:
    try:
        # a client that cannot be built fails each chunk like any other error
        rows = (enricher or WordEnricher.get_instance()).enrich_chunk(chunk, request_id=request_id)
    except Exception as e:
        LOG.warning('enrichment_chunk_failed', extra={'chunk_index': index, 'chunk_size': len(chunk), 'error': str(e), 'error_type': type(e).__name__})
        return ChunkOutcome(index=index, terms=chunk, error=ChunkError(index, chunk, str(e), type(e).__name__))
    items = []
    for row in rows:
        character = row.character.strip()
        if not character:
            continue
        items.append(row.model_copy(update={'character': character}))
    return ChunkOutcome(index=index, terms=chunk, items=items)


def enrich_batch(
    terms: Iterable[str],
    on_progress: Optional[ProgressCallback] = None,
    enricher: Optional[WordEnricher] = None,
    request_id: Optional[str] = None,
) -> BatchResult:
    cleaned = clean_terms(terms)
    total = len(cleaned)
    if total == 0:
        return BatchResult()

    chunks = chunk_terms(cleaned)
    start = time.time()

    def _step(acc: BatchResult, indexed_chunk) -> BatchResult:
        index, chunk = indexed_chunk
        outcome = _run_chunk(enricher, index, chunk, request_id)
        processed = min(acc.processed + len(chunk), total)
        if on_progress:
            on_progress(processed, total)
        return BatchResult(
            items=acc.items + outcome.items,
            errors=acc.errors + ([outcome.error] if outcome.error else []),
            processed=processed,
            total=total,
        )

    result = reduce(_step, enumerate(chunks), BatchResult(total=total))
    log_enrichment_batch(request_id, total, len(chunks), len(result.items), result.chunk_failures, int((time.time() - start) * 1000))
    return result


def enrich_words_bulk(terms: Iterable[str], on_progress: Optional[ProgressCallback] = None) -> List[CharacterWordDetails]:
    return enrich_batch(terms, on_progress=on_progress).items
