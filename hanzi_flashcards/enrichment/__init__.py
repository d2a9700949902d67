"""
Enrichment of Chinese vocabulary terms through an LLM.
Single-term lookups and chunked bulk processing.
"""
from .llm_enricher import (
	WordEnricher,
	enrich_word,
	WordDetails,
	CharacterWordDetails,
	WordDetailsBatch,
	WordEnricherError,
	InvalidTermError,
	NetworkError,
	EnrichmentTimeoutError,
	EnrichmentError,
	ParseError,
)
from .batch import CHUNK_SIZE, BatchResult, ChunkError, ChunkOutcome, clean_terms, chunk_terms, enrich_batch, enrich_words_bulk

__all__ = [
	'WordEnricher', 'enrich_word', 'WordDetails', 'CharacterWordDetails', 'WordDetailsBatch',
	'WordEnricherError', 'InvalidTermError', 'NetworkError', 'EnrichmentTimeoutError', 'EnrichmentError', 'ParseError',
	'CHUNK_SIZE', 'BatchResult', 'ChunkError', 'ChunkOutcome', 'clean_terms', 'chunk_terms', 'enrich_batch', 'enrich_words_bulk',
]
