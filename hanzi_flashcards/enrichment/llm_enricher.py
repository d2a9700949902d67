"""LLM-based enrichment of Chinese vocabulary terms.

Provides:
- Pydantic models describing the enrichment result (WordDetails and the
  per-row batch shape CharacterWordDetails)
- WordEnricher singleton wrapping OpenAI structured-output calls
- enrich_word convenience function

Custom exceptions: WordEnricherError, InvalidTermError, NetworkError, EnrichmentTimeoutError,
EnrichmentError, ParseError. No retries happen here; callers decide.
"""
from __future__ import annotations

import os
import time
import json
from typing import List, Optional, Dict, Any, Sequence

import openai
from openai import OpenAI
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from hanzi_flashcards.utils.logger import get_logger, log_llm_call

LOG = get_logger()


class WordEnricherError(Exception):
    pass


class InvalidTermError(WordEnricherError):
    """The term is blank or longer than ENRICH_MAX_TERM_LENGTH."""


class NetworkError(WordEnricherError):
    """Transport failure talking to the text-generation service."""


class EnrichmentTimeoutError(NetworkError):
    pass


class EnrichmentError(WordEnricherError):
    """The service answered but gave nothing usable."""


class ParseError(WordEnricherError):
    """The structured output was not valid JSON of the expected shape."""


class WordDetails(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='forbid')

    pinyin: str = Field(..., description='The pinyin with tone marks')
    meaning: str = Field(..., description='The English translation')
    example_sentence: str = Field(..., description='A simple example sentence in Chinese')
    example_meaning: str = Field(..., description='English translation of the example sentence')


class CharacterWordDetails(WordDetails):
    character: str = Field(..., description='The Chinese word from the list')


class WordDetailsBatch(BaseModel):
    model_config = ConfigDict(extra='forbid')

    words: List[CharacterWordDetails]


OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')
OPENAI_MAX_TOKENS = int(os.getenv('OPENAI_MAX_TOKENS', '4000'))
OPENAI_TEMPERATURE = float(os.getenv('OPENAI_TEMPERATURE', '0.3'))
OPENAI_TIMEOUT = float(os.getenv('OPENAI_TIMEOUT', '60'))
ENRICH_MAX_TERM_LENGTH = int(os.getenv('ENRICH_MAX_TERM_LENGTH', '64'))


def _response_format(name: str, model: type[BaseModel]) -> Dict[str, Any]:
    return {
        'type': 'json_schema',
        'json_schema': {
            'name': name,
            'strict': True,
            'schema': model.model_json_schema(by_alias=True),
        },
    }


class WordEnricher:
    _instance = None

    def __init__(self, client: Optional[OpenAI] = None, model: Optional[str] = None):
        self.model = model or OPENAI_MODEL
        self.timeout = OPENAI_TIMEOUT
        if client is None:
            key = os.getenv('OPENAI_API_KEY')
            if not key:
                raise WordEnricherError('OPENAI_API_KEY not set')
            client = OpenAI(api_key=key, timeout=self.timeout, max_retries=0)
        self._client = client
        LOG.info('WordEnricher initialized', extra={'model': self.model})

    @classmethod
    def get_instance(cls) -> 'WordEnricher':
        if cls._instance is None:
            cls._instance = WordEnricher()
        return cls._instance

    def _build_system_prompt(self) -> str:
        return (
            "You are a Chinese vocabulary assistant for English-speaking learners. "
            "For every Chinese word or phrase you are given, provide its pinyin with tone marks, "
            "a concise English meaning, one simple Chinese example sentence using the word, "
            "and the English meaning of that sentence. "
            "Output only JSON matching the provided schema."
        )

    def _build_term_prompt(self, term: str) -> str:
        return (
            "Provide the pinyin, english meaning, a simple chinese example sentence, "
            f"and the english meaning of that sentence for the word: \"{term}\"."
        )

    def _build_chunk_prompt(self, terms: Sequence[str]) -> str:
        words = '\n'.join(terms)
        return (
            "For the following list of Chinese words, provide the pinyin, meaning, example sentence, "
            "and example meaning for each. Return one entry per word, in the same order, "
            "with `character` set to the word exactly as listed.\n\n"
            f"Words:\n{words}"
        )

    def _call_openai(self, messages: List[Dict[str, str]], response_format: Dict[str, Any], term_count: int, request_id: Optional[str] = None) -> str:
        start = time.time()
        try:
            resp = self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=OPENAI_TEMPERATURE,
                max_tokens=OPENAI_MAX_TOKENS,
                response_format=response_format,
            )
        except openai.APITimeoutError as e:
            LOG.exception('openai_timeout', exc_info=True)
            raise EnrichmentTimeoutError(str(e)) from e
        except openai.APIConnectionError as e:
            LOG.exception('openai_connection_error', exc_info=True)
            raise NetworkError(str(e)) from e
        except openai.OpenAIError as e:
            LOG.exception('openai_api_error', exc_info=True)
            raise EnrichmentError(str(e)) from e
        except Exception as e:
            LOG.exception('openai_unknown_error', exc_info=True)
            raise EnrichmentError(str(e)) from e

        duration_ms = int((time.time() - start) * 1000)
        usage = getattr(resp, 'usage', None)
        log_llm_call(
            request_id,
            self.model,
            getattr(usage, 'prompt_tokens', 0) or 0,
            getattr(usage, 'completion_tokens', 0) or 0,
            duration_ms,
            term_count=term_count,
        )

        choices = getattr(resp, 'choices', None) or []
        if not choices:
            raise EnrichmentError('No choices returned')
        message = choices[0].message
        refusal = getattr(message, 'refusal', None)
        if refusal:
            raise EnrichmentError(f'Model refused: {refusal}')
        content = getattr(message, 'content', None)
        if not content or not content.strip():
            raise EnrichmentError('No response from AI')
        return content

    def _parse(self, content: str, model: type[BaseModel]):
        try:
            payload = json.loads(content)
        except json.JSONDecodeError as e:
            raise ParseError(f'Response is not valid JSON: {e}') from e
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            LOG.warning('enrichment_validation_failed', extra={'error': str(e)})
            raise ParseError(str(e)) from e

    def enrich(self, term: str, request_id: Optional[str] = None) -> WordDetails:
        term = (term or '').strip()
        if not term:
            raise InvalidTermError('Empty term')
        if len(term) > ENRICH_MAX_TERM_LENGTH:
            raise InvalidTermError(f'Term too long ({len(term)} > {ENRICH_MAX_TERM_LENGTH})')
        messages = [
            {'role': 'system', 'content': self._build_system_prompt()},
            {'role': 'user', 'content': self._build_term_prompt(term)},
        ]
        content = self._call_openai(messages, _response_format('word_details', WordDetails), 1, request_id=request_id)
        return self._parse(content, WordDetails)

    def enrich_chunk(self, terms: Sequence[str], request_id: Optional[str] = None) -> List[CharacterWordDetails]:
        """One structured request for a whole chunk of terms."""
        if not terms:
            return []
        messages = [
            {'role': 'system', 'content': self._build_system_prompt()},
            {'role': 'user', 'content': self._build_chunk_prompt(terms)},
        ]
        content = self._call_openai(messages, _response_format('word_details_batch', WordDetailsBatch), len(terms), request_id=request_id)
        return self._parse(content, WordDetailsBatch).words


def enrich_word(term: str, request_id: Optional[str] = None) -> Dict[str, Any]:
    details = WordEnricher.get_instance().enrich(term, request_id=request_id)
    return details.model_dump(by_alias=True)
