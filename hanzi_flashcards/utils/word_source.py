import os
import time
import json
import pathlib
from typing import List

import requests
from pydantic import TypeAdapter, ValidationError

from hanzi_flashcards.models import Word
from hanzi_flashcards.utils.logger import get_logger

LOG = get_logger()

WORD_SOURCE_TIMEOUT = float(os.getenv('WORD_SOURCE_TIMEOUT', '20'))

_WORD_LIST = TypeAdapter(List[Word])


class WordSourceError(Exception):
    """Raised when a source word list cannot be fetched or decoded."""


def parse_word_list(text: str) -> List[str]:
    """One term per line; surrounding whitespace and blank lines are dropped."""
    return [line.strip() for line in (text or '').splitlines() if line.strip()]


def _get(url: str) -> requests.Response:
    # cache-busting timestamp for static hosts
    params = {'t': str(int(time.time() * 1000))}
    try:
        return requests.get(url, params=params, timeout=WORD_SOURCE_TIMEOUT)
    except requests.RequestException as e:
        LOG.warning('word_source_request_failed', extra={'url': url, 'error': str(e)})
        raise WordSourceError(f'Failed to fetch {url}: {e}') from e


def _decode(resp: requests.Response, url: str) -> str:
    # static hosts often omit the charset for text/plain
    try:
        return resp.content.decode('utf-8-sig')
    except UnicodeDecodeError as e:
        raise WordSourceError(f'{url} is not UTF-8: {e}') from e


def fetch_word_list(url: str) -> List[str]:
    resp = _get(url)
    if resp.status_code == 404:
        LOG.info('word_source_missing', extra={'url': url})
        return []
    if not resp.ok:
        raise WordSourceError(f'Fetching {url} returned HTTP {resp.status_code}')
    terms = parse_word_list(_decode(resp, url))
    LOG.info('word_source_fetched', extra={'url': url, 'count': len(terms)})
    return terms


def read_word_list(path: str) -> List[str]:
    p = pathlib.Path(path)
    if not p.exists():
        LOG.info('word_source_missing', extra={'path': str(p)})
        return []
    try:
        return parse_word_list(p.read_text(encoding='utf-8-sig'))
    except (OSError, UnicodeDecodeError) as e:
        raise WordSourceError(f'Cannot read {p}: {e}') from e


def parse_word_snapshot(raw: str) -> List[Word]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise WordSourceError(f'Snapshot is not valid JSON: {e}') from e
    if not isinstance(data, list):
        raise WordSourceError('Snapshot must be a JSON array of words')
    try:
        return _WORD_LIST.validate_python(data)
    except ValidationError as e:
        raise WordSourceError(f'Snapshot does not match the word shape: {e}') from e


def fetch_word_snapshot(url: str) -> List[Word]:
    resp = _get(url)
    if not resp.ok:
        raise WordSourceError(f'Fetching {url} returned HTTP {resp.status_code}')
    return parse_word_snapshot(_decode(resp, url))


def read_word_snapshot(path: str) -> List[Word]:
    p = pathlib.Path(path)
    try:
        return parse_word_snapshot(p.read_text(encoding='utf-8-sig'))
    except (OSError, UnicodeDecodeError) as e:
        raise WordSourceError(f'Cannot read {p}: {e}') from e
