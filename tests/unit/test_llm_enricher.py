import json
import httpx
import openai
import pytest

from hanzi_flashcards.enrichment import (
    WordEnricher,
    WordDetails,
    WordEnricherError,
    NetworkError,
    EnrichmentTimeoutError,
    EnrichmentError,
    ParseError,
    enrich_word,
)
from hanzi_flashcards.enrichment.llm_enricher import ENRICH_MAX_TERM_LENGTH
from tests.fixtures.mock_openai import build_response, MOCK_WORD_DETAILS

_REQUEST = httpx.Request('POST', 'https://api.openai.com/v1/chat/completions')


@pytest.mark.unit
def test_get_instance_singleton(monkeypatch):
    monkeypatch.setenv('OPENAI_API_KEY', 'sk-test')
    a = WordEnricher.get_instance()
    b = WordEnricher.get_instance()
    assert a is b


@pytest.mark.unit
def test_missing_api_key_raises(monkeypatch):
    monkeypatch.delenv('OPENAI_API_KEY', raising=False)
    with pytest.raises(WordEnricherError):
        WordEnricher()


@pytest.mark.unit
def test_enrich_success(enricher, fake_openai):
    details = enricher.enrich('你好')
    assert isinstance(details, WordDetails)
    assert details.pinyin == 'nǐ hǎo'
    assert details.example_sentence == MOCK_WORD_DETAILS['exampleSentence']
    assert len(fake_openai.calls) == 1
    assert '你好' in fake_openai.calls[0]['messages'][-1]['content']


@pytest.mark.unit
def test_request_uses_strict_schema(enricher, fake_openai):
    enricher.enrich('你好')
    fmt = fake_openai.calls[0]['response_format']
    assert fmt['type'] == 'json_schema'
    assert fmt['json_schema']['strict'] is True
    schema = fmt['json_schema']['schema']
    assert set(schema['required']) == {'pinyin', 'meaning', 'exampleSentence', 'exampleMeaning'}
    assert schema['additionalProperties'] is False


@pytest.mark.unit
def test_enrich_empty_term_raises_without_call(enricher, fake_openai):
    with pytest.raises(WordEnricherError):
        enricher.enrich('   ')
    assert fake_openai.calls == []


@pytest.mark.unit
def test_enrich_too_long_term_raises(enricher):
    with pytest.raises(WordEnricherError):
        enricher.enrich('字' * (ENRICH_MAX_TERM_LENGTH + 1))


@pytest.mark.unit
def test_invalid_json_raises_parse_error(enricher, fake_openai):
    fake_openai.enqueue(build_response('{invalid json'))
    with pytest.raises(ParseError):
        enricher.enrich('你好')


@pytest.mark.unit
def test_wrong_shape_raises_parse_error(enricher, fake_openai):
    fake_openai.enqueue(build_response(json.dumps({'pinyin': 'nǐ hǎo'})))
    with pytest.raises(ParseError):
        enricher.enrich('你好')


@pytest.mark.unit
@pytest.mark.parametrize('response', [
    build_response(None),
    build_response('   '),
    build_response('{}', choices=False),
    build_response(None, refusal='I cannot help with that'),
])
def test_unusable_response_raises_enrichment_error(enricher, fake_openai, response):
    fake_openai.enqueue(response)
    with pytest.raises(EnrichmentError):
        enricher.enrich('你好')


@pytest.mark.unit
def test_connection_error_maps_to_network_error(enricher, fake_openai):
    fake_openai.enqueue(openai.APIConnectionError(request=_REQUEST))
    with pytest.raises(NetworkError) as excinfo:
        enricher.enrich('你好')
    assert not isinstance(excinfo.value, EnrichmentTimeoutError)


@pytest.mark.unit
def test_timeout_maps_to_timeout_error(enricher, fake_openai):
    fake_openai.enqueue(openai.APITimeoutError(request=_REQUEST))
    with pytest.raises(EnrichmentTimeoutError):
        enricher.enrich('你好')


@pytest.mark.unit
def test_unexpected_client_error_maps_to_enrichment_error(enricher, fake_openai):
    fake_openai.enqueue(RuntimeError('boom'))
    with pytest.raises(EnrichmentError):
        enricher.enrich('你好')


@pytest.mark.unit
def test_no_retry_on_failure(enricher, fake_openai):
    fake_openai.enqueue(openai.APIConnectionError(request=_REQUEST))
    with pytest.raises(NetworkError):
        enricher.enrich('你好')
    assert len(fake_openai.calls) == 1


@pytest.mark.unit
def test_enrich_chunk_returns_rows_in_order(enricher, fake_openai):
    rows = enricher.enrich_chunk(['你好', '世界'])
    assert [r.character for r in rows] == ['你好', '世界']
    assert fake_openai.chunk_calls == [['你好', '世界']]


@pytest.mark.unit
def test_enrich_chunk_empty_makes_no_call(enricher, fake_openai):
    assert enricher.enrich_chunk([]) == []
    assert fake_openai.calls == []


@pytest.mark.unit
def test_enrich_word_returns_camel_case_dict(mock_openai_client):
    out = enrich_word('你好')
    assert out == MOCK_WORD_DETAILS
