import os
import time
import uuid
import random
import asyncio
from datetime import datetime, timezone
from typing import Optional, List

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings

from hanzi_flashcards.enrichment import (
    enrich_word,
    enrich_batch,
    WordEnricherError,
    InvalidTermError,
    NetworkError,
    EnrichmentTimeoutError,
    EnrichmentError,
    ParseError,
)
from hanzi_flashcards.flashcards import (
    WordState,
    DuplicateWordError,
    ReviewDeck,
    sync_words,
    import_snapshot,
)
from hanzi_flashcards.models import Word
from hanzi_flashcards.storage import WordRepository, StorageError, create_store
from hanzi_flashcards.utils import get_logger, log_request, log_error, set_request_context, TaskManager, TaskStatus
from hanzi_flashcards.utils.word_source import (
    WordSourceError,
    parse_word_list,
    fetch_word_list,
    read_word_list,
    fetch_word_snapshot,
    read_word_snapshot,
)

LOG = get_logger()


class Settings(BaseSettings):
    HOST: str = '0.0.0.0'
    PORT: int = 8000
    ENVIRONMENT: str = 'development'
    LOG_LEVEL: str = 'INFO'
    CORS_ORIGIN: str = '*'
    WORD_SOURCE_URL: Optional[str] = None
    WORD_SOURCE_PATH: Optional[str] = None
    WORD_SOURCE_MODE: str = 'text'
    SYNC_ON_STARTUP: bool = False
    OPENAI_REQUIRED_FOR_READY: bool = False


settings = Settings()

app = FastAPI(title='Hanzi Flashcards', version='1.0.0', description='Chinese vocabulary flashcards with AI enrichment')

origins = [o.strip() for o in settings.CORS_ORIGIN.split(',') if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# strong references to fire-and-forget jobs
_BACKGROUND_JOBS = set()


@app.middleware('http')
async def add_request_id_and_logging(request: Request, call_next):
    request_id = request.headers.get('x-request-id') or os.urandom(8).hex()
    request.state.request_id = request_id
    set_request_context(request_id)
    start = time.time()
    LOG.info('http_request_start', extra={'method': request.method, 'path': request.url.path, 'request_id': request_id, 'client': request.client.host if request.client else None})
    try:
        response: Response = await call_next(request)
    except Exception as e:
        log_error(e, {'request_id': request_id, 'method': request.method, 'path': request.url.path})
        body = {'success': False, 'error': 'Internal server error', 'request_id': request_id}
        return JSONResponse(status_code=500, content=body)
    duration = int((time.time() - start) * 1000)
    log_request(request_id, request.method, request.url.path, response.status_code, duration, ip=request.client.host if request.client else None)
    response.headers['X-Request-ID'] = request_id
    return response


def _request_id(fastapi_request: Optional[Request]) -> str:
    if fastapi_request is not None:
        rid = getattr(fastapi_request.state, 'request_id', None)
        if rid:
            return rid
    return os.urandom(8).hex()


def _error(status_code: int, error: str, request_id: str, details: Optional[str] = None, **extra) -> JSONResponse:
    content = {'success': False, 'error': error, 'request_id': request_id}
    if details is not None:
        content['details'] = details
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def get_word_state() -> WordState:
    state = getattr(app.state, 'word_state', None)
    if state is None:
        state = WordState.from_repository(WordRepository(create_store()))
        app.state.word_state = state
    return state


@app.get('/health')
async def health():
    return {'status': 'ok', 'timestamp': datetime.now(timezone.utc).isoformat(), 'service': 'hanzi-flashcards'}


def _check_store():
    try:
        get_word_state().repository.store.ping()
        return 'ok'
    except Exception as e:
        return f'error: {str(e)}'


def _check_openai():
    if not os.getenv('OPENAI_API_KEY'):
        return 'error: OPENAI_API_KEY not set'
    return 'ok'


@app.get('/ready')
async def ready():
    services = {'store': _check_store(), 'openai': _check_openai()}
    ready_ok = not services['store'].startswith('error')
    if settings.OPENAI_REQUIRED_FOR_READY and services['openai'].startswith('error'):
        ready_ok = False
    status_code = 200 if ready_ok else 503
    return JSONResponse(status_code=status_code, content={'status': 'ready' if ready_ok else 'not ready', 'services': services})


class WordInput(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    character: str = ''
    pinyin: str = ''
    meaning: str = ''
    example_sentence: str = ''
    example_meaning: str = ''

    def to_word(self) -> Word:
        return Word(
            character=self.character.strip(),
            pinyin=self.pinyin.strip(),
            meaning=self.meaning.strip(),
            example_sentence=self.example_sentence.strip(),
            example_meaning=self.example_meaning.strip(),
        )


class EnrichRequest(BaseModel):
    character: str = ''


class BulkAnalyzeRequest(BaseModel):
    text: str = ''
    await_result: bool = True


class BulkSaveRequest(BaseModel):
    words: List[WordInput] = Field(default_factory=list)


class SyncRequest(BaseModel):
    source_url: Optional[str] = None
    source_path: Optional[str] = None
    terms: Optional[List[str]] = None
    mode: Optional[str] = Field(None, description='text|snapshot')
    await_result: bool = True


def _flatten_task(task: dict, request_id: str) -> dict:
    return {
        'success': True,
        'task_id': task.get('task_id'),
        'kind': task.get('kind'),
        'status': task.get('status'),
        'progress_pct': task.get('progress_pct'),
        'current_step': task.get('current_step'),
        'result': task.get('result'),
        'error_message': task.get('error_message'),
        'created_at': task.get('created_at'),
        'updated_at': task.get('updated_at'),
        'request_id': request_id,
    }


async def _dispatch(task_id: str, job, await_result: bool, request_id: str):
    tm = TaskManager.get_instance()
    if await_result:
        await asyncio.to_thread(job)
        task = tm.get_task(task_id) or {'task_id': task_id}
        return JSONResponse(status_code=200, content=_flatten_task(task, request_id))
    bg = asyncio.create_task(asyncio.to_thread(job))
    _BACKGROUND_JOBS.add(bg)
    bg.add_done_callback(_BACKGROUND_JOBS.discard)
    return JSONResponse(status_code=202, content={'success': True, 'task_id': task_id, 'message': 'Processing started (background)', 'request_id': request_id})


@app.get('/words')
async def list_words(fastapi_request: Request):
    request_id = _request_id(fastapi_request)
    words = get_word_state().words
    return {'success': True, 'count': len(words), 'words': [w.to_json_dict() for w in words], 'request_id': request_id}


@app.post('/words', status_code=201)
async def add_word(req: WordInput, fastapi_request: Request):
    request_id = _request_id(fastapi_request)
    if not req.character.strip() or not req.meaning.strip():
        return _error(400, 'Character and Meaning are required.', request_id)
    word = req.to_word()
    try:
        await asyncio.to_thread(get_word_state().add_word, word)
    except DuplicateWordError as e:
        return _error(409, 'Word already exists', request_id, details=str(e), character=e.character)
    except StorageError as e:
        LOG.exception('word_save_failed', exc_info=True)
        return _error(500, 'Failed to save word', request_id, details=str(e))
    return JSONResponse(status_code=201, content={'success': True, 'word': word.to_json_dict(), 'request_id': request_id})


@app.post('/words/enrich')
async def enrich_single_word(req: EnrichRequest, fastapi_request: Request):
    request_id = _request_id(fastapi_request)
    character = req.character.strip()
    if not character:
        return _error(400, 'Please enter a Chinese character first.', request_id)
    retry_hint = 'Failed to fetch details. Please try again or fill manually.'
    LOG.info('word_enrich_start', extra={'request_id': request_id, 'character': character})
    try:
        details = await asyncio.to_thread(enrich_word, character, request_id)
    except InvalidTermError as e:
        LOG.warning('word_enrich_invalid_term', extra={'request_id': request_id, 'error': str(e)})
        return _error(400, 'Please enter a shorter word or phrase.', request_id, details=str(e), retryable=False)
    except ParseError as e:
        LOG.exception('word_enrich_parse_error', exc_info=True)
        return _error(422, retry_hint, request_id, details=str(e), retryable=True)
    except EnrichmentTimeoutError as e:
        LOG.exception('word_enrich_timeout', exc_info=True)
        return _error(504, retry_hint, request_id, details=str(e), retryable=True)
    except NetworkError as e:
        LOG.exception('word_enrich_network_error', exc_info=True)
        return _error(503, retry_hint, request_id, details=str(e), retryable=True)
    except EnrichmentError as e:
        LOG.exception('word_enrich_api_error', exc_info=True)
        return _error(502, retry_hint, request_id, details=str(e), retryable=True)
    except WordEnricherError as e:
        LOG.exception('word_enrich_failed', exc_info=True)
        return _error(500, retry_hint, request_id, details=str(e), retryable=False)
    return {'success': True, 'character': character, 'details': details, 'request_id': request_id}


def _bulk_analyze_job(task_id: str, terms: List[str], request_id: str):
    tm = TaskManager.get_instance()
    set_request_context(request_id, task_id)
    tm.update_status(task_id, TaskStatus.PROCESSING, progress_pct=0, current_step=f'Processing 0/{len(terms)}...')

    def _progress(done: int, total: int):
        tm.update_progress(task_id, f'Processing {done}/{total}...', int(done * 100 / total))

    try:
        result = enrich_batch(terms, on_progress=_progress, request_id=request_id)
    except Exception as e:
        LOG.exception('bulk_analyze_failed', exc_info=True)
        tm.fail_task(task_id, f'Failed to process bulk list: {e}')
        return
    final = {
        'preview': [item.model_dump(by_alias=True) for item in result.items],
        'processed': result.processed,
        'total': result.total,
        'failed_chunks': result.chunk_failures,
    }
    if result.errors:
        tm.complete_partial(task_id, final)
    else:
        tm.complete_task(task_id, final)


@app.post('/words/bulk/analyze')
async def bulk_analyze(req: BulkAnalyzeRequest, fastapi_request: Request):
    request_id = _request_id(fastapi_request)
    terms = parse_word_list(req.text)
    if not terms:
        return _error(400, 'Please enter some words first.', request_id)
    task_id = uuid.uuid4().hex
    TaskManager.get_instance().create_task(task_id, 'bulk_analyze', metadata={'term_count': len(terms)})
    return await _dispatch(task_id, lambda: _bulk_analyze_job(task_id, terms, request_id), req.await_result, request_id)


@app.post('/words/bulk', status_code=201)
async def bulk_save(req: BulkSaveRequest, fastapi_request: Request):
    request_id = _request_id(fastapi_request)
    candidates = [w.to_word() for w in req.words if w.character.strip()]
    try:
        added = await asyncio.to_thread(get_word_state().add_words, candidates)
    except StorageError as e:
        LOG.exception('bulk_save_failed', exc_info=True)
        return _error(500, 'Failed to save words', request_id, details=str(e))
    return JSONResponse(status_code=201, content={
        'success': True,
        'added': [w.to_json_dict() for w in added],
        'skipped': len(candidates) - len(added),
        'request_id': request_id,
    })


def _load_source_terms(source_url: Optional[str], source_path: Optional[str], terms: Optional[List[str]]) -> List[str]:
    if terms is not None:
        return terms
    if source_url:
        return fetch_word_list(source_url)
    return read_word_list(source_path)


def _load_source_snapshot(source_url: Optional[str], source_path: Optional[str]) -> List[Word]:
    if source_url:
        return fetch_word_snapshot(source_url)
    return read_word_snapshot(source_path)


def _sync_job(task_id: str, mode: str, source_url: Optional[str], source_path: Optional[str], terms: Optional[List[str]], request_id: str):
    tm = TaskManager.get_instance()
    set_request_context(request_id, task_id)
    state = get_word_state()
    tm.update_status(task_id, TaskStatus.PROCESSING, progress_pct=0, current_step='Loading word list...')
    try:
        if mode == 'snapshot':
            added = import_snapshot(_load_source_snapshot(source_url, source_path), state)
            msg = f'Imported {len(added)} new words.'
            tm.complete_task(task_id, {'added': [w.to_json_dict() for w in added], 'added_count': len(added), 'total_words': len(state)}, current_step=msg)
            return

        source_terms = _load_source_terms(source_url, source_path, terms)

        def _batch(new_terms, on_progress=None, request_id=None):
            def _progress(done: int, total: int):
                tm.update_status(task_id, TaskStatus.PROCESSING, progress_pct=int(done * 100 / total))
                if on_progress:
                    on_progress(done, total)
            return enrich_batch(new_terms, on_progress=_progress, request_id=request_id)

        report = sync_words(
            source_terms,
            state,
            batch=_batch,
            on_status=lambda msg: tm.update_progress(task_id, msg, 0),
            request_id=request_id,
        )
    except (WordSourceError, StorageError) as e:
        LOG.exception('sync_failed', exc_info=True)
        tm.fail_task(task_id, str(e))
        return
    except Exception as e:
        LOG.exception('sync_unknown_error', exc_info=True)
        tm.fail_task(task_id, f'Unexpected error: {e}')
        return

    final = {
        'added': [w.to_json_dict() for w in report.added],
        'added_count': len(report.added),
        'new_term_count': len(report.new_terms),
        'failed_chunks': len(report.errors),
        'total_words': len(report.words),
        'statuses': report.statuses,
    }
    last = report.statuses[-1] if report.statuses else ''
    if report.errors:
        tm.complete_partial(task_id, final, current_step=last)
    else:
        tm.complete_task(task_id, final, current_step=last)


def _start_sync(mode: str, source_url: Optional[str], source_path: Optional[str]) -> str:
    task_id = uuid.uuid4().hex
    TaskManager.get_instance().create_task(task_id, 'sync', metadata={'mode': mode, 'source_url': source_url, 'source_path': source_path})
    return task_id


@app.post('/sync')
async def sync_endpoint(req: SyncRequest, fastapi_request: Request):
    request_id = _request_id(fastapi_request)
    mode = (req.mode or settings.WORD_SOURCE_MODE).lower()
    if mode not in ('text', 'snapshot'):
        return _error(400, 'Invalid mode', request_id, details='mode must be one of text|snapshot')
    source_url = req.source_url
    source_path = req.source_path
    if req.terms is None and not source_url and not source_path:
        source_url = settings.WORD_SOURCE_URL
        source_path = settings.WORD_SOURCE_PATH
    if req.terms is None and not source_url and not source_path:
        return _error(400, 'No word source configured', request_id, details='provide terms, source_url or source_path')
    if mode == 'snapshot' and req.terms is not None:
        return _error(400, 'Invalid source', request_id, details='snapshot mode reads full words from source_url or source_path')
    task_id = _start_sync(mode, source_url, source_path)
    LOG.info('sync_start', extra={'request_id': request_id, 'task_id': task_id, 'mode': mode})
    return await _dispatch(task_id, lambda: _sync_job(task_id, mode, source_url, source_path, req.terms, request_id), req.await_result, request_id)


@app.get('/tasks/{task_id}')
async def task_status(task_id: str, fastapi_request: Request):
    request_id = _request_id(fastapi_request)
    task = TaskManager.get_instance().get_task(task_id)
    if not task:
        return _error(404, 'Task not found', request_id, task_id=task_id)
    return JSONResponse(status_code=200, content=_flatten_task(task, request_id))


@app.get('/review')
async def review(fastapi_request: Request, shuffle: bool = False, seed: Optional[int] = None):
    request_id = _request_id(fastapi_request)
    rng = random.Random(seed) if seed is not None else None
    deck = ReviewDeck(get_word_state().words, rng=rng)
    if shuffle:
        deck.shuffle()
    return {
        'success': True,
        'count': len(deck.cards),
        'position': deck.position,
        'cards': [w.to_json_dict() for w in deck.cards],
        'request_id': request_id,
    }


@app.on_event('startup')
async def on_startup():
    LOG.info('Hanzi flashcards service starting', extra={'env': settings.ENVIRONMENT})
    state = get_word_state()
    LOG.info('word_state_ready', extra={'count': len(state)})
    if settings.SYNC_ON_STARTUP and (settings.WORD_SOURCE_URL or settings.WORD_SOURCE_PATH):
        request_id = os.urandom(8).hex()
        mode = settings.WORD_SOURCE_MODE.lower()
        task_id = _start_sync(mode, settings.WORD_SOURCE_URL, settings.WORD_SOURCE_PATH)
        LOG.info('startup_sync_scheduled', extra={'task_id': task_id})
        bg = asyncio.create_task(asyncio.to_thread(_sync_job, task_id, mode, settings.WORD_SOURCE_URL, settings.WORD_SOURCE_PATH, None, request_id))
        _BACKGROUND_JOBS.add(bg)
        bg.add_done_callback(_BACKGROUND_JOBS.discard)


@app.on_event('shutdown')
async def on_shutdown():
    LOG.info('Hanzi flashcards service shutting down')
    state = getattr(app.state, 'word_state', None)
    if state is None:
        return
    try:
        state.repository.save(state.words)
        LOG.info('word_state_saved', extra={'count': len(state)})
    except StorageError:
        LOG.exception('word_state_final_save_failed', exc_info=True)


if __name__ == '__main__':
    import uvicorn

    reload_enabled = settings.ENVIRONMENT == 'development'
    uvicorn.run(
        'main:app',
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=reload_enabled,
    )
