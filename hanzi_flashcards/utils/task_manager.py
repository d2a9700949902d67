import os
import json
import time
import threading
from enum import Enum
from typing import Optional, Dict, Any

try:
    import redis
except Exception:
    redis = None

from hanzi_flashcards.utils.logger import get_logger

LOG = get_logger()

TASK_TTL_SECONDS = int(os.getenv('TASK_TTL_SECONDS', '86400'))
REDIS_URL = os.getenv('REDIS_URL', None)
TASK_STORE_REDIS_ENABLED = os.getenv('TASK_STORE_REDIS_ENABLED', 'false').lower() in ('1', 'true', 'yes')


class TaskStatus(str, Enum):
    PENDING = 'pending'
    PROCESSING = 'processing'
    COMPLETED = 'completed'
    FAILED = 'failed'
    PARTIAL_SUCCESS = 'partial_success'


class TaskManager:
    """Status records for long-running sync and bulk-analyze jobs.

    Records live in Redis when it is enabled and reachable, otherwise in a
    process-local dict.
    """

    _instance = None

    def __init__(self):
        self._use_redis = False
        self._client = None
        self._in_memory: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        if not TASK_STORE_REDIS_ENABLED or redis is None:
            LOG.info('task_manager_in_memory')
            return
        try:
            if REDIS_URL:
                self._client = redis.from_url(REDIS_URL, decode_responses=True)
            else:
                self._client = redis.Redis(host=os.getenv('REDIS_HOST', 'localhost'), port=int(os.getenv('REDIS_PORT', '6379')), password=os.getenv('REDIS_PASSWORD') or None, decode_responses=True)
            self._client.ping()
            self._use_redis = True
            LOG.info('task_manager_redis', extra={'redis_url': REDIS_URL})
        except Exception as e:
            LOG.warning('Redis not available for TaskManager, using in-memory store', extra={'error': str(e)})
            self._use_redis = False
            self._client = None

    @classmethod
    def get_instance(cls) -> 'TaskManager':
        if cls._instance is None:
            cls._instance = TaskManager()
        return cls._instance

    def _key(self, task_id: str) -> str:
        return f'task:{task_id}'

    def _save(self, task_id: str, obj: Dict[str, Any]):
        obj['updated_at'] = int(time.time())
        try:
            if self._use_redis and self._client:
                self._client.set(self._key(task_id), json.dumps(obj), ex=TASK_TTL_SECONDS)
            else:
                with self._lock:
                    self._in_memory[task_id] = obj
        except Exception as e:
            LOG.warning('task_save_failed', extra={'task_id': task_id, 'error': str(e)})

    def create_task(self, task_id: str, kind: str, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        now = int(time.time())
        obj = {
            'task_id': task_id,
            'kind': kind,
            'status': TaskStatus.PENDING.value,
            'progress_pct': 0,
            'current_step': '',
            'result': None,
            'error_message': None,
            'metadata': metadata or {},
            'created_at': now,
            'updated_at': now,
        }
        self._save(task_id, obj)
        LOG.info('task_created', extra={'task_id': task_id, 'kind': kind})
        return obj

    def get_task(self, task_id: str) -> Optional[Dict[str, Any]]:
        try:
            if self._use_redis and self._client:
                raw = self._client.get(self._key(task_id))
                if not raw:
                    return None
                return json.loads(raw)
            with self._lock:
                task = self._in_memory.get(task_id)
                return dict(task) if task else None
        except Exception as e:
            LOG.warning('task_get_failed', extra={'task_id': task_id, 'error': str(e)})
            return None

    def update_status(self, task_id: str, status: TaskStatus, progress_pct: Optional[int] = None, current_step: Optional[str] = None):
        task = self.get_task(task_id)
        if not task:
            LOG.warning('update_status_task_not_found', extra={'task_id': task_id})
            return None
        task['status'] = status.value if isinstance(status, TaskStatus) else status
        if progress_pct is not None:
            task['progress_pct'] = int(progress_pct)
        if current_step is not None:
            task['current_step'] = current_step
        self._save(task_id, task)
        LOG.info('task_status_updated', extra={'task_id': task_id, 'status': task['status'], 'progress_pct': task['progress_pct']})
        return task

    def update_progress(self, task_id: str, current_step: str, progress_pct: int):
        task = self.get_task(task_id)
        if not task:
            LOG.warning('update_progress_task_not_found', extra={'task_id': task_id})
            return None
        task['current_step'] = current_step
        task['progress_pct'] = max(int(progress_pct), int(task.get('progress_pct') or 0))
        self._save(task_id, task)
        return task

    def _finish(self, task_id: str, status: TaskStatus, final_result: Optional[Dict[str, Any]], current_step: Optional[str]):
        task = self.get_task(task_id)
        if not task:
            LOG.warning('finish_task_not_found', extra={'task_id': task_id})
            return None
        task['status'] = status.value
        task['progress_pct'] = 100
        if current_step is not None:
            task['current_step'] = current_step
        if final_result is not None:
            task['result'] = final_result
        self._save(task_id, task)
        return task

    def complete_task(self, task_id: str, final_result: Optional[Dict[str, Any]] = None, current_step: Optional[str] = None):
        task = self._finish(task_id, TaskStatus.COMPLETED, final_result, current_step)
        if task:
            LOG.info('task_completed', extra={'task_id': task_id})
        return task

    def complete_partial(self, task_id: str, final_result: Optional[Dict[str, Any]] = None, current_step: Optional[str] = None):
        """Some chunks failed but the job still produced usable output."""
        task = self._finish(task_id, TaskStatus.PARTIAL_SUCCESS, final_result, current_step)
        if task:
            LOG.info('task_partial_completed', extra={'task_id': task_id})
        return task

    def fail_task(self, task_id: str, error_msg: str):
        task = self.get_task(task_id)
        if not task:
            LOG.warning('fail_task_not_found', extra={'task_id': task_id})
            return None
        task['status'] = TaskStatus.FAILED.value
        task['error_message'] = error_msg
        self._save(task_id, task)
        LOG.error('task_failed', extra={'task_id': task_id, 'error': error_msg})
        return task
