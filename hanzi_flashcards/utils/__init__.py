"""Utility subpackage: logging and task tracking."""

from .logger import (
	get_logger,
	log_request,
	log_error,
	log_llm_call,
	log_enrichment_batch,
	log_sync,
	set_request_context,
	get_request_context,
)
from .task_manager import TaskManager, TaskStatus

__all__ = [
	'get_logger',
	'log_request',
	'log_error',
	'log_llm_call',
	'log_enrichment_batch',
	'log_sync',
	'set_request_context',
	'get_request_context',
	'TaskManager',
	'TaskStatus',
]
