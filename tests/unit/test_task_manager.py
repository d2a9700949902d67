import pytest

from hanzi_flashcards.utils.task_manager import TaskManager, TaskStatus


@pytest.mark.unit
def test_task_manager_in_memory(monkeypatch):
    import hanzi_flashcards.utils.task_manager as tm_mod
    monkeypatch.setattr(tm_mod, 'redis', None)
    TaskManager._instance = None
    tm = TaskManager.get_instance()
    tid = 'task1'
    obj = tm.create_task(tid, 'sync', {'mode': 'text'})
    assert obj['task_id'] == tid
    assert tm.get_task(tid)['kind'] == 'sync'

    updated = tm.update_status(tid, TaskStatus.PROCESSING, progress_pct=10, current_step='start')
    assert updated['status'] == TaskStatus.PROCESSING.value

    prog = tm.update_progress(tid, 'Analyzing new words: 20/45...', 44)
    assert prog['progress_pct'] == 44
    # a status message alone never moves progress backwards
    prog = tm.update_progress(tid, 'Enriched & Cached 2 new words.', 0)
    assert prog['progress_pct'] == 44
    assert prog['current_step'] == 'Enriched & Cached 2 new words.'

    tm.complete_partial(tid, {'added_count': 2})
    t = tm.get_task(tid)
    assert t['status'] == TaskStatus.PARTIAL_SUCCESS.value
    assert t['progress_pct'] == 100

    tm.complete_task(tid, {'final': True})
    assert tm.get_task(tid)['status'] == TaskStatus.COMPLETED.value

    tm.fail_task(tid, 'boom')
    assert tm.get_task(tid)['error_message'] == 'boom'

    assert tm.update_status('nope', TaskStatus.COMPLETED) is None
