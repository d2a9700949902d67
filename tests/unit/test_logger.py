import pytest
from unittest.mock import MagicMock

import hanzi_flashcards.utils.logger as logger_mod


@pytest.mark.unit
def test_log_error_includes_error_and_context(monkeypatch):
    fake = MagicMock()
    monkeypatch.setattr(logger_mod, 'get_logger', lambda *a, **k: fake)
    logger_mod.log_error(ValueError('bad'), {'request_id': 'req-2'})
    extra = fake.exception.call_args.kwargs['extra']
    assert extra == {'error': 'bad', 'error_type': 'ValueError', 'request_id': 'req-2'}


@pytest.mark.unit
def test_log_request_fields(monkeypatch):
    fake = MagicMock()
    monkeypatch.setattr(logger_mod, 'get_logger', lambda *a, **k: fake)
    logger_mod.log_request('req-3', 'POST', '/words', 201, 12, ip='127.0.0.1')
    args, kwargs = fake.info.call_args
    assert args == ('http_request',)
    assert kwargs['extra']['status_code'] == 201
    assert kwargs['extra']['ip'] == '127.0.0.1'
