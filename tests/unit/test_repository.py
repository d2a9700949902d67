import json
import pytest

from hanzi_flashcards.storage import (
    MemoryKeyValueStore,
    FileKeyValueStore,
    RedisKeyValueStore,
    WordRepository,
    StorageError,
    WORDS_KEY,
    create_store,
)
from tests.fixtures.mock_redis import MockRedisClient, BrokenRedisClient
from tests.fixtures.sample_data import sample_word_dicts


@pytest.mark.unit
def test_round_trip_is_field_for_field(memory_repository, sample_words):
    memory_repository.save(sample_words)
    assert memory_repository.load() == sample_words


@pytest.mark.unit
def test_snapshot_uses_camel_case_array_under_fixed_key(sample_words):
    store = MemoryKeyValueStore()
    WordRepository(store).save(sample_words)
    data = json.loads(store.get(WORDS_KEY))
    assert WORDS_KEY == 'chinese-words'
    assert data == sample_word_dicts()


@pytest.mark.unit
def test_missing_key_loads_empty(memory_repository):
    assert memory_repository.load() == []


@pytest.mark.unit
@pytest.mark.parametrize('raw', [
    '{not json',
    '{"character": "你好"}',
    '[{"id": "x"}]',
    '[{"character": "你好", "createdAt": "yesterday"}]',
])
def test_corrupt_snapshot_loads_empty(raw):
    repo = WordRepository(MemoryKeyValueStore({WORDS_KEY: raw}))
    assert repo.load() == []


@pytest.mark.unit
def test_unreachable_backend_loads_empty():
    repo = WordRepository(RedisKeyValueStore(client=BrokenRedisClient()))
    assert repo.load() == []


@pytest.mark.unit
def test_save_failure_raises_storage_error(sample_words):
    repo = WordRepository(RedisKeyValueStore(client=BrokenRedisClient()))
    with pytest.raises(StorageError):
        repo.save(sample_words)


@pytest.mark.unit
def test_redis_store_round_trip(sample_words):
    repo = WordRepository(RedisKeyValueStore(client=MockRedisClient()))
    repo.save(sample_words)
    assert repo.load() == sample_words


@pytest.mark.unit
def test_file_store_persists_across_instances(tmp_path, sample_words):
    path = tmp_path / 'store' / 'local_storage.json'
    WordRepository(FileKeyValueStore(str(path))).save(sample_words)
    assert WordRepository(FileKeyValueStore(str(path))).load() == sample_words
    assert '你好' in path.read_text(encoding='utf-8')


@pytest.mark.unit
def test_file_store_keeps_other_keys(tmp_path):
    store = FileKeyValueStore(str(tmp_path / 'kv.json'))
    store.set('other', 'value')
    store.set(WORDS_KEY, '[]')
    store.delete(WORDS_KEY)
    assert store.get('other') == 'value'
    assert store.get(WORDS_KEY) is None


@pytest.mark.unit
def test_corrupt_file_store_loads_empty(tmp_path):
    path = tmp_path / 'kv.json'
    path.write_text('garbage', encoding='utf-8')
    assert WordRepository(FileKeyValueStore(str(path))).load() == []


@pytest.mark.unit
def test_non_utf8_file_store_loads_empty(tmp_path):
    path = tmp_path / 'kv.json'
    path.write_bytes(b'{"chinese-words": "\xff\xfe[]"}')
    assert WordRepository(FileKeyValueStore(str(path))).load() == []
    with pytest.raises(StorageError):
        FileKeyValueStore(str(path)).get(WORDS_KEY)


@pytest.mark.unit
def test_create_store_backends(monkeypatch, tmp_path):
    assert isinstance(create_store('memory'), MemoryKeyValueStore)
    assert isinstance(create_store('file'), FileKeyValueStore)
    monkeypatch.setattr('redis.Redis', lambda *a, **k: MockRedisClient())
    assert isinstance(create_store('redis'), RedisKeyValueStore)
    with pytest.raises(ValueError):
        create_store('sqlite')
