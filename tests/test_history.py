from datetime import datetime, timezone

import pytest

from core.config import load_config
from core.errors import ExportEmpty
from core.types import Category
from history import create_history
from history.capture import SQLiteHistoryBackend
from history.store import CSV_HEADER, HistoryStore, parse_csv
from history.types import InteractionRecord


def make_record(
    i: int, query: str = "", response: str = "", category: Category = Category.GENERAL
) -> InteractionRecord:
    return InteractionRecord(
        id=1_700_000_000_000 + i,
        query=query or f"msg {i}",
        response=response or f"resp {i}",
        timestamp=datetime(2024, 5, 1, 12, 0, i, tzinfo=timezone.utc),
        category=category,
    )


@pytest.fixture
def store() -> HistoryStore:
    store = HistoryStore()
    store.append(make_record(0, "what time is it", "Good morning!", Category.TIME))
    store.append(make_record(1, "weather today", "Sunny, probably", Category.WEATHER))
    store.append(make_record(2, "Tell me a JOKE", "Why did the computer...", Category.ENTERTAINMENT))
    return store


@pytest.fixture
def backend(tmp_path):
    backend = SQLiteHistoryBackend(str(tmp_path / "test_history.db"))
    yield backend
    backend.close()


def test_append_preserves_order(store):
    """Records keep the order they were appended in."""
    assert [r.query for r in store.records] == ["what time is it", "weather today", "Tell me a JOKE"]


def test_recent_most_recent_first(store):
    """recent() returns the newest records first, capped at n."""
    assert [r.query for r in store.recent(2)] == ["Tell me a JOKE", "weather today"]
    assert len(store.recent(10)) == 3
    assert store.recent(0) == []


def test_filter_empty_returns_all_reversed(store):
    """An empty filter shows everything, newest first."""
    assert [r.id for r in store.filter("", None)] == [r.id for r in reversed(store.records)]


def test_filter_matches_query_or_response_case_insensitive(store):
    """Search matches either side of the exchange, ignoring case."""
    assert [r.query for r in store.filter("joke")] == ["Tell me a JOKE"]
    assert [r.query for r in store.filter("SUNNY")] == ["weather today"]


def test_filter_by_category(store):
    """Category and text filters combine."""
    assert [r.category for r in store.filter("", Category.TIME)] == [Category.TIME]
    assert store.filter("sunny", "time") == []


def test_filter_no_match(store):
    assert store.filter("kangaroo") == []


def test_new_record_ids_strictly_increase():
    """Ids stay unique even when issued within the same millisecond."""
    store = HistoryStore()
    ids = [store.new_record("q", "r").id for _ in range(50)]
    assert ids == sorted(set(ids))


def test_new_record_category_from_query():
    """The record category comes from the query text."""
    store = HistoryStore()
    assert store.new_record("what's the math on this", "r").category == Category.CALCULATION
    assert store.new_record("hello", "r").category == Category.GENERAL


def test_new_ids_follow_loaded_records():
    """Ids continue past the largest loaded id."""
    store = HistoryStore()
    future_id = 10**15
    store.replace_all(
        [InteractionRecord(id=future_id, query="q", response="r", timestamp=datetime.now(), category=Category.GENERAL)]
    )
    assert store.new_record("q", "r").id == future_id + 1


def test_stats(store):
    """Stats report the total and the number shown."""
    assert store.stats() == {"total": 3, "shown": 3}
    assert store.stats(1) == {"total": 3, "shown": 1}


def test_export_csv_header_and_quoting():
    """Every CSV field is quoted and embedded quotes are doubled."""
    store = HistoryStore()
    store.append(make_record(0, 'say "hi", please', "line one\nline two"))
    text = store.export_csv()
    assert text.splitlines()[0] == ",".join(f'"{h}"' for h in CSV_HEADER)
    assert '"say ""hi"", please"' in text


def test_export_csv_round_trip():
    """Commas, quotes and newlines survive an export and re-import."""
    store = HistoryStore()
    store.append(make_record(0, 'quote "this"', "a, b, and c", Category.GENERAL))
    store.append(make_record(1, "multi\nline", 'he said "ok"\r\nthen left', Category.REMINDER))
    store.append(make_record(2, "plain", "plain", Category.TIME))
    assert parse_csv(store.export_csv()) == store.records


def test_export_empty_raises():
    """Exporting an empty history is refused."""
    with pytest.raises(ExportEmpty):
        HistoryStore().export_csv()


def test_parse_csv_rejects_bad_header():
    """A CSV without the export header is rejected."""
    with pytest.raises(ValueError):
        parse_csv("a,b,c\n1,2,3\n")


def test_record_dict_round_trip():
    """Records serialize to JSON-friendly dicts and back."""
    record = make_record(5, "q", "r", Category.WEATHER)
    data = record.to_dict()
    assert data["timestamp"] == "2024-05-01T12:00:05+00:00"
    assert data["category"] == "weather"
    assert InteractionRecord.from_dict(data) == record


def test_record_from_browser_timestamp():
    """ISO timestamps with a Z suffix are accepted."""
    record = InteractionRecord.from_dict(
        {"id": 1, "query": "q", "response": "r", "timestamp": "2024-05-01T12:00:00.000Z", "category": "time"}
    )
    assert record.timestamp.tzinfo is not None
    assert record.category == Category.TIME


def test_backend_init(backend):
    """SQLite backend should create the interactions table."""
    cursor = backend.conn.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='interactions'")
    assert cursor.fetchone() is not None


def test_backend_save_load(backend):
    """Saved records load back in order."""
    records = [make_record(i) for i in range(3)]
    backend.save(records)
    assert backend.load() == records


def test_backend_save_replaces(backend):
    """Each save replaces the stored set."""
    backend.save([make_record(i) for i in range(3)])
    backend.save([make_record(7)])
    assert [r.query for r in backend.load()] == ["msg 7"]


def test_store_loads_from_backend(backend):
    """The store loads on init and writes through on append."""
    backend.save([make_record(0), make_record(1)])
    store = HistoryStore(backend)
    assert [r.query for r in store.recent(5)] == ["msg 1", "msg 0"]
    store.append(make_record(2))
    assert len(backend.load()) == 3


def test_create_history_disabled():
    """Disabled history keeps records in memory only."""
    config = load_config()
    config.history.enabled = False
    store = create_history(config)
    assert store.backend is None


def test_create_history_enabled(temp_config):
    """Enabled history is backed by SQLite."""
    store = create_history(temp_config)
    assert isinstance(store.backend, SQLiteHistoryBackend)
    store.backend.close()
