from core.config import Config
from history.capture import SQLiteHistoryBackend
from history.store import HistoryStore


def create_history(config: Config) -> HistoryStore:
    """Create the history store, persisted to SQLite when enabled."""
    backend = None
    if config.history.enabled:
        backend = SQLiteHistoryBackend(config.history.db_path)
    return HistoryStore(backend)
