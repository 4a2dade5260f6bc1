import os
import sqlite3

from history.types import InteractionRecord


class SQLiteHistoryBackend:
    """Write-through persistence for the history store.

    save() replaces the stored set with the full ordered record list, the
    same contract the widget host offers.
    """

    def __init__(self, db_path: str = "~/.parlor/history.db"):
        if db_path != ":memory:":
            db_path = os.path.expanduser(db_path)
            parent = os.path.dirname(db_path)
            if parent:
                os.makedirs(parent, exist_ok=True)
        self.conn = sqlite3.connect(db_path)
        self._init_db()

    def _init_db(self) -> None:
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS interactions (
                position INTEGER NOT NULL,
                id INTEGER PRIMARY KEY,
                query TEXT NOT NULL,
                response TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                category TEXT NOT NULL
            )
        """)
        self.conn.commit()

    def save(self, records: list[InteractionRecord]) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM interactions")
            self.conn.executemany(
                """INSERT INTO interactions
                   (position, id, query, response, timestamp, category)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                [
                    (
                        position,
                        record.id,
                        record.query,
                        record.response,
                        record.timestamp.isoformat(),
                        record.category.value,
                    )
                    for position, record in enumerate(records)
                ],
            )

    def load(self) -> list[InteractionRecord]:
        cursor = self.conn.execute(
            "SELECT id, query, response, timestamp, category FROM interactions ORDER BY position"
        )
        columns = [d[0] for d in cursor.description]
        rows = [dict(zip(columns, row, strict=False)) for row in cursor.fetchall()]
        return [InteractionRecord.from_dict(row) for row in rows]

    def close(self) -> None:
        self.conn.close()
