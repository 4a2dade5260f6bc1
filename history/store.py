import csv
import io
import logging
import time
from datetime import datetime
from typing import Protocol

from core.errors import ExportEmpty
from core.intent import categorize_query
from core.types import Category
from history.types import InteractionRecord

logger = logging.getLogger(__name__)

CSV_HEADER = ["ID", "Query", "Response", "Timestamp", "Category"]


class HistoryBackend(Protocol):
    def load(self) -> list[InteractionRecord]: ...

    def save(self, records: list[InteractionRecord]) -> None: ...


class HistoryStore:
    """Append-only, ordered log of completed exchanges."""

    def __init__(self, backend: HistoryBackend | None = None):
        self.backend = backend
        self._records: list[InteractionRecord] = []
        self._last_id = 0
        if backend is not None:
            self.replace_all(backend.load())

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> list[InteractionRecord]:
        return list(self._records)

    def next_id(self) -> int:
        """Epoch-millisecond id, bumped past the last one issued."""
        self._last_id = max(int(time.time() * 1000), self._last_id + 1)
        return self._last_id

    def new_record(self, query: str, response: str, timestamp: datetime | None = None) -> InteractionRecord:
        return InteractionRecord(
            id=self.next_id(),
            query=query,
            response=response,
            timestamp=timestamp or datetime.now().astimezone(),
            category=categorize_query(query),
        )

    def append(self, record: InteractionRecord) -> None:
        self._records.append(record)
        self._last_id = max(self._last_id, record.id)
        if self.backend is not None:
            self.backend.save(self.records)

    def replace_all(self, records: list[InteractionRecord]) -> None:
        """Adopt the full record set pushed by the persistence host."""
        self._records = list(records)
        self._last_id = max((r.id for r in self._records), default=self._last_id)

    def recent(self, n: int = 5) -> list[InteractionRecord]:
        if n <= 0:
            return []
        return self._records[-n:][::-1]

    def filter(self, text_query: str = "", category: Category | str | None = None) -> list[InteractionRecord]:
        needle = text_query.lower()
        matched = []
        for record in reversed(self._records):
            if category and record.category != category:
                continue
            if needle in record.query.lower() or needle in record.response.lower():
                matched.append(record)
        return matched

    def stats(self, shown: int | None = None) -> dict[str, int]:
        total = len(self._records)
        return {"total": total, "shown": total if shown is None else shown}

    def export_csv(self) -> str:
        """Every field is quoted so commas and newlines in user text survive."""
        if not self._records:
            raise ExportEmpty()
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for record in self._records:
            writer.writerow(
                [record.id, record.query, record.response, record.timestamp.isoformat(), record.category.value]
            )
        logger.debug("Exported %d records to CSV", len(self._records))
        return buffer.getvalue()


def parse_csv(text: str) -> list[InteractionRecord]:
    """Read records back from export_csv() output."""
    reader = csv.reader(io.StringIO(text, newline=""))
    header = next(reader, None)
    if header != CSV_HEADER:
        raise ValueError(f"Unexpected CSV header: {header}")
    return [
        InteractionRecord.from_dict(
            {"id": row[0], "query": row[1], "response": row[2], "timestamp": row[3], "category": row[4]}
        )
        for row in reader
        if row
    ]
