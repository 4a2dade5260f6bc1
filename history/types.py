from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from core.types import Category


@dataclass(frozen=True)
class InteractionRecord:
    id: int
    query: str
    response: str
    timestamp: datetime
    category: Category

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        data["category"] = self.category.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InteractionRecord":
        timestamp = data["timestamp"]
        if isinstance(timestamp, str):
            # Browser hosts store "...Z" timestamps
            timestamp = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
        return cls(
            id=int(data["id"]),
            query=str(data["query"]),
            response=str(data["response"]),
            timestamp=timestamp,
            category=Category(data.get("category") or Category.GENERAL),
        )
