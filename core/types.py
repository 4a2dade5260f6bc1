from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from history.types import InteractionRecord


class Intent(StrEnum):
    TIME = "time"
    WEATHER = "weather"
    CALCULATION = "calculation"
    ENTERTAINMENT = "entertainment"
    REMINDER = "reminder"
    REMOTE = "remote"
    GENERAL = "general"


class Category(StrEnum):
    TIME = "time"
    WEATHER = "weather"
    CALCULATION = "calculation"
    ENTERTAINMENT = "entertainment"
    REMINDER = "reminder"
    GENERAL = "general"


class CaptureState(StrEnum):
    IDLE = "idle"
    LISTENING = "listening"
    CONTINUOUS = "continuous"


class CaptureMode(StrEnum):
    IDLE = "idle"
    SINGLE_SHOT = "single_shot"
    CONTINUOUS = "continuous"


class SpeechErrorKind(StrEnum):
    NO_SPEECH = "no-speech"
    AUDIO_CAPTURE = "audio-capture"
    NOT_ALLOWED = "not-allowed"
    NETWORK = "network"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> "SpeechErrorKind":
        try:
            return cls(value or "")
        except ValueError:
            return cls.UNKNOWN


@dataclass
class Response:
    text: str
    intent: Intent | None = None
    record: "InteractionRecord | None" = None
    latency_ms: dict[str, float] = field(default_factory=dict)
