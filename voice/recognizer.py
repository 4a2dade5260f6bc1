from abc import ABC, abstractmethod
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

# Type alias for async callbacks
AsyncCallback = Callable[..., Coroutine[Any, Any, None]]


@dataclass
class RecognitionResult:
    transcript: str
    is_final: bool = False


class SpeechRecognizer(ABC):
    """A speech-recognition capability, e.g. the browser's Web Speech API.

    The owner assigns the callback slots before calling start():
      - on_start()
      - on_result(results: list[RecognitionResult], result_index: int)
      - on_error(kind: SpeechErrorKind)
      - on_end()
    Implementations raise SpeechCaptureError when they cannot start.
    """

    def __init__(self, lang: str = "en-US"):
        self.lang = lang
        self.continuous = False
        self.interim_results = False
        self.on_start: AsyncCallback | None = None
        self.on_result: AsyncCallback | None = None
        self.on_error: AsyncCallback | None = None
        self.on_end: AsyncCallback | None = None

    @abstractmethod
    async def start(self) -> None:
        """Begin a capture session."""

    @abstractmethod
    async def stop(self) -> None:
        """Ask the current session to finish; on_end follows."""
