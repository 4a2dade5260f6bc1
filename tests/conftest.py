import random
from datetime import datetime

import pytest

from core.config import Config, load_config
from core.errors import SpeechCaptureError
from core.orchestrator import Assistant
from core.types import SpeechErrorKind
from history.store import HistoryStore
from voice.recognizer import RecognitionResult, SpeechRecognizer


@pytest.fixture
def config() -> Config:
    """Load default config for tests."""
    return load_config()


@pytest.fixture
def temp_config(tmp_path):
    """Create a temp config TOML for isolated tests."""
    toml_content = f"""
[server]
host = "127.0.0.1"
port = 7860
[assistant]
assistant_name = "Test Assistant"
user_name = "Ada"
[llm]
model = "gpt-4o-mini"
api_key_env = "PARLOR_TEST_UNSET_KEY"
max_retries = 0
[voice]
max_restarts = 2
restart_backoff = 0.0
[history]
enabled = true
db_path = "{tmp_path / 'history.db'}"
recent_limit = 3
"""
    config_path = tmp_path / "test.toml"
    config_path.write_text(toml_content)
    return load_config(str(config_path))


@pytest.fixture
def assistant(temp_config) -> Assistant:
    """Assistant with an in-memory history and a fixed clock."""
    return Assistant(
        config=temp_config,
        history=HistoryStore(),
        rng=random.Random(7),
        clock=lambda: datetime(2024, 5, 1, 9, 30, 15),
    )


class FakeRecognizer(SpeechRecognizer):
    """Records start/stop calls; tests fire events through the callback slots."""

    def __init__(self, fail_starts: int = 0):
        super().__init__()
        self.starts = 0
        self.stops = 0
        self.fail_starts = fail_starts

    async def start(self) -> None:
        if self.fail_starts:
            self.fail_starts -= 1
            raise SpeechCaptureError(SpeechErrorKind.NETWORK)
        self.starts += 1

    async def stop(self) -> None:
        self.stops += 1

    async def say(self, transcript: str, is_final: bool = True) -> None:
        assert self.on_result is not None
        await self.on_result([RecognitionResult(transcript=transcript, is_final=is_final)], 0)


@pytest.fixture
def recognizer() -> FakeRecognizer:
    return FakeRecognizer()


@pytest.fixture
def make_recognizer():
    return FakeRecognizer
