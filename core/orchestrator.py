import asyncio
import logging
import random
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any

from core.config import AssistantConfig, Config, default_assistant_config
from core.errors import InputRejected
from core.handlers import (
    handle_calculation,
    handle_general,
    handle_joke,
    handle_reminder,
    handle_time,
    handle_weather,
)
from core.intent import classify_intent, normalize
from core.types import Intent, Response
from history.store import HistoryStore
from llm.client import RemoteCompletionClient

logger = logging.getLogger(__name__)

EMPTY_INPUT_PROMPT = "Please type something for me to respond to."
FALLBACK_APOLOGY = "Sorry, something went wrong while answering that. Please try again."

ClientFactory = Callable[..., RemoteCompletionClient]


class Assistant:
    """Owns the assistant settings, the remote client and the history log.

    All user input, typed or transcribed, enters through submit().
    Exchanges run one at a time so history order matches submission order.
    """

    def __init__(
        self,
        config: Config,
        history: HistoryStore,
        client_factory: ClientFactory = RemoteCompletionClient,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config
        self.history = history
        self.client_factory = client_factory
        self.rng = rng or random.Random()
        self.clock = clock
        self.defaults = default_assistant_config(config)
        self.settings = self.defaults
        self.remote: RemoteCompletionClient | None = None
        self._remote_key = ""
        self._lock = asyncio.Lock()
        self._pending = 0
        self._configure_remote()

    @property
    def busy(self) -> bool:
        """True while an exchange is in flight or queued."""
        return self._pending > 0

    def apply_host_config(self, data: dict[str, Any] | None) -> AssistantConfig:
        """Replace the settings from a host payload and rebuild the remote client."""
        self.settings = AssistantConfig.from_host(data, defaults=self.defaults)
        self._configure_remote()
        return self.settings

    def _configure_remote(self) -> None:
        if not self.settings.remote_enabled:
            if self.remote is not None:
                logger.info("Remote completion disabled")
            self.remote = None
            self._remote_key = ""
            return
        if self.remote is None or self._remote_key != self.settings.openai_api_key:
            self.remote = self.client_factory(self.config.llm, self.settings.openai_api_key)
            self._remote_key = self.settings.openai_api_key
            logger.info("Remote completion enabled (model %s)", self.config.llm.model)

    async def process_message(self, text: str) -> Response:
        """Classify an utterance and produce a reply. Never raises."""
        t0 = time.time()
        q = normalize(text)
        intent = classify_intent(q, remote_enabled=self.remote is not None)
        logger.debug("Dispatching %r as %s", q, intent)
        try:
            reply = await self._dispatch(intent, q)
        except Exception:
            logger.exception("Handler for %s failed", intent)
            reply = FALLBACK_APOLOGY
        return Response(text=reply, intent=intent, latency_ms={"dispatch": (time.time() - t0) * 1000})

    async def _dispatch(self, intent: Intent, text: str) -> str:
        if intent is Intent.TIME:
            return handle_time(self.clock())
        if intent is Intent.WEATHER:
            return handle_weather()
        if intent is Intent.CALCULATION:
            return handle_calculation(text)
        if intent is Intent.ENTERTAINMENT:
            return handle_joke(self.rng)
        if intent is Intent.REMINDER:
            return handle_reminder(text)
        if intent is Intent.REMOTE and self.remote is not None:
            return await self.remote.ask(text, self.settings.user_name)
        return handle_general(text)

    async def submit(self, text: str) -> Response:
        """Run one full exchange and record it in history.

        Empty input is answered with a prompt and leaves no record.
        """
        try:
            query = _validate(text)
        except InputRejected:
            return Response(text=EMPTY_INPUT_PROMPT)

        self._pending += 1
        try:
            async with self._lock:
                response = await self.process_message(query)
                record = self.history.new_record(query, response.text)
                try:
                    self.history.append(record)
                except Exception:
                    # The record is already in memory; only the write-through failed
                    logger.exception("Failed to persist history")
                response.record = record
        finally:
            self._pending -= 1
        return response


def _validate(text: Any) -> str:
    query = text.strip() if isinstance(text, str) else ""
    if not query:
        raise InputRejected()
    return query
