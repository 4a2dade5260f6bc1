import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import partial

from core.config import VoiceConfig
from core.errors import SpeechCaptureError
from core.types import CaptureMode, CaptureState, SpeechErrorKind
from voice.commands import VoiceAction, parse_voice_command
from voice.recognizer import AsyncCallback, RecognitionResult, SpeechRecognizer

logger = logging.getLogger(__name__)

LISTENING_NOTICE = "🎤 Listening... Go ahead, I'm ready!"
STOPPED_NOTICE = "Okay, I've stopped listening."
WAKE_NOTICE = "Hi! I'm listening. What can I help you with?"
UNSUPPORTED_NOTICE = "Sorry, your browser does not support voice input."
CONTINUOUS_UNSUPPORTED_NOTICE = "This browser does not support advanced voice recognition."
CONTINUOUS_ON_NOTICE = "🔁 Continuous listening enabled."
CONTINUOUS_OFF_NOTICE = "⛔ Continuous listening disabled."
CONTINUOUS_GAVE_UP_NOTICE = "Continuous listening stopped after repeated errors."
BUSY_CONTINUOUS_NOTICE = "Continuous listening is on. Turn it off before using the voice button."
BUSY_LISTENING_NOTICE = "I'm already listening for a request. Try again once I'm done."

ERROR_PREFIX = "Sorry, I had trouble hearing you. "
ERROR_MESSAGES: dict[SpeechErrorKind, str] = {
    SpeechErrorKind.NO_SPEECH: "I didn't hear anything. Please try speaking again.",
    SpeechErrorKind.AUDIO_CAPTURE: "Please check your microphone permissions.",
    SpeechErrorKind.NOT_ALLOWED: "Microphone access was denied. Please enable it in your browser settings.",
    SpeechErrorKind.NETWORK: "Network error occurred. Please check your connection.",
    SpeechErrorKind.UNKNOWN: "Please try again.",
}

# Restarting cannot fix these; continuous mode gives up on the first one
FATAL_ERRORS = {SpeechErrorKind.NOT_ALLOWED, SpeechErrorKind.AUDIO_CAPTURE}


def error_message(kind: SpeechErrorKind) -> str:
    return ERROR_PREFIX + ERROR_MESSAGES.get(kind, ERROR_MESSAGES[SpeechErrorKind.UNKNOWN])


@dataclass
class CaptureSession:
    mode: CaptureMode
    is_active: bool


class VoiceCapture:
    """State machine: IDLE → LISTENING → IDLE, or IDLE → CONTINUOUS → IDLE.

    Each capture session gets a token; callbacks carry the token they were
    bound with, so events from a stopped or replaced session are ignored.
    Single-shot and continuous capture exclude each other: asking for one
    while the other runs is refused with a notice.
    """

    def __init__(
        self,
        recognizer: SpeechRecognizer | None,
        submit: AsyncCallback,
        config: VoiceConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.recognizer = recognizer
        self.submit = submit
        self.config = config or VoiceConfig()
        self._sleep = sleep
        self.state = CaptureState.IDLE
        self._token = 0
        self._mode = CaptureMode.IDLE
        self._failures = 0
        self._heard = False

        # Callbacks, set by server/WebSocket handler
        self.on_state_change: AsyncCallback | None = None
        self.on_notice: AsyncCallback | None = None
        self.on_interim: AsyncCallback | None = None

    @property
    def session(self) -> CaptureSession:
        mode = {
            CaptureState.IDLE: CaptureMode.IDLE,
            CaptureState.LISTENING: CaptureMode.SINGLE_SHOT,
            CaptureState.CONTINUOUS: CaptureMode.CONTINUOUS,
        }[self.state]
        return CaptureSession(mode=mode, is_active=self.state != CaptureState.IDLE)

    @property
    def restart_failures(self) -> int:
        return self._failures

    async def _set_state(self, new_state: CaptureState) -> None:
        if new_state == self.state:
            return
        logger.debug("Capture %s -> %s", self.state, new_state)
        self.state = new_state
        if self.on_state_change:
            await self.on_state_change(new_state)

    async def _notify(self, text: str) -> None:
        if self.on_notice:
            await self.on_notice(text)

    def _bind(self, mode: CaptureMode) -> int:
        """Start a new session token and point the capability's callbacks at it."""
        assert self.recognizer is not None
        self._token += 1
        self._mode = mode
        self._heard = False
        token = self._token
        self.recognizer.on_start = partial(self._handle_start, token)
        self.recognizer.on_result = partial(self._handle_result, token)
        self.recognizer.on_error = partial(self._handle_error, token)
        self.recognizer.on_end = partial(self._handle_end, token)
        return token

    def _invalidate(self) -> None:
        self._token += 1

    # --- Single shot ---

    async def start(self) -> bool:
        """Listen for one utterance. Only allowed from IDLE."""
        if self.recognizer is None:
            await self._notify(UNSUPPORTED_NOTICE)
            return False
        if self.state is CaptureState.CONTINUOUS:
            await self._notify(BUSY_CONTINUOUS_NOTICE)
            return False
        if self.state is CaptureState.LISTENING:
            return False

        self.recognizer.continuous = False
        self.recognizer.interim_results = True
        self.recognizer.lang = self.config.lang
        self._bind(CaptureMode.SINGLE_SHOT)
        await self._set_state(CaptureState.LISTENING)
        try:
            await self.recognizer.start()
        except SpeechCaptureError as e:
            logger.warning("Speech capture failed to start: %s", e)
            self._invalidate()
            await self._set_state(CaptureState.IDLE)
            await self._notify(error_message(e.kind))
            return False
        await self._notify(LISTENING_NOTICE)
        return True

    async def stop(self) -> None:
        """Stop single-shot listening. A no-op unless LISTENING."""
        if self.state is not CaptureState.LISTENING:
            return
        await self._set_state(CaptureState.IDLE)
        assert self.recognizer is not None
        await self.recognizer.stop()

    async def toggle(self) -> bool:
        """Voice button: start listening, or stop if already listening."""
        if self.state is CaptureState.LISTENING:
            await self.stop()
            return False
        return await self.start()

    # --- Continuous ---

    async def enable(self) -> bool:
        """Keep listening and submit every final result until disabled."""
        if self.recognizer is None:
            await self._notify(CONTINUOUS_UNSUPPORTED_NOTICE)
            return False
        if self.state is CaptureState.LISTENING:
            await self._notify(BUSY_LISTENING_NOTICE)
            return False
        if self.state is CaptureState.CONTINUOUS:
            return False

        self.recognizer.continuous = True
        self.recognizer.interim_results = False
        self.recognizer.lang = self.config.lang
        self._failures = 0
        self._bind(CaptureMode.CONTINUOUS)
        await self._set_state(CaptureState.CONTINUOUS)
        try:
            await self.recognizer.start()
        except SpeechCaptureError as e:
            logger.warning("Continuous capture failed to start: %s", e)
            self._invalidate()
            await self._set_state(CaptureState.IDLE)
            await self._notify(error_message(e.kind))
            return False
        await self._notify(CONTINUOUS_ON_NOTICE)
        return True

    async def disable(self, notify: bool = True) -> bool:
        """Stop continuous capture; queued events of the session are dropped."""
        if self.state is not CaptureState.CONTINUOUS:
            return False
        self._invalidate()
        await self._set_state(CaptureState.IDLE)
        assert self.recognizer is not None
        await self.recognizer.stop()
        if notify:
            await self._notify(CONTINUOUS_OFF_NOTICE)
        return True

    async def toggle_continuous(self) -> bool:
        if self.state is CaptureState.CONTINUOUS:
            await self.disable()
            return False
        return await self.enable()

    async def halt(self) -> None:
        """Stop whichever capture mode is running."""
        if self.state is CaptureState.LISTENING:
            await self.stop()
        elif self.state is CaptureState.CONTINUOUS:
            await self.disable(notify=False)

    async def _restart(self) -> None:
        """Start a fresh continuous session, backing off after failed sessions."""
        assert self.recognizer is not None
        while True:
            if self._failures > self.config.max_restarts:
                logger.warning("Continuous capture gave up after %d failures", self._failures)
                await self._give_up(CONTINUOUS_GAVE_UP_NOTICE)
                return
            token = self._bind(CaptureMode.CONTINUOUS)
            if self._failures:
                await self._sleep(self.config.restart_backoff * 2 ** (self._failures - 1))
                if token != self._token or self.state is not CaptureState.CONTINUOUS:
                    return  # disabled while waiting
            try:
                await self.recognizer.start()
                return
            except SpeechCaptureError as e:
                logger.warning("Continuous capture restart failed: %s", e)
                self._failures += 1

    async def _give_up(self, notice: str) -> None:
        self._invalidate()
        await self._set_state(CaptureState.IDLE)
        await self._notify(notice)

    # --- Capability events ---

    async def _handle_start(self, token: int) -> None:
        if token != self._token:
            return
        logger.debug("Capture session %d started (%s)", token, self._mode)

    async def _handle_result(self, token: int, results: list[RecognitionResult], result_index: int = 0) -> None:
        if token != self._token:
            return

        if self._mode is CaptureMode.CONTINUOUS:
            if not results or not results[-1].is_final:
                return
            self._failures = 0
            self._heard = True
            await self._deliver(results[-1].transcript)
            return

        final = "".join(r.transcript for r in results[result_index:] if r.is_final)
        interim = "".join(r.transcript for r in results[result_index:] if not r.is_final)
        if self.on_interim:
            await self.on_interim(final or interim)
        if final:
            await self._deliver(final)

    async def _handle_error(self, token: int, kind: SpeechErrorKind | str) -> None:
        if token != self._token:
            return
        if not isinstance(kind, SpeechErrorKind):
            kind = SpeechErrorKind.parse(kind)

        if self._mode is CaptureMode.SINGLE_SHOT:
            if self.state is not CaptureState.LISTENING:
                return
            logger.warning("Speech capture error: %s", kind)
            await self._set_state(CaptureState.IDLE)
            await self._notify(error_message(kind))
            return

        if self.state is not CaptureState.CONTINUOUS:
            return
        logger.warning("Continuous capture error: %s", kind)
        if kind in FATAL_ERRORS:
            await self._give_up(error_message(kind))
            return
        self._failures += 1
        await self._restart()

    async def _handle_end(self, token: int) -> None:
        if token != self._token:
            return
        if self._mode is CaptureMode.SINGLE_SHOT:
            await self._set_state(CaptureState.IDLE)
            return
        if self.state is not CaptureState.CONTINUOUS:
            return
        # A session that ended without a final result counts like an error
        if not self._heard:
            self._failures += 1
        await self._restart()

    async def _deliver(self, transcript: str) -> None:
        command = parse_voice_command(transcript)
        if command.action is VoiceAction.STOP:
            await self.halt()
            await self._notify(STOPPED_NOTICE)
        elif command.action is VoiceAction.WAKE:
            await self._notify(WAKE_NOTICE)
        elif command.action is VoiceAction.SUBMIT:
            await self.submit(command.text)
