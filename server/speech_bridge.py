import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from core.config import VoiceConfig
from core.errors import SpeechCaptureError
from core.orchestrator import Assistant
from core.types import CaptureState, SpeechErrorKind
from voice.capture import VoiceCapture
from voice.recognizer import RecognitionResult, SpeechRecognizer

logger = logging.getLogger(__name__)


class BrowserRecognizer(SpeechRecognizer):
    """Speech capability running in the page, driven over the WebSocket.

    start()/stop() become "command" messages; the page reports its
    recognition events back as "speech" messages.
    """

    def __init__(self, ws: WebSocket, lang: str = "en-US"):
        super().__init__(lang)
        self.ws = ws

    async def _command(self, action: str) -> None:
        try:
            await self.ws.send_json({
                "type": "command",
                "action": action,
                "continuous": self.continuous,
                "interim_results": self.interim_results,
                "lang": self.lang,
            })
        except (WebSocketDisconnect, RuntimeError) as e:
            raise SpeechCaptureError(SpeechErrorKind.NETWORK, f"Page unreachable: {e}") from e

    async def start(self) -> None:
        await self._command("start")

    async def stop(self) -> None:
        try:
            await self._command("stop")
        except SpeechCaptureError as e:
            logger.debug("Stop not delivered: %s", e)


class VoiceHandler:
    """WebSocket protocol handler for speech events + control messages.

    Control messages are handled as they arrive. Speech events go through a
    worker task in arrival order, and answers run as their own tasks, so a
    restart backoff or a slow completion never holds up a toggle.
    """

    def __init__(
        self,
        ws: WebSocket,
        assistant: Assistant,
        config: VoiceConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.ws = ws
        self.assistant = assistant
        config = config or VoiceConfig()
        self.recognizer = BrowserRecognizer(ws, config.lang)
        self.capture = VoiceCapture(self.recognizer, self._queue_answer, config, sleep=sleep)
        self._speech: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._tasks: set[asyncio.Task] = set()
        self._setup_callbacks()

    def _setup_callbacks(self) -> None:
        """Wire capture callbacks to WebSocket sends."""
        self.capture.on_state_change = self._on_state_change
        self.capture.on_notice = self._on_notice
        self.capture.on_interim = self._on_interim

    async def _on_state_change(self, state: CaptureState) -> None:
        await self.ws.send_json({"type": "state", "capture": state.value})

    async def _on_notice(self, text: str) -> None:
        await self.ws.send_json({"type": "notice", "text": text})

    async def _on_interim(self, text: str) -> None:
        await self.ws.send_json({"type": "interim", "text": text})

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Voice task failed: %r", task.exception())

    async def _queue_answer(self, text: str) -> None:
        self._spawn(self._answer(text))

    async def _answer(self, text: str) -> None:
        response = await self.assistant.submit(text)
        await self.ws.send_json({
            "type": "response",
            "query": text,
            "text": response.text,
            "intent": response.intent.value if response.intent else None,
            "record": response.record.to_dict() if response.record else None,
        })

    async def run(self) -> None:
        """Main loop: receive messages from WebSocket."""
        worker = asyncio.create_task(self._speech_worker())
        try:
            while True:
                message = await self.ws.receive()

                if message["type"] == "websocket.receive":
                    if "text" in message and message["text"]:
                        try:
                            data = json.loads(message["text"])
                        except json.JSONDecodeError:
                            logger.warning("Ignoring non-JSON message")
                            continue
                        if not isinstance(data, dict):
                            logger.warning("Ignoring non-object message")
                            continue
                        try:
                            await self._handle_control(data)
                        except (ValueError, TypeError) as e:
                            logger.warning("Ignoring malformed %r message: %s", data.get("type"), e)

                elif message["type"] == "websocket.disconnect":
                    break
        finally:
            await self._shutdown(worker)

    async def _shutdown(self, worker: asyncio.Task) -> None:
        """Cancel the speech worker and any answers still in flight."""
        pending = [worker, *self._tasks]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    async def _speech_worker(self) -> None:
        while True:
            data = await self._speech.get()
            try:
                await self._dispatch_speech(data)
            except (ValueError, TypeError) as e:
                logger.warning("Ignoring malformed speech event: %s", e)

    async def _handle_control(self, data: dict[str, Any]) -> None:
        msg_type = data.get("type")

        if msg_type == "speech":
            self._speech.put_nowait(data)

        elif msg_type == "voice_toggle":
            await self.capture.toggle()

        elif msg_type == "continuous_toggle":
            await self.capture.toggle_continuous()

        elif msg_type == "text_input":
            # Typed input shares the voice entry point
            self._spawn(self._answer(str(data.get("text") or "")))

    async def _dispatch_speech(self, data: dict[str, Any]) -> None:
        event = data.get("event")
        r = self.recognizer

        if event == "start" and r.on_start:
            await r.on_start()
        elif event == "result" and r.on_result:
            results = _parse_results(data.get("results", []))
            await r.on_result(results, int(data.get("result_index") or 0))
        elif event == "error" and r.on_error:
            await r.on_error(SpeechErrorKind.parse(data.get("error")))
        elif event == "end" and r.on_end:
            await r.on_end()


def _parse_results(items: Any) -> list[RecognitionResult]:
    if not isinstance(items, list):
        raise TypeError(f"results must be a list, got {type(items).__name__}")
    results = []
    for item in items:
        if not isinstance(item, dict):
            raise TypeError(f"result entry must be an object, got {type(item).__name__}")
        results.append(
            RecognitionResult(transcript=str(item.get("transcript", "")), is_final=bool(item.get("is_final")))
        )
    return results
