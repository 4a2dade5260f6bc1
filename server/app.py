import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import Response as HTTPResponse
from pydantic import BaseModel

from core.config import load_config
from core.errors import ExportEmpty
from core.orchestrator import Assistant
from core.types import Category
from history import create_history
from history.types import InteractionRecord
from server.speech_bridge import VoiceHandler

logger = logging.getLogger(__name__)

# Global state, initialized on startup unless already provided
assistant: Assistant | None = None


class MessageIn(BaseModel):
    text: str = ""


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    global assistant

    if assistant is None:
        config = load_config()
        assistant = Assistant(config=config, history=create_history(config))

    yield

    # Cleanup
    assistant = None


app = FastAPI(title="Parlor", lifespan=lifespan)


def _require() -> Assistant:
    if assistant is None:
        raise HTTPException(status_code=503, detail="Assistant not initialized")
    return assistant


def _records(records: list[InteractionRecord]) -> list[dict[str, Any]]:
    return [r.to_dict() for r in records]


@app.get("/health")
async def health() -> dict[str, Any]:
    remote: dict[str, Any] = {"status": "disabled"}
    if assistant and assistant.remote:
        remote = await assistant.remote.health()
    return {
        "status": "ok" if assistant else "not initialized",
        "remote": remote,
        "records": len(assistant.history) if assistant else 0,
        "busy": assistant.busy if assistant else False,
    }


@app.get("/api/config")
async def get_config() -> dict[str, Any]:
    return _require().settings.public_view()


@app.put("/api/config")
async def put_config(data: dict[str, Any]) -> dict[str, Any]:
    settings = _require().apply_host_config(data)
    return settings.public_view()


@app.post("/api/message")
async def post_message(message: MessageIn) -> dict[str, Any]:
    response = await _require().submit(message.text)
    return {
        "text": response.text,
        "intent": response.intent.value if response.intent else None,
        "record": response.record.to_dict() if response.record else None,
    }


@app.get("/api/history")
async def get_history(q: str = "", category: Category | None = None) -> dict[str, Any]:
    history = _require().history
    matched = history.filter(q, category)
    return {"records": _records(matched), "stats": history.stats(len(matched))}


@app.put("/api/history")
async def put_history(records: list[dict[str, Any]]) -> dict[str, Any]:
    """Change notification from the persistence host: adopt its full record set."""
    history = _require().history
    history.replace_all([InteractionRecord.from_dict(r) for r in records])
    return history.stats()


@app.get("/api/history/recent")
async def get_recent(n: int | None = None) -> dict[str, Any]:
    current = _require()
    limit = n if n is not None else current.config.history.recent_limit
    return {"records": _records(current.history.recent(limit))}


@app.get("/api/history/export")
async def export_history() -> HTTPResponse:
    current = _require()
    try:
        content = current.history.export_csv()
    except ExportEmpty as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    filename = current.config.history.export_filename
    return HTTPResponse(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.websocket("/ws/voice")
async def websocket_voice(ws: WebSocket) -> None:
    await ws.accept()
    if not assistant:
        await ws.close(code=1011, reason="Assistant not initialized")
        return
    handler = VoiceHandler(ws, assistant, assistant.config.voice)
    try:
        await handler.run()
    except WebSocketDisconnect:
        logger.info("Voice client disconnected")
