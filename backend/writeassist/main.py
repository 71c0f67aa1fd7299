from __future__ import annotations

import asyncio
import json
import logging
import math
import time
from contextlib import asynccontextmanager, suppress
from typing import Any, AsyncGenerator, AsyncIterator, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from writeassist.config import Settings, get_settings
from writeassist.models import AIStatus, SessionSnapshot, TokenUsage
from writeassist.runtime import EditorRuntime
from writeassist.session import EditorSession

logger = logging.getLogger(__name__)


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests whose body exceeds the configured size."""

    def __init__(self, app: FastAPI, *, max_body_size: int) -> None:
        super().__init__(app)
        self.max_body_size = max_body_size

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length:
            with suppress(ValueError):
                if int(content_length) > self.max_body_size:
                    logger.warning("Rejected %s %s: body of %s bytes", request.method, request.url.path, content_length)
                    return JSONResponse(status_code=413, content={"detail": "Request body too large"})

        body = await request.body()
        if len(body) > self.max_body_size:
            logger.warning("Rejected %s %s: body of %d bytes", request.method, request.url.path, len(body))
            return JSONResponse(status_code=413, content={"detail": "Request body too large"})

        async def receive() -> Dict[str, Any]:
            return {"type": "http.request", "body": body, "more_body": False}

        request = Request(request.scope, receive)  # type: ignore[arg-type]
        return await call_next(request)


MAX_BODY_BYTES = 65_536
MAX_TEXT_LENGTH = 20_000
EVENT_POLL_INTERVAL = 0.5
limiter = Limiter(key_func=get_remote_address, default_limits=["600/minute"])

runtime: Optional[EditorRuntime] = None


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    reset_time = getattr(exc, "reset_time", time.time())
    retry_after = max(1, math.ceil(reset_time - time.time()))
    logger.info("Rate limit hit for %s on %s", get_remote_address(request), request.url.path)
    return JSONResponse(
        status_code=429,
        content={"detail": "Too Many Requests"},
        headers={"Retry-After": str(retry_after)},
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    global runtime
    yield
    if runtime is not None:
        await runtime.shutdown()
        runtime = None


app = FastAPI(title="Grammar Suggestion API", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_middleware(BodySizeLimitMiddleware, max_body_size=MAX_BODY_BYTES)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:4200", "http://127.0.0.1:4200", "http://localhost:5173"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SlowAPIMiddleware)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(BaseModel):
    status: str = "ok"


class StatusResponse(_CamelModel):
    ai_status: AIStatus
    token_usage: TokenUsage
    has_api_key: bool


class SessionResponse(_CamelModel):
    session_id: str
    snapshot: SessionSnapshot


class TextUpdate(BaseModel):
    text: str = Field(..., max_length=MAX_TEXT_LENGTH)


class ApiKeyUpdate(_CamelModel):
    api_key: Optional[str] = Field(default=None, max_length=256)


def get_runtime(settings: Settings = Depends(get_settings)) -> EditorRuntime:
    """Build the process-wide runtime on first use."""
    global runtime
    if runtime is None:
        logging.getLogger("writeassist").setLevel(settings.log_level.upper())
        runtime = EditorRuntime.from_settings(settings)
        logger.info("Runtime ready with %s provider", settings.default_provider)
    return runtime


def _require_session(runtime: EditorRuntime, session_id: str) -> EditorSession:
    session = runtime.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _sse_message(event: str, data: Dict[str, Any], *, event_id: str | None = None) -> str:
    body = [f"event: {event}"]
    if event_id is not None:
        body.append(f"id: {event_id}")
    body.append(f"data: {json.dumps(data)}")
    return "\n".join(body) + "\n\n"


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse()


@app.get("/status", response_model=StatusResponse)
async def status(runtime: EditorRuntime = Depends(get_runtime)) -> StatusResponse:
    client = runtime.client
    return StatusResponse(
        ai_status=client.ai_status,
        token_usage=client.token_usage,
        has_api_key=client.has_api_key,
    )


@app.post("/sessions", response_model=SessionResponse, status_code=201)
async def open_session(runtime: EditorRuntime = Depends(get_runtime)) -> SessionResponse:
    session_id, session = await runtime.open_session()
    return SessionResponse(session_id=session_id, snapshot=session.snapshot())


@app.get("/sessions/{session_id}", response_model=SessionSnapshot)
async def get_session(session_id: str, runtime: EditorRuntime = Depends(get_runtime)) -> SessionSnapshot:
    return _require_session(runtime, session_id).snapshot()


@app.delete("/sessions/{session_id}", status_code=204)
async def close_session(session_id: str, runtime: EditorRuntime = Depends(get_runtime)) -> Response:
    if not await runtime.close_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return Response(status_code=204)


@app.put("/sessions/{session_id}/text", response_model=SessionSnapshot)
@limiter.limit("300/minute")
async def edit_text(
    session_id: str,
    payload: TextUpdate,
    request: Request,
    runtime: EditorRuntime = Depends(get_runtime),
) -> SessionSnapshot:
    session = _require_session(runtime, session_id)
    session.edit_text(payload.text)
    return session.snapshot()


@app.post("/sessions/{session_id}/auto-suggestions/toggle", response_model=SessionSnapshot)
async def toggle_auto_suggestions(session_id: str, runtime: EditorRuntime = Depends(get_runtime)) -> SessionSnapshot:
    session = _require_session(runtime, session_id)
    session.toggle_auto_suggestions()
    return session.snapshot()


@app.post("/sessions/{session_id}/suggestions/{suggestion_id}/apply", response_model=SessionSnapshot)
async def apply_suggestion(
    session_id: str,
    suggestion_id: str,
    runtime: EditorRuntime = Depends(get_runtime),
) -> SessionSnapshot:
    session = _require_session(runtime, session_id)
    if not session.apply_suggestion(suggestion_id):
        raise HTTPException(status_code=404, detail="Suggestion not found")
    return session.snapshot()


@app.post("/sessions/{session_id}/suggestions/{suggestion_id}/dismiss", response_model=SessionSnapshot)
async def dismiss_suggestion(
    session_id: str,
    suggestion_id: str,
    runtime: EditorRuntime = Depends(get_runtime),
) -> SessionSnapshot:
    session = _require_session(runtime, session_id)
    if not session.dismiss_suggestion(suggestion_id):
        raise HTTPException(status_code=404, detail="Suggestion not found")
    return session.snapshot()


@app.post("/sessions/{session_id}/notice/dismiss", response_model=SessionSnapshot)
async def dismiss_notice(session_id: str, runtime: EditorRuntime = Depends(get_runtime)) -> SessionSnapshot:
    session = _require_session(runtime, session_id)
    session.dismiss_api_key_notice()
    return session.snapshot()


@app.put("/sessions/{session_id}/api-key", response_model=SessionSnapshot)
async def set_api_key(
    session_id: str,
    payload: ApiKeyUpdate,
    runtime: EditorRuntime = Depends(get_runtime),
) -> SessionSnapshot:
    session = _require_session(runtime, session_id)
    session.set_api_key(payload.api_key)
    return session.snapshot()


@app.post("/sessions/{session_id}/usage/reset", response_model=SessionSnapshot)
async def reset_usage(session_id: str, runtime: EditorRuntime = Depends(get_runtime)) -> SessionSnapshot:
    session = _require_session(runtime, session_id)
    session.reset_usage()
    return session.snapshot()


@app.get("/sessions/{session_id}/events")
async def session_events(
    session_id: str,
    request: Request,
    limit: Optional[int] = Query(default=None, ge=1),
    runtime: EditorRuntime = Depends(get_runtime),
) -> StreamingResponse:
    session = _require_session(runtime, session_id)

    async def event_stream() -> AsyncGenerator[str, None]:
        queue: asyncio.Queue[SessionSnapshot] = asyncio.Queue()
        queue.put_nowait(session.snapshot())
        unsubscribe = session.subscribe(queue.put_nowait)
        sent = 0
        try:
            while limit is None or sent < limit:
                try:
                    snapshot = await asyncio.wait_for(queue.get(), timeout=EVENT_POLL_INTERVAL)
                except asyncio.TimeoutError:
                    if await request.is_disconnected() or runtime.get(session_id) is None:
                        break
                    continue
                yield _sse_message(
                    "snapshot",
                    snapshot.model_dump(mode="json", by_alias=True),
                    event_id=str(sent),
                )
                sent += 1
        finally:
            unsubscribe()

    return StreamingResponse(event_stream(), media_type="text/event-stream")


__all__ = [
    "app",
    "get_runtime",
    "get_settings",
]
