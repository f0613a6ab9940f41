"""FastAPI application exposing the mini-games to a local frontend."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from ..core.engine import EngineError
from ..core.registry import get_all_games
from ..core.schemas import SchemaValidationError
from .web_session import SESSION_MANAGER, GameSession


class SessionCreate(BaseModel):
    """Payload for creating a new game session."""

    model_config = ConfigDict(populate_by_name=True)

    game: str = Field(..., description="Game id: reaction, tap_battle, reflex or nerve")
    seed: Optional[int] = Field(None, description="Deterministic RNG seed")


app = FastAPI(title="Crazy Tie Web API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://127.0.0.1"],
    allow_origin_regex=r"http://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_methods=["*"],
    allow_headers=["*"],
)


async def _get_session(session_id: str) -> GameSession:
    try:
        return await SESSION_MANAGER.get(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.get("/api/games")
async def list_games() -> Dict[str, Any]:
    """Return the game catalogue."""
    return {"games": get_all_games()}


@app.post("/api/sessions")
async def create_session(payload: SessionCreate) -> Dict[str, Any]:
    """Start a new match session."""

    try:
        session = await SESSION_MANAGER.create_session(payload.game, seed=payload.seed)
    except (EngineError, ValueError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return await session.status_async()


@app.get("/api/sessions/{session_id}")
async def get_session(session_id: str) -> Dict[str, Any]:
    """Fetch the latest snapshot for a session."""

    session = await _get_session(session_id)
    return await session.status_async()


@app.post("/api/sessions/{session_id}/actions")
async def submit_action(session_id: str, payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
    """Apply a tap or command and return the resulting snapshot."""

    session = await _get_session(session_id)
    try:
        snapshot = await session.submit_action_async(payload)
    except SchemaValidationError as exc:
        raise HTTPException(status_code=422, detail={"action": exc.action, "errors": exc.errors}) from exc
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {"status": "ok", "version": session.version, "state": snapshot.model_dump(mode="json")}


@app.post("/api/sessions/{session_id}/reset")
async def reset_session(session_id: str) -> Dict[str, Any]:
    """Abandon the current match and start a new one."""

    session = await _get_session(session_id)
    try:
        await session.reset_async()
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return await session.status_async()


@app.get("/api/sessions/{session_id}/transcript")
async def get_transcript(session_id: str) -> Response:
    """Return the round-by-round transcript so far."""

    session = await _get_session(session_id)
    return Response(content=session.transcript().to_json(), media_type="application/json")


@app.delete("/api/sessions/{session_id}")
async def stop_session(session_id: str) -> Dict[str, Any]:
    """Terminate a session and cancel its timers."""

    session = await _get_session(session_id)
    await SESSION_MANAGER.stop(session_id)
    return {"status": "stopped", "sessionId": session.session_id}
