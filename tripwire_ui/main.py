# tripwire_ui/main.py
"""FastAPI status API over a running decision engine."""
from __future__ import annotations

import asyncio
import threading
from typing import Any, List, Optional, Tuple

from fastapi import FastAPI, HTTPException, Path, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from tripwire_kernel.engine import DecisionEngine
from tripwire_kernel.policy import MAX_ACTOR_ID
from tripwire_kernel.types import ActorState

from .sse import NotificationHub, send_heartbeat, sse_event


HEARTBEAT_SECONDS = 15.0


# ============ Models ============

class StatusResponse(BaseModel):
    total_violations: int
    any_blocked: bool
    blocked: List[int]
    threshold: int
    patterns: List[str]
    target_pid: Optional[int]


class ActorResponse(BaseModel):
    pid: int
    violations: int
    blocked: bool
    state: str


class BlockedResponse(BaseModel):
    blocked: List[int]
    count: int


def _actor(engine: DecisionEngine, pid: int) -> ActorResponse:
    return ActorResponse(
        pid=pid,
        violations=engine.violation_count(pid),
        blocked=engine.is_actor_blocked(pid),
        state=engine.actor_state(pid).value,
    )


def create_app(engine: DecisionEngine, hub: Optional[NotificationHub] = None) -> FastAPI:
    app = FastAPI(
        title="Tripwire Status API",
        description="Read-only view of violation counts and blocked actors",
        version="1.0.0",
    )
    app.state.engine = engine
    app.state.hub = hub

    # Security headers middleware
    @app.middleware("http")
    async def add_security_headers(request, call_next):
        """Add security headers to all responses."""
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cache-Control"] = "no-store"
        return response

    # ============ Endpoints ============

    @app.get("/")
    async def root():
        return {"status": "ok", "service": "tripwire"}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    @app.get("/status", response_model=StatusResponse)
    async def status():
        snap = engine.snapshot()
        policy = engine.policy
        return StatusResponse(
            total_violations=snap.total,
            any_blocked=bool(snap.blocked),
            blocked=sorted(snap.blocked),
            threshold=policy.threshold,
            patterns=list(policy.patterns),
            target_pid=policy.target_actor if policy.filters_actor else None,
        )

    # ---- Actors ----

    @app.get("/actors", response_model=List[ActorResponse])
    async def list_actors():
        snap = engine.snapshot()
        return [
            ActorResponse(
                pid=pid,
                violations=count,
                blocked=pid in snap.blocked,
                state=(ActorState.BLOCKED if pid in snap.blocked else ActorState.VIOLATING).value,
            )
            for pid, count in sorted(snap.counts.items())
        ]

    @app.get("/actors/{pid}", response_model=ActorResponse)
    async def get_actor(pid: int = Path(..., ge=0, le=MAX_ACTOR_ID)):
        """Unseen actors are reported with zero violations, not 404."""
        return _actor(engine, pid)

    @app.get("/blocked", response_model=BlockedResponse)
    async def blocked():
        pids = sorted(engine.blocked_actors())
        return BlockedResponse(blocked=pids, count=len(pids))

    # ---- Notifications ----

    @app.get("/events/recent")
    async def recent_events(limit: int = Query(50, ge=1, le=1000)):
        if hub is None:
            raise HTTPException(404, "Notification stream not enabled")
        notes = hub.recent()[-limit:]
        return {"events": [n.to_dict() for n in notes]}

    @app.get("/events/stream")
    async def stream_events():
        """Stream engine notifications via SSE."""
        if hub is None:
            raise HTTPException(404, "Notification stream not enabled")

        listener_id, queue = hub.register()

        async def generate():
            try:
                while True:
                    try:
                        seq, note = await asyncio.wait_for(queue.get(), timeout=HEARTBEAT_SECONDS)
                    except asyncio.TimeoutError:
                        yield await send_heartbeat()
                        continue
                    yield await sse_event(note.kind.value, note.to_dict(), id=str(seq))
            finally:
                hub.unregister(listener_id)

        return StreamingResponse(
            generate(),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
            },
        )

    return app


def serve_in_background(app: FastAPI, host: str, port: int) -> Tuple[Any, threading.Thread]:
    """Run uvicorn in a daemon thread. Stop it with `server.should_exit = True`."""
    import uvicorn

    config = uvicorn.Config(app, host=host, port=port, log_level="warning")
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, name="tripwire-status", daemon=True)
    thread.start()
    return server, thread
