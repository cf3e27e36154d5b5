from __future__ import annotations
import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import List, Literal, Optional, Set

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ValidationError

from repcounter.common import settings
from repcounter.counter.session import RepSessionManager
from repcounter.counter.state_machine import UnknownExerciseError
from repcounter.data import db

logger = logging.getLogger(__name__)

_MAIN_LOOP: Optional[asyncio.AbstractEventLoop] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _MAIN_LOOP
    _MAIN_LOOP = asyncio.get_running_loop()
    yield
    if MANAGER.active_id is not None:
        MANAGER.stop(MANAGER.active_id)
    _MAIN_LOOP = None


app = FastAPI(title="repcounter", lifespan=lifespan)

MANAGER = RepSessionManager()

def ACTIVE_MANAGER() -> RepSessionManager:
    return MANAGER


class LandmarkIn(BaseModel):
    x: float
    y: float
    z: Optional[float] = None
    visibility: Optional[float] = None


class LandmarksMessage(BaseModel):
    type: Literal["landmarks"]
    landmarks: List[Optional[LandmarkIn]]


WS_CLIENTS: Set[WebSocket] = set()

async def broadcast(obj: dict):
    dead = []
    for ws in list(WS_CLIENTS):
        try:
            await ws.send_text(json.dumps(obj))
        except Exception:
            dead.append(ws)
    for d in dead:
        WS_CLIENTS.discard(d)

# let the manager emit events to all WS clients, from any thread
def _sink(ev: dict):
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None
    if _MAIN_LOOP is None or _MAIN_LOOP.is_closed():
        # no server loop (tests, embedded use): broadcast wherever we are
        if loop is not None:
            loop.create_task(broadcast(ev))
    elif loop is _MAIN_LOOP:
        loop.create_task(broadcast(ev))
    else:
        # camera thread runs its own loop; websockets belong to the server loop
        asyncio.run_coroutine_threadsafe(broadcast(ev), _MAIN_LOOP)

MANAGER.set_event_sink(_sink)


@app.get("/favicon.ico")
async def favicon():
    return Response(status_code=204)

@app.get("/sessions/current")
async def current():
    st = ACTIVE_MANAGER().status()
    return JSONResponse(asdict(st))

@app.get("/sessions")
async def sessions(limit: int = Query(20, ge=1, le=500), exercise: Optional[str] = None):
    return JSONResponse(db.list_sessions(limit=limit, exercise=exercise))

@app.get("/sessions/{session_id}")
async def session_detail(session_id: str):
    row = db.get_session(session_id)
    if row is None:
        raise HTTPException(status_code=404, detail="unknown session")
    row["rep_events"] = db.count_events(session_id)
    return JSONResponse(row)

@app.post("/counter/start")
async def start(exercise: str, source: Literal["web", "camera"] = "web"):
    m = ACTIVE_MANAGER()
    try:
        sid, status = m.start(exercise=exercise, source=source)
    except UnknownExerciseError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"session_id": sid, "status": status}

@app.post("/counter/stop")
async def stop():
    m = ACTIVE_MANAGER()
    sid = m.active_id
    summary = m.stop(sid)
    if summary is None:
        return JSONResponse({"stopped": False, "session_id": None})
    return JSONResponse({"stopped": True, "session_id": sid, "summary": summary.to_dict()})

@app.post("/counter/pause")
async def pause():
    return {"session_id": ACTIVE_MANAGER().pause()}

@app.post("/counter/resume")
async def resume():
    return {"session_id": ACTIVE_MANAGER().resume()}

@app.post("/counter/reset")
async def reset():
    m = ACTIVE_MANAGER()
    m.reset()
    return {"session_id": m.active_id, "count": m.count}

@app.websocket("/ws/landmarks")
async def ws_landmarks(ws: WebSocket):
    await ws.accept()
    WS_CLIENTS.add(ws)
    await broadcast({"type": "trace", "msg": "ws: client connected"})
    try:
        while True:
            raw = await ws.receive_text()
            try:
                msg = LandmarksMessage.model_validate_json(raw)
            except ValidationError:
                # not a landmark frame; ignore
                continue
            m = ACTIVE_MANAGER()
            count = await m.push_landmarks([None if lm is None else lm.model_dump() for lm in msg.landmarks])
            st = m.status()
            await ws.send_text(json.dumps({
                "type": "count",
                "count": count,
                "phase": st.phase,
                "hint": st.hint,
                "ready": st.ready,
            }))
    except WebSocketDisconnect:
        pass
    finally:
        WS_CLIENTS.discard(ws)
        await broadcast({"type": "trace", "msg": "ws closed"})


def main():
    import uvicorn

    settings.setup_logging()
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    main()
