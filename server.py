#!/usr/bin/env python3
"""
Latency Certifier Web Server: FastAPI + WebSocket front for MeasurementSession.

Taps arrive either as POST /api/session/tap or as "tap" frames on the
WebSocket (lower overhead for a phone or browser front end). Every session
transition is pushed to all connected WebSocket clients.

Usage:
    python3 server.py
    # Open http://<host>:8000, start a run, tap along with the 4 Hz pulse
"""

import json
import logging
import math
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_validator

from certifier_config import load_config
from measurement_session import MeasurementSession, SessionState
from timing_graph import graph_payload

logging.basicConfig(level=logging.INFO)
log = logging.getLogger("certifier")


# --- WebSocket manager ---


class ConnectionManager:
    def __init__(self):
        self.connections: list[WebSocket] = []

    async def connect(self, ws: WebSocket):
        await ws.accept()
        self.connections.append(ws)

    def disconnect(self, ws: WebSocket):
        if ws in self.connections:
            self.connections.remove(ws)

    async def broadcast(self, msg: dict):
        data = json.dumps(msg)
        dead = []
        for ws in self.connections:
            try:
                await ws.send_text(data)
            except Exception:
                dead.append(ws)
        for ws in dead:
            self.disconnect(ws)


manager = ConnectionManager()
sess: MeasurementSession = None


@asynccontextmanager
async def lifespan(application):
    global sess

    config = load_config()
    sess = MeasurementSession(config, on_update=manager.broadcast)
    log.info(
        f"Certifier ready: {config.minimum_samples} samples over {config.track_length_ms:.0f} ms "
        f"at {config.pulse_frequency_hz} Hz"
    )

    yield

    # Shutdown
    await sess.reset()
    log.info("Server stopped")


app = FastAPI(title="Latency Certifier", lifespan=lifespan)

# CORS for Vite dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Pydantic models ---


class OffsetRequest(BaseModel):
    offset: float
    adjustments: list[float] | None = None

    @field_validator("offset")
    @classmethod
    def offset_finite(cls, v):
        if not math.isfinite(v):
            raise ValueError("offset must be finite")
        return v


def _not_ready():
    return JSONResponse(
        {"error": f"no result available (session is {sess.state.value})"},
        status_code=409,
    )


# --- REST endpoints ---


@app.get("/api/config")
async def get_config():
    return sess.config.to_dict()


@app.get("/api/session")
async def get_session():
    return sess.to_dict()


@app.post("/api/session/start")
async def start_session():
    await sess.start()
    return sess.to_dict()


@app.post("/api/session/tap")
async def tap():
    accepted = sess.capture()
    return {"accepted": accepted, "samples": sess.sample_count}


@app.post("/api/session/reset")
async def reset_session():
    await sess.reset()
    return sess.to_dict()


@app.get("/api/result")
async def get_result():
    if sess.state != SessionState.SUCCESS:
        return _not_ready()
    return {
        "type": "result",
        "run_id": sess.run_id,
        **sess.result.to_dict(),
        "latencies": sess.result.latencies,
    }


@app.get("/api/histogram")
async def get_histogram():
    if sess.state != SessionState.SUCCESS:
        return _not_ready()
    return graph_payload(sess.result.histogram)


@app.post("/api/histogram/offset")
async def set_histogram_offset(req: OffsetRequest):
    if sess.state != SessionState.SUCCESS:
        return _not_ready()
    histogram = sess.result.histogram
    try:
        histogram.apply_offset(req.offset, req.adjustments)
    except ValueError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    payload = graph_payload(histogram)
    await manager.broadcast(payload)
    return payload


# --- WebSocket endpoint ---


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await manager.connect(ws)
    try:
        await ws.send_text(json.dumps(sess.to_dict()))
        while True:
            text = await ws.receive_text()
            if text.strip().lower() != "tap":
                log.debug(f"Ignoring unknown WebSocket frame: {text[:80]!r}")
                continue
            accepted = sess.capture()
            await ws.send_text(json.dumps({"type": "tap", "accepted": accepted, "samples": sess.sample_count}))
    except WebSocketDisconnect:
        manager.disconnect(ws)
    except Exception:
        manager.disconnect(ws)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
