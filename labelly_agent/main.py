from __future__ import annotations

import os
import threading
import time
from collections import deque
from pathlib import Path
from typing import Deque

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .analyzer import diagnose
from .config import Settings
from .errors import InvalidUrlError, SsrfBlockedError
from .logger import configure
from .models import DiagnoseRequest

# Repo-root .env for local dev; real environment variables win.
_HERE = Path(__file__).resolve()
load_dotenv(_HERE.parents[1] / ".env", override=False)

logger = configure()

_MAX_BODY_BYTES = max(1, int(os.getenv("LABELLY_MAX_BODY_BYTES", "200000")))
_RATE_LIMIT = max(1, int(os.getenv("LABELLY_RATE_LIMIT", "30")))
_RATE_WINDOW_S = float(os.getenv("LABELLY_RATE_WINDOW_S", "60"))


class SlidingWindowLimiter:
    """Per-client request ceiling over a sliding time window."""

    def __init__(self, limit: int, window_s: float):
        self.limit = limit
        self.window_s = window_s
        self._hits: dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep: float | None = None

    def retry_after(self, client: str, now: float | None = None) -> float:
        """Record a hit; return 0 when allowed, else seconds until the next slot."""
        now = time.monotonic() if now is None else now
        with self._lock:
            self._maybe_sweep(now)
            hits = self._hits.setdefault(client, deque())
            while hits and now - hits[0] >= self.window_s:
                hits.popleft()
            if len(hits) >= self.limit:
                return max(0.0, self.window_s - (now - hits[0]))
            hits.append(now)
            return 0.0

    def _maybe_sweep(self, now: float) -> None:
        # Drop clients with no hit inside the window, at most once per window.
        if self._last_sweep is None:
            self._last_sweep = now
            return
        if now - self._last_sweep < self.window_s:
            return
        self._last_sweep = now
        for key in [k for k, hits in self._hits.items() if not hits or now - hits[-1] >= self.window_s]:
            del self._hits[key]

    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._hits)


def create_app(settings: Settings | None = None, limiter: SlidingWindowLimiter | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    limiter = limiter or SlidingWindowLimiter(_RATE_LIMIT, _RATE_WINDOW_S)

    app = FastAPI(title="Labelly Agent", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_allow_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    @app.post("/api/diagnose")
    async def diagnose_endpoint(request: Request):
        client = request.client.host if request.client else "unknown"
        wait = limiter.retry_after(client)
        if wait > 0:
            return JSONResponse(
                {"error": "rate_limited"},
                status_code=429,
                headers={"Retry-After": str(max(1, int(wait + 0.999)))},
            )

        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > _MAX_BODY_BYTES:
            return JSONResponse({"error": "payload_too_large"}, status_code=413)
        body = await _read_capped(request, _MAX_BODY_BYTES)
        if body is None:
            return JSONResponse({"error": "payload_too_large"}, status_code=413)

        try:
            req = DiagnoseRequest.model_validate_json(body or b"{}")
            result = await run_in_threadpool(diagnose, req.url, settings=settings)
        except (ValidationError, InvalidUrlError):
            return JSONResponse({"error": "invalid_url"}, status_code=400)
        except SsrfBlockedError as e:
            logger.info("[api] blocked %s", e.reason)
            return JSONResponse({"error": "blocked_or_failed"}, status_code=400)

        return JSONResponse(result.model_dump(by_alias=True))

    return app


async def _read_capped(request: Request, limit: int) -> bytes | None:
    """Read the body chunk by chunk; None as soon as it grows past ``limit``."""
    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            return None
    return bytes(body)


def _cors_allow_origins() -> list[str]:
    raw = os.getenv("LABELLY_CORS_ORIGINS", "").strip()
    if not raw:
        return ["http://localhost:3000"]
    return [o.strip() for o in raw.split(",") if o.strip()]


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "3000")))


if __name__ == "__main__":
    run()
