from __future__ import annotations

import json
import logging
import os
import re
from datetime import date
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request

from app.core.config import Settings

REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")
_LOG = logging.getLogger("app.http")
_ACTION_LOG = logging.getLogger("app.actions")

ACTION_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
REDACTED_FIELDS = {"password", "password_hash", "token", "access_token"}

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "X-Permitted-Cross-Domain-Policies": "none",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}


class DailyFileHandler(logging.FileHandler):
    """Appends to ``<directory>/YYYY-MM-DD.log``, switching files when the day changes."""

    def __init__(self, directory: str):
        os.makedirs(directory, exist_ok=True)
        self.directory = directory
        self._day = date.today()
        super().__init__(self._path_for(self._day), mode="a", encoding="utf-8", delay=True)

    def _path_for(self, day: date) -> str:
        return os.path.join(self.directory, f"{day.isoformat()}.log")

    def emit(self, record: logging.LogRecord) -> None:
        today = date.today()
        if today != self._day:
            self.acquire()
            try:
                self.close()
                self._day = today
                self.baseFilename = os.path.abspath(self._path_for(today))
            finally:
                self.release()
        super().emit(record)


def configure_logging(config: Settings) -> None:
    logging.basicConfig(
        level=str(config.LOG_LEVEL or "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    if config.ACTION_LOG_DIR and not any(isinstance(h, DailyFileHandler) for h in _ACTION_LOG.handlers):
        handler = DailyFileHandler(config.ACTION_LOG_DIR)
        handler.setFormatter(logging.Formatter("%(asctime)s %(message)s", datefmt="%H:%M:%S"))
        _ACTION_LOG.addHandler(handler)


def _request_id_from_header(raw: str | None) -> str:
    value = str(raw or "").strip()
    if not value:
        return uuid4().hex
    if not _REQUEST_ID_RE.fullmatch(value):
        return uuid4().hex
    return value


def _redact(value):
    if isinstance(value, dict):
        return {k: ("***" if str(k).lower() in REDACTED_FIELDS else _redact(v)) for k, v in value.items()}
    if isinstance(value, list):
        return [_redact(item) for item in value]
    return value


def _single_line_payload(body: bytes) -> str:
    text = body.decode("utf-8", errors="replace").strip()
    if not text:
        return "none"
    try:
        return json.dumps(_redact(json.loads(text)), ensure_ascii=False, separators=(",", ":"))
    except ValueError:
        return " ".join(text.split())


def install_http_hardening(app: FastAPI) -> None:
    @app.middleware("http")
    async def _http_hardening_middleware(request: Request, call_next):
        request_id = _request_id_from_header(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        started_at = perf_counter()
        body = await request.body() if request.method in ACTION_METHODS else b""

        response = await call_next(request)

        for key, value in SECURITY_HEADERS.items():
            response.headers[key] = value
        response.headers["Cache-Control"] = "no-store"
        response.headers[REQUEST_ID_HEADER] = request_id

        duration_ms = (perf_counter() - started_at) * 1000.0
        _LOG.info(
            "%s %s status=%s duration_ms=%.2f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
        )
        if request.method in ACTION_METHODS:
            _ACTION_LOG.info(
                "[ACTION] %s %s | Status: %s | Latency: %.2fms | IP: %s | Query: %s | Payload: %s",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                request.client.host if request.client else "unknown",
                request.url.query or "none",
                _single_line_payload(body),
            )
        return response
