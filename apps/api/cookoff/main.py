from __future__ import annotations

import traceback
import uuid
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from cookoff.core.config import app_version, is_development, reconcile_enabled
from cookoff.core.db import db_health, init_db
from cookoff.core.errors import Conflict
from cookoff.core.observability import emit
from cookoff.core.request_ctx import request_id_of
from cookoff.core.storage import PUBLIC_PREFIX, ensure_upload_root, get_upload_root, storage_health
from cookoff.modules.battles.admin_router import router as admin_router
from cookoff.modules.battles.clock import BattleStatusReconciler
from cookoff.modules.battles.router import router as battles_router
from cookoff.modules.moderation.router import router as moderation_router
from cookoff.modules.proofs.router import router as proofs_router
from cookoff.modules.votes.router import router as votes_router

app = FastAPI(title="Cook-Off Battle API", version=app_version())

# Contract:
# - /health keys: status, version, db, storage, last_error_summary
# - X-Request-Id in/out (missing -> generated; always echoed back; also on errors)
# - Error envelope keys: error, message, request_id, details

_last_error: Optional[dict] = None


def _remember_error(kind: str, message: str, request_id: Optional[str]) -> None:
    global _last_error
    _last_error = {"error": kind, "message": message, "request_id": request_id}


def _err_envelope(error: str, message: str, request_id: Optional[str], details: Any, status_code: int) -> JSONResponse:
    headers = {}
    if request_id:
        headers["X-Request-Id"] = request_id
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "request_id": request_id,
            "details": details,
        },
        headers=headers,
    )


@app.middleware("http")
async def _request_id_mw(request: Request, call_next):
    rid = request.headers.get("X-Request-Id") or uuid.uuid4().hex.upper()
    request.state.request_id = rid
    emit("info", "http.request.start", f"{request.method} {request.url.path}", rid, __name__)
    try:
        resp = await call_next(request)
    except Exception as e:
        emit("error", "http.request.exception", str(e), rid, __name__)
        raise
    resp.headers["X-Request-Id"] = rid
    emit("info", "http.request.end", f"{request.method} {request.url.path} -> {getattr(resp, 'status_code', None)}", rid, __name__)
    return resp


@app.exception_handler(StarletteHTTPException)
async def _http_exc_handler(request: Request, exc: StarletteHTTPException):
    rid = request_id_of(request)
    detail = exc.detail
    if isinstance(detail, dict) and "error" in detail:
        return _err_envelope(detail["error"], str(detail.get("message", "")), rid, detail.get("details") or {}, exc.status_code)
    return _err_envelope("http_error", str(detail), rid, {"status_code": exc.status_code}, exc.status_code)


@app.exception_handler(RequestValidationError)
async def _validation_exc_handler(request: Request, exc: RequestValidationError):
    rid = request_id_of(request)
    errors = [{k: v for k, v in e.items() if k in ("loc", "msg", "type")} for e in exc.errors()]
    return _err_envelope("invalid_argument", "request validation failed", rid, {"errors": errors}, 400)


@app.exception_handler(IntegrityError)
async def _integrity_exc_handler(request: Request, exc: IntegrityError):
    rid = request_id_of(request)
    emit("warning", "db.integrity_error", str(exc.orig), rid, __name__)
    return _err_envelope(Conflict.kind, "conflicting write", rid, {"type": type(exc.orig).__name__}, Conflict.status_code_default)


@app.exception_handler(Exception)
async def _unhandled_exc_handler(request: Request, exc: Exception):
    rid = request_id_of(request)
    _remember_error("internal_error", str(exc), rid)
    emit("error", "http.request.unhandled", str(exc), rid, __name__, error_type=type(exc).__name__)
    details: dict = {"type": type(exc).__name__}
    if is_development():
        details["message"] = str(exc)
        details["traceback"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return _err_envelope("internal_error", "internal server error", rid, details, 500)


@app.on_event("startup")
async def _startup() -> None:
    init_db()
    ensure_upload_root()
    app.state.reconciler = None
    if reconcile_enabled():
        reconciler = BattleStatusReconciler()
        reconciler.start()
        app.state.reconciler = reconciler


@app.on_event("shutdown")
async def _shutdown() -> None:
    reconciler = getattr(app.state, "reconciler", None)
    if reconciler is not None:
        await reconciler.stop()
        app.state.reconciler = None


@app.get("/health")
def health():
    db = db_health()
    storage = storage_health()
    ok = db.get("status") == "ok" and storage.get("status") == "ok"
    return {
        "status": "ok" if ok else "degraded",
        "version": app_version(),
        "db": db,
        "storage": storage,
        "last_error_summary": _last_error,
    }


app.include_router(battles_router)
app.include_router(votes_router)
app.include_router(proofs_router)
app.include_router(moderation_router)
app.include_router(admin_router)

# the upload root is created at startup, after this mount is built
app.mount(PUBLIC_PREFIX, StaticFiles(directory=str(get_upload_root()), check_dir=False), name="uploads")
