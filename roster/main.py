import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from roster.db import engine
from roster.errors import ApiError, error_response
from roster.logging_utils import setup_json_logging
from roster.routers import archive, attendance, auth, personnel
from roster.services.schema_guard import SchemaGuardResult, verify_runtime_schema
from roster.settings import get_cors_origins, get_settings

settings = get_settings()
setup_json_logging(settings.log_level, service=settings.app_name)
logger = logging.getLogger("roster.request")
startup_logger = logging.getLogger("roster.startup")


app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or str(uuid4())
    request.state.request_id = request_id
    request.state.actor = getattr(request.state, "actor", "system")
    request.state.actor_id = getattr(request.state, "actor_id", "system")

    start = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers["X-Request-Id"] = request_id
        return response
    finally:
        latency_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info(
            "request_complete",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": status_code,
                "latency_ms": latency_ms,
                "actor": getattr(request.state, "actor", "system"),
                "actor_id": getattr(request.state, "actor_id", "system"),
            },
        )


@app.exception_handler(ApiError)
async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "api_error",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "path": request.url.path,
                "code": exc.code,
                "error": exc.message,
            },
        )
    return error_response(
        request,
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
    )


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    status_code = exc.status_code
    code_map = {
        401: "INVALID_TOKEN",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        429: "TOO_MANY_ATTEMPTS",
    }
    code = code_map.get(status_code, "HTTP_ERROR")
    message = str(exc.detail) if exc.detail else "Request failed."
    return error_response(
        request,
        status_code=status_code,
        code=code,
        message=message,
    )


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item.get("loc", ()) if part != "body")
        details.append(f"{location}: {item.get('msg')}" if location else str(item.get("msg")))
    return error_response(
        request,
        status_code=422,
        code="VALIDATION_ERROR",
        message="; ".join(details) or "Invalid request.",
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled_error",
        extra={
            "request_id": getattr(request.state, "request_id", "unknown"),
            "path": request.url.path,
            "method": request.method,
        },
    )
    return error_response(
        request,
        status_code=500,
        code="INTERNAL_ERROR",
        message="Unexpected server error.",
    )


app.include_router(auth.router)
app.include_router(personnel.router)
app.include_router(attendance.router)
app.include_router(archive.router)


def _default_schema_guard_result() -> SchemaGuardResult:
    return SchemaGuardResult(
        ok=False,
        checked_at_utc=datetime.now(timezone.utc),
        issues=["SCHEMA_GUARD_NOT_RUN"],
        warnings=[],
    )


@app.on_event("startup")
async def run_schema_guard() -> None:
    if not settings.schema_guard_enabled:
        startup_logger.warning("schema_guard_disabled")
        return

    result = await asyncio.to_thread(verify_runtime_schema, engine)
    app.state.schema_guard_result = result
    if result.ok:
        startup_logger.info(
            "schema_guard_ok",
            extra=result.to_dict(),
        )
        return

    startup_logger.error(
        "schema_guard_failed",
        extra=result.to_dict(),
    )
    if settings.schema_guard_strict:
        joined_issues = "; ".join(result.issues)
        raise RuntimeError(f"Runtime schema guard failed: {joined_issues}")


@app.get("/health")
def health() -> dict[str, Any]:
    schema_guard_result: SchemaGuardResult = getattr(app.state, "schema_guard_result", _default_schema_guard_result())
    return {
        "status": "ok",
        "service": settings.app_name,
        "schema_guard": schema_guard_result.to_dict(),
    }
