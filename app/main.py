# File: app/main.py

import logging
import time
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import cors_origins_list, settings
from app.core.errors import AppError
from app.core.logging_config import configure_logging
from app.core.ratelimit import limiter
from app.routers import auth, issues, work_orders, users, audit

configure_logging()
logger = logging.getLogger("app.request")

app = FastAPI(title="Urban Issues API")
app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _message(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        if settings.is_production:
            return _message(exc.status_code, "Something went wrong")
    elif getattr(exc, "details", None):
        logger.info("%s %s rejected: %s %s", request.method, request.url.path, exc.message, exc.details,
                    extra={"status": exc.status_code})
    return _message(exc.status_code, exc.message)

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        where = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
        msg = f"{where}: {first.get('msg')}" if where else str(first.get("msg"))
    else:
        msg = "Invalid request"
    return _message(400, msg)

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == 404 and message == "Not Found":
        message = "Route not found"
    return JSONResponse(status_code=exc.status_code, content={"message": message}, headers=exc.headers)

@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return _message(429, "Too many requests from this IP, please try again later.")

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    message = "Something went wrong" if settings.is_production else (str(exc) or exc.__class__.__name__)
    return _message(500, message)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - started) * 1000
    logger.info(
        "%s %s -> %s", request.method, request.url.path, response.status_code,
        extra={
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": duration_ms,
            "remote_addr": request.client.host if request.client else None,
        },
    )
    return response


@app.get("/health")
def health():
    return {"ok": True, "time": datetime.now(timezone.utc).isoformat()}

app.include_router(auth.router)
app.include_router(issues.router)
app.include_router(work_orders.router)
app.include_router(users.router)
app.include_router(audit.router)
