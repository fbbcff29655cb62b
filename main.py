# main.py
# The file is solely responsible for:
# Creating the FastAPI app instance.
# Configuring and adding middleware (CORS, Request ID, Logging, Security, Rate Limiting).
# Setting up global services like logging and Sentry.
# Mapping errors to the JSON shape the frontend expects.
# Including the Routers from the routers/ directory, which contain the endpoint logic.

import uuid
import time
import logging
from pythonjsonlogger import jsonlogger
from pathlib import Path
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Callable, Awaitable

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPBearer
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request as StarletteRequest # Renamed to avoid shadowing
from starlette.responses import Response as StarletteResponse

from jose import jwt, JWTError

# --- Rate Limiting Imports ---
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from limits.util import parse_many
from rate_limiter import limiter, get_dynamic_rate_limit

# --- Local Project Imports ---
import config
from config import SECRET_KEY, ALGORITHM, SENTRY_DSN, CORS_ORIGINS, STORAGE_TYPE, UPLOAD_DIR, ENVIRONMENT
from db.database import create_db_and_tables
from routers import auth as auth_router
from routers import users as users_router
from routers import health as health_router
from routers import media as media_router
from routers import galleries as galleries_router
from routers import contact as contact_router
from services.storage_service import LOCAL_URL_BASE

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

RequestResponseCall = Callable[[StarletteRequest], Awaitable[StarletteResponse]]


# --- Logging Configuration ---
# Configure this early so all subsequent modules can use it.
log_handler = logging.StreamHandler()
formatter = jsonlogger.JsonFormatter(
    '%(asctime)s %(levelname)s %(name)s %(module)s %(funcName)s %(lineno)d %(message)s '
    '%(request_id)s %(user_id)s %(path)s %(method)s %(status_code)s %(response_time_ms)s'
)
log_handler.setFormatter(formatter)

# Configure the root logger to capture logs from all libraries (e.g., sqlalchemy, uvicorn)
root_logger = logging.getLogger()
root_logger.setLevel(logging.INFO)
# Remove any default handlers to avoid duplicate logs
for handler in root_logger.handlers[:]:
    root_logger.removeHandler(handler)
root_logger.addHandler(log_handler)

# Request context attached to every log record, set per request by RequestIdMiddleware
request_id_var: ContextVar = ContextVar("request_id", default=None)
user_id_var: ContextVar = ContextVar("user_id", default=None)

_base_record_factory = logging.getLogRecordFactory()

def request_context_record_factory(*args, **kwargs):
    record = _base_record_factory(*args, **kwargs)
    record.request_id = request_id_var.get()
    record.user_id = user_id_var.get()
    return record

logging.setLogRecordFactory(request_context_record_factory)

logger = logging.getLogger(__name__)


# --- Sentry Initialization ---
if SENTRY_DSN and SENTRY_DSN != "your-sentry-dsn-goes-here":
    sentry_logging = LoggingIntegration(
        level=logging.DEBUG,        # Breadcrumbs level
        event_level=logging.ERROR   # Event level (ERROR and above)
    )
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        integrations=[sentry_logging],
        environment=ENVIRONMENT,
        traces_sample_rate=1.0,
    )
    logger.info("Sentry initialized.")
else:
    logger.warning("Sentry DSN not found or is a placeholder. Sentry will not be initialized.")


# --- Middleware Definitions ---

class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: StarletteRequest, call_next: RequestResponseCall) -> StarletteResponse:
        request_id = uuid.uuid4().hex
        request.state.request_id = request_id

        user_id_for_log = "anonymous"
        try:
            token_creds = await HTTPBearer(auto_error=False)(request)
            if token_creds and token_creds.credentials:
                payload = jwt.decode(token_creds.credentials, SECRET_KEY, algorithms=[ALGORITHM])
                user_id_for_log = payload.get("user_id") or payload.get("sub")
        except JWTError:
            pass  # Token is invalid or expired. Fine for logging.

        request.state.user_id = user_id_for_log

        # Left set on exit: the unhandled error handler logs from this same task after dispatch unwinds
        request_id_var.set(request_id)
        user_id_var.set(user_id_for_log)

        response = await call_next(request)

        response.headers['X-Request-ID'] = request_id
        return response

class ResponseTimeLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: StarletteRequest, call_next: RequestResponseCall) -> StarletteResponse:
        start_time = time.time()
        response = await call_next(request)
        process_time_ms = (time.time() - start_time) * 1000

        # request_id and user_id come from the context set by RequestIdMiddleware.
        log_details = {
            "path": request.url.path,
            "method": request.method,
            "status_code": response.status_code,
            "response_time_ms": round(process_time_ms, 2)
        }
        logger.info("Request processed", extra=log_details)
        return response

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: StarletteRequest, call_next: RequestResponseCall) -> StarletteResponse:
        response = await call_next(request)
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['Content-Security-Policy'] = "default-src 'self'; object-src 'none'; frame-ancestors 'none';"
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response

class RateLimitHeaderMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: StarletteRequest, call_next: RequestResponseCall) -> StarletteResponse:
        response = await call_next(request)

        limiter_instance: Limiter = request.app.state.limiter
        # Set on the request state by the limiter's key function, only for rate limited routes
        key = getattr(request.state, 'rate_limit_key', None)
        if not key or not limiter_instance.enabled:
            return response

        # The remaining count is not exposed without hitting the limit, so only the ceiling is reported
        limit_list = parse_many(get_dynamic_rate_limit(key))
        if limit_list:
            response.headers["X-RateLimit-Limit"] = str(limit_list[0].amount)
        return response


# --- Exception Handlers ---
# Every error leaves the API as {"message": ...}

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )

def _describe_validation_error(error: dict) -> dict:
    field = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path"))
    message = error.get("msg", "Invalid value")
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return {"field": field, "message": message}

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [_describe_validation_error(error) for error in exc.errors()]
    first = errors[0] if errors else {"field": "", "message": "Invalid request"}
    message = f"{first['field']}: {first['message']}" if first["field"] else first["message"]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": message, "errors": errors},
    )

async def custom_rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Custom handler to add rate limit headers to 429 responses."""
    response = JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"message": "Too many requests, please try again later."}
    )
    limit_item = exc.limit.limit
    response.headers["X-RateLimit-Limit"] = str(limit_item.amount)
    response.headers["X-RateLimit-Remaining"] = "0"
    response.headers["Retry-After"] = str(limit_item.get_expiry())
    return response

async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Something went wrong!"}
    )


# --- Application Events ---

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    if ENVIRONMENT == "production":
        config.validate_configuration()
    create_db_and_tables()
    logger.info("Database tables checked/created.")
    yield
    logger.info("Application shutting down.")


app = FastAPI(
    lifespan=lifespan,
    title="Media Gallery API",
    description="An API for uploading, organising, sharing and downloading photos.",
    version="1.0.0"
)

# --- Serve uploads in local storage mode ---
# Files live under UPLOAD_DIR and are addressed as /uploads/<storage key>.
if STORAGE_TYPE == "local":
    Path(UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
    app.mount(LOCAL_URL_BASE, StaticFiles(directory=UPLOAD_DIR, check_dir=False), name="uploads")


# Add Rate Limiter state and exception handlers
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, custom_rate_limit_exceeded_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# Add Middlewares (the last one added is the outermost)
app.add_middleware(RateLimitHeaderMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ResponseTimeLoggingMiddleware)
# Outermost, so the request id is on every record logged while handling the request
app.add_middleware(RequestIdMiddleware)


# --- Include Routers ---
app.include_router(auth_router.router, tags=["Authentication"])
app.include_router(users_router.router, tags=["Users"])
app.include_router(health_router.router, tags=["Health"])
app.include_router(media_router.router, tags=["Media"])
app.include_router(galleries_router.router, tags=["Galleries"])
app.include_router(contact_router.router, tags=["Contact"])


# --- Root Endpoint ---
@app.get("/", tags=["Root"])
async def root():
    """A simple root endpoint to confirm the API is running."""
    return {"message": "Media Gallery API is running."}
