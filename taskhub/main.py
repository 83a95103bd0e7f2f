from contextlib import asynccontextmanager
import logging
import time
import uuid

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text

from .api.errors import register_exception_handlers
from .api.router import api_router
from .cache import MemoryCacheStore
from .config import settings
from .db import engine
from .logging_utils import setup_logging
from .notifications import LogNotifier
from .rate_limit import limiter, rate_limit_exceeded_handler
from .storage import LocalBlobStore


@asynccontextmanager
async def lifespan(app: FastAPI):
    """App startup/shutdown lifecycle. Schema is managed by Alembic (upgrade head)."""
    setup_logging(settings.LOG_LEVEL)
    logging.getLogger("taskhub").info(
        "starting storage_dir=%s cache_ttl=%s", settings.STORAGE_DIR, settings.TASK_LIST_CACHE_TTL
    )
    yield


tags_metadata = [
    {"name": "auth", "description": "Authentication: register, login, logout, current user."},
    {"name": "tasks", "description": "Task management: CRUD, filters, attachments."},
    {"name": "comments", "description": "Comments on tasks; the task owner is notified."},
]

app = FastAPI(
    title="Taskhub API",
    version="1.0.0",
    description=(
        "JSON API exposed under /api. "
        "Register or log in to obtain a Bearer token and access protected endpoints."
    ),
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

# Default collaborators; request handlers reach them through api.deps
app.state.cache = MemoryCacheStore()
app.state.blob_store = LocalBlobStore(settings.STORAGE_DIR)
app.state.notifier = LogNotifier()


@app.get("/health")
def health():
    """Simple healthcheck endpoint."""
    return {"status": "ok"}


app.include_router(api_router)

# Unified error handlers
register_exception_handlers(app)

# Rate limiting (global middleware + handler)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


# Request ID + access log middleware
@app.middleware("http")
async def request_id_and_logging(request: Request, call_next):
    start = time.perf_counter()
    incoming = request.headers.get(settings.REQUEST_ID_HEADER)
    req_id = incoming or uuid.uuid4().hex
    request.state.request_id = req_id
    response = await call_next(request)
    response.headers.setdefault(settings.REQUEST_ID_HEADER, req_id)
    duration_ms = int((time.perf_counter() - start) * 1000)
    logging.getLogger("taskhub.request").info(
        "method=%s path=%s status=%s duration_ms=%s request_id=%s",
        request.method,
        request.url.path,
        getattr(response, "status_code", "-"),
        duration_ms,
        req_id,
    )
    return response


# --- Security: CORS and security headers ---

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def security_headers(request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    if settings.SECURITY_ENABLE_HSTS:
        # 6 months + preload; adjust as needed in prod
        response.headers.setdefault("Strict-Transport-Security", "max-age=15552000; includeSubDomains; preload")
    return response


# --- Observability: liveness, readiness, metrics ---

@app.get("/live")
def live():
    return {"status": "live"}


@app.get("/ready")
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "ready"}
    except Exception as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="not ready") from exc


# Expose Prometheus metrics at /metrics
Instrumentator().instrument(app).expose(app, include_in_schema=False)
