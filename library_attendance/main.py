# library_attendance/main.py
"""
FastAPI application entry point.
Includes security middleware, global error handlers, all routers, and the
startup wiring of the session store, change feed and overdue monitor.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from library_attendance.routers import sessions, occupancy, settings as settings_router, sync, patrons, health
from library_attendance.context import build_context
from library_attendance.config import settings
from library_attendance.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="Library Attendance API",
    description="Patron check-in/check-out, occupancy and overdue monitoring.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (desk consoles call the API from the browser) ──────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # Restrict to console origin in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional lightweight API key auth.
    Set API_KEY in .env. Leave empty to disable auth.
    """
    async def dispatch(self, request: Request, call_next):
        open_paths = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}
        if request.url.path in open_paths or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(sessions.router,        prefix="/api/v1", tags=["Check-in / Check-out"])
app.include_router(occupancy.router,       prefix="/api/v1", tags=["Occupancy"])
app.include_router(patrons.router,         prefix="/api/v1", tags=["Patrons"])
app.include_router(settings_router.router, prefix="/api/v1", tags=["Settings"])
app.include_router(sync.router,            prefix="/api/v1", tags=["Sync"])
app.include_router(health.router,          prefix="/api/v1", tags=["Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 Library Attendance backend starting up...")
    if getattr(app.state, "context", None) is None:
        app.state.context = build_context()
    ctx = app.state.context
    await ctx.startup()
    mode = "offline (demo)" if ctx.demo_mode else "connected"
    logger.info(f"🗄  Store mode: {mode} — {len(ctx.store.patrons)} patrons, "
                f"{len(ctx.store.active_sessions)} active sessions")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_HOST}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 Library Attendance backend shutting down...")
    ctx = getattr(app.state, "context", None)
    if ctx is not None:
        await ctx.shutdown()
