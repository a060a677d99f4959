"""
Calendar session broker: Google sign-in with server-side sessions and a
Calendar proxy for the SPA.

Creates the process-wide collaborators (DB engine, Google client, clock) once,
adds CORS, API request logging and panic recovery, maps error kinds to JSON
envelopes and mounts the routers under /api.
Run locally with `python main.py` or `uvicorn main:app` from this directory.
"""
import logging
import threading
from contextlib import asynccontextmanager
from datetime import datetime, UTC

from fastapi import APIRouter, FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import (
    ALLOW_ORIGINS,
    APP_MODE,
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    LOG_LEVEL,
    SERVER_PORT,
    SESSION_SWEEP_INTERVAL,
    SKIP_DB_INIT,
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

from database import Base, SessionLocal, engine
from errors import ApiError
from responses import fail
from services.google_client import GoogleClient
from session_store import run_sweeper
from sessions import logout_cookie, set_cookie
from auth import router as auth_router
from events import router as events_router
from users import router as users_router

# Create the sessions table if not skipping (production provisions it separately)
if not SKIP_DB_INIT:
    Base.metadata.create_all(bind=engine)


def utcnow() -> datetime:
    return datetime.now(UTC)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting in %s mode, allowed origins: %s", APP_MODE, ", ".join(ALLOW_ORIGINS))
    stop = threading.Event()
    if SESSION_SWEEP_INTERVAL > 0:
        threading.Thread(
            target=run_sweeper,
            args=(stop, SESSION_SWEEP_INTERVAL, SessionLocal, utcnow),
            name="session-sweeper",
            daemon=True,
        ).start()
    yield
    stop.set()
    app.state.google_client.close()


app = FastAPI(
    title="Calendar Session Broker",
    description="Google OAuth sessions for the SPA and a proxy to the user's Google Calendar.",
    lifespan=lifespan,
)
app.state.clock = utcnow
app.state.google_client = GoogleClient(GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET)


@app.middleware("http")
async def recover_from_panics(request: Request, call_next):
    """Any exception no handler claimed becomes a generic 500. Never leak stack traces."""
    try:
        return await call_next(request)
    except Exception:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=fail({"error": "Internal server error"}))


@app.middleware("http")
async def log_api_requests(request: Request, call_next):
    if request.url.path.startswith("/api"):
        logger.info("Request API for method: %s, url: %s", request.method, request.url.path)
    return await call_next(request)


# CORS: explicit origins, allow credentials (cookies). Never use "*" with cookies.
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Origin", "Content-Type", "Authorization", "Accept", "X-Requested-With", "Cookie"],
    expose_headers=["Content-Length", "Set-Cookie"],
    max_age=12 * 60 * 60,
)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    """Error kinds raised below the routers become failure envelopes."""
    logger.error(
        "%s %s failed: %s",
        request.method,
        request.url.path,
        exc.message,
        exc_info=exc.__cause__ or exc,
    )
    response = JSONResponse(status_code=exc.status_code, content=fail(exc.payload()))
    if exc.clear_cookie:
        set_cookie(response, logout_cookie())
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.error("Invalid request on %s %s: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=400, content=fail({"error": "Invalid request format"}))


@app.exception_handler(StarletteHTTPException)
async def not_found_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        logger.error("No route found for method: %s, url: %s", request.method, request.url.path)
        return JSONResponse(status_code=404, content={"error": "Not Found"})
    return await http_exception_handler(request, exc)


api = APIRouter(prefix="/api")


@api.get("/health/ping")
def ping():
    logger.info("ping success")
    return {"message": "pong"}


api.include_router(auth_router)
api.include_router(events_router)
api.include_router(users_router)
app.include_router(api)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=SERVER_PORT)
