import logging
import os
import subprocess
import uuid
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from vidhub.database import close_db, init_db
from vidhub.errors import InternalError, ServiceError, ValidationError
from vidhub.routes import comments, dashboard, identities, playlists, reactions, subscriptions, videos
from vidhub.utils.responses import api_error

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="VidHub API")


# Get build info
def get_build_info():
    """Get git commit hash or build timestamp"""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            cwd=os.path.dirname(os.path.dirname(__file__)),
            capture_output=True,
            text=True,
            timeout=2,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (OSError, subprocess.SubprocessError):
        pass

    # Fallback to build timestamp
    return datetime.now().strftime("%Y%m%d-%H%M%S")


BUILD_HASH = get_build_info()

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    _cors_origins.extend(o.strip() for o in _extra.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def correlation_id(request: Request, call_next):
    """Tag every request with an id that shows up in error logs and the response"""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ============================================================================
# Error envelopes
# ============================================================================


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "-")


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error("[%s] %s %s failed: %s", _request_id(request), request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=api_error(exc.status_code, exc.message, exc.errors))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    error = ValidationError("Invalid request", errors=jsonable_encoder(exc.errors()))
    return JSONResponse(status_code=error.status_code, content=api_error(error.status_code, error.message, error.errors))


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("[%s] Store failure on %s %s", _request_id(request), request.method, request.url.path)
    error = InternalError()
    return JSONResponse(status_code=error.status_code, content=api_error(error.status_code, error.message))


# ============================================================================
# Routers
# ============================================================================

API_PREFIX = "/api/v1"

app.include_router(identities.router, prefix=API_PREFIX, tags=["users"])
app.include_router(videos.router, prefix=API_PREFIX, tags=["videos"])
app.include_router(comments.router, prefix=API_PREFIX, tags=["comments"])
app.include_router(reactions.router, prefix=API_PREFIX, tags=["likes"])
app.include_router(playlists.router, prefix=API_PREFIX, tags=["playlists"])
app.include_router(subscriptions.router, prefix=API_PREFIX, tags=["subscriptions"])
app.include_router(dashboard.router, prefix=API_PREFIX, tags=["dashboard"])


@app.on_event("startup")
def on_startup():
    init_db()
    logger.info("VidHub API started (build %s, %d routes)", BUILD_HASH, len(app.routes))


@app.on_event("shutdown")
def on_shutdown():
    close_db()


@app.get("/api/health")
def health_check():
    """Diagnostic endpoint to verify which code is running"""
    return {"app_name": "VidHub API", "build_hash": BUILD_HASH, "status": "healthy"}
