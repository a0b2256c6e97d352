"""
============================================================================
FILE: main.py
LOCATION: api/main.py
============================================================================

PURPOSE:
    FastAPI application for SemNotes. Wires the routers, rate limiting,
    CORS and the domain exception handler.

ROLE IN PROJECT:
    Entry point for the backend used by the Streamlit UI.
    Run with: uvicorn api.main:app --reload --port 8000

KEY COMPONENTS:
    - app: FastAPI instance
    - semnotes_error_handler: maps SemNotesError to {"detail": message}
    - health_check: backend, bucket and cache status

DEPENDENCIES:
    - External: fastapi, slowapi
    - Internal: routers/, limiter.py, errors.py, cache.py, storage.py
============================================================================
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from api import config
from api.cache import stats_cache
from api.errors import SemNotesError
from api.limiter import limiter
from api.logging_config import get_logger
from api.routers import admin_router, engagement_router, notes_router, profile_router, subjects_router
from api.storage import StorageService

logger = get_logger("main")

app = FastAPI(
    title="SemNotes",
    description="Semester notes sharing for students, with admin moderation",
    version="1.0.0",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(profile_router)
app.include_router(subjects_router)
app.include_router(notes_router)
app.include_router(engagement_router)
app.include_router(admin_router)


@app.exception_handler(SemNotesError)
async def semnotes_error_handler(request: Request, exc: SemNotesError):
    logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/")
def root():
    return {"message": "SemNotes API"}


@app.get("/health", tags=["health"])
def health_check():
    return {
        "status": "healthy",
        "backend": "mock" if config.USE_MOCK_DB else "firebase",
        "notes_bucket": StorageService().ensure_notes_bucket(),
        "cache": stats_cache.is_available(),
    }
