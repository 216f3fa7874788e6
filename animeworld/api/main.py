"""
AnimeWorld HTTP API
===================
FastAPI application serving the user-record API and the catalog,
schedule and image-recognition endpoints used by the front-end.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from functools import lru_cache
from typing import Optional
import logging

from fastapi import Depends, FastAPI, File, Header, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from animeworld.adapters.anilist_adapter import AniListAdapter
from animeworld.adapters.filter_query import FilterState, filter_options
from animeworld.adapters.recognition import RecognitionClient
from animeworld.config import settings
from animeworld.database.db_connector import UserStore
from animeworld.exceptions import (
    FetchError,
    ImageValidationError,
    MediaNotResolvedError,
    UserStoreError,
)
from animeworld.models import ImageUpload, MediaType, RecognitionResult, UserCreateRequest, UserRecord
from animeworld.transform.demo_data import (
    extract_seasons,
    extract_volumes,
    fallback_schedule,
    simulate_chapters,
    simulate_episodes,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Dependencies
# ============================================================================

@lru_cache()
def get_user_store() -> UserStore:
    return UserStore(settings.USER_DB_PATH)


@lru_cache()
def get_catalog() -> AniListAdapter:
    return AniListAdapter()


@lru_cache()
def get_recognition_client() -> RecognitionClient:
    return RecognitionClient(catalog=get_catalog())


def get_require_admin() -> bool:
    return settings.REQUIRE_ADMIN_FOR_USER_LIST


def error_response(status_code: int, error: str, details: Optional[str] = None, **extra) -> JSONResponse:
    content = {"error": error}
    if details is not None:
        content["details"] = details
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def user_json(record: UserRecord) -> dict:
    return record.model_dump(mode="json", by_alias=True)


# ============================================================================
# FastAPI App
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{settings.API_TITLE} {settings.API_VERSION} starting")
    yield
    if get_user_store.cache_info().currsize:
        get_user_store().close()
    logger.info(f"{settings.API_TITLE} stopped")


app = FastAPI(
    title=settings.API_TITLE,
    description="Anime and manga discovery: catalog queries, image recognition and user records",
    version=settings.API_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(UserStoreError)
async def user_store_error_handler(request: Request, exc: UserStoreError):
    logger.error(f"Store failure on {request.method} {request.url.path}: {exc}")
    return error_response(500, "Internal server error", str(exc))


@app.exception_handler(FetchError)
async def fetch_error_handler(request: Request, exc: FetchError):
    logger.error(f"Upstream failure on {request.method} {request.url.path}: {exc}")
    return error_response(
        502,
        "Upstream service unavailable. Please try again.",
        str(exc),
        retryable=exc.retryable,
    )


@app.exception_handler(ImageValidationError)
async def image_validation_handler(request: Request, exc: ImageValidationError):
    return error_response(400, exc.message, reason=exc.reason)


@app.exception_handler(MediaNotResolvedError)
async def media_not_resolved_handler(request: Request, exc: MediaNotResolvedError):
    return error_response(404, "Media not found", str(exc))


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return error_response(400, str(exc))


# ============================================================================
# User records
# ============================================================================

@app.post("/api/users")
def register_user(payload: UserCreateRequest, store: UserStore = Depends(get_user_store)):
    """
    Register a sign-in.

    Creates the record on first sign-in (201); afterwards only lastLogin is
    refreshed (200). A matching email counts as the same user.
    """
    if not payload.external_id:
        return error_response(400, "User ID (externalId) is required")

    record, created = store.create_or_touch(payload)

    if created:
        return JSONResponse(
            status_code=201,
            content={"message": "User saved successfully", "status": "created", "user": user_json(record)},
        )
    return JSONResponse(
        status_code=200,
        content={"message": "User login updated", "status": "updated", "user": user_json(record)},
    )


@app.get("/api/users")
def list_users(
    store: UserStore = Depends(get_user_store),
    require_admin: bool = Depends(get_require_admin),
    x_user_id: Optional[str] = Header(None),
):
    """All user records, newest first."""
    if require_admin:
        caller = store.get_user(x_user_id) if x_user_id else None
        if caller is None or caller.role != settings.ADMIN_ROLE:
            return error_response(403, "Admin access required")

    users = store.list_users()
    logger.info(f"Found {len(users)} users")
    return [user_json(user) for user in users]


@app.get("/api/users/{external_id}")
def get_user(external_id: str, store: UserStore = Depends(get_user_store)):
    user = store.get_user(external_id)
    if user is None:
        return error_response(404, "User not found")
    return user_json(user)


@app.get("/api/health")
def health_check(store: UserStore = Depends(get_user_store)):
    """Health check endpoint"""
    db_status = "Connected" if store.ping() else "Disconnected"
    logger.debug(f"Health check - Database: {db_status}")
    return {
        "status": "Server is running",
        "timestamp": datetime.now().isoformat(),
        "database": db_status,
        "databaseName": store.database_name,
    }


# ============================================================================
# Catalog
# ============================================================================

@app.get("/api/media/trending")
def trending(
    kind: MediaType = Query(MediaType.ANIME),
    limit: int = Query(settings.TRENDING_WINDOW_SIZE, ge=1, le=settings.ANILIST_MAX_PAGE_SIZE),
    catalog: AniListAdapter = Depends(get_catalog),
):
    return catalog.fetch_trending(kind, limit)


@app.get("/api/media/search")
def search(
    q: str = Query(""),
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.SEARCH_PAGE_SIZE, ge=1, le=settings.ANILIST_MAX_PAGE_SIZE),
    kind: Optional[MediaType] = Query(None),
    catalog: AniListAdapter = Depends(get_catalog),
):
    return catalog.search(q, page=page, page_size=per_page, kind=kind)


@app.get("/api/media/filter/options")
def media_filter_options():
    return filter_options()


@app.post("/api/media/filter")
def filter_media(state: FilterState, catalog: AniListAdapter = Depends(get_catalog)):
    """Run the genre / status / year / type filter. Unknown values are a 400."""
    return catalog.fetch_filtered(state)


@app.get("/api/media/upcoming")
def upcoming(
    per_page: int = Query(settings.UPCOMING_PAGE_SIZE, ge=1, le=settings.ANILIST_MAX_PAGE_SIZE),
    catalog: AniListAdapter = Depends(get_catalog),
):
    return catalog.fetch_upcoming(per_page)


@app.get("/api/media/recent")
def recent(
    kind: MediaType = Query(MediaType.ANIME),
    per_page: int = Query(settings.RECENT_PAGE_SIZE, ge=1, le=settings.ANILIST_MAX_PAGE_SIZE),
    catalog: AniListAdapter = Depends(get_catalog),
):
    return catalog.fetch_recent(kind, per_page)


@app.get("/api/media/{media_id}")
def media_detail(media_id: int, catalog: AniListAdapter = Depends(get_catalog)):
    detail = catalog.fetch_by_id(media_id)
    if detail is None:
        return error_response(404, "Media not found")
    return detail


@app.get("/api/media/{media_id}/recommendations")
def recommendations(
    media_id: int,
    limit: int = Query(settings.RECOMMENDATIONS_LIMIT, ge=1, le=settings.ANILIST_MAX_PAGE_SIZE),
    catalog: AniListAdapter = Depends(get_catalog),
):
    return catalog.fetch_recommendations(media_id, limit)


@app.get("/api/media/{media_id}/episodes")
def episodes(media_id: int, catalog: AniListAdapter = Depends(get_catalog)):
    """Seasons plus a simulated per-episode listing (the catalog has none)."""
    detail = catalog.fetch_by_id(media_id)
    if detail is None:
        return error_response(404, "Media not found")
    return {
        "media_id": media_id,
        "seasons": extract_seasons(detail),
        "episodes": simulate_episodes(detail),
        "simulated": True,
    }


@app.get("/api/media/{media_id}/chapters")
def chapters(media_id: int, catalog: AniListAdapter = Depends(get_catalog)):
    """Volumes plus a simulated per-chapter listing (the catalog has none)."""
    detail = catalog.fetch_by_id(media_id)
    if detail is None:
        return error_response(404, "Media not found")
    return {
        "media_id": media_id,
        "volumes": extract_volumes(detail),
        "chapters": simulate_chapters(detail),
        "simulated": True,
    }


@app.get("/api/schedule")
def schedule(
    days: int = Query(settings.SCHEDULE_DAYS_AHEAD, ge=1, le=14),
    catalog: AniListAdapter = Depends(get_catalog),
):
    """Airing schedule; a simulated one when AniList cannot be reached."""
    try:
        return catalog.fetch_schedule(days_ahead=days)
    except FetchError as e:
        logger.warning(f"Schedule unavailable ({e}); serving simulated schedule")
        return fallback_schedule(days_ahead=days)


# ============================================================================
# Image recognition
# ============================================================================

@app.post("/api/analyze")
def analyze(
    file: UploadFile = File(...),
    client: RecognitionClient = Depends(get_recognition_client),
):
    """Identify the anime / manga an uploaded image comes from."""
    # One byte past the ceiling is enough to detect an oversized upload
    data = file.file.read(settings.RECOGNITION_MAX_BYTES + 1)
    upload = ImageUpload(
        filename=file.filename or "upload",
        content_type=file.content_type or "",
        data=data,
    )
    return client.analyze(upload)


@app.post("/api/analyze/resolve")
def resolve(result: RecognitionResult, client: RecognitionClient = Depends(get_recognition_client)):
    """Catalog id for a recognition result, looked up by title when missing."""
    media_id = client.resolve_media_id(result)
    return {"media_id": media_id, "media_kind": result.media_kind}
