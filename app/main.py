"""
Live Chat Relay - Main FastAPI Application
Relays YouTube Live Chat to browsers through a shared response cache so
many polling clients cost one upstream call per polling window.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse

from app import youtube_client
from app.cache import CacheService, RequestKind, cache_key, fingerprint
from app.schemas import (
    ConnectRequest,
    ConnectResponse,
    ErrorResponse,
    MessagesRequest,
    MessagesResponse,
)
from app.view_models import messages_to_view_models
from app.youtube_client import YouTubeAPIError
from config.settings import settings

logger = logging.getLogger("main")

# Version tracking
APP_VERSION = "v0.1.0"
APP_NAME = "Live Chat Relay"

# Error bodies share one shape whatever the status
ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in (400, 403, 404, 500, 502)
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.cache = CacheService.from_settings(settings)
    await app.state.cache.verify_durable_tier()
    logger.info(f"Cache ready (durable tier: {app.state.cache.durable_state.value})")
    try:
        yield
    finally:
        await app.state.cache.close()


app = FastAPI(
    title=APP_NAME,
    description="YouTube Live Chat relay with shared, coalesced polling",
    version=APP_VERSION,
    lifespan=lifespan,
)


def get_cache_service(request: Request) -> CacheService:
    """Dependency returning the cache service built at startup."""
    return request.app.state.cache


def _error(code: str, message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(code=code, message=message).model_dump(),
    )


def _resolve_api_key(user_key: Optional[str]) -> Optional[str]:
    """Bring-your-own key wins over the server key."""
    return user_key or settings.youtube_api_key


@app.get("/health")
def health_check(cache: CacheService = Depends(get_cache_service)):
    """Health check endpoint."""
    return {"status": "ok", "cache": cache.durable_state.value}


@app.get("/version")
def version_info():
    """Version information endpoint."""
    return {"name": APP_NAME, "version": APP_VERSION}


@app.get("/cache/stats")
def cache_stats(cache: CacheService = Depends(get_cache_service)):
    """Get cache statistics."""
    return cache.get_stats()


@app.post("/api/youtube/connect", response_model=ConnectResponse, responses=ERROR_RESPONSES)
async def connect(
    body: ConnectRequest,
    cache: CacheService = Depends(get_cache_service),
    x_youtube_api_key: Optional[str] = Header(default=None),
):
    """
    Validate a stream and return its live chat ID.

    Accepts a bare video ID or any supported YouTube URL. Lookups are
    cached per video and per credential.
    """
    api_key = _resolve_api_key(x_youtube_api_key)
    if not api_key:
        return _error("MISSING_API_KEY", "YouTube API key not configured", 500)

    video_id = youtube_client.extract_video_id(body.videoId or body.url or "")
    if not video_id:
        return _error("INVALID_VIDEO_ID", "Video ID is required", 400)

    key = cache_key(RequestKind.CONNECT, video_id, fingerprint(x_youtube_api_key))
    try:
        result = await cache.get_or_fetch(
            key,
            lambda: youtube_client.fetch_video_details(video_id, api_key),
        )
    except YouTubeAPIError as e:
        return _error(e.code, e.message, e.status_code)
    except Exception as e:
        logger.error(f"Connect failed for video {video_id}: {e}", exc_info=True)
        return _error("INTERNAL_ERROR", str(e) or "Internal server error", 500)

    return {"status": "success", "data": result.value, "cache": result.to_dict()}


@app.post("/api/youtube/messages", response_model=MessagesResponse, responses=ERROR_RESPONSES)
async def messages(
    body: MessagesRequest,
    cache: CacheService = Depends(get_cache_service),
    x_youtube_api_key: Optional[str] = Header(default=None),
):
    """
    Get the latest page of chat messages for a live chat.

    Every client polling the same chat (with the same credential) shares
    one upstream cursor; a client-sent ``pageToken`` is ignored.
    """
    api_key = _resolve_api_key(x_youtube_api_key)
    if not api_key:
        return _error("MISSING_API_KEY", "YouTube API key not configured", 500)

    live_chat_id = (body.liveChatId or "").strip()
    if not live_chat_id:
        return _error("INVALID_CHAT_ID", "Live chat ID is required", 400)

    key = cache_key(RequestKind.MESSAGES, live_chat_id, fingerprint(x_youtube_api_key))
    fetch = youtube_client.make_messages_fetcher(cache, key, live_chat_id, api_key)
    try:
        result = await cache.get_or_fetch(key, fetch, stale_while_revalidate=True)
    except YouTubeAPIError as e:
        return _error(e.code, e.message, e.status_code)
    except Exception as e:
        logger.error(f"Messages failed for chat {live_chat_id}: {e}", exc_info=True)
        return _error("INTERNAL_ERROR", str(e) or "Internal server error", 500)

    page = result.value
    return {
        "status": "success",
        "data": {
            "items": messages_to_view_models(page.get("items", [])),
            "pollingIntervalMillis": page.get("pollingIntervalMillis"),
            "offlineAt": page.get("offlineAt"),
        },
        "cache": result.to_dict(),
    }
