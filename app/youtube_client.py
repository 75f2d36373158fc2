"""
Live API client for the YouTube Data API v3.

Each fetch function is a cache fetch adapter: it performs one upstream
call and returns the value together with how long it may be cached.
"""
import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, urlparse

import requests
from dotenv import load_dotenv
from fastapi.concurrency import run_in_threadpool

from app.cache import CacheService, FetchResult
from config.settings import settings

load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("youtube_client")

VIDEO_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{11}$")
_PATH_ID_PATTERN = re.compile(r"/(?:live|embed|shorts)/([a-zA-Z0-9_-]{11})")

MAX_RESULTS = 200


class YouTubeAPIError(Exception):
    """An upstream call failed or returned something we cannot serve."""

    def __init__(self, code: str, message: str, status_code: int = 502):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code


def extract_video_id(text: str) -> Optional[str]:
    """
    Extract a video ID from a bare ID or a YouTube URL.

    Supports: youtube.com/watch?v=, youtu.be/, youtube.com/live/,
    youtube.com/embed/ and youtube.com/shorts/.
    """
    text = (text or "").strip()
    if VIDEO_ID_PATTERN.match(text):
        return text

    url = urlparse(text)
    host = (url.hostname or "").lower()

    if host == "youtu.be":
        candidate = url.path.lstrip("/").split("/")[0]
        return candidate if VIDEO_ID_PATTERN.match(candidate) else None

    if host == "youtube.com" or host.endswith(".youtube.com"):
        v_param = parse_qs(url.query).get("v")
        if v_param and VIDEO_ID_PATTERN.match(v_param[0]):
            return v_param[0]
        match = _PATH_ID_PATTERN.search(url.path)
        if match:
            return match.group(1)

    return None


def _get(endpoint: str, params: Dict[str, Any], api_key: str) -> dict:
    """Blocking GET against the Data API; raises YouTubeAPIError on failure."""
    try:
        response = requests.get(
            f"{settings.youtube_api_base_url}/{endpoint}",
            params={**params, "key": api_key},
            timeout=settings.request_timeout_seconds,
        )
    except requests.RequestException as e:
        logger.warning(f"YouTube request to {endpoint} failed: {e}")
        raise YouTubeAPIError("YOUTUBE_API_ERROR", f"Failed to reach YouTube: {e}") from e

    if not response.ok:
        try:
            message = response.json().get("error", {}).get("message")
        except ValueError:
            message = None
        logger.warning(f"YouTube {endpoint} returned {response.status_code}: {message}")
        raise YouTubeAPIError(
            "YOUTUBE_API_ERROR",
            message or f"YouTube request to {endpoint} failed",
            status_code=response.status_code,
        )

    return response.json()


def _parse_video(video_id: str, data: dict) -> Dict[str, Any]:
    """Turn a videos.list response into the stream info we serve."""
    items = data.get("items") or []
    if not items:
        raise YouTubeAPIError("VIDEO_NOT_FOUND", "Video not found", status_code=404)

    video = items[0]
    snippet = video.get("snippet") or {}
    details = video.get("liveStreamingDetails") or {}
    channel_id = snippet.get("channelId")

    if settings.allowed_channel_id and channel_id != settings.allowed_channel_id:
        raise YouTubeAPIError(
            "CHANNEL_NOT_ALLOWED",
            "Only streams from the authorized channel are allowed",
            status_code=403,
        )

    live_chat_id = details.get("activeLiveChatId")
    if not live_chat_id:
        raise YouTubeAPIError(
            "NO_LIVE_CHAT",
            "This video does not have an active live chat",
            status_code=400,
        )

    return {
        "liveChatId": live_chat_id,
        "videoId": video_id,
        "channelId": channel_id,
        "channelTitle": snippet.get("channelTitle"),
        "title": snippet.get("title"),
        "thumbnailUrl": ((snippet.get("thumbnails") or {}).get("high") or {}).get("url"),
        "concurrentViewers": details.get("concurrentViewers"),
        "actualStartTime": details.get("actualStartTime"),
    }


async def fetch_video_details(video_id: str, api_key: str) -> FetchResult:
    """
    Look up a video's active live chat.

    Raises:
        YouTubeAPIError: Video missing, not allowed, not live, or upstream failure
    """
    params = {"part": "snippet,liveStreamingDetails", "id": video_id}
    data = await run_in_threadpool(_get, "videos", params, api_key)
    return FetchResult(
        value=_parse_video(video_id, data),
        ttl_ms=settings.connect_ttl_seconds * 1000,
    )


def _polling_ttl_ms(polling_interval_ms: Optional[int]) -> int:
    """Cache chat pages for YouTube's requested polling interval, within bounds."""
    if not isinstance(polling_interval_ms, int):
        return settings.min_poll_interval_ms
    return max(settings.min_poll_interval_ms, min(polling_interval_ms, settings.max_poll_interval_ms))


async def fetch_chat_messages(
    live_chat_id: str,
    api_key: str,
    page_token: Optional[str] = None,
) -> FetchResult:
    """
    Fetch one page of live chat messages.

    Args:
        live_chat_id: Chat to read
        api_key: Credential used for the call
        page_token: Cursor from the previous page, if any

    Returns:
        FetchResult whose continuation token is the next page's cursor
    """
    params = {
        "part": "snippet,authorDetails",
        "liveChatId": live_chat_id,
        "maxResults": MAX_RESULTS,
    }
    if page_token:
        params["pageToken"] = page_token

    data = await run_in_threadpool(_get, "liveChat/messages", params, api_key)
    polling_interval = data.get("pollingIntervalMillis")

    return FetchResult(
        value={
            "items": data.get("items") or [],
            "pollingIntervalMillis": polling_interval,
            "offlineAt": data.get("offlineAt"),
        },
        ttl_ms=_polling_ttl_ms(polling_interval),
        continuation_token=data.get("nextPageToken"),
    )


def make_messages_fetcher(
    cache: CacheService,
    cache_key: str,
    live_chat_id: str,
    api_key: str,
):
    """
    Build the fetch adapter for a chat's next page.

    The cursor lives in the cache next to the last page, so every client
    polling the same chat advances one shared cursor.
    """

    async def fetch() -> FetchResult:
        page_token = await cache.get_stored_continuation_token(cache_key)
        logger.debug(f"Fetching chat {live_chat_id} (pageToken={'set' if page_token else 'none'})")
        return await fetch_chat_messages(live_chat_id, api_key, page_token)

    return fetch
