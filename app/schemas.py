"""
Pydantic schemas for API request/response models
"""
from pydantic import BaseModel
from typing import Any, Dict, List, Optional


# ===== REQUEST SCHEMAS =====

class ConnectRequest(BaseModel):
    """Body of POST /api/youtube/connect: a video ID or any YouTube URL."""
    videoId: Optional[str] = None
    url: Optional[str] = None


class MessagesRequest(BaseModel):
    """
    Body of POST /api/youtube/messages.

    ``pageToken`` is accepted for compatibility with older clients but
    ignored: the server owns each chat's pagination cursor.
    """
    liveChatId: Optional[str] = None
    pageToken: Optional[str] = None


# ===== RESPONSE SCHEMAS =====

class CacheInfo(BaseModel):
    """Freshness metadata attached to cached responses."""
    fromCache: bool
    fetchedAt: int


class StreamInfo(BaseModel):
    """Live stream details returned by the connect endpoint."""
    liveChatId: str
    videoId: str
    channelId: Optional[str] = None
    channelTitle: Optional[str] = None
    title: Optional[str] = None
    thumbnailUrl: Optional[str] = None
    concurrentViewers: Optional[str] = None
    actualStartTime: Optional[str] = None


class ConnectResponse(BaseModel):
    status: str = "success"
    data: StreamInfo
    cache: CacheInfo


class MessagesPage(BaseModel):
    items: List[Dict[str, Any]]
    pollingIntervalMillis: Optional[int] = None
    offlineAt: Optional[str] = None


class MessagesResponse(BaseModel):
    status: str = "success"
    data: MessagesPage
    cache: CacheInfo


class ErrorResponse(BaseModel):
    status: str = "error"
    code: str
    message: str
