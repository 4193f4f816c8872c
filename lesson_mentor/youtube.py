from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
from cachetools import TTLCache
from youtube_transcript_api import YouTubeTranscriptApi

from lesson_mentor.config import env
from lesson_mentor.errors import ConfigError, UpstreamServiceError
from lesson_mentor.schemas import VideoData

logger = logging.getLogger(__name__)

API_BASE = "https://www.googleapis.com/youtube/v3"
TRANSCRIPT_LANGUAGES = ["en", "en-US", "en-GB"]

# Only embeddable videos are cached; a failed check is retried on the next request.
_available: TTLCache[str, VideoData] = TTLCache(maxsize=2_000, ttl=15 * 60)


def _api_key() -> str:
    key = env("YOUTUBE_API_KEY")
    if not key:
        raise ConfigError("YOUTUBE_API_KEY is not set.")
    return key


def clear_cache() -> None:
    _available.clear()


def _to_video_data(item: dict[str, Any]) -> VideoData | None:
    status = item.get("status") or {}
    details = item.get("contentDetails") or {}
    if (
        status.get("privacyStatus") != "public"
        or status.get("embeddable") is not True
        or status.get("uploadStatus") != "processed"
        or details.get("regionRestriction")
    ):
        return None

    snippet = item.get("snippet") or {}
    thumbs = snippet.get("thumbnails") or {}
    thumb = (thumbs.get("high") or {}).get("url") or (thumbs.get("default") or {}).get("url") or ""
    video_id = item.get("id")
    if not isinstance(video_id, str) or not video_id:
        return None
    return VideoData(videoId=video_id, title=snippet.get("title") or "", thumbnailUrl=thumb)


async def check_video_availability(video_id: str) -> VideoData | None:
    """
    Returns metadata for a public, embeddable, processed, unrestricted video; otherwise None.
    Nonexistence, privacy, embedding, processing and region problems are all reported the same way.
    """
    cached = _available.get(video_id)
    if cached is not None:
        return cached

    key = _api_key()
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            r = await client.get(
                f"{API_BASE}/videos",
                params={"part": "snippet,status,contentDetails", "id": video_id, "key": key},
            )
    except httpx.HTTPError as e:
        logger.error("Video check ERROR for %s: %s", video_id, e)
        return None

    if r.status_code >= 400:
        logger.info("YouTube API check failed for %s: %s", video_id, r.status_code)
        return None

    try:
        items = r.json().get("items") or []
    except (ValueError, AttributeError) as e:
        logger.error("Video check got an unreadable response for %s: %s", video_id, e)
        return None
    if not isinstance(items, list) or not items or not isinstance(items[0], dict):
        logger.info("Video check FAILED for %s: video does not exist", video_id)
        return None

    video = _to_video_data(items[0])
    if video is None:
        logger.info("Video check FAILED for %s: not embeddable or private/restricted", video_id)
        return None

    logger.info("Video check SUCCESS for %s", video_id)
    _available[video_id] = video
    return video


async def search_videos(query: str, *, max_results: int = 5) -> list[str]:
    key = _api_key()
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            r = await client.get(
                f"{API_BASE}/search",
                params={"part": "snippet", "q": query, "type": "video", "maxResults": max_results, "key": key},
            )
    except httpx.HTTPError as e:
        raise UpstreamServiceError(f"YouTube search failed: {e}", service="youtube") from e
    if r.status_code >= 400:
        raise UpstreamServiceError("YouTube Search API failed", service="youtube", status_code=r.status_code)

    ids: list[str] = []
    for item in r.json().get("items") or []:
        vid = (item.get("id") or {}).get("videoId")
        if vid:
            ids.append(vid)
    return ids


def _fetch_transcript_sync(video_id: str) -> list[str]:
    fetched = YouTubeTranscriptApi().fetch(video_id, languages=TRANSCRIPT_LANGUAGES)
    return [snippet.text for snippet in fetched if snippet.text]


async def fetch_transcript(video_id: str) -> list[str] | None:
    """Ordered caption segments, or None when captions can't be retrieved."""
    try:
        segments = await asyncio.to_thread(_fetch_transcript_sync, video_id)
    except Exception as e:
        logger.warning("Error fetching transcript for %s: %s", video_id, e)
        return None
    return segments or None
