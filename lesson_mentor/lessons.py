from __future__ import annotations

import logging

from lesson_mentor import youtube
from lesson_mentor.catalog import checkpoints_for_video, get_topic_by_slug
from lesson_mentor.errors import LessonNotFoundError, LessonUnavailableError, UpstreamServiceError
from lesson_mentor.gemini_client import GeminiClient
from lesson_mentor.prompts import SEARCH_QUERY_PROMPT
from lesson_mentor.schemas import LessonPayload, LessonSource

logger = logging.getLogger(__name__)


async def suggest_search_query(gemini: GeminiClient, topic_slug: str) -> str:
    fallback = f"{topic_slug.replace('_', ' ')} tutorial"
    try:
        query = await gemini.generate_text(user=SEARCH_QUERY_PROMPT.format(topic=topic_slug))
    except UpstreamServiceError as e:
        logger.warning("Search query generation failed for %r, using fallback: %s", topic_slug, e)
        return fallback
    query = query.replace('"', "").strip()
    return query or fallback


async def resolve_lesson(gemini_factory, topic_slug: str) -> LessonPayload:
    """
    Curated topics return their configured video and checkpoints. Anything else is
    found by live search and returned with an empty checkpoint list; checkpoints are
    generated separately so the video can start right away.

    `gemini_factory` is only called on the search path, so curated lessons work
    without model credentials.
    """
    topic = get_topic_by_slug(topic_slug)
    if topic is not None:
        logger.info("Found curated topic for %r: %s (%s)", topic_slug, topic.title, topic.youtube_video_id)
        video = await youtube.check_video_availability(topic.youtube_video_id)
        if video is None:
            logger.error("Curated video %s for %r is unavailable", topic.youtube_video_id, topic_slug)
            raise LessonUnavailableError("Preferred video for this topic is currently unavailable.")
        return LessonPayload(
            videoData=video,
            checkpoints=checkpoints_for_video(video.videoId),
            source=LessonSource.curated,
        )

    logger.info("No curated topic for %r; falling back to dynamic search", topic_slug)
    query = await suggest_search_query(gemini_factory(), topic_slug)
    logger.info("Search query for %r: %r", topic_slug, query)

    video_ids = await youtube.search_videos(query)
    if not video_ids:
        raise LessonNotFoundError(f'Sorry, I couldn\'t find any videos for "{topic_slug}".')

    for video_id in video_ids:
        video = await youtube.check_video_availability(video_id)
        if video is not None:
            logger.info("Found dynamic video: %s", video.title)
            return LessonPayload(videoData=video, checkpoints=[], source=LessonSource.dynamic_search)

    raise LessonNotFoundError(
        f'Sorry, I found videos for "{topic_slug}", but none seem to be available for embedding.'
    )
