from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from lesson_mentor.errors import LessonResolutionError, MalformedResponseError, UpstreamServiceError
from lesson_mentor.schemas import (
    ChatMessage,
    ChatTurnResponse,
    Checkpoint,
    CheckpointType,
    GenerateCheckpointsResponse,
    GradeResponse,
    LessonPayload,
)

logger = logging.getLogger(__name__)


def _error_detail(r: httpx.Response) -> str:
    try:
        body = r.json()
    except ValueError:
        return r.text
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("error") or body)
    return str(body)


class MentorApiClient:
    """
    Client-side access to the mentor HTTP API; implements the collaborators the
    LessonOrchestrator needs (lesson lookup, checkpoint generation, grading).
    """

    def __init__(self, base_url: str, *, http: httpx.AsyncClient | None = None, timeout: float = 60) -> None:
        self._http = http or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def chat_turn(self, history: list[ChatMessage], message: str) -> ChatTurnResponse:
        try:
            r = await self._http.post(
                "/api/gemini",
                json={"history": [m.model_dump() for m in history], "message": message},
            )
        except httpx.HTTPError as e:
            raise UpstreamServiceError(f"Chat request failed: {e}", service="mentor-api") from e
        if r.status_code >= 400:
            raise UpstreamServiceError(_error_detail(r), service="mentor-api", status_code=r.status_code)
        return ChatTurnResponse.model_validate(r.json())

    async def get_lesson(self, topic_slug: str) -> LessonPayload:
        try:
            r = await self._http.post("/api/lesson/get", json={"topicSlug": topic_slug})
        except httpx.HTTPError as e:
            raise LessonResolutionError(f"Failed to fetch lesson: {e}") from e
        if r.status_code >= 400:
            raise LessonResolutionError(_error_detail(r), status_code=r.status_code)
        try:
            return LessonPayload.model_validate(r.json())
        except (ValueError, ValidationError) as e:
            raise LessonResolutionError(f"Invalid lesson payload: {e}") from e

    async def generate_checkpoints(self, video_id: str, video_title: str) -> list[Checkpoint]:
        try:
            r = await self._http.post(
                "/api/lesson/generate_checkpoints",
                json={"videoId": video_id, "videoTitle": video_title},
            )
            r.raise_for_status()
            return GenerateCheckpointsResponse.model_validate(r.json()).checkpoints
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.warning("Error generating checkpoints for %s: %s", video_id, e)
            return []

    async def grade(
        self, checkpoint_id: str, topic: str, checkpoint_type: CheckpointType, answer_text: str
    ) -> GradeResponse:
        try:
            r = await self._http.post(
                "/api/checkpoint/submit",
                json={
                    "checkpointId": checkpoint_id,
                    "checkpointTopic": topic,
                    "checkpointType": checkpoint_type.value,
                    "answerText": answer_text,
                },
            )
        except httpx.HTTPError as e:
            raise UpstreamServiceError(f"Grading request failed: {e}", service="mentor-api") from e
        if r.status_code >= 400:
            raise UpstreamServiceError(_error_detail(r), service="mentor-api", status_code=r.status_code)
        try:
            return GradeResponse.model_validate(r.json())
        except (ValueError, ValidationError) as e:
            raise MalformedResponseError(f"Invalid grading response: {e}") from e
