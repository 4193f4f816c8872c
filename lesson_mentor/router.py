from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Literal, Protocol

from lesson_mentor.prompts import VIDEO_FALLBACK_MESSAGE, VIDEO_RETRY_MESSAGE
from lesson_mentor.schemas import ChatMessage, ChatTurnResponse, VideoData
from lesson_mentor.text import clean_model_text

logger = logging.getLogger(__name__)

# Markers may appear anywhere in the reply; models often add a lead-in sentence.
LESSON_MARKER = re.compile(r"LESSON::\s*\[?([A-Za-z0-9_\-]+)\]?")
VIDEO_MARKER = re.compile(r"YT_VIDEO::\s*\[?([A-Za-z0-9_\-]+)\]?")

MAX_VIDEO_ATTEMPTS = 3


@dataclass(frozen=True)
class Reply:
    kind: Literal["lesson", "video", "text"]
    value: str


def classify_reply(text: str) -> Reply:
    """A lesson marker wins over a video marker when both are present."""
    lesson = LESSON_MARKER.search(text or "")
    if lesson:
        return Reply("lesson", lesson.group(1))
    video = VIDEO_MARKER.search(text or "")
    if video:
        return Reply("video", video.group(1))
    return Reply("text", clean_model_text(text))


class ChatSessionLike(Protocol):
    async def send(self, message: str) -> str: ...


VideoChecker = Callable[[str], Awaitable[VideoData | None]]
ChatStarter = Callable[[list[ChatMessage]], ChatSessionLike]


class DialogRouter:
    def __init__(
        self,
        start_chat: ChatStarter,
        check_video: VideoChecker,
        *,
        max_attempts: int = MAX_VIDEO_ATTEMPTS,
    ) -> None:
        self._start_chat = start_chat
        self._check_video = check_video
        self.max_attempts = max_attempts

    async def route(self, history: list[ChatMessage], message: str) -> ChatTurnResponse:
        chat = self._start_chat(history)
        current = message
        attempts = 0

        while attempts < self.max_attempts:
            reply = classify_reply(await chat.send(current))

            if reply.kind == "lesson":
                return ChatTurnResponse(type="lesson", data=reply.value)

            if reply.kind == "text":
                return ChatTurnResponse(type="text", data=reply.value)

            video = await self._check_video(reply.value)
            if video is not None:
                return ChatTurnResponse(type="video", data=video)

            attempts += 1
            logger.info("Suggested video %s unavailable (attempt %d/%d)", reply.value, attempts, self.max_attempts)
            current = VIDEO_RETRY_MESSAGE

        return ChatTurnResponse(type="text", data=VIDEO_FALLBACK_MESSAGE)
