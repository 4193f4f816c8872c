from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator


class CheckpointType(str, Enum):
    quiz = "quiz"
    project = "project"


class LessonSource(str, Enum):
    curated = "curated"
    dynamic_search = "dynamic-search"


# Source tags emitted by older deployments of the lesson endpoint.
_LEGACY_SOURCES = {
    "freecodecamp_config": LessonSource.curated,
    "youtube_dynamic_search": LessonSource.dynamic_search,
}


class VideoData(BaseModel):
    videoId: str
    title: str
    thumbnailUrl: str = ""


class Checkpoint(BaseModel):
    id: str = Field(..., min_length=1)
    videoId: str
    timeSeconds: int = Field(..., ge=0, description="Playhead position (seconds) at which to pause")
    type: CheckpointType
    topic: str
    question: str = ""


class LessonPayload(BaseModel):
    videoData: VideoData
    checkpoints: list[Checkpoint] = Field(default_factory=list)
    source: LessonSource

    @field_validator("source", mode="before")
    @classmethod
    def _legacy_source(cls, v):
        if isinstance(v, str) and v in _LEGACY_SOURCES:
            return _LEGACY_SOURCES[v]
        return v


class ProgressRecord(BaseModel):
    videoId: str
    lastTimeSeconds: int = Field(0, ge=0)
    completedCheckpointIds: set[str] = Field(
        default_factory=set,
        validation_alias=AliasChoices("completedCheckpointIds", "completedCheckpoints"),
    )


class ChatMessage(BaseModel):
    role: str
    content: str


class ChatTurnRequest(BaseModel):
    history: list[ChatMessage] = Field(default_factory=list)
    message: str = Field(..., min_length=1)


class ChatTurnResponse(BaseModel):
    type: Literal["text", "video", "lesson"]
    data: VideoData | str


class LessonGetRequest(BaseModel):
    topicSlug: str = Field(..., min_length=1)


class GenerateCheckpointsRequest(BaseModel):
    videoId: str = Field(..., min_length=1)
    videoTitle: str = Field(..., min_length=1)


class GenerateCheckpointsResponse(BaseModel):
    checkpoints: list[Checkpoint]


class CheckpointSubmitRequest(BaseModel):
    checkpointId: str = Field(..., min_length=1)
    checkpointTopic: str = Field(..., min_length=1)
    checkpointType: CheckpointType
    answerText: str = Field(..., min_length=1, description="Answer, or link plus description for projects")


class GradeResponse(BaseModel):
    passed: bool
    feedback: str


class VideoCheckRequest(BaseModel):
    videoId: str = Field(..., min_length=1)
