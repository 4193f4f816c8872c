from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from lesson_mentor import youtube
from lesson_mentor.checkpoints import generate_checkpoints, grade_submission
from lesson_mentor.config import cors_allow_origins
from lesson_mentor.errors import (
    ConfigError,
    LessonResolutionError,
    MalformedResponseError,
    UpstreamServiceError,
)
from lesson_mentor.gemini_client import GeminiClient
from lesson_mentor.lessons import resolve_lesson
from lesson_mentor.prompts import MENTOR_SYSTEM
from lesson_mentor.router import DialogRouter
from lesson_mentor.schemas import (
    ChatTurnRequest,
    ChatTurnResponse,
    CheckpointSubmitRequest,
    GenerateCheckpointsRequest,
    GenerateCheckpointsResponse,
    GradeResponse,
    LessonGetRequest,
    LessonPayload,
    VideoCheckRequest,
    VideoData,
)

logger = logging.getLogger(__name__)

CONFIG_ERROR_DETAIL = "API key not configured"


app = FastAPI(title="Lesson Mentor API", version="0.3.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_allow_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def root() -> dict:
    return {
        "ok": True,
        "service": "lesson-mentor",
        "endpoints": [
            "/health",
            "/api/gemini",
            "/api/lesson/get",
            "/api/lesson/generate_checkpoints",
            "/api/checkpoint/submit",
            "/api/video/check",
        ],
        "docs": "/docs",
    }


@app.get("/health")
def health() -> dict:
    return {"ok": True}


@app.post("/api/gemini", response_model=ChatTurnResponse)
async def chat_turn(req: ChatTurnRequest) -> ChatTurnResponse:
    try:
        gemini = GeminiClient()
        router = DialogRouter(
            lambda history: gemini.start_chat(system=MENTOR_SYSTEM, history=history),
            youtube.check_video_availability,
        )
        return await router.route(req.history, req.message)
    except ConfigError as e:
        logger.error("Chat turn misconfigured: %s", e)
        raise HTTPException(status_code=500, detail=CONFIG_ERROR_DETAIL)
    except UpstreamServiceError as e:
        logger.error("Chat turn failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to process chat")


@app.post("/api/lesson/get", response_model=LessonPayload)
async def lesson_get(req: LessonGetRequest) -> LessonPayload:
    """
    Fast path: returns the video right away. Dynamic-search lessons come back with
    no checkpoints; clients request them from /api/lesson/generate_checkpoints.
    """
    try:
        return await resolve_lesson(GeminiClient, req.topicSlug)
    except LessonResolutionError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except ConfigError as e:
        logger.error("Lesson lookup misconfigured: %s", e)
        raise HTTPException(status_code=500, detail=CONFIG_ERROR_DETAIL)
    except UpstreamServiceError as e:
        logger.error("Lesson lookup failed for %r: %s", req.topicSlug, e)
        raise HTTPException(status_code=500, detail=str(e) or "Failed to get lesson data.")


@app.post("/api/lesson/generate_checkpoints", response_model=GenerateCheckpointsResponse)
async def lesson_generate_checkpoints(req: GenerateCheckpointsRequest) -> GenerateCheckpointsResponse:
    try:
        gemini = GeminiClient()
    except ConfigError as e:
        logger.error("Checkpoint generation misconfigured: %s", e)
        raise HTTPException(status_code=500, detail=CONFIG_ERROR_DETAIL)
    checkpoints = await generate_checkpoints(gemini, req.videoId, req.videoTitle)
    return GenerateCheckpointsResponse(checkpoints=checkpoints)


@app.post("/api/checkpoint/submit", response_model=GradeResponse)
async def checkpoint_submit(req: CheckpointSubmitRequest) -> GradeResponse:
    try:
        gemini = GeminiClient()
        return await grade_submission(gemini, req)
    except ConfigError as e:
        logger.error("Grading misconfigured: %s", e)
        raise HTTPException(status_code=500, detail=CONFIG_ERROR_DETAIL)
    except MalformedResponseError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except UpstreamServiceError as e:
        logger.error("Error grading checkpoint %r: %s", req.checkpointId, e)
        raise HTTPException(status_code=500, detail="Failed to grade submission.")


@app.post("/api/video/check", response_model=VideoData | None)
async def video_check(req: VideoCheckRequest) -> VideoData | None:
    try:
        return await youtube.check_video_availability(req.videoId)
    except ConfigError as e:
        logger.error("Video check misconfigured: %s", e)
        raise HTTPException(status_code=500, detail=CONFIG_ERROR_DETAIL)
