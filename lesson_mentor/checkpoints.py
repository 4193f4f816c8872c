from __future__ import annotations

import logging
import math
from typing import Any

from pydantic import ValidationError

from lesson_mentor import youtube
from lesson_mentor.errors import MalformedResponseError, UpstreamServiceError
from lesson_mentor.gemini_client import GeminiClient
from lesson_mentor.prompts import (
    CHECKPOINT_SYSTEM,
    CHECKPOINTS_FROM_TITLE,
    CHECKPOINTS_FROM_TRANSCRIPT,
    GRADE_PROJECT,
    GRADE_QUIZ,
    GRADER_SYSTEM,
)
from lesson_mentor.schemas import Checkpoint, CheckpointSubmitRequest, CheckpointType, GradeResponse
from lesson_mentor.text import clean_model_text, truncate

logger = logging.getLogger(__name__)

GRADE_SCHEMA = {
    "type": "OBJECT",
    "properties": {"passed": {"type": "BOOLEAN"}, "feedback": {"type": "STRING"}},
    "required": ["passed", "feedback"],
}


def normalize_checkpoints(raw: Any, video_id: str) -> list[Checkpoint]:
    """
    Turn model output into Checkpoints for one video.
    Ids are reassigned as dyn_<videoId>_<index> so they stay unique and stable per video;
    items that can't be coerced are dropped.
    """
    if isinstance(raw, dict):
        raw = raw.get("checkpoints")
    if not isinstance(raw, list):
        raise MalformedResponseError("Expected a list of checkpoints")

    out: list[Checkpoint] = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            continue
        try:
            value = float(item.get("timeSeconds"))
            if not math.isfinite(value):
                raise ValueError(f"timeSeconds is not finite: {value}")
            seconds = math.floor(value)
            out.append(
                Checkpoint(
                    id=f"dyn_{video_id}_{index}",
                    videoId=video_id,
                    timeSeconds=max(seconds, 0),
                    type=item.get("type"),
                    topic=str(item.get("topic") or "").strip(),
                    question=str(item.get("question") or "").strip(),
                )
            )
        except (TypeError, ValueError, OverflowError, ValidationError) as e:
            logger.warning("Dropping malformed checkpoint %s for %s: %s", index, video_id, e)
    return out


async def generate_checkpoints(gemini: GeminiClient, video_id: str, video_title: str) -> list[Checkpoint]:
    """Transcript-based checkpoints, falling back to title-only; [] on total failure."""
    segments = await youtube.fetch_transcript(video_id)
    if segments:
        transcript = truncate(" ".join(segments))
        prompt = CHECKPOINTS_FROM_TRANSCRIPT.format(title=video_title, transcript=transcript)
        logger.info("Fetched transcript for %s (%d segments)", video_id, len(segments))
    else:
        logger.warning("No transcript for %s; falling back to title-based generation", video_id)
        prompt = CHECKPOINTS_FROM_TITLE.format(title=video_title)

    try:
        data = await gemini.generate_json(system=CHECKPOINT_SYSTEM, user=prompt)
        checkpoints = normalize_checkpoints(data, video_id)
    except (MalformedResponseError, UpstreamServiceError) as e:
        logger.error("Failed to generate any checkpoints for %s: %s", video_id, e)
        return []

    logger.info("Generated %d checkpoints for %s", len(checkpoints), video_id)
    return checkpoints


def grading_prompt(topic: str, checkpoint_type: CheckpointType, answer_text: str) -> str:
    template = GRADE_PROJECT if checkpoint_type == CheckpointType.project else GRADE_QUIZ
    return template.format(topic=topic, answer=answer_text)


async def grade_submission(gemini: GeminiClient, req: CheckpointSubmitRequest) -> GradeResponse:
    """
    Raises MalformedResponseError when the model's verdict can't be read; that is
    distinct from a graded fail.
    """
    prompt = grading_prompt(req.checkpointTopic, req.checkpointType, req.answerText)
    data = await gemini.generate_json(system=GRADER_SYSTEM, user=prompt, schema=GRADE_SCHEMA)
    if not isinstance(data, dict) or not isinstance(data.get("passed"), bool):
        logger.error("Grader returned invalid verdict for %s: %r", req.checkpointId, data)
        raise MalformedResponseError("The AI grader gave an invalid response. Please try again.")

    feedback = clean_model_text(str(data.get("feedback") or ""))
    logger.info("Graded checkpoint %s: passed=%s", req.checkpointId, data["passed"])
    return GradeResponse(passed=data["passed"], feedback=feedback)
