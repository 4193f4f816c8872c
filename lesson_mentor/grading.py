from __future__ import annotations

import logging
from enum import Enum
from typing import Awaitable, Callable

from lesson_mentor.errors import SubmissionValidationError
from lesson_mentor.schemas import Checkpoint, CheckpointType, GradeResponse

logger = logging.getLogger(__name__)

GENERIC_GRADING_FEEDBACK = "An error occurred while grading. Please try again."

# (checkpoint_id, topic, type, answer_text) -> verdict
Grader = Callable[[str, str, CheckpointType, str], Awaitable[GradeResponse]]


class SessionState(str, Enum):
    idle = "idle"
    collecting = "collecting"
    submitting = "submitting"
    passed = "passed"
    failed = "failed"


class InvalidTransition(RuntimeError):
    pass


class GradingSession:
    """One encounter with a checkpoint: collect an answer, grade it, retry until it passes."""

    def __init__(self, checkpoint: Checkpoint, grader: Grader) -> None:
        self.checkpoint = checkpoint
        self.grader = grader
        self.state = SessionState.idle
        self.answer_text = ""
        self.link = ""
        self.feedback = ""

    @property
    def topic(self) -> str:
        return self.checkpoint.topic

    @property
    def prompt(self) -> str:
        if self.checkpoint.question:
            return self.checkpoint.question
        if self.checkpoint.type == CheckpointType.project:
            return f"Time to complete your project: {self.topic}. Submit your link below."
        return f"Time for a quick question: explain {self.topic} in your own words."

    @property
    def input_kind(self) -> str:
        return "link_and_description" if self.checkpoint.type == CheckpointType.project else "text"

    def _require(self, *states: SessionState) -> None:
        if self.state not in states:
            raise InvalidTransition(f"Cannot do that while {self.state.value}")

    def open(self) -> None:
        self._require(SessionState.idle)
        self.state = SessionState.collecting

    def validate(self) -> None:
        if self.checkpoint.type == CheckpointType.project:
            if not self.link.strip():
                raise SubmissionValidationError("Please add a link to your project.")
        elif not self.answer_text.strip():
            raise SubmissionValidationError("Please type an answer first.")

    def composed_answer(self) -> str:
        if self.checkpoint.type == CheckpointType.project:
            return f"Google Drive Link: {self.link.strip()}\n\nDescription: {self.answer_text.strip()}"
        return self.answer_text.strip()

    async def submit(self) -> SessionState:
        self._require(SessionState.collecting)
        self.validate()

        self.state = SessionState.submitting
        self.feedback = ""
        cp = self.checkpoint
        try:
            verdict = await self.grader(cp.id, cp.topic, cp.type, self.composed_answer())
        except Exception as e:
            logger.warning("Grading failed for %s: %s", cp.id, e)
            self.state = SessionState.failed
            self.feedback = GENERIC_GRADING_FEEDBACK
            return self.state

        self.feedback = verdict.feedback
        self.state = SessionState.passed if verdict.passed else SessionState.failed
        logger.info("Checkpoint %s %s", cp.id, self.state.value)
        return self.state

    def try_again(self) -> None:
        self._require(SessionState.failed)
        self.feedback = ""
        self.state = SessionState.collecting

    def close(self) -> bool:
        """Returns True when the checkpoint was passed."""
        self._require(SessionState.collecting, SessionState.passed, SessionState.failed)
        return self.state == SessionState.passed
