"""
Exception classes for the lesson mentor service.

Handlers translate these into HTTP status codes; the client-side lesson engine
catches them where a local fallback exists.
"""
from __future__ import annotations


class LessonMentorError(Exception):
    """Base exception for all lesson mentor errors."""


class ConfigError(LessonMentorError):
    """Required service credentials are missing. Not retried."""


class UpstreamServiceError(LessonMentorError):
    """A collaborator (Gemini, YouTube, transcripts, our own API) failed or was unreachable."""

    def __init__(self, message: str, service: str | None = None, status_code: int | None = None) -> None:
        self.service = service
        self.status_code = status_code
        super().__init__(message)


class MalformedResponseError(LessonMentorError):
    """Structured output from the model could not be parsed."""

    def __init__(self, message: str, raw: str | None = None) -> None:
        self.raw = raw
        super().__init__(message)


class SubmissionValidationError(LessonMentorError):
    """A checkpoint submission is missing required input."""


class LessonResolutionError(LessonMentorError):
    """No playable lesson could be produced for a topic."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class LessonNotFoundError(LessonResolutionError):
    status_code = 404


class LessonUnavailableError(LessonResolutionError):
    """The curated video for a topic exists in config but is not embeddable right now."""

    status_code = 503
