from __future__ import annotations

from dataclasses import dataclass

from lesson_mentor.schemas import Checkpoint, CheckpointType


@dataclass(frozen=True)
class CuratedTopic:
    slug: str
    title: str
    youtube_video_id: str


TOPICS: tuple[CuratedTopic, ...] = (
    CuratedTopic(
        slug="html_basics",
        title="HTML Full Course - Beginner to Pro",
        youtube_video_id="dD2EISBDjWM",
    ),
    CuratedTopic(
        slug="python_intro",
        title="Python for Beginners - Full Course",
        youtube_video_id="rfscVS0vtbw",
    ),
)


CHECKPOINTS: tuple[Checkpoint, ...] = (
    Checkpoint(
        id="html_cp1_quiz",
        videoId="dD2EISBDjWM",
        timeSeconds=120,
        type=CheckpointType.quiz,
        topic="Introduction to HTML and basic tags",
        question="In one sentence, what is HTML and what is a tag?",
    ),
    Checkpoint(
        id="html_cp2_quiz",
        videoId="dD2EISBDjWM",
        timeSeconds=480,
        type=CheckpointType.quiz,
        topic="HTML Headings and Paragraphs",
        question="How many heading levels does HTML have, and which tag marks a paragraph?",
    ),
    Checkpoint(
        id="html_cp3_project",
        videoId="dD2EISBDjWM",
        timeSeconds=900,
        type=CheckpointType.project,
        topic="Simple HTML Page Project",
        question="Create an index.html with a heading and a paragraph. Upload it to Google Drive and share the link.",
    ),
)


def get_topic_by_slug(slug: str) -> CuratedTopic | None:
    for topic in TOPICS:
        if topic.slug == slug:
            return topic
    return None


def checkpoints_for_video(video_id: str) -> list[Checkpoint]:
    return sorted((cp for cp in CHECKPOINTS if cp.videoId == video_id), key=lambda cp: cp.timeSeconds)
