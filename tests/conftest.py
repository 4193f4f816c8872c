"""
Shared fixtures: a scriptable fake player, an in-memory progress store and a
few checkpoints.
"""
import pytest

from lesson_mentor.progress import InMemoryProgressBackend, ProgressStore
from lesson_mentor.schemas import Checkpoint, CheckpointType, LessonPayload, LessonSource, VideoData


class FakePlayer:
    """Stands in for the embedded player; tests move the playhead by hand."""

    def __init__(self, position: float = 0.0):
        self.position = position
        self.paused = False
        self.seeks = []
        self.play_calls = 0

    def get_current_position(self) -> float:
        return self.position

    def seek(self, seconds):
        self.seeks.append(seconds)
        self.position = seconds

    def play(self):
        self.paused = False
        self.play_calls += 1

    def pause(self):
        self.paused = True


class FakeChat:
    """Replays canned model replies and records what was sent."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.sent = []

    async def send(self, message):
        self.sent.append(message)
        return self.replies.pop(0)


def make_checkpoint(cp_id, seconds, video_id="vid123", cp_type=CheckpointType.quiz, topic=None):
    return Checkpoint(
        id=cp_id,
        videoId=video_id,
        timeSeconds=seconds,
        type=cp_type,
        topic=topic or f"Topic {cp_id}",
        question=f"Question for {cp_id}?",
    )


@pytest.fixture
def player():
    return FakePlayer()


@pytest.fixture
def progress():
    return ProgressStore(InMemoryProgressBackend())


@pytest.fixture
def video():
    return VideoData(videoId="vid123", title="Learn CSS Grid", thumbnailUrl="https://i.ytimg.com/vi/vid123/hq.jpg")


@pytest.fixture
def curated_lesson(video):
    return LessonPayload(
        videoData=video,
        checkpoints=[make_checkpoint("a", 10), make_checkpoint("b", 30)],
        source=LessonSource.curated,
    )


@pytest.fixture
def dynamic_lesson(video):
    return LessonPayload(videoData=video, checkpoints=[], source=LessonSource.dynamic_search)
