from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from lesson_mentor.errors import LessonResolutionError
from lesson_mentor.grading import Grader, GradingSession, SessionState
from lesson_mentor.player import Player
from lesson_mentor.progress import ProgressStore
from lesson_mentor.schemas import Checkpoint, LessonPayload, LessonSource, ProgressRecord
from lesson_mentor.watcher import PlaybackWatcher

logger = logging.getLogger(__name__)


class LessonService(Protocol):
    async def get_lesson(self, topic_slug: str) -> LessonPayload: ...

    async def generate_checkpoints(self, video_id: str, video_title: str) -> list[Checkpoint]: ...


def reconcile_checkpoints(current: LessonPayload, new_checkpoints: list[Checkpoint]) -> LessonPayload:
    """
    Merge a late-arriving checkpoint list into a lesson.

    Additive: checkpoints already on the lesson are kept unless the new list carries
    the same id, in which case the new entry wins. Video and source never change.
    """
    incoming = {cp.id for cp in new_checkpoints}
    kept = [cp for cp in current.checkpoints if cp.id not in incoming]
    return current.model_copy(update={"checkpoints": [*kept, *new_checkpoints]})


class LessonOrchestrator:
    """
    Owns the single active lesson: its payload, playback watcher and the open
    checkpoint session.

    Installing or closing a lesson bumps a generation counter; background results
    that come back for an older generation are dropped. A separate request counter
    drops lesson resolutions overtaken by a newer start or a close.

    Progress storage may block (files, Postgres), so every read and write runs in a
    worker thread behind one lock. Playhead updates are coalesced to the latest
    position per video.
    """

    def __init__(
        self,
        lessons: LessonService,
        grader: Grader,
        progress: ProgressStore,
        *,
        interval: float = 1.0,
    ) -> None:
        self.lessons = lessons
        self.grader = grader
        self.progress = progress
        self.watcher = PlaybackWatcher(
            on_time_update=self.on_time_update,
            on_checkpoint_reached=self.on_checkpoint_reached,
            interval=interval,
        )
        self.active_lesson: LessonPayload | None = None
        self.session: GradingSession | None = None
        self._generation = 0
        self._request = 0
        self._background: asyncio.Task | None = None
        self._progress_lock = asyncio.Lock()
        self._pending_times: dict[str, int] = {}
        self._time_flush: asyncio.Task | None = None
        self._writes: set[asyncio.Task] = set()

    @property
    def video_id(self) -> str | None:
        return self.active_lesson.videoData.videoId if self.active_lesson else None

    async def start_lesson(self, topic_slug: str) -> LessonPayload | None:
        self._request += 1
        request = self._request
        try:
            payload = await self.lessons.get_lesson(topic_slug)
        except LessonResolutionError as e:
            logger.warning("Could not start lesson %r: %s", topic_slug, e)
            return None

        if request != self._request:
            logger.info("Discarding lesson %r; a newer lesson request replaced it", topic_slug)
            return None

        generation = await self._install(payload)
        if generation is None:
            logger.info("Discarding lesson %r; a newer lesson request replaced it", topic_slug)
            return None
        if payload.source == LessonSource.dynamic_search and not payload.checkpoints:
            self._background = asyncio.get_running_loop().create_task(
                self._fill_checkpoints(generation, payload)
            )
        return payload

    async def _install(self, payload: LessonPayload) -> int | None:
        request = self._request
        record = await self._read_progress(payload.videoData.videoId)
        if request != self._request:
            return None
        self._generation += 1
        self.active_lesson = payload
        self.session = None
        self.watcher.set_video(payload.videoData.videoId, record.lastTimeSeconds)
        self.watcher.set_checkpoints(payload.checkpoints, record.completedCheckpointIds)
        return self._generation

    async def _fill_checkpoints(self, generation: int, payload: LessonPayload) -> None:
        video = payload.videoData
        logger.info("Generating checkpoints for %s in background", video.videoId)
        try:
            checkpoints = await self.lessons.generate_checkpoints(video.videoId, video.title)
        except Exception as e:
            logger.warning("Checkpoint generation failed for %s: %s", video.videoId, e)
            return

        if not checkpoints:
            return
        if generation != self._generation or self.video_id != video.videoId:
            logger.info("Discarding checkpoints for %s; lesson no longer active", video.videoId)
            return
        await self.apply_checkpoints(checkpoints)

    async def apply_checkpoints(self, checkpoints: list[Checkpoint]) -> None:
        if self.active_lesson is None:
            return
        generation = self._generation
        video_id = self.active_lesson.videoData.videoId
        completed = (await self._read_progress(video_id)).completedCheckpointIds
        if generation != self._generation:
            return
        self.active_lesson = reconcile_checkpoints(self.active_lesson, checkpoints)
        # Same video, so the watcher keeps its fired set.
        self.watcher.set_checkpoints(self.active_lesson.checkpoints, completed)
        logger.info("Loaded %d checkpoints into active lesson", len(checkpoints))

    def attach_player(self, player: Player) -> None:
        self.watcher.attach(player)

    async def _read_progress(self, video_id: str) -> ProgressRecord:
        async with self._progress_lock:
            return await asyncio.to_thread(self.progress.load, video_id)

    async def _write_progress(self, write, *args) -> None:
        async with self._progress_lock:
            await asyncio.to_thread(write, *args)

    def _spawn_write(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._writes.add(task)
        task.add_done_callback(self._writes.discard)
        return task

    async def _flush_times(self) -> None:
        while self._pending_times:
            video_id, seconds = self._pending_times.popitem()
            await self._write_progress(self.progress.save_time, video_id, seconds)

    async def flush_progress(self) -> None:
        """Wait until every queued progress write has reached storage."""
        while self._writes:
            await asyncio.gather(*list(self._writes))

    def on_time_update(self, time_seconds: int) -> None:
        if self.video_id is None:
            return
        self._pending_times[self.video_id] = time_seconds
        if self._time_flush is None or self._time_flush.done():
            self._time_flush = self._spawn_write(self._flush_times())

    def on_checkpoint_reached(self, checkpoint: Checkpoint) -> None:
        session = GradingSession(checkpoint, self.grader)
        session.open()
        self.session = session

    async def submit_checkpoint(self) -> SessionState | None:
        session = self.session
        if session is None:
            return None
        state = await session.submit()
        if self.session is not session:
            logger.info("Dropping grading result for %s; session closed", session.checkpoint.id)
            return None
        return state

    def close_checkpoint(self) -> bool:
        session = self.session
        if session is None:
            return False
        passed = session.close()
        self.session = None
        if passed and self.video_id is not None:
            self._spawn_write(
                self._write_progress(self.progress.mark_completed, self.video_id, session.checkpoint.id)
            )
            self.watcher.play()
        else:
            logger.info("Checkpoint %s not passed; video stays paused", session.checkpoint.id)
        return passed

    def close_lesson(self) -> None:
        self._generation += 1
        self._request += 1
        self.watcher.reset()
        self.active_lesson = None
        self.session = None
