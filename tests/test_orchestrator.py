"""Tests for the lesson orchestrator: lesson lifecycle, grading flow and late checkpoints."""
import asyncio
import threading
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import FakePlayer, make_checkpoint

from lesson_mentor.errors import LessonNotFoundError
from lesson_mentor.grading import SessionState
from lesson_mentor.orchestrator import LessonOrchestrator, reconcile_checkpoints
from lesson_mentor.player import PlayerState
from lesson_mentor.progress import InMemoryProgressBackend, ProgressStore
from lesson_mentor.schemas import GradeResponse, LessonSource
from lesson_mentor.watcher import WatcherState


def make_lessons(payload, generated=None):
    lessons = MagicMock()
    lessons.get_lesson = AsyncMock(return_value=payload)
    lessons.generate_checkpoints = AsyncMock(return_value=generated or [])
    return lessons


class ThreadRecordingBackend(InMemoryProgressBackend):
    """Notes which thread each write happens on."""

    def __init__(self):
        super().__init__()
        self.threads = set()

    def set(self, key, value):
        self.threads.add(threading.get_ident())
        super().set(key, value)


class TestReconcileCheckpoints:
    def test_replaces_empty_list(self, dynamic_lesson):
        new = [make_checkpoint("x", 5), make_checkpoint("y", 9)]
        updated = reconcile_checkpoints(dynamic_lesson, new)
        assert [cp.id for cp in updated.checkpoints] == ["x", "y"]
        assert dynamic_lesson.checkpoints == []

    def test_keeps_existing_entries(self, curated_lesson):
        updated = reconcile_checkpoints(curated_lesson, [make_checkpoint("c", 50)])
        assert {cp.id for cp in updated.checkpoints} == {"a", "b", "c"}

    def test_same_id_takes_new_entry(self, curated_lesson):
        updated = reconcile_checkpoints(curated_lesson, [make_checkpoint("a", 12)])
        a = [cp for cp in updated.checkpoints if cp.id == "a"]
        assert len(a) == 1
        assert a[0].timeSeconds == 12

    def test_video_and_source_unchanged(self, dynamic_lesson):
        updated = reconcile_checkpoints(dynamic_lesson, [make_checkpoint("x", 5)])
        assert updated.videoData == dynamic_lesson.videoData
        assert updated.source == LessonSource.dynamic_search


class TestStartLesson:
    @pytest.mark.asyncio
    async def test_curated_lesson_sets_up_watcher(self, curated_lesson, progress):
        orch = LessonOrchestrator(make_lessons(curated_lesson), AsyncMock(), progress)

        payload = await orch.start_lesson("html_basics")

        assert payload is curated_lesson
        assert orch.active_lesson is curated_lesson
        assert orch.watcher.video_id == "vid123"
        assert [cp.id for cp in orch.watcher.schedule] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_resumes_from_saved_progress(self, curated_lesson, progress):
        progress.save_time("vid123", 42)
        progress.mark_completed("vid123", "a")
        orch = LessonOrchestrator(make_lessons(curated_lesson), AsyncMock(), progress)

        await orch.start_lesson("html_basics")
        player = FakePlayer()
        orch.attach_player(player)

        assert player.seeks == [42]
        assert [cp.id for cp in orch.watcher.schedule] == ["b"]

    @pytest.mark.asyncio
    async def test_resolution_failure_keeps_conversation(self, progress):
        lessons = MagicMock()
        lessons.get_lesson = AsyncMock(side_effect=LessonNotFoundError("no videos"))
        orch = LessonOrchestrator(lessons, AsyncMock(), progress)

        assert await orch.start_lesson("underwater_basket_weaving") is None
        assert orch.active_lesson is None

    @pytest.mark.asyncio
    async def test_curated_lesson_skips_generation(self, curated_lesson, progress):
        lessons = make_lessons(curated_lesson)
        orch = LessonOrchestrator(lessons, AsyncMock(), progress)

        await orch.start_lesson("html_basics")

        assert orch._background is None
        lessons.generate_checkpoints.assert_not_awaited()


class TestCheckpointFlow:
    @pytest.mark.asyncio
    async def test_fail_retry_pass_then_resume(self, curated_lesson, progress):
        grader = AsyncMock(
            side_effect=[GradeResponse(passed=False, feedback="X"), GradeResponse(passed=True, feedback="Y")]
        )
        orch = LessonOrchestrator(make_lessons(curated_lesson), grader, progress)
        await orch.start_lesson("html_basics")
        player = FakePlayer(position=12)
        orch.attach_player(player)

        orch.watcher.tick()
        assert orch.session is not None
        assert orch.session.checkpoint.id == "a"
        assert player.paused

        orch.session.answer_text = "A tag marks up content"
        assert await orch.submit_checkpoint() == SessionState.failed
        assert orch.session.feedback == "X"
        assert player.paused

        orch.session.try_again()
        assert await orch.submit_checkpoint() == SessionState.passed
        assert orch.session.feedback == "Y"

        assert orch.close_checkpoint() is True
        await orch.flush_progress()
        assert progress.load("vid123").completedCheckpointIds == {"a"}
        assert player.play_calls == 1
        assert orch.session is None

    @pytest.mark.asyncio
    async def test_closing_failed_session_leaves_video_paused(self, curated_lesson, progress):
        grader = AsyncMock(return_value=GradeResponse(passed=False, feedback="nope"))
        orch = LessonOrchestrator(make_lessons(curated_lesson), grader, progress)
        await orch.start_lesson("html_basics")
        player = FakePlayer(position=10)
        orch.attach_player(player)
        orch.watcher.tick()
        orch.session.answer_text = "dunno"
        await orch.submit_checkpoint()

        assert orch.close_checkpoint() is False
        assert player.paused
        assert player.play_calls == 0
        assert progress.load("vid123").completedCheckpointIds == set()

    @pytest.mark.asyncio
    async def test_ticks_save_playhead(self, curated_lesson, progress):
        orch = LessonOrchestrator(make_lessons(curated_lesson), AsyncMock(), progress)
        await orch.start_lesson("html_basics")
        orch.attach_player(FakePlayer(position=7.6))

        orch.watcher.tick()
        await orch.flush_progress()

        assert progress.load("vid123").lastTimeSeconds == 7

    @pytest.mark.asyncio
    async def test_progress_writes_run_off_the_event_loop(self, curated_lesson):
        backend = ThreadRecordingBackend()
        progress = ProgressStore(backend)
        orch = LessonOrchestrator(make_lessons(curated_lesson), AsyncMock(), progress)
        await orch.start_lesson("html_basics")
        player = FakePlayer(position=1)
        orch.attach_player(player)

        for second in (1, 2, 3):
            player.position = second
            orch.watcher.tick()
        await orch.flush_progress()

        assert backend.threads
        assert threading.get_ident() not in backend.threads
        assert progress.load("vid123").lastTimeSeconds == 3

    @pytest.mark.asyncio
    async def test_grading_result_dropped_after_lesson_closed(self, curated_lesson, progress):
        release = asyncio.Event()

        async def slow_grade(*args):
            await release.wait()
            return GradeResponse(passed=True, feedback="ok")

        orch = LessonOrchestrator(make_lessons(curated_lesson), AsyncMock(side_effect=slow_grade), progress)
        await orch.start_lesson("html_basics")
        orch.attach_player(FakePlayer(position=10))
        orch.watcher.tick()
        orch.session.answer_text = "answer"

        pending = asyncio.create_task(orch.submit_checkpoint())
        await asyncio.sleep(0)
        orch.close_lesson()
        release.set()

        assert await pending is None
        assert progress.load("vid123").completedCheckpointIds == set()


class TestBackgroundCheckpoints:
    @pytest.mark.asyncio
    async def test_late_checkpoints_do_not_disturb_playback(self, dynamic_lesson, progress):
        release = asyncio.Event()
        generated = [make_checkpoint("dyn_vid123_0", 20), make_checkpoint("dyn_vid123_1", 60), make_checkpoint("dyn_vid123_2", 120)]

        async def slow_generate(video_id, title):
            await release.wait()
            return generated

        lessons = make_lessons(dynamic_lesson)
        lessons.generate_checkpoints = AsyncMock(side_effect=slow_generate)
        orch = LessonOrchestrator(lessons, AsyncMock(), progress, interval=60)

        await orch.start_lesson("css_grid")
        player = FakePlayer(position=3)
        orch.attach_player(player)
        orch.watcher.on_player_state_change(PlayerState.playing)
        orch.watcher.triggered.add("earlier-fired")
        assert orch.watcher.schedule == ()

        release.set()
        await orch._background

        assert [cp.id for cp in orch.active_lesson.checkpoints] == [cp.id for cp in generated]
        assert [cp.id for cp in orch.watcher.schedule] == [cp.id for cp in generated]
        assert "earlier-fired" in orch.watcher.triggered
        assert orch.watcher.video_id == "vid123"
        assert orch.watcher.player is player
        assert orch.watcher.state == WatcherState.watching
        lessons.generate_checkpoints.assert_awaited_once_with("vid123", "Learn CSS Grid")

        player.position = 21
        assert orch.watcher.tick().id == "dyn_vid123_0"
        orch.watcher.stop()

    @pytest.mark.asyncio
    async def test_empty_generation_leaves_lesson_alone(self, dynamic_lesson, progress):
        orch = LessonOrchestrator(make_lessons(dynamic_lesson, generated=[]), AsyncMock(), progress)

        await orch.start_lesson("css_grid")
        await orch._background

        assert orch.active_lesson.checkpoints == []

    @pytest.mark.asyncio
    async def test_generation_error_is_not_fatal(self, dynamic_lesson, progress):
        lessons = make_lessons(dynamic_lesson)
        lessons.generate_checkpoints = AsyncMock(side_effect=RuntimeError("boom"))
        orch = LessonOrchestrator(lessons, AsyncMock(), progress)

        await orch.start_lesson("css_grid")
        await orch._background

        assert orch.active_lesson is dynamic_lesson

    @pytest.mark.asyncio
    async def test_results_for_closed_lesson_are_discarded(self, dynamic_lesson, progress):
        release = asyncio.Event()

        async def slow_generate(video_id, title):
            await release.wait()
            return [make_checkpoint("x", 5)]

        lessons = make_lessons(dynamic_lesson)
        lessons.generate_checkpoints = AsyncMock(side_effect=slow_generate)
        orch = LessonOrchestrator(lessons, AsyncMock(), progress)

        await orch.start_lesson("css_grid")
        orch.close_lesson()
        release.set()
        await orch._background

        assert orch.active_lesson is None
        assert orch.watcher.schedule == ()

    @pytest.mark.asyncio
    async def test_completed_generated_checkpoints_are_skipped(self, dynamic_lesson, progress):
        progress.mark_completed("vid123", "dyn_vid123_0")
        generated = [make_checkpoint("dyn_vid123_0", 20), make_checkpoint("dyn_vid123_1", 60)]
        orch = LessonOrchestrator(make_lessons(dynamic_lesson, generated=generated), AsyncMock(), progress)

        await orch.start_lesson("css_grid")
        await orch._background

        assert [cp.id for cp in orch.watcher.schedule] == ["dyn_vid123_1"]

    @pytest.mark.asyncio
    async def test_failed_restart_keeps_background_checkpoints(self, dynamic_lesson, progress):
        release = asyncio.Event()

        async def slow_generate(video_id, title):
            await release.wait()
            return [make_checkpoint("dyn_vid123_0", 20)]

        lessons = make_lessons(dynamic_lesson)
        lessons.generate_checkpoints = AsyncMock(side_effect=slow_generate)
        orch = LessonOrchestrator(lessons, AsyncMock(), progress)
        await orch.start_lesson("css_grid")

        lessons.get_lesson = AsyncMock(side_effect=LessonNotFoundError("no videos"))
        assert await orch.start_lesson("bogus_topic") is None
        release.set()
        await orch._background

        assert orch.active_lesson.videoData.videoId == "vid123"
        assert [cp.id for cp in orch.watcher.schedule] == ["dyn_vid123_0"]

    @pytest.mark.asyncio
    async def test_resolution_finishing_after_close_is_dropped(self, curated_lesson, progress):
        release = asyncio.Event()

        async def slow_lesson(slug):
            await release.wait()
            return curated_lesson

        lessons = make_lessons(curated_lesson)
        lessons.get_lesson = AsyncMock(side_effect=slow_lesson)
        orch = LessonOrchestrator(lessons, AsyncMock(), progress)

        pending = asyncio.create_task(orch.start_lesson("html_basics"))
        await asyncio.sleep(0)
        orch.close_lesson()
        release.set()

        assert await pending is None
        assert orch.active_lesson is None


class TestCloseLesson:
    @pytest.mark.asyncio
    async def test_close_stops_watcher(self, curated_lesson, progress):
        orch = LessonOrchestrator(make_lessons(curated_lesson), AsyncMock(), progress, interval=60)
        await orch.start_lesson("html_basics")
        orch.attach_player(FakePlayer())
        orch.watcher.on_player_state_change(PlayerState.playing)

        orch.close_lesson()

        assert orch.active_lesson is None
        assert orch.session is None
        assert orch.watcher.state == WatcherState.idle

    @pytest.mark.asyncio
    async def test_time_updates_ignored_without_lesson(self, progress):
        orch = LessonOrchestrator(MagicMock(), AsyncMock(), progress)
        orch.on_time_update(99)
        assert progress.load("vid123").lastTimeSeconds == 0
