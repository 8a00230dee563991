"""
Tests for queue ordering, filtering and summaries.

Ordering is a dispatch policy: priority DESC, then newest first.
"""

from datetime import timedelta

from orchestrator.jobs.models import JobSource, JobStatus, JobType, NarrationStatus, Pipeline
from orchestrator.jobs.queries import (
    JobFilter,
    RECENT_JOBS_COUNT,
    list_jobs,
    narration_jobs,
    next_dispatchable,
    summarize,
    terminal_before,
)

from conftest import BASE_TIME, make_job


class TestListJobs:

    def test_priority_beats_recency(self):
        older_urgent = make_job("A", 0, priority=5)
        newer_normal = make_job("B", 60, priority=0)

        ordered = list_jobs([newer_normal, older_urgent])

        assert [job.id for job in ordered] == ["A", "B"]

    def test_newest_first_within_priority(self):
        jobs = [make_job("old", 0), make_job("mid", 10), make_job("new", 20)]
        assert [job.id for job in list_jobs(jobs)] == ["new", "mid", "old"]

    def test_id_breaks_ties(self):
        jobs = [make_job("b"), make_job("a"), make_job("c")]
        assert [job.id for job in list_jobs(jobs)] == ["a", "b", "c"]

    def test_status_filter_is_or(self):
        jobs = [
            make_job("p"),
            make_job("f", status=JobStatus.FAILED, error="x"),
            make_job("c", status=JobStatus.COMPLETED),
        ]
        result = list_jobs(jobs, JobFilter(status={JobStatus.PENDING, JobStatus.FAILED}))
        assert {job.id for job in result} == {"p", "f"}

    def test_pipeline_source_and_type_filters(self):
        jobs = [
            make_job("gpu", pipeline=Pipeline.LOCAL_GPU),
            make_job("chat", source=JobSource.WHATSAPP, type=JobType.CHAT),
            make_job("plain"),
        ]

        assert [j.id for j in list_jobs(jobs, JobFilter(pipeline=Pipeline.LOCAL_GPU))] == ["gpu"]
        assert [j.id for j in list_jobs(jobs, JobFilter(source=JobSource.WHATSAPP))] == ["chat"]
        assert [j.id for j in list_jobs(jobs, JobFilter(type=JobType.CHAT))] == ["chat"]

    def test_limit(self):
        jobs = [make_job(f"j{i}", i) for i in range(10)]
        result = list_jobs(jobs, JobFilter(limit=3))
        assert [job.id for job in result] == ["j9", "j8", "j7"]

    def test_limit_zero(self):
        assert list_jobs([make_job("a")], JobFilter(limit=0)) == []

    def test_does_not_mutate_input(self):
        jobs = [make_job("old", 0), make_job("new", 10)]
        list_jobs(jobs)
        assert [job.id for job in jobs] == ["old", "new"]


class TestNextDispatchable:

    def test_picks_head_of_pending_queue(self):
        jobs = [
            make_job("low", 0),
            make_job("high", 0, priority=9),
            make_job("busy", 0, priority=20, status=JobStatus.BUILDING_PROMPT),
        ]
        assert next_dispatchable(jobs, now=BASE_TIME).id == "high"

    def test_skips_future_schedule(self):
        jobs = [
            make_job("later", 0, priority=9, scheduled_at=BASE_TIME + timedelta(hours=1)),
            make_job("now", 0),
        ]
        assert next_dispatchable(jobs, now=BASE_TIME).id == "now"
        assert next_dispatchable(jobs, now=BASE_TIME + timedelta(hours=2)).id == "later"

    def test_pipeline_lane(self):
        jobs = [make_job("cloud", priority=5), make_job("gpu", pipeline=Pipeline.LOCAL_GPU)]
        assert next_dispatchable(jobs, now=BASE_TIME, pipeline=Pipeline.LOCAL_GPU).id == "gpu"

    def test_idle_queue(self):
        assert next_dispatchable([], now=BASE_TIME) is None


class TestSummary:

    def test_counts_by_bucket(self):
        jobs = [
            make_job("p1"),
            make_job("p2"),
            make_job("b", status=JobStatus.BUILDING_PROMPT),
            make_job("d", status=JobStatus.DELIVERING),
            make_job("c", status=JobStatus.COMPLETED),
            make_job("f", status=JobStatus.FAILED, error="x"),
        ]
        summary = summarize(jobs)

        assert summary.total == 6
        assert summary.pending == 2
        assert summary.active == 2
        assert summary.completed == 1
        assert summary.failed == 1

    def test_recent_jobs_newest_first_and_truncated(self):
        jobs = [make_job(f"j{i:02d}", i, description="x" * 150) for i in range(15)]
        summary = summarize(jobs)

        assert len(summary.recent_jobs) == RECENT_JOBS_COUNT
        assert summary.recent_jobs[0].id == "j14"
        assert len(summary.recent_jobs[0].description) == 100

    def test_empty(self):
        summary = summarize([])
        assert summary.total == 0
        assert summary.recent_jobs == []


class TestNarrationJobs:

    def test_selects_started_narration_and_completed_lessons(self):
        jobs = [
            make_job("narrating", narration_status=NarrationStatus.GENERATING_TTS),
            make_job("lesson_done", type=JobType.LESSON, status=JobStatus.COMPLETED),
            make_job("clip_done", type=JobType.CLIP, status=JobStatus.COMPLETED),
            make_job("image_done", type=JobType.IMAGE, status=JobStatus.COMPLETED),
            make_job("lesson_pending", type=JobType.LESSON),
        ]
        assert {job.id for job in narration_jobs(jobs)} == {"narrating", "lesson_done", "clip_done"}

    def test_most_recently_updated_first(self):
        jobs = [
            make_job("a", 0, narration_status=NarrationStatus.SCRIPT_READY),
            make_job("b", 30, narration_status=NarrationStatus.SCRIPT_READY),
        ]
        assert [job.id for job in narration_jobs(jobs)] == ["b", "a"]


class TestTerminalBefore:

    def test_selects_terminal_jobs_older_than_cutoff(self):
        cutoff = BASE_TIME + timedelta(days=1)
        jobs = [
            make_job("old_done", status=JobStatus.COMPLETED),
            make_job("old_failed", status=JobStatus.FAILED, error="x"),
            make_job("fresh_done", 2 * 86400, status=JobStatus.COMPLETED),
            make_job("old_pending"),
        ]
        assert {job.id for job in terminal_before(jobs, cutoff)} == {"old_done", "old_failed"}
