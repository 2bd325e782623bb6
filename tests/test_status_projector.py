"""Tests for the public status projection."""

from app.content_pipeline.engine.models import Job, JobStatus, StepOutcomeKind, StepResult
from app.content_pipeline.engine.status_projector import project, project_steps
from tests.helpers import OWNER

STEPS = ["validate", "transcode", "thumbnail", "fingerprint", "pin_ipfs", "mint", "index"]


def make_job(**kwargs) -> Job:
    return Job(id="proc_1_abc", owner_identity=OWNER, steps=list(STEPS), **kwargs)


def statuses(job):
    return [step["status"] for step in project_steps(job)]


class TestProjectSteps:

    def test_queued_job_is_all_pending(self):
        assert statuses(make_job()) == ["pending"] * 7

    def test_running_job(self):
        job = make_job(status=JobStatus.RUNNING, current_step="thumbnail", progress=29)
        assert statuses(job) == [
            "completed", "completed", "processing",
            "pending", "pending", "pending", "pending",
        ]

    def test_failed_job_marks_failing_step(self):
        job = make_job(status=JobStatus.FAILED, current_step="pin_ipfs",
                       error_message="pinata down")
        assert statuses(job) == [
            "completed", "completed", "completed", "completed",
            "error", "pending", "pending",
        ]

    def test_completed_job_is_all_completed(self):
        job = make_job(status=JobStatus.COMPLETED, current_step=None, progress=100)
        assert statuses(job) == ["completed"] * 7

    def test_skipped_step_shows_completed(self):
        skipped = StepResult(outcome=StepOutcomeKind.SKIPPED, error="no thumbnail")
        job = make_job(status=JobStatus.RUNNING, current_step="fingerprint",
                       step_results={"thumbnail": skipped})
        assert statuses(job)[2] == "completed"

    def test_step_ids_follow_job_order(self):
        assert [step["id"] for step in project_steps(make_job())] == STEPS


class TestProject:

    def test_running_view(self):
        job = make_job(status=JobStatus.RUNNING, current_step="transcode", progress=14)
        view = project(job)

        assert view["processingId"] == "proc_1_abc"
        assert view["status"] == "running"
        assert view["progress"] == 14
        assert view["currentStep"] == "transcode"
        assert "result" not in view
        assert "errorMessage" not in view

    def test_completed_view_has_result(self):
        job = make_job(status=JobStatus.COMPLETED, progress=100,
                       result={"tokenId": "42", "contentUri": "ipfs://QmMeta"})
        view = project(job)

        assert view["progress"] == 100
        assert view["result"] == {"tokenId": "42", "contentUri": "ipfs://QmMeta"}

    def test_failed_view_has_error(self):
        job = make_job(status=JobStatus.FAILED, current_step="mint", progress=71,
                       error_message="Mint recusado pela Origin: INSUFFICIENT_FUNDS")
        view = project(job)

        assert view["errorMessage"].endswith("INSUFFICIENT_FUNDS")
        assert "result" not in view

    def test_projection_is_deterministic(self):
        job = make_job(status=JobStatus.RUNNING, current_step="mint", progress=71)
        assert project(job) == project(job)
        assert project(job) == project(job.snapshot())
