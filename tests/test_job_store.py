"""Tests for JobStore backends."""

import re
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from app.content_pipeline.engine.errors import InvalidInput, InvalidTransition, NotFound
from app.content_pipeline.engine.job_store import (
    InMemoryJobStore,
    PostgresJobStore,
    build_job_store,
    new_job_id,
)
from app.content_pipeline.engine.models import JobStatus, StepOutcomeKind, StepResult
from app.content_pipeline.engine.state_machine import JobTransition
from tests.helpers import OTHER, OWNER

STEPS = ["validate", "transcode", "mint"]


def ok() -> StepResult:
    return StepResult(outcome=StepOutcomeKind.SUCCESS, output={}, attempts=1)


class TestJobId:

    def test_format(self):
        assert re.match(r"^proc_\d{13}_[0-9a-f]{16}$", new_job_id())

    def test_unique(self):
        assert len({new_job_id() for _ in range(500)}) == 500


class TestInMemoryJobStore:

    def test_create_starts_queued(self, store):
        job_id = store.create(OWNER, STEPS, payload={"title": "clip"})
        job = store.get(job_id)

        assert job.status == JobStatus.QUEUED
        assert job.progress == 0
        assert job.current_step is None
        assert job.steps == STEPS
        assert job.payload == {"title": "clip"}
        assert job.owner_identity == OWNER

    @pytest.mark.parametrize("owner, steps", [
        ("", STEPS),
        (OWNER, []),
        (OWNER, ["validate", "validate"]),
    ])
    def test_create_rejects_invalid_input(self, store, owner, steps):
        with pytest.raises(InvalidInput):
            store.create(owner, steps)

    def test_unknown_job(self, store):
        with pytest.raises(NotFound):
            store.get("proc_0_missing")
        with pytest.raises(NotFound):
            store.transition("proc_0_missing", JobTransition.start())

    def test_get_returns_snapshot(self, store):
        job_id = store.create(OWNER, STEPS)
        snapshot = store.get(job_id)
        snapshot.status = JobStatus.FAILED
        snapshot.steps.append("extra")

        fresh = store.get(job_id)
        assert fresh.status == JobStatus.QUEUED
        assert fresh.steps == STEPS

    def test_transition_persists(self, store):
        job_id = store.create(OWNER, STEPS)
        store.transition(job_id, JobTransition.start())
        store.transition(job_id, JobTransition.step_succeeded("validate", ok()))

        job = store.get(job_id)
        assert job.status == JobStatus.RUNNING
        assert job.current_step == "transcode"
        assert job.progress == 33

    def test_rejected_transition_leaves_job_unchanged(self, store):
        job_id = store.create(OWNER, STEPS)
        with pytest.raises(InvalidTransition):
            store.transition(job_id, JobTransition.step_succeeded("validate", ok()))
        assert store.get(job_id).status == JobStatus.QUEUED

    def test_concurrent_transitions_apply_once(self, store):
        job_id = store.create(OWNER, STEPS)
        store.transition(job_id, JobTransition.start())

        outcomes = []
        barrier = threading.Barrier(8)

        def advance():
            barrier.wait()
            try:
                store.transition(job_id, JobTransition.step_succeeded("validate", ok()))
                outcomes.append("ok")
            except InvalidTransition:
                outcomes.append("rejected")

        threads = [threading.Thread(target=advance) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("rejected") == 7
        assert store.get(job_id).current_step == "transcode"

    def test_list_by_owner(self, store):
        mine = [store.create(OWNER, STEPS) for _ in range(3)]
        store.create(OTHER, STEPS)

        listed = store.list_by_owner(OWNER)
        assert {job.id for job in listed} == set(mine)
        assert len(store.list_by_owner(OWNER, limit=2)) == 2


def fake_cursor_func(cursor):
    @contextmanager
    def get_cursor(commit=True):
        yield cursor
    return get_cursor


def job_row(**overrides):
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    row = {
        "id": "proc_1_abc",
        "owner_identity": OWNER,
        "job_type": "upload",
        "payload": {"title": "clip"},
        "status": "running",
        "current_step": "validate",
        "steps": STEPS,
        "step_results": {},
        "progress": 0,
        "result": None,
        "error_message": None,
        "created_at": now,
        "updated_at": now,
    }
    row.update(overrides)
    return row


class TestPostgresJobStore:

    def test_create_inserts_queued_row(self):
        cursor = MagicMock()
        store = PostgresJobStore(fake_cursor_func(cursor))

        job_id = store.create(OWNER, STEPS, payload={"title": "clip"})

        sql, params = cursor.execute.call_args[0]
        assert "INSERT INTO processing_jobs" in sql
        assert params[0] == job_id
        assert params[1] == OWNER
        assert params[4] == "queued"

    def test_get_maps_row(self):
        cursor = MagicMock()
        cursor.fetchone.return_value = job_row()
        job = PostgresJobStore(fake_cursor_func(cursor)).get("proc_1_abc")

        assert job.status == JobStatus.RUNNING
        assert job.current_step == "validate"
        assert job.created_at.startswith("2026-01-01")

    def test_get_missing(self):
        cursor = MagicMock()
        cursor.fetchone.return_value = None
        with pytest.raises(NotFound):
            PostgresJobStore(fake_cursor_func(cursor)).get("proc_1_abc")

    def test_transition_locks_row_and_updates(self):
        cursor = MagicMock()
        cursor.fetchone.return_value = job_row()
        store = PostgresJobStore(fake_cursor_func(cursor))

        job = store.transition("proc_1_abc", JobTransition.step_succeeded("validate", ok()))

        select_sql = cursor.execute.call_args_list[0][0][0]
        update_sql, params = cursor.execute.call_args_list[1][0]
        assert "FOR UPDATE" in select_sql
        assert "UPDATE processing_jobs" in update_sql
        assert params[0] == "running"
        assert params[1] == "transcode"
        assert params[3] == 33
        assert job.current_step == "transcode"

    def test_illegal_transition_does_not_write(self):
        cursor = MagicMock()
        cursor.fetchone.return_value = job_row(status="completed", current_step=None)
        store = PostgresJobStore(fake_cursor_func(cursor))

        with pytest.raises(InvalidTransition):
            store.transition("proc_1_abc", JobTransition.step_succeeded("validate", ok()))
        assert cursor.execute.call_count == 1


class TestBuildJobStore:

    def test_memory(self):
        assert isinstance(build_job_store("memory"), InMemoryJobStore)

    def test_postgres(self):
        assert isinstance(build_job_store("postgres"), PostgresJobStore)

    def test_unknown(self):
        with pytest.raises(ValueError):
            build_job_store("sqlite")
