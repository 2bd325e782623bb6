"""Tests for the Redis pipeline worker."""

import json
from unittest.mock import MagicMock, patch

import pytest

from app.content_pipeline.engine.models import Job, JobStatus
from app.content_pipeline.queue import RESULTS_KEY
from tests.helpers import OWNER
from worker import PipelineWorker


def finished_job(status=JobStatus.COMPLETED, error=None) -> Job:
    return Job(id="proc_1_abc", owner_identity=OWNER, steps=["validate"],
               status=status, error_message=error)


@pytest.fixture
def redis_client():
    client = MagicMock()
    client.lock.return_value.acquire.return_value = True
    return client


@pytest.fixture
def engine():
    bridge = MagicMock()
    bridge.execute_pipeline.return_value = finished_job()
    return bridge


@pytest.fixture
def worker(redis_client, engine):
    return PipelineWorker(queue_name="provn_pipeline", max_concurrency=2,
                          redis_client=redis_client, bridge=engine)


def logged_results(redis_client):
    return [json.loads(c[0][1]) for c in redis_client.lpush.call_args_list if c[0][0] == RESULTS_KEY]


class TestRegistration:

    def test_registers_with_ttl(self, worker, redis_client):
        key = redis_client.hset.call_args[0][0]
        assert key.startswith("provn:worker:")
        assert redis_client.hset.call_args.kwargs["mapping"]["status"] == "running"
        redis_client.expire.assert_called_with(key, 300)


class TestProcessJob:

    def test_completed_job(self, worker, redis_client, engine):
        worker.active_jobs = 1
        worker.process_job("proc_1_abc")

        engine.execute_pipeline.assert_called_once_with("proc_1_abc")
        redis_client.lock.assert_called_once()
        assert redis_client.lock.call_args[0][0] == "provn:pipeline:lock:proc_1_abc"
        redis_client.lock.return_value.release.assert_called_once()
        assert worker.processed_count == 1
        assert worker.active_jobs == 0
        assert logged_results(redis_client)[0]["status"] == "completed"

    def test_failed_job(self, worker, redis_client, engine):
        engine.execute_pipeline.return_value = finished_job(JobStatus.FAILED, "pinata down")
        worker.active_jobs = 1
        worker.process_job("proc_1_abc")

        assert worker.failed_count == 1
        result = logged_results(redis_client)[0]
        assert result["status"] == "failed"
        assert result["error"] == "pinata down"

    def test_lock_held_elsewhere(self, worker, redis_client, engine):
        redis_client.lock.return_value.acquire.return_value = False
        worker.active_jobs = 1
        worker.process_job("proc_1_abc")

        engine.execute_pipeline.assert_not_called()
        assert worker.active_jobs == 0

    def test_engine_exception(self, worker, redis_client, engine):
        engine.execute_pipeline.side_effect = RuntimeError("db gone")
        worker.active_jobs = 1
        worker.process_job("proc_1_abc")

        assert worker.failed_count == 1
        assert worker.active_jobs == 0
        redis_client.lock.return_value.release.assert_called_once()
        assert logged_results(redis_client)[0]["error"] == "db gone"


class TestPollOnce:

    def test_dispatches_job_thread(self, worker, redis_client):
        message = json.dumps({"action": "execute_pipeline", "job_id": "proc_1_abc"})
        redis_client.blpop.return_value = ("provn_pipeline", message)

        with patch("worker.threading.Thread") as thread_cls:
            assert worker.poll_once(timeout=1) is True

        assert thread_cls.call_args.kwargs["args"] == ("proc_1_abc",)
        thread_cls.return_value.start.assert_called_once()
        assert worker.active_jobs == 1

    def test_empty_queue(self, worker, redis_client):
        redis_client.blpop.return_value = None
        assert worker.poll_once(timeout=1) is False
        assert worker.active_jobs == 0

    def test_saturated_worker_does_not_pop(self, worker, redis_client):
        worker.active_jobs = 2
        assert worker.poll_once(timeout=1) is False
        redis_client.blpop.assert_not_called()

    def test_unknown_action_is_dropped(self, worker, redis_client):
        redis_client.blpop.return_value = ("provn_pipeline", json.dumps({"action": "noop"}))
        assert worker.poll_once(timeout=1) is False
        assert worker.active_jobs == 0
