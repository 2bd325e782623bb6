"""Test configuration."""

import os

# Config lê o ambiente no import: precisa vir antes de qualquer import de app.*
os.environ["JOB_STORE_BACKEND"] = "memory"
os.environ["INTERACTION_STORE_BACKEND"] = "memory"
os.environ["PIPELINE_INLINE_FALLBACK"] = "false"
os.environ["JWT_SECRET"] = "provn-test-secret-with-at-least-32-bytes"

from typing import Callable, Dict, List  # noqa: E402

import pytest  # noqa: E402

from app.content_pipeline.engine import (  # noqa: E402
    EngineBridge,
    InMemoryJobStore,
    PipelineOrchestrator,
    StepRegistry,
    StepRunner,
    set_engine_bridge,
)
from app.services.interaction_aggregator import (  # noqa: E402
    InteractionAggregator,
    set_interaction_aggregator,
)

from tests.helpers import OWNER, RecordingEvents  # noqa: E402


@pytest.fixture
def registry():
    """StepRegistry isolado; o registro real volta ao final do teste."""
    StepRegistry.names()  # garante os steps reais registrados antes de salvar
    saved = (StepRegistry._steps, StepRegistry._pipelines, StepRegistry._initialized)
    StepRegistry.reset(initialized=True)
    yield StepRegistry
    StepRegistry._steps, StepRegistry._pipelines, StepRegistry._initialized = saved


@pytest.fixture
def store() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def runner(sleeps) -> StepRunner:
    return StepRunner(sleep=sleeps.append)


@pytest.fixture
def events() -> RecordingEvents:
    return RecordingEvents()


@pytest.fixture
def orchestrator(store, runner, events) -> PipelineOrchestrator:
    return PipelineOrchestrator(store, runner=runner, events=events)


@pytest.fixture
def enqueued() -> List[str]:
    return []


@pytest.fixture
def bridge(store, orchestrator, enqueued) -> EngineBridge:
    def enqueue(job_id: str) -> bool:
        enqueued.append(job_id)
        return True

    return EngineBridge(job_store=store, orchestrator=orchestrator,
                        enqueue=enqueue, inline_fallback=False)


@pytest.fixture
def aggregator() -> InteractionAggregator:
    return InteractionAggregator()


@pytest.fixture
def client(bridge, aggregator):
    from app.main import create_app

    flask_app = create_app(bridge=bridge, aggregator=aggregator)
    flask_app.config["TESTING"] = True
    with flask_app.test_client() as test_client:
        yield test_client
    set_engine_bridge(None)
    set_interaction_aggregator(None)


@pytest.fixture
def wallet_headers() -> Callable[[str], Dict[str, str]]:
    def make(address: str = OWNER) -> Dict[str, str]:
        return {"X-Wallet-Address": address}
    return make
