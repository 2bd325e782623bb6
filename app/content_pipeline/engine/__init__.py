"""
Pipeline Engine - Motor de jobs de conteúdo.

Arquitetura modular:
- JobStore: jobs persistidos (PostgreSQL ou memória), transições atômicas
- StateMachine: transições puras queued → running → completed/failed
- StepRegistry: steps declarativos via decorator, com política própria
- StepRunner: timeout, retry com backoff e idempotência por step
- PipelineOrchestrator: leva o job pelos steps em ordem
- StatusProjector: status público derivado do job
"""

from .errors import (
    PipelineError,
    InvalidInput,
    Unauthorized,
    Forbidden,
    NotFound,
    InvalidTransition,
    TransientStepError,
    PermanentStepError,
    StepTimeout,
)
from .models import Job, JobStatus, StepOutcome, StepOutcomeKind, StepResult
from .state_machine import JobTransition, apply_transition, compute_progress
from .job_store import JobStore, InMemoryJobStore, PostgresJobStore, build_job_store
from .step_registry import StepDefinition, StepRegistry, register_step, register_pipeline
from .step_runner import StepRunner, classify_failure
from .pipeline_engine import PipelineOrchestrator
from .status_projector import project
from .events import EngineEvents, NullEvents
from .bridge import EngineBridge, get_engine_bridge, set_engine_bridge

__all__ = [
    'PipelineError',
    'InvalidInput',
    'Unauthorized',
    'Forbidden',
    'NotFound',
    'InvalidTransition',
    'TransientStepError',
    'PermanentStepError',
    'StepTimeout',
    'Job',
    'JobStatus',
    'StepOutcome',
    'StepOutcomeKind',
    'StepResult',
    'JobTransition',
    'apply_transition',
    'compute_progress',
    'JobStore',
    'InMemoryJobStore',
    'PostgresJobStore',
    'build_job_store',
    'StepDefinition',
    'StepRegistry',
    'register_step',
    'register_pipeline',
    'StepRunner',
    'classify_failure',
    'PipelineOrchestrator',
    'project',
    'EngineEvents',
    'NullEvents',
    'EngineBridge',
    'get_engine_bridge',
    'set_engine_bridge',
]
