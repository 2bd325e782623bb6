"""
Máquina de estados do Job.

    queued → running → {completed, failed}

Dentro de running, current_step anda da esquerda para a direita em job.steps
e nunca volta. completed e failed são terminais.

apply_transition() é pura: recebe um Job e devolve um NOVO Job, sem tocar
no original. O JobStore aplica a função dentro do lock/transação do job.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from .errors import InvalidTransition
from .models import Job, JobStatus, StepOutcomeKind, StepResult, utc_now_iso

_DONE_OUTCOMES = (StepOutcomeKind.SUCCESS, StepOutcomeKind.SKIPPED)


class TransitionKind(str, Enum):
    START = "start"
    STEP_SUCCEEDED = "step_succeeded"
    STEP_SKIPPED = "step_skipped"
    STEP_FAILED = "step_failed"


@dataclass(frozen=True)
class JobTransition:
    kind: TransitionKind
    step: Optional[str] = None
    step_result: Optional[StepResult] = None
    result: Optional[Dict] = None          # artefato final, só quando é o último step
    error_message: Optional[str] = None

    @classmethod
    def start(cls) -> 'JobTransition':
        return cls(kind=TransitionKind.START)

    @classmethod
    def step_succeeded(cls, step: str, step_result: StepResult,
                       result: Dict = None) -> 'JobTransition':
        return cls(kind=TransitionKind.STEP_SUCCEEDED, step=step,
                   step_result=step_result, result=result)

    @classmethod
    def step_skipped(cls, step: str, step_result: StepResult,
                     result: Dict = None) -> 'JobTransition':
        return cls(kind=TransitionKind.STEP_SKIPPED, step=step,
                   step_result=step_result, result=result)

    @classmethod
    def step_failed(cls, step: str, step_result: StepResult,
                    error_message: str) -> 'JobTransition':
        return cls(kind=TransitionKind.STEP_FAILED, step=step,
                   step_result=step_result, error_message=error_message)


def compute_progress(job: Job) -> int:
    """round(100 * steps concluídos / total), meio para cima. 100 só em completed."""
    total = len(job.steps)
    if total == 0:
        return 0
    done = sum(
        1 for name in job.steps
        if name in job.step_results and job.step_results[name].outcome in _DONE_OUTCOMES
    )
    progress = int(math.floor(100 * done / total + 0.5))
    if done < total:
        progress = min(progress, 99)
    return progress


def apply_transition(job: Job, transition: JobTransition, now: str = None) -> Job:
    """
    Valida e aplica uma transição.

    Raises:
        InvalidTransition: se o movimento não é legal a partir do estado atual
    """
    if job.status.is_terminal:
        raise InvalidTransition(
            f"Job {job.id} já está em estado terminal ({job.status.value})"
        )

    new_job = job.snapshot()
    new_job.updated_at = now or utc_now_iso()

    if transition.kind == TransitionKind.START:
        if job.status != JobStatus.QUEUED:
            raise InvalidTransition(
                f"Job {job.id} não pode iniciar a partir de '{job.status.value}'"
            )
        new_job.status = JobStatus.RUNNING
        new_job.current_step = job.steps[0]
        return new_job

    if job.status != JobStatus.RUNNING:
        raise InvalidTransition(
            f"Job {job.id} não está rodando (status={job.status.value})"
        )
    if transition.step != job.current_step:
        raise InvalidTransition(
            f"Step '{transition.step}' não é o step atual do job {job.id} "
            f"('{job.current_step}')"
        )
    if transition.step_result is None:
        raise InvalidTransition(f"Transição {transition.kind.value} sem step_result")

    if transition.kind == TransitionKind.STEP_FAILED:
        if transition.step_result.outcome != StepOutcomeKind.FAILURE:
            raise InvalidTransition("step_failed exige outcome=failure")
        message = (transition.error_message or transition.step_result.error
                   or f"Step '{transition.step}' falhou")
        new_job.step_results[transition.step] = transition.step_result
        new_job.status = JobStatus.FAILED
        new_job.error_message = message
        # current_step continua apontando para o step que causou a falha
        return new_job

    expected = {
        TransitionKind.STEP_SUCCEEDED: StepOutcomeKind.SUCCESS,
        TransitionKind.STEP_SKIPPED: StepOutcomeKind.SKIPPED,
    }.get(transition.kind)
    if expected is None:
        raise InvalidTransition(f"Transição desconhecida: {transition.kind}")
    if transition.step_result.outcome != expected:
        raise InvalidTransition(
            f"{transition.kind.value} exige outcome={expected.value}"
        )

    new_job.step_results[transition.step] = transition.step_result
    index = job.steps.index(transition.step)

    if index == len(job.steps) - 1:
        new_job.status = JobStatus.COMPLETED
        new_job.current_step = None
        new_job.progress = 100
        new_job.result = transition.result or {}
        return new_job

    new_job.current_step = job.steps[index + 1]
    new_job.progress = max(job.progress, compute_progress(new_job))
    return new_job
