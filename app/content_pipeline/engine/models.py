"""
Modelos de dados do Pipeline Engine.

Job: um pedido de processamento de conteúdo passando por steps fixos.
StepResult: registro persistido do resultado de um step (job.step_results).
StepOutcome: retorno do StepRunner para o orquestrador.
"""

import logging
from copy import deepcopy
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class JobStatus(str, Enum):
    """Status possíveis de um job"""
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class StepOutcomeKind(str, Enum):
    """Resultado de um step"""
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


@dataclass
class StepResult:
    """Registro de um step em job.step_results."""
    outcome: StepOutcomeKind
    output: Optional[Dict] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None    # transient, permanent, timeout
    attempts: int = 0
    started_at: Optional[str] = None
    finished_at: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'outcome': self.outcome.value,
            'output': self.output,
            'error': self.error,
            'error_kind': self.error_kind,
            'attempts': self.attempts,
            'started_at': self.started_at,
            'finished_at': self.finished_at,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'StepResult':
        return cls(
            outcome=StepOutcomeKind(data['outcome']),
            output=data.get('output'),
            error=data.get('error'),
            error_kind=data.get('error_kind'),
            attempts=data.get('attempts') or 0,
            started_at=data.get('started_at'),
            finished_at=data.get('finished_at'),
        )


@dataclass
class Job:
    """
    Job de processamento de conteúdo.

    Só o orquestrador escreve (via JobStore.transition). Endpoints e o
    StatusProjector recebem snapshots (cópias) e apenas leem.
    """

    # ─── Identificação (imutável após criação) ───
    id: str
    owner_identity: str
    steps: List[str]
    job_type: str = "upload"
    payload: Dict = field(default_factory=dict)

    # ─── Ciclo de vida ───
    status: JobStatus = JobStatus.QUEUED
    current_step: Optional[str] = None
    step_results: Dict[str, StepResult] = field(default_factory=dict)
    progress: int = 0
    result: Optional[Dict] = None
    error_message: Optional[str] = None

    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    def step_succeeded(self, step_name: str) -> bool:
        recorded = self.step_results.get(step_name)
        return recorded is not None and recorded.outcome == StepOutcomeKind.SUCCESS

    def step_output(self, step_name: str) -> Dict:
        """Output de um step anterior (vazio se não rodou ou foi skipped)."""
        recorded = self.step_results.get(step_name)
        if recorded is None or recorded.outcome != StepOutcomeKind.SUCCESS:
            return {}
        return recorded.output or {}

    def snapshot(self) -> 'Job':
        return deepcopy(self)

    def to_dict(self) -> Dict:
        """Serializa para JSON (persistência e debug)."""
        return {
            'id': self.id,
            'owner_identity': self.owner_identity,
            'steps': list(self.steps),
            'job_type': self.job_type,
            'payload': self.payload,
            'status': self.status.value,
            'current_step': self.current_step,
            'step_results': {k: v.to_dict() for k, v in self.step_results.items()},
            'progress': self.progress,
            'result': self.result,
            'error_message': self.error_message,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Job':
        """Deserializa de JSON. Ignora campos desconhecidos (forward-compat)."""
        valid_fields = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_fields}
        filtered['status'] = JobStatus(filtered.get('status') or JobStatus.QUEUED.value)
        filtered['step_results'] = {
            name: raw if isinstance(raw, StepResult) else StepResult.from_dict(raw)
            for name, raw in (filtered.get('step_results') or {}).items()
        }
        for key in ('created_at', 'updated_at'):
            if isinstance(filtered.get(key), datetime):
                filtered[key] = filtered[key].isoformat()
        return cls(**filtered)

    def summary(self) -> Dict:
        """Resumo compacto (logs e debug)."""
        return {
            'id': self.id,
            'job_type': self.job_type,
            'status': self.status.value,
            'current_step': self.current_step,
            'progress': self.progress,
            'done': [s for s in self.steps if s in self.step_results],
            'error_message': self.error_message,
        }


@dataclass
class StepOutcome:
    """
    Resultado de StepRunner.run().

    reused=True quando o step já estava como success em step_results e o
    colaborador externo não foi chamado de novo.
    """
    step_name: str
    outcome: StepOutcomeKind
    output: Optional[Dict] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    attempts: int = 0
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    reused: bool = False

    @property
    def success(self) -> bool:
        return self.outcome == StepOutcomeKind.SUCCESS

    def to_step_result(self, outcome: StepOutcomeKind = None) -> StepResult:
        return StepResult(
            outcome=outcome or self.outcome,
            output=self.output,
            error=self.error,
            error_kind=self.error_kind,
            attempts=self.attempts,
            started_at=self.started_at,
            finished_at=self.finished_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_step_result().to_dict()
        data.update({'step_name': self.step_name, 'reused': self.reused})
        return data
