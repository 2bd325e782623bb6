"""
Job Store - Persiste e carrega Jobs de processamento.

Fonte de verdade = PostgreSQL (tabela processing_jobs, colunas JSONB).
InMemoryJobStore existe para dev local e testes: mesmo contrato, sem
durabilidade.

Toda escrita passa por transition(), que faz read-validate-write atômico
por job (lock de linha no Postgres, lock por job em memória).
"""

import logging
import secrets
import threading
import time
from typing import Callable, Dict, List, Optional, Sequence

from psycopg2.extras import Json

from .errors import InvalidInput, NotFound
from .models import Job, JobStatus, utc_now_iso
from .state_machine import JobTransition, apply_transition

logger = logging.getLogger(__name__)


def new_job_id() -> str:
    """ID opaco no formato proc_<epoch_ms>_<hex>."""
    return f"proc_{int(time.time() * 1000)}_{secrets.token_hex(8)}"


def _validate_create(owner_identity: str, steps: Sequence[str]) -> List[str]:
    if not owner_identity:
        raise InvalidInput("owner_identity é obrigatório")
    steps = list(steps or [])
    if not steps:
        raise InvalidInput("A sequência de steps não pode ser vazia")
    if len(set(steps)) != len(steps):
        raise InvalidInput(f"Steps duplicados: {steps}")
    return steps


class JobStore:
    """Contrato comum dos backends."""

    def create(self, owner_identity: str, steps: Sequence[str],
               job_type: str = "upload", payload: Dict = None) -> str:
        raise NotImplementedError

    def get(self, job_id: str) -> Job:
        raise NotImplementedError

    def transition(self, job_id: str, transition: JobTransition) -> Job:
        raise NotImplementedError

    def list_by_owner(self, owner_identity: str, limit: int = 50) -> List[Job]:
        raise NotImplementedError


class InMemoryJobStore(JobStore):
    """Backend em memória (thread-safe, não durável)."""

    def __init__(self):
        self._jobs: Dict[str, Job] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, job_id: str) -> threading.Lock:
        with self._registry_lock:
            if job_id not in self._jobs:
                raise NotFound(f"Job {job_id} não encontrado")
            return self._locks[job_id]

    def create(self, owner_identity, steps, job_type="upload", payload=None):
        steps = _validate_create(owner_identity, steps)
        job = Job(
            id=new_job_id(),
            owner_identity=owner_identity,
            steps=steps,
            job_type=job_type,
            payload=dict(payload or {}),
        )
        with self._registry_lock:
            self._jobs[job.id] = job
            self._locks[job.id] = threading.Lock()
        logger.info(f"📝 [STORE] Job criado: {job.id} ({job_type}, steps={steps})")
        return job.id

    def get(self, job_id):
        with self._lock_for(job_id):
            return self._jobs[job_id].snapshot()

    def transition(self, job_id, transition):
        with self._lock_for(job_id):
            current = self._jobs[job_id]
            updated = apply_transition(current, transition)
            self._jobs[job_id] = updated
            return updated.snapshot()

    def list_by_owner(self, owner_identity, limit=50):
        with self._registry_lock:
            owned = [j for j in self._jobs.values() if j.owner_identity == owner_identity]
        owned.sort(key=lambda j: j.created_at, reverse=True)
        return [j.snapshot() for j in owned[:limit]]


class PostgresJobStore(JobStore):
    """
    Backend PostgreSQL.

    transition() roda em UMA transação: SELECT ... FOR UPDATE trava a linha
    do job, a máquina de estados valida, o UPDATE grava e o commit acontece
    antes do retorno (nenhuma transição se perde em crash).
    """

    _COLUMNS = (
        "id, owner_identity, job_type, payload, status, current_step, steps, "
        "step_results, progress, result, error_message, created_at, updated_at"
    )

    def __init__(self, db_cursor_func: Callable = None):
        if db_cursor_func is None:
            from app.db import get_db_cursor
            db_cursor_func = get_db_cursor
        self.db_cursor_func = db_cursor_func

    def create(self, owner_identity, steps, job_type="upload", payload=None):
        steps = _validate_create(owner_identity, steps)
        job_id = new_job_id()
        now = utc_now_iso()
        with self.db_cursor_func() as cursor:
            cursor.execute(
                """
                INSERT INTO processing_jobs
                    (id, owner_identity, job_type, payload, status, current_step,
                     steps, step_results, progress, result, error_message,
                     created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s, NULL, %s, %s, 0, NULL, NULL, %s, %s)
                """,
                (job_id, owner_identity, job_type, Json(dict(payload or {})),
                 JobStatus.QUEUED.value, Json(steps), Json({}), now, now)
            )
        logger.info(f"📝 [STORE] Job criado: {job_id} ({job_type}, steps={steps})")
        return job_id

    def get(self, job_id):
        with self.db_cursor_func() as cursor:
            cursor.execute(
                f"SELECT {self._COLUMNS} FROM processing_jobs WHERE id = %s",
                (job_id,)
            )
            row = cursor.fetchone()
        if not row:
            raise NotFound(f"Job {job_id} não encontrado")
        return Job.from_dict(dict(row))

    def transition(self, job_id, transition):
        with self.db_cursor_func() as cursor:
            cursor.execute(
                f"SELECT {self._COLUMNS} FROM processing_jobs WHERE id = %s FOR UPDATE",
                (job_id,)
            )
            row = cursor.fetchone()
            if not row:
                raise NotFound(f"Job {job_id} não encontrado")

            updated = apply_transition(Job.from_dict(dict(row)), transition)
            data = updated.to_dict()
            cursor.execute(
                """
                UPDATE processing_jobs
                SET status = %s, current_step = %s, step_results = %s,
                    progress = %s, result = %s, error_message = %s, updated_at = %s
                WHERE id = %s
                """,
                (data['status'], data['current_step'], Json(data['step_results']),
                 data['progress'], Json(data['result']) if data['result'] is not None else None,
                 data['error_message'], data['updated_at'], job_id)
            )
        logger.info(f"💾 [STORE] {job_id}: {transition.kind.value} "
                    f"→ status={updated.status.value}, progress={updated.progress}")
        return updated

    def list_by_owner(self, owner_identity, limit=50):
        with self.db_cursor_func() as cursor:
            cursor.execute(
                f"""
                SELECT {self._COLUMNS} FROM processing_jobs
                WHERE owner_identity = %s
                ORDER BY created_at DESC
                LIMIT %s
                """,
                (owner_identity, limit)
            )
            rows = cursor.fetchall()
        return [Job.from_dict(dict(row)) for row in rows]


def build_job_store(backend: Optional[str] = None) -> JobStore:
    """Cria o backend configurado em JOB_STORE_BACKEND (postgres | memory)."""
    from app.config import JOB_STORE_BACKEND
    backend = (backend or JOB_STORE_BACKEND).lower()
    if backend == 'memory':
        logger.warning("⚠️ [STORE] JobStore em memória: jobs não sobrevivem a restart")
        return InMemoryJobStore()
    if backend == 'postgres':
        return PostgresJobStore()
    raise ValueError(f"JOB_STORE_BACKEND inválido: {backend}")
