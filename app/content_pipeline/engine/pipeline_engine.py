"""
Pipeline Engine - Orquestrador de jobs de conteúdo.

Leva um job por seus steps em ordem, persistindo cada transição no
JobStore ANTES de iniciar o próximo step:

    queued → running(validate → transcode → pin → mint → index) → completed
                                   ↘ failed (primeira falha vence)

Regras:
- Step com success nunca é revisitado (retomada após crash pula direto).
- Retry é por step (StepRunner), não por job.
- Step opcional que esgota tentativas vira skipped e o pipeline segue.
- Step obrigatório que falha encerra o job como failed; steps seguintes
  nunca rodam.
"""

import logging
import threading
import time
from typing import Dict, Optional

from .errors import InvalidTransition
from .events import EngineEvents
from .job_store import JobStore
from .models import Job, JobStatus, StepOutcome, StepOutcomeKind, utc_now_iso
from .state_machine import JobTransition
from .step_registry import StepDefinition, StepRegistry
from .step_runner import PERMANENT, StepRunner

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """
    Motor principal do pipeline.

    Responsabilidades:
    - Criar jobs com a topologia do tipo (submit)
    - Executar steps na ordem gravada no job (run)
    - Decidir avanço / skip / falha a partir do StepOutcome
    - Emitir eventos para o frontend

    Não faz:
    - Retry e timeout (isso é do StepRunner)
    - Gerenciar filas (isso é do worker.py)
    """

    def __init__(self, job_store: JobStore, runner: StepRunner = None,
                 registry=StepRegistry, events: EngineEvents = None):
        self.job_store = job_store
        self.runner = runner or StepRunner()
        self.registry = registry
        self.events = events or EngineEvents()
        self._active = set()
        self._active_lock = threading.Lock()

    def submit(self, owner_identity: str, job_type: str = "upload",
               payload: Dict = None) -> str:
        """Cria o job em queued com os steps do tipo. Não executa nada."""
        steps = self.registry.pipeline_for(job_type)
        job_id = self.job_store.create(owner_identity, steps, job_type=job_type, payload=payload)
        logger.info(f"🎬 [ENGINE] Job {job_id} criado para {owner_identity} ({job_type})")
        return job_id

    def run(self, job_id: str, params: Dict = None) -> Job:
        """
        Executa (ou retoma) um job até um estado terminal.

        Chamadas concorrentes no mesmo processo para o mesmo job não
        executam em paralelo: a segunda só devolve o snapshot atual.
        """
        with self._active_lock:
            if job_id in self._active:
                logger.warning(f"⚠️ [ENGINE] Job {job_id} já está em execução neste processo")
                return self.job_store.get(job_id)
            self._active.add(job_id)

        try:
            return self._drive(job_id, params or {})
        finally:
            with self._active_lock:
                self._active.discard(job_id)

    def _drive(self, job_id: str, params: Dict) -> Job:
        job = self.job_store.get(job_id)

        if job.status.is_terminal:
            logger.info(f"⏭️ [ENGINE] Job {job_id} já terminou ({job.status.value})")
            return job

        if job.status == JobStatus.QUEUED:
            job = self.job_store.transition(job_id, JobTransition.start())
            self.events.job_start(job_id, total_steps=len(job.steps))
            logger.info(f"🚀 [ENGINE] Iniciando pipeline {job_id}: {job.steps}")
        else:
            logger.info(f"🔄 [ENGINE] Retomando pipeline {job_id} em '{job.current_step}'")

        pipeline_start = time.time()

        try:
            while job.status == JobStatus.RUNNING:
                step_name = job.current_step
                step_def = self.registry.get(step_name)
                self.events.step_start(job_id, step_name)

                if step_def is None:
                    now = utc_now_iso()
                    outcome = StepOutcome(
                        step_name=step_name,
                        outcome=StepOutcomeKind.FAILURE,
                        error=f"Step '{step_name}' não registrado",
                        error_kind=PERMANENT,
                        started_at=now,
                        finished_at=now,
                    )
                else:
                    outcome = self.runner.run(step_def, job, params)

                job = self._record(job, step_def, outcome)

        except InvalidTransition as e:
            # Outro executor mexeu no job: o resultado deste step é descartado
            logger.error(f"❌ [ENGINE] Transição rejeitada para {job_id}: {e}")
            return self.job_store.get(job_id)

        total_ms = int((time.time() - pipeline_start) * 1000)
        if job.status == JobStatus.COMPLETED:
            logger.info(f"✅ [ENGINE] Pipeline completo para {job_id} ({total_ms}ms)")
            self.events.job_complete(job_id, job.result, duration_ms=total_ms)
        else:
            logger.error(f"❌ [ENGINE] Pipeline {job_id} falhou em '{job.current_step}': "
                         f"{job.error_message}")
            self.events.job_error(job_id, job.error_message, step=job.current_step)
        return job

    def _record(self, job: Job, step_def: Optional[StepDefinition],
                outcome: StepOutcome) -> Job:
        """Converte o StepOutcome em transição e persiste."""
        step_name = outcome.step_name
        is_last = job.steps[-1] == step_name

        if outcome.success:
            result = self._build_result(job, outcome) if is_last else None
            transition = JobTransition.step_succeeded(
                step_name, outcome.to_step_result(), result=result
            )
        elif step_def is not None and step_def.optional:
            logger.info(f"⏭️ [{step_name}] Step opcional, continuando pipeline")
            result = self._build_result(job, outcome) if is_last else None
            transition = JobTransition.step_skipped(
                step_name, outcome.to_step_result(StepOutcomeKind.SKIPPED), result=result
            )
        else:
            transition = JobTransition.step_failed(
                step_name, outcome.to_step_result(), error_message=outcome.error
            )

        new_job = self.job_store.transition(job.id, transition)

        if outcome.success or new_job.status != JobStatus.FAILED:
            self.events.step_complete(job.id, step_name, progress=new_job.progress,
                                      skipped=not outcome.success)
        else:
            self.events.step_error(job.id, step_name, outcome.error)
        return new_job

    def _build_result(self, job: Job, last_outcome: StepOutcome) -> Dict:
        """
        Monta job.result juntando as chaves que cada step declara em produces.
        Steps posteriores sobrescrevem chaves de steps anteriores.
        """
        result = {}
        for step_name in job.steps:
            if step_name == last_outcome.step_name:
                output = last_outcome.output if last_outcome.success else {}
            else:
                output = job.step_output(step_name)
            step_def = self.registry.get(step_name)
            if not output or step_def is None:
                continue
            for key in step_def.produces:
                if output.get(key) is not None:
                    result[key] = output[key]
        return result

    def get_debug_info(self, job_id: str) -> Dict:
        """Debug completo de um job (suporte)."""
        job = self.job_store.get(job_id)
        return {
            **job.summary(),
            'steps': job.steps,
            'step_results': {k: v.to_dict() for k, v in job.step_results.items()},
            'result': job.result,
            'created_at': job.created_at,
            'updated_at': job.updated_at,
        }
