"""
Bridge: ponto de entrada do Pipeline Engine.

Responsabilidades:
1. Criar jobs e enfileirar no Redis (start_processing)
2. Executar o pipeline quando o worker pega o job (execute_pipeline)
3. Leitura autorizada do status para o polling (get_status, list_jobs)
"""

import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from .errors import Forbidden
from .job_store import JobStore, build_job_store
from .models import Job
from .pipeline_engine import PipelineOrchestrator
from .status_projector import project

logger = logging.getLogger(__name__)


class EngineBridge:
    """
    Ponto de entrada do Pipeline Engine.

    Uso:
        bridge = get_engine_bridge()
        job_id, queued = bridge.start_processing(owner, 'upload', metadata)  # API
        bridge.execute_pipeline(job_id)                                     # Worker
    """

    def __init__(self, job_store: JobStore = None,
                 orchestrator: PipelineOrchestrator = None,
                 enqueue: Callable[[str], bool] = None,
                 inline_fallback: bool = None):
        from app.config import PIPELINE_INLINE_FALLBACK

        self.job_store = job_store or build_job_store()
        self.orchestrator = orchestrator or PipelineOrchestrator(self.job_store)
        if enqueue is None:
            from ..queue import enqueue_job
            enqueue = enqueue_job
        self._enqueue = enqueue
        self.inline_fallback = PIPELINE_INLINE_FALLBACK if inline_fallback is None else inline_fallback
        logger.info("🚀 [ENGINE] Bridge inicializada")

    # ═══════════════════════════════════════════════════════════════
    # API Layer: chamado pelos endpoints
    # ═══════════════════════════════════════════════════════════════

    def start_processing(self, owner_identity: str, job_type: str = "upload",
                         metadata: Dict = None) -> Tuple[str, bool]:
        """
        Cria o job e enfileira.

        Returns:
            (job_id, queued). queued=False quando o Redis estava fora; nesse
            caso o job roda numa thread local (se o fallback estiver ligado).
        """
        job_id = self.orchestrator.submit(owner_identity, job_type=job_type, payload=metadata)

        queued = self._enqueue(job_id)
        if not queued:
            if self.inline_fallback:
                logger.warning(f"⚠️ Redis indisponível, executando job {job_id} localmente")
                thread = threading.Thread(
                    target=self._run_inline,
                    args=(job_id,),
                    daemon=True
                )
                thread.start()
            else:
                logger.error(f"❌ Redis indisponível e fallback desligado: job {job_id} fica em queued")

        return job_id, queued

    def get_status(self, job_id: str, actor_identity: str) -> Dict:
        """
        StatusView de um job do próprio ator.

        Raises:
            NotFound: job não existe
            Forbidden: job pertence a outro ator (nenhum dado é devolvido)
        """
        job = self.job_store.get(job_id)
        if job.owner_identity != actor_identity:
            logger.warning(f"🚫 [ENGINE] {actor_identity} tentou ler job {job_id} de outro dono")
            raise Forbidden("Acesso negado a este processamento")
        return project(job)

    def list_jobs(self, owner_identity: str, limit: int = 50) -> List[Dict]:
        return [project(job) for job in self.job_store.list_by_owner(owner_identity, limit=limit)]

    # ═══════════════════════════════════════════════════════════════
    # Worker Layer: chamado pelo worker.py via Redis
    # ═══════════════════════════════════════════════════════════════

    def execute_pipeline(self, job_id: str) -> Job:
        """Executa (ou retoma) o pipeline de um job até estado terminal."""
        start = time.time()
        job = self.orchestrator.run(job_id)
        elapsed = time.time() - start
        logger.info(f"🏁 [ENGINE] execute_pipeline {job_id}: {job.status.value} "
                    f"em {elapsed:.1f}s (progress={job.progress})")
        return job

    def _run_inline(self, job_id: str):
        try:
            self.execute_pipeline(job_id)
        except Exception as e:
            logger.exception(f"❌ [ENGINE] Execução local do job {job_id} falhou: {e}")


# ═══════════════════════════════════════════════════════════════
# Singleton
# ═══════════════════════════════════════════════════════════════

_bridge: Optional[EngineBridge] = None
_bridge_lock = threading.Lock()


def get_engine_bridge() -> EngineBridge:
    """Retorna instância singleton da bridge."""
    global _bridge
    if _bridge is None:
        with _bridge_lock:
            if _bridge is None:
                _bridge = EngineBridge()
    return _bridge


def set_engine_bridge(bridge: Optional[EngineBridge]) -> None:
    """Substitui o singleton (testes, app factory)."""
    global _bridge
    _bridge = bridge
