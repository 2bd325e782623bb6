"""
Engine Events - Publica eventos do pipeline no Redis (pub/sub).

Canal: job:{job_id}:events. O frontend/BFF assina o canal para mostrar
progresso sem polling. Todos os métodos são fire-and-forget: falha ao
publicar nunca interrompe o pipeline.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


def sanitize_error(error: str) -> str:
    """Mensagem segura para clientes (sem detalhes técnicos longos)."""
    if not error:
        return 'Erro desconhecido'
    lowered = error.lower()
    if 'timeout' in lowered:
        return 'O processamento demorou mais que o esperado. Tente novamente.'
    if 'connection' in lowered or 'erro de rede' in lowered:
        return 'Erro de conexão com serviço externo. Tente novamente.'
    if len(error) > 200:
        return error[:200] + '...'
    return error


class EngineEvents:
    """
    Emissor de eventos do engine.

    redis_factory: callable que devolve um client Redis (ou None). Default:
    app.content_pipeline.queue.get_redis_client.
    """

    def __init__(self, redis_factory: Optional[Callable] = None):
        self._redis_factory = redis_factory
        self._client = None

    def _get_client(self):
        if self._client is None:
            factory = self._redis_factory
            if factory is None:
                from ..queue import get_redis_client
                factory = get_redis_client
            self._client = factory()
        return self._client

    def _emit(self, job_id: str, event_type: str, data: Dict[str, Any]) -> None:
        try:
            client = self._get_client()
            if client is None:
                return
            payload = {'event': event_type, 'job_id': job_id, 'timestamp': time.time(), **data}
            client.publish(f"job:{job_id}:events", json.dumps(payload))
        except Exception as e:
            logger.warning(f"⚠️ [EVENTS] Falha em {event_type}: {e}")
            self._client = None

    def job_start(self, job_id: str, total_steps: int = None) -> None:
        self._emit(job_id, 'job_start', {'status': 'running', 'total_steps': total_steps})

    def job_complete(self, job_id: str, result: Dict = None, duration_ms: int = None) -> None:
        self._emit(job_id, 'job_complete', {
            'status': 'completed',
            'result': result or {},
            'duration_ms': duration_ms,
        })

    def job_error(self, job_id: str, error: str, step: str = None) -> None:
        self._emit(job_id, 'job_error', {
            'status': 'failed',
            'error': sanitize_error(error),
            'step': step,
        })

    def step_start(self, job_id: str, step: str) -> None:
        self._emit(job_id, 'step_start', {'step': step})

    def step_complete(self, job_id: str, step: str, progress: int = None,
                      skipped: bool = False) -> None:
        self._emit(job_id, 'step_complete', {
            'step': step,
            'progress': progress,
            'skipped': skipped,
        })

    def step_error(self, job_id: str, step: str, error: str) -> None:
        self._emit(job_id, 'step_error', {'step': step, 'error': sanitize_error(error)})


class NullEvents(EngineEvents):
    """Eventos desligados (testes, scripts)."""

    def _emit(self, job_id, event_type, data):
        return None
