"""
Utilitários de fila Redis para o pipeline de conteúdo.

Funções:
- get_redis_client: obtém conexão Redis
- enqueue_job: enfileira job para execute_pipeline
- parse_queue_message: decodifica mensagem da fila (worker)
- get_queue_stats: tamanho da fila + workers vivos (GET /api/queue/status)
"""

import json
import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)

WORKER_KEY_PREFIX = 'provn:worker:'
RESULTS_KEY = 'provn:worker:results'


def get_redis_client():
    """
    Obtém conexão Redis.

    Returns:
        Redis client conectado, ou None se indisponível
    """
    try:
        from redis import Redis
        from app.config import REDIS_HOST, REDIS_PORT, REDIS_PASSWORD

        client = Redis(
            host=REDIS_HOST,
            port=REDIS_PORT,
            password=REDIS_PASSWORD,
            decode_responses=True
        )
        client.ping()
        return client

    except Exception as e:
        logger.warning(f"⚠️ Falha ao conectar ao Redis: {e}")
        return None


def enqueue_job(job_id: str, client=None, queue_name: str = None) -> bool:
    """
    Enfileira job para execute_pipeline.

    Mensagem: JSON {"action": "execute_pipeline", "job_id": ...}.

    Returns:
        True se enfileirou com sucesso, False caso contrário
    """
    from app.config import PIPELINE_QUEUE_NAME
    queue_name = queue_name or PIPELINE_QUEUE_NAME

    try:
        client = client or get_redis_client()
        if not client:
            return False

        message = json.dumps({'action': 'execute_pipeline', 'job_id': job_id})
        client.rpush(queue_name, message)
        queue_size = client.llen(queue_name)
        logger.info(f"📤 Job {job_id} enfileirado no Redis (fila: {queue_size})")
        return True

    except Exception as e:
        logger.warning(f"⚠️ Falha ao enfileirar job no Redis: {e}")
        return False


def parse_queue_message(raw_message: str) -> Dict[str, str]:
    """
    Parseia mensagem da fila.

    Aceita JSON {"action", "job_id"} ou string pura (= job_id).
    """
    if raw_message.startswith('{'):
        try:
            data = json.loads(raw_message)
            return {
                'action': data.get('action', 'execute_pipeline'),
                'job_id': data.get('job_id', raw_message),
            }
        except json.JSONDecodeError:
            pass
    return {'action': 'execute_pipeline', 'job_id': raw_message}


def get_queue_stats(client=None, queue_name: str = None) -> Optional[Dict]:
    """
    Estado da fila para monitoramento.

    Returns:
        {'queue', 'pending', 'workers': [...]} ou None se Redis indisponível
    """
    from app.config import PIPELINE_QUEUE_NAME
    queue_name = queue_name or PIPELINE_QUEUE_NAME

    client = client or get_redis_client()
    if not client:
        return None

    workers = []
    for key in client.scan_iter(match=f"{WORKER_KEY_PREFIX}*"):
        if key == RESULTS_KEY:
            continue
        info = client.hgetall(key)
        if info:
            workers.append({'id': key[len(WORKER_KEY_PREFIX):], **info})

    return {
        'queue': queue_name,
        'pending': client.llen(queue_name) or 0,
        'workers': sorted(workers, key=lambda w: w['id']),
    }
