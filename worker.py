#!/usr/bin/env python3
"""
Provn Pipeline Worker

Consome mensagens `execute_pipeline` da fila Redis e roda o pipeline de
conteúdo para cada job, uma thread por job.

    python worker.py -c 4
    python worker.py --queue provn_pipeline_staging
"""

import argparse
import json
import logging
import os
import signal
import socket
import sys
import threading
import time
from datetime import datetime, timezone

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)-7s [%(name)s] %(message)s',
    stream=sys.stdout
)
logger = logging.getLogger('provn.worker')

for noisy in ('urllib3', 'requests', 'httpx'):
    logging.getLogger(noisy).setLevel(logging.WARNING)

from app.config import (  # noqa: E402
    JOB_LOCK_TIMEOUT_S, PIPELINE_QUEUE_NAME, REDIS_HOST, REDIS_PASSWORD, REDIS_PORT,
)
from app.content_pipeline.queue import RESULTS_KEY, WORKER_KEY_PREFIX, parse_queue_message  # noqa: E402

HEARTBEAT_INTERVAL_S = 30
WORKER_TTL_S = 300
RESULTS_KEPT = 100
JOB_LOCK_PREFIX = "provn:pipeline:lock:"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class PipelineWorker:
    """
    Executor de jobs do pipeline alimentado pela fila Redis.

    Cada job roda sob um lock `provn:pipeline:lock:<job_id>`, então uma
    mensagem duplicada na fila não gera execução dupla. O hash
    `provn:worker:<host>:<pid>` é renovado a cada heartbeat e some
    sozinho (TTL) se o processo morrer.
    """

    def __init__(self, queue_name: str = PIPELINE_QUEUE_NAME, max_concurrency: int = 2,
                 redis_client=None, bridge=None):
        self.queue_name = queue_name
        self.max_concurrency = max_concurrency
        self.running = True

        self.active_jobs = 0
        self.processed_count = 0
        self.failed_count = 0
        self._counter_lock = threading.Lock()

        self._bridge = bridge
        self.worker_id = f"{socket.gethostname()}:{os.getpid()}"
        self.redis = redis_client if redis_client is not None else self._open_redis()
        self._announce()

    # ------------------------------------------------------------------
    # Redis / registro
    # ------------------------------------------------------------------

    def _open_redis(self):
        from redis import Redis
        from redis.exceptions import RedisError

        client = Redis(host=REDIS_HOST, port=REDIS_PORT, password=REDIS_PASSWORD,
                       decode_responses=True)
        try:
            client.ping()
        except RedisError as e:
            logger.error(f"❌ [WORKER] Redis indisponível em {REDIS_HOST}:{REDIS_PORT}: {e}")
            sys.exit(1)

        logger.info(f"✅ [WORKER] Redis OK ({REDIS_HOST}:{REDIS_PORT}, "
                    f"auth={'sim' if REDIS_PASSWORD else 'não'})")
        return client

    @property
    def bridge(self):
        if self._bridge is None:
            from app.content_pipeline.engine.bridge import get_engine_bridge
            self._bridge = get_engine_bridge()
        return self._bridge

    @property
    def worker_key(self) -> str:
        return f"{WORKER_KEY_PREFIX}{self.worker_id}"

    def _touch(self, fields: dict):
        self.redis.hset(self.worker_key, mapping=fields)
        self.redis.expire(self.worker_key, WORKER_TTL_S)

    def _announce(self):
        hostname, pid = self.worker_id.rsplit(':', 1)
        self._touch({
            'hostname': hostname,
            'pid': pid,
            'queue': self.queue_name,
            'max_concurrency': self.max_concurrency,
            'started_at': _now(),
            'status': 'running',
        })
        logger.info(f"📝 [WORKER] {self.worker_id} registrado em {self.worker_key}")

    def _snapshot(self) -> dict:
        with self._counter_lock:
            return {
                'active_jobs': self.active_jobs,
                'processed': self.processed_count,
                'failed': self.failed_count,
            }

    def _heartbeat(self):
        while self.running:
            try:
                self._touch({**self._snapshot(), 'last_heartbeat': _now(), 'status': 'running'})
            except Exception as e:
                logger.warning(f"⚠️ [WORKER] heartbeat falhou: {e}")
            time.sleep(HEARTBEAT_INTERVAL_S)

    # ------------------------------------------------------------------
    # Sinais
    # ------------------------------------------------------------------

    def install_signal_handlers(self):
        for sig in (signal.SIGTERM, signal.SIGINT):
            signal.signal(sig, self._handle_shutdown)

    def _handle_shutdown(self, signum, frame):
        logger.info(f"🛑 [WORKER] sinal {signum}: parando de consumir a fila")
        self.running = False

    # ------------------------------------------------------------------
    # Execução
    # ------------------------------------------------------------------

    def _has_free_slot(self) -> bool:
        with self._counter_lock:
            return self.active_jobs < self.max_concurrency

    def _count(self, attr: str, delta: int = 1):
        with self._counter_lock:
            setattr(self, attr, getattr(self, attr) + delta)

    def process_job(self, job_id: str):
        """Roda um job já retirado da fila. Sempre libera o slot ao final."""
        started = time.monotonic()
        lock = self.redis.lock(f"{JOB_LOCK_PREFIX}{job_id}", timeout=JOB_LOCK_TIMEOUT_S)

        try:
            if not lock.acquire(blocking=False):
                logger.warning(f"🔒 [WORKER] {job_id} já está com outro worker, ignorando")
                return

            logger.info(f"🎬 [WORKER] executando {job_id}")
            try:
                job = self.bridge.execute_pipeline(job_id)
            finally:
                try:
                    lock.release()
                except Exception as e:
                    # lock expirou (JOB_LOCK_TIMEOUT_S) antes do pipeline terminar
                    logger.warning(f"⚠️ [WORKER] lock de {job_id} já não era nosso: {e}")

            status = job.status.value
            elapsed = time.monotonic() - started
            if status == 'completed':
                self._count('processed_count')
                logger.info(f"✅ [WORKER] {job_id} completed ({elapsed:.1f}s)")
            else:
                self._count('failed_count')
                logger.error(f"❌ [WORKER] {job_id} {status}: {job.error_message}")
            self._log_job_result(job_id, status, elapsed, job.error_message)

        except Exception as e:
            elapsed = time.monotonic() - started
            self._count('failed_count')
            logger.exception(f"❌ [WORKER] {job_id} abortou após {elapsed:.1f}s: {e}")
            self._log_job_result(job_id, 'error', elapsed, str(e))

        finally:
            self._count('active_jobs', -1)

    def _log_job_result(self, job_id: str, status: str, duration: float, error: str = None):
        """Empilha o desfecho em provn:pipeline:results (últimos 100)."""
        entry = {
            'job_id': job_id,
            'status': status,
            'duration_seconds': round(duration, 1),
            'worker_id': self.worker_id,
            'finished_at': _now(),
        }
        if error:
            entry['error'] = error[:500]

        try:
            self.redis.lpush(RESULTS_KEY, json.dumps(entry))
            self.redis.ltrim(RESULTS_KEY, 0, RESULTS_KEPT - 1)
        except Exception as e:
            logger.warning(f"⚠️ [WORKER] resultado de {job_id} não registrado: {e}")

    def poll_once(self, timeout: int = 5) -> bool:
        """Retira no máximo uma mensagem e, se válida, abre a thread do job."""
        if not self._has_free_slot():
            return False

        popped = self.redis.blpop(self.queue_name, timeout=timeout)
        if not popped:
            return False

        message = parse_queue_message(popped[1])
        if message['action'] != 'execute_pipeline':
            logger.warning(f"⚠️ [WORKER] mensagem descartada (action={message['action']})")
            return False

        job_id = message['job_id']
        self._count('active_jobs')
        threading.Thread(target=self.process_job, args=(job_id,), daemon=True,
                         name=f"job-{job_id}").start()
        logger.info(f"📬 [WORKER] {job_id} despachado")
        return True

    def run(self):
        logger.info(f"🚀 [WORKER] ouvindo '{self.queue_name}' "
                    f"com até {self.max_concurrency} jobs simultâneos")
        threading.Thread(target=self._heartbeat, daemon=True, name="heartbeat").start()

        while self.running:
            try:
                if not self.poll_once() and not self._has_free_slot():
                    time.sleep(0.5)
            except Exception as e:
                logger.error(f"❌ [WORKER] falha no loop de consumo: {e}")
                time.sleep(1)

        pending = self._snapshot()['active_jobs']
        if pending:
            logger.info(f"⏳ [WORKER] esperando {pending} job(s) em andamento")
        while self._snapshot()['active_jobs'] > 0:
            time.sleep(0.5)

        self.redis.delete(self.worker_key)
        stats = self._snapshot()
        logger.info(f"👋 [WORKER] encerrado: {stats['processed']} ok, {stats['failed']} com falha")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Consome a fila do pipeline de conteúdo Provn')
    parser.add_argument('-c', '--concurrency', type=int, default=2,
                        help='jobs executados em paralelo (padrão: 2)')
    parser.add_argument('-q', '--queue', default=PIPELINE_QUEUE_NAME,
                        help=f'lista Redis consumida (padrão: {PIPELINE_QUEUE_NAME})')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    from app.config import JOB_STORE_BACKEND
    if JOB_STORE_BACKEND == 'postgres':
        import atexit
        from app.db import close_db_pool, init_db_pool
        init_db_pool()
        atexit.register(close_db_pool)

    worker = PipelineWorker(queue_name=args.queue, max_concurrency=args.concurrency)
    worker.install_signal_handlers()
    worker.run()


if __name__ == '__main__':
    main()
