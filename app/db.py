"""
Acesso ao PostgreSQL via pool de conexões.

Cada `with get_db_cursor()` é uma transação: o bloco recebe um
RealDictCursor, o commit acontece na saída normal e qualquer exceção
dispara rollback antes de propagar.
"""
import logging
import os
import threading
import time
from contextlib import contextmanager

import psycopg2
import psycopg2.extras
from psycopg2 import pool

logger = logging.getLogger(__name__)

SLOW_QUERY_MS = 1000
STATEMENT_TIMEOUT_MS = 30000


def _dsn_params() -> dict:
    return {
        'host': os.getenv('POSTGRES_HOST', 'localhost'),
        'port': int(os.getenv('POSTGRES_PORT', '5432')),
        'dbname': os.getenv('POSTGRES_DB', 'provn'),
        'user': os.getenv('POSTGRES_USER', 'postgres'),
        'password': os.getenv('POSTGRES_PASSWORD'),
        'sslmode': os.getenv('POSTGRES_SSL_MODE', 'prefer'),
        'connect_timeout': 10,
        'options': f'-c statement_timeout={STATEMENT_TIMEOUT_MS}',
    }


class ConnectionPool:
    """Pool único por processo, criado no primeiro uso."""

    def __init__(self, min_size: int, max_size: int):
        self.min_size = min_size
        self.max_size = max_size
        self._pool = None
        self._guard = threading.Lock()

    @property
    def ready(self) -> bool:
        return self._pool is not None

    def open(self):
        with self._guard:
            if self._pool is not None:
                return
            params = _dsn_params()
            try:
                self._pool = pool.ThreadedConnectionPool(self.min_size, self.max_size, **params)
            except psycopg2.Error as e:
                logger.error(f"❌ [DB] não foi possível abrir o pool: {e}")
                raise
            logger.info(f"✅ [DB] pool aberto ({self.min_size}..{self.max_size}) "
                        f"em {params['host']}/{params['dbname']}")

    def acquire(self):
        if self._pool is None:
            self.open()
        conn = self._pool.getconn()
        if conn.closed:
            # servidor derrubou a conexão ociosa; descarta e pega outra
            self._pool.putconn(conn, close=True)
            conn = self._pool.getconn()
        return conn

    def release(self, conn):
        if self._pool is None:
            return
        try:
            self._pool.putconn(conn)
        except psycopg2.Error as e:
            logger.error(f"❌ [DB] falha ao devolver conexão ao pool: {e}")

    def close(self):
        with self._guard:
            if self._pool is None:
                return
            self._pool.closeall()
            self._pool = None
        logger.info("🔌 [DB] pool fechado")

    def stats(self) -> dict:
        if self._pool is None:
            return {"status": "not_initialized"}
        return {"status": "active", "min_connections": self.min_size,
                "max_connections": self.max_size}


_pool = ConnectionPool(
    min_size=int(os.getenv('DB_POOL_MIN', '2')),
    max_size=int(os.getenv('DB_POOL_MAX', '20')),
)


@contextmanager
def get_db_cursor(commit=True):
    """
    Cursor transacional do pool.

        with get_db_cursor() as cur:
            cur.execute("SELECT ... FOR UPDATE", (job_id,))
            cur.execute("UPDATE ...")

    Com commit=False nada é gravado (leituras).
    """
    conn = _pool.acquire()
    cur = conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
    started = time.monotonic()
    try:
        yield cur
        if commit:
            conn.commit()
    except Exception as e:
        conn.rollback()
        if isinstance(e, psycopg2.Error):
            logger.error(f"❌ [DB] {type(e).__name__}: {e}")
        raise
    finally:
        cur.close()
        _pool.release(conn)
        elapsed_ms = (time.monotonic() - started) * 1000
        if elapsed_ms > SLOW_QUERY_MS:
            logger.warning(f"🐢 [DB] transação levou {elapsed_ms:.0f}ms")


def check_db_health() -> dict:
    started = time.monotonic()
    with get_db_cursor(commit=False) as cur:
        cur.execute("SELECT 1 AS ok")
        cur.fetchone()
    return {
        "status": "healthy",
        "latency_ms": round((time.monotonic() - started) * 1000, 1),
        "pool": get_pool_stats(),
    }


def init_db_pool():
    _pool.open()


def close_db_pool():
    _pool.close()


def get_pool_stats() -> dict:
    return _pool.stats()
