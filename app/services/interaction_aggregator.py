"""
📊 Interaction Aggregator: contadores de engajamento por conteúdo

Um contador por (content_id, kind):
- like:  toggle; count == número de atores no conjunto
- view:  conta só a primeira vez de cada ator/sessão (dedup permanente)
- share: sempre incrementa; ator e plataforma ficam só no log de auditoria
- tip:   sempre incrementa; ator, valor e mensagem ficam no log de auditoria

O check-and-add de ator é atômico no backend (lock por contador em
memória; lock de linha + INSERT ... ON CONFLICT no PostgreSQL), então
duplo clique ou requests concorrentes nunca contam duas vezes.

Contadores nascem no primeiro evento do conteúdo e nunca são apagados.
"""

import logging
import threading
from typing import Callable, Dict, Optional, Tuple

from psycopg2.extras import Json

from app.content_pipeline.engine.errors import InvalidInput

logger = logging.getLogger(__name__)

VIEW = 'view'
LIKE = 'like'
SHARE = 'share'
TIP = 'tip'

KINDS = (VIEW, LIKE, SHARE, TIP)
TOGGLE_KINDS = (LIKE,)
INCREMENT_KINDS = (SHARE, TIP)


# ═══════════════════════════════════════════════════════════════
# Backends
# ═══════════════════════════════════════════════════════════════

class InMemoryInteractionStore:
    """Backend em memória (dev/testes). Um lock por contador."""

    def __init__(self):
        self._counts: Dict[Tuple[str, str], int] = {}
        self._actors: Dict[Tuple[str, str], set] = {}
        self._events = []
        self._locks: Dict[Tuple[str, str], threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key):
        with self._registry_lock:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
                self._counts[key] = 0
                self._actors[key] = set()
            return self._locks[key]

    def toggle_actor(self, content_id, kind, actor_id):
        key = (content_id, kind)
        with self._lock_for(key):
            actors = self._actors[key]
            if actor_id in actors:
                actors.discard(actor_id)
                self._counts[key] -= 1
                return False, self._counts[key]
            actors.add(actor_id)
            self._counts[key] += 1
            return True, self._counts[key]

    def add_actor_once(self, content_id, kind, actor_id):
        key = (content_id, kind)
        with self._lock_for(key):
            actors = self._actors[key]
            if actor_id in actors:
                return False, self._counts[key]
            actors.add(actor_id)
            self._counts[key] += 1
            return True, self._counts[key]

    def increment(self, content_id, kind, actor_id=None, details=None):
        key = (content_id, kind)
        with self._lock_for(key):
            self._counts[key] += 1
            self._events.append({
                'content_id': content_id,
                'kind': kind,
                'actor_id': actor_id,
                'details': dict(details or {}),
            })
            return self._counts[key]

    def has_actor(self, content_id, kind, actor_id):
        key = (content_id, kind)
        with self._registry_lock:
            lock = self._locks.get(key)
        if lock is None:
            # leitura não cria contador
            return False
        with lock:
            return actor_id in self._actors[key]

    def counts(self, content_id):
        with self._registry_lock:
            return {kind: count for (cid, kind), count in self._counts.items() if cid == content_id}

    def events(self, content_id=None):
        """Log de auditoria de shares/tips."""
        with self._registry_lock:
            return [dict(e) for e in self._events
                    if content_id is None or e['content_id'] == content_id]


class PostgresInteractionStore:
    """
    Backend PostgreSQL (tabelas interaction_counters, interaction_actors,
    interaction_events). Cada operação é uma transação.
    """

    def __init__(self, db_cursor_func: Callable = None):
        if db_cursor_func is None:
            from app.db import get_db_cursor
            db_cursor_func = get_db_cursor
        self.db_cursor_func = db_cursor_func

    @staticmethod
    def _ensure_counter(cursor, content_id, kind):
        cursor.execute(
            """
            INSERT INTO interaction_counters (content_id, kind, count)
            VALUES (%s, %s, 0)
            ON CONFLICT (content_id, kind) DO NOTHING
            """,
            (content_id, kind)
        )

    @staticmethod
    def _bump(cursor, content_id, kind, delta):
        cursor.execute(
            """
            UPDATE interaction_counters
            SET count = count + %s, updated_at = NOW()
            WHERE content_id = %s AND kind = %s
            RETURNING count
            """,
            (delta, content_id, kind)
        )
        return cursor.fetchone()['count']

    def toggle_actor(self, content_id, kind, actor_id):
        with self.db_cursor_func() as cursor:
            self._ensure_counter(cursor, content_id, kind)
            # Serializa toggles do mesmo contador
            cursor.execute(
                """
                SELECT count FROM interaction_counters
                WHERE content_id = %s AND kind = %s
                FOR UPDATE
                """,
                (content_id, kind)
            )
            cursor.execute(
                """
                DELETE FROM interaction_actors
                WHERE content_id = %s AND kind = %s AND actor_id = %s
                RETURNING actor_id
                """,
                (content_id, kind, actor_id)
            )
            if cursor.fetchone():
                return False, self._bump(cursor, content_id, kind, -1)

            cursor.execute(
                """
                INSERT INTO interaction_actors (content_id, kind, actor_id)
                VALUES (%s, %s, %s)
                """,
                (content_id, kind, actor_id)
            )
            return True, self._bump(cursor, content_id, kind, 1)

    def add_actor_once(self, content_id, kind, actor_id):
        with self.db_cursor_func() as cursor:
            self._ensure_counter(cursor, content_id, kind)
            cursor.execute(
                """
                INSERT INTO interaction_actors (content_id, kind, actor_id)
                VALUES (%s, %s, %s)
                ON CONFLICT (content_id, kind, actor_id) DO NOTHING
                RETURNING actor_id
                """,
                (content_id, kind, actor_id)
            )
            if cursor.fetchone():
                return True, self._bump(cursor, content_id, kind, 1)

            cursor.execute(
                "SELECT count FROM interaction_counters WHERE content_id = %s AND kind = %s",
                (content_id, kind)
            )
            return False, cursor.fetchone()['count']

    def increment(self, content_id, kind, actor_id=None, details=None):
        with self.db_cursor_func() as cursor:
            cursor.execute(
                """
                INSERT INTO interaction_counters (content_id, kind, count)
                VALUES (%s, %s, 1)
                ON CONFLICT (content_id, kind)
                DO UPDATE SET count = interaction_counters.count + 1, updated_at = NOW()
                RETURNING count
                """,
                (content_id, kind)
            )
            count = cursor.fetchone()['count']
            cursor.execute(
                """
                INSERT INTO interaction_events (content_id, kind, actor_id, details)
                VALUES (%s, %s, %s, %s)
                """,
                (content_id, kind, actor_id, Json(dict(details or {})))
            )
            return count

    def has_actor(self, content_id, kind, actor_id):
        with self.db_cursor_func(commit=False) as cursor:
            cursor.execute(
                """
                SELECT 1 AS found FROM interaction_actors
                WHERE content_id = %s AND kind = %s AND actor_id = %s
                """,
                (content_id, kind, actor_id)
            )
            return cursor.fetchone() is not None

    def counts(self, content_id):
        with self.db_cursor_func(commit=False) as cursor:
            cursor.execute(
                "SELECT kind, count FROM interaction_counters WHERE content_id = %s",
                (content_id,)
            )
            return {row['kind']: row['count'] for row in cursor.fetchall()}


# ═══════════════════════════════════════════════════════════════
# API
# ═══════════════════════════════════════════════════════════════

class InteractionAggregator:
    """
    Único escritor dos contadores de interação.

    Uso:
        aggregator = get_interaction_aggregator()
        aggregator.toggle('123', actor_id='0xabc...')          # {'active': True, 'count': 1}
        aggregator.record_view_once('123', 'session:9f2...')   # {'counted': True, 'count': 1}
        aggregator.increment('123', 'share', details={'platform': 'x'})
    """

    def __init__(self, store=None):
        self.store = store or InMemoryInteractionStore()

    @staticmethod
    def _check(content_id: str, kind: str, allowed) -> None:
        if not content_id:
            raise InvalidInput("content_id é obrigatório")
        if kind not in allowed:
            raise InvalidInput(f"Tipo de interação inválido para esta operação: {kind}")

    def toggle(self, content_id: str, actor_id: str, kind: str = LIKE) -> Dict:
        self._check(content_id, kind, TOGGLE_KINDS)
        if not actor_id:
            raise InvalidInput("actor_id é obrigatório")
        active, count = self.store.toggle_actor(content_id, kind, actor_id)
        logger.info(f"{'❤️' if active else '💔'} [INTERACTIONS] {kind} {content_id} "
                    f"por {actor_id}: active={active}, count={count}")
        return {'active': active, 'count': count}

    def increment(self, content_id: str, kind: str, actor_id: Optional[str] = None,
                  details: Dict = None) -> int:
        self._check(content_id, kind, INCREMENT_KINDS)
        count = self.store.increment(content_id, kind, actor_id=actor_id, details=details)
        logger.info(f"➕ [INTERACTIONS] {kind} {content_id}: count={count}")
        return count

    def record_view_once(self, content_id: str, viewer_id: str) -> Dict:
        self._check(content_id, VIEW, (VIEW,))
        if not viewer_id:
            raise InvalidInput("viewer_id é obrigatório")
        counted, count = self.store.add_actor_once(content_id, VIEW, viewer_id)
        if counted:
            logger.info(f"👁️ [INTERACTIONS] view {content_id}: count={count}")
        return {'counted': counted, 'count': count}

    def is_active(self, content_id: str, actor_id: Optional[str], kind: str = LIKE) -> bool:
        if not actor_id:
            return False
        return self.store.has_actor(content_id, kind, actor_id)

    def count(self, content_id: str, kind: str) -> int:
        return self.store.counts(content_id).get(kind, 0)

    def stats(self, content_id: str, actor_id: Optional[str] = None) -> Dict:
        counts = self.store.counts(content_id)
        return {
            'views': counts.get(VIEW, 0),
            'likes': counts.get(LIKE, 0),
            'shares': counts.get(SHARE, 0),
            'tips': counts.get(TIP, 0),
            'isLiked': self.is_active(content_id, actor_id, LIKE),
        }


def build_interaction_aggregator(backend: Optional[str] = None) -> InteractionAggregator:
    """Cria o aggregator com o backend de INTERACTION_STORE_BACKEND (postgres | memory)."""
    from app.config import INTERACTION_STORE_BACKEND
    backend = (backend or INTERACTION_STORE_BACKEND).lower()
    if backend == 'memory':
        logger.warning("⚠️ [INTERACTIONS] Contadores em memória: não sobrevivem a restart")
        return InteractionAggregator(InMemoryInteractionStore())
    if backend == 'postgres':
        return InteractionAggregator(PostgresInteractionStore())
    raise ValueError(f"INTERACTION_STORE_BACKEND inválido: {backend}")


_aggregator: Optional[InteractionAggregator] = None
_aggregator_lock = threading.Lock()


def get_interaction_aggregator() -> InteractionAggregator:
    """Retorna instância singleton."""
    global _aggregator
    if _aggregator is None:
        with _aggregator_lock:
            if _aggregator is None:
                _aggregator = build_interaction_aggregator()
    return _aggregator


def set_interaction_aggregator(aggregator: Optional[InteractionAggregator]) -> None:
    """Substitui o singleton (testes, app factory)."""
    global _aggregator
    _aggregator = aggregator
