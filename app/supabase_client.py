"""
Cliente Supabase compartilhado (PostgREST).

Usado pelo índice de conteúdo (tabela videos). Jobs e contadores de
interação usam o pool psycopg2 de app.db, que dá lock de linha e transação.
"""
import logging
import threading

from supabase import Client, create_client

logger = logging.getLogger(__name__)

_client = None
_client_lock = threading.Lock()


def get_supabase_client() -> Client:
    """Retorna o cliente Supabase singleton (service role)."""
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                from app.config import SUPABASE_URL, SERVICE_ROLE_KEY
                if not SERVICE_ROLE_KEY:
                    raise ValueError("SERVICE_ROLE_KEY environment variable is required")
                logger.info(f"🔍 [SUPABASE_CLIENT] Conectando com URL: {SUPABASE_URL}")
                _client = create_client(SUPABASE_URL, SERVICE_ROLE_KEY)
    return _client
