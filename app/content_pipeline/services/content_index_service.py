"""
🗂️ Content Index Service - Tabela videos (Supabase/PostgREST)

Uma linha por token mintado. É o que o feed e o perfil leem: o conteúdo
só fica visível depois do step index.
"""

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

TABLE = 'videos'


class ContentIndexService:

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            from app.supabase_client import get_supabase_client
            self._client = get_supabase_client()
        return self._client

    def get_by_token_id(self, token_id: str) -> Optional[Dict[str, Any]]:
        response = (
            self.client.table(TABLE)
            .select('*')
            .eq('token_id', str(token_id))
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    def find_by_perceptual_hash(self, perceptual_hash: str) -> Optional[Dict[str, Any]]:
        response = (
            self.client.table(TABLE)
            .select('token_id, creator_address, title')
            .eq('perceptual_hash', perceptual_hash)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    def upsert_video(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insere/atualiza por token_id (re-executar o step não duplica)."""
        response = self.client.table(TABLE).upsert(row, on_conflict='token_id').execute()
        saved = response.data[0] if response.data else row
        logger.info(f"🗂️ Vídeo indexado: token={row.get('token_id')} ({row.get('title')})")
        return saved
