"""
⛓️ Origin Mint Service - Wrapper para o relay de mint da Origin (Camp Network)

POST {ORIGIN_MINT_URL}/ipnft/mint com Idempotency-Key = processingId. O
relay devolve o mesmo token para a mesma chave, mas o step de mint ainda
assim não re-tenta após timeout (a transação pode já estar na mempool).
"""

import logging
from typing import Any, Dict, Optional

import requests

from ..engine.errors import PermanentStepError

logger = logging.getLogger(__name__)

# Códigos de erro do relay que nunca vão passar num retry
PERMANENT_ERROR_CODES = {
    'INSUFFICIENT_FUNDS',
    'INVALID_METADATA',
    'PARENT_NOT_FOUND',
    'LICENSE_REJECTED',
}


class OriginMintService:

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None,
                 explorer_url: Optional[str] = None, timeout: int = 180):
        from app.config import ORIGIN_MINT_URL, ORIGIN_API_KEY, EXPLORER_URL
        self.base_url = (base_url or ORIGIN_MINT_URL).rstrip('/')
        self.explorer_url = (explorer_url or EXPLORER_URL).rstrip('/')
        self.timeout = timeout
        self.headers = {
            "Content-Type": "application/json",
            "X-API-Key": api_key if api_key is not None else ORIGIN_API_KEY,
        }

    def mint(self, creator: str, content_uri: str, metadata: Dict[str, Any],
             idempotency_key: str, parent_token_id: Optional[str] = None,
             license_terms: Optional[Dict] = None) -> Dict[str, Any]:
        """
        Minta o IP-NFT.

        Returns:
            {"token_id": str, "transaction_hash": str, "block_number": int,
             "explorer_url": str}

        Raises:
            PermanentStepError: relay recusou com código definitivo
            requests.HTTPError: demais erros HTTP (classificados no runner)
        """
        payload = {
            "creator": creator,
            "tokenUri": content_uri,
            "metadata": metadata,
        }
        if parent_token_id:
            payload["parentTokenId"] = str(parent_token_id)
        if license_terms:
            payload["license"] = license_terms

        logger.info(f"⛓️ Mintando IP-NFT para {creator} ({content_uri})"
                    f"{f' derivado de {parent_token_id}' if parent_token_id else ''}")

        response = requests.post(
            f"{self.base_url}/ipnft/mint",
            json=payload,
            headers={**self.headers, "Idempotency-Key": idempotency_key},
            timeout=self.timeout
        )

        if 400 <= response.status_code < 500:
            code = self._error_code(response)
            if code in PERMANENT_ERROR_CODES:
                raise PermanentStepError(f"Mint recusado pela Origin: {code}")
        response.raise_for_status()

        data = response.json()
        tx_hash = data["transactionHash"]
        logger.info(f"✅ IP-NFT mintado: token={data['tokenId']} tx={tx_hash}")
        return {
            "token_id": str(data["tokenId"]),
            "transaction_hash": tx_hash,
            "block_number": data.get("blockNumber"),
            "explorer_url": self.get_explorer_url(tx_hash),
        }

    def get_explorer_url(self, transaction_hash: str) -> str:
        return f"{self.explorer_url}/tx/{transaction_hash}"

    @staticmethod
    def _error_code(response) -> Optional[str]:
        try:
            return (response.json() or {}).get("code")
        except ValueError:
            return None
