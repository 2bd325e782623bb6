"""
📌 IPFS Pinning Service - Wrapper para a API do Pinata

- pin_file_from_url: baixa (streaming) um artefato e faz pinFileToIPFS
- pin_json: pinJSONToIPFS (metadata do IP-NFT)
- build_video_metadata: metadata padrão de vídeo (name, image, attributes...)

O CID é determinado pelo conteúdo: pinar de novo o mesmo arquivo devolve o
mesmo hash, então retry não duplica nada.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)


class IPFSPinningService:

    def __init__(self, api_url: Optional[str] = None, jwt: Optional[str] = None,
                 gateway_url: Optional[str] = None, timeout: int = 300):
        from app.config import PINATA_API_URL, PINATA_JWT, IPFS_GATEWAY_URL
        self.api_url = (api_url or PINATA_API_URL).rstrip('/')
        self.gateway_url = (gateway_url or IPFS_GATEWAY_URL).rstrip('/')
        self.timeout = timeout
        self.headers = {"Authorization": f"Bearer {jwt if jwt is not None else PINATA_JWT}"}

    def pin_file_from_url(self, source_url: str, name: str,
                          key_values: Dict[str, str] = None) -> Dict[str, Any]:
        """
        Pina o arquivo em source_url.

        Returns:
            {"ipfs_hash": str, "size": int, "gateway_url": str}
        """
        logger.info(f"📌 Pinando {name} a partir de {source_url}")
        with requests.get(source_url, stream=True, timeout=self.timeout) as download:
            download.raise_for_status()
            response = requests.post(
                f"{self.api_url}/pinning/pinFileToIPFS",
                files={"file": (name, download.raw)},
                data={"pinataMetadata": json.dumps({"name": name, "keyvalues": key_values or {}})},
                headers=self.headers,
                timeout=self.timeout
            )
        response.raise_for_status()
        return self._pin_result(response.json())

    def pin_json(self, content: Dict, name: str,
                 key_values: Dict[str, str] = None) -> Dict[str, Any]:
        logger.info(f"📌 Pinando JSON {name}")
        response = requests.post(
            f"{self.api_url}/pinning/pinJSONToIPFS",
            json={
                "pinataContent": content,
                "pinataMetadata": {"name": name, "keyvalues": key_values or {}},
            },
            headers={**self.headers, "Content-Type": "application/json"},
            timeout=60
        )
        response.raise_for_status()
        return self._pin_result(response.json())

    def _pin_result(self, data: Dict) -> Dict[str, Any]:
        ipfs_hash = data["IpfsHash"]
        logger.info(f"✅ Pinado no IPFS: {ipfs_hash}")
        return {
            "ipfs_hash": ipfs_hash,
            "size": data.get("PinSize", 0),
            "gateway_url": self.get_gateway_url(ipfs_hash),
        }

    def get_gateway_url(self, ipfs_hash: str, file_name: str = None) -> str:
        base = f"{self.gateway_url}/ipfs/{ipfs_hash}"
        return f"{base}/{file_name}" if file_name else base

    def build_video_metadata(self, title: str, description: str, creator: str,
                             tags: List[str], video_hash: str,
                             thumbnail_hash: Optional[str], duration: Any,
                             resolution: Optional[str], allow_remixing: bool,
                             parent_token_id: Optional[str] = None) -> Dict[str, Any]:
        """Metadata ERC-721 do vídeo (o que o tokenURI aponta)."""
        attributes = [
            {"trait_type": "Creator", "value": creator},
            {"trait_type": "Duration", "value": duration or 0},
            {"trait_type": "Resolution", "value": resolution or "unknown"},
            {"trait_type": "Allow Remixing", "value": "Yes" if allow_remixing else "No"},
        ]
        if parent_token_id:
            attributes.append({"trait_type": "Derived From", "value": str(parent_token_id)})
        attributes.extend({"trait_type": "Tag", "value": tag} for tag in tags or [])

        metadata = {
            "name": title,
            "description": description or "",
            "external_url": f"https://provn.app/video/{video_hash}",
            "attributes": attributes,
            "properties": {
                "files": [{"uri": f"ipfs://{video_hash}", "type": "video/mp4"}],
                "category": "video",
                "creators": [{"address": creator, "share": 100}],
            },
        }
        if thumbnail_hash:
            metadata["image"] = f"ipfs://{thumbnail_hash}"
        return metadata
