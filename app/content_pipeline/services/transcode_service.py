"""
🎞️ Transcode Service - Wrapper para o serviço de mídia (ffmpeg remoto)

Endpoints:
- POST /probe         → streams, duração, resolução
- POST /transcode/hls → playlist HLS 720p + segmentos
- POST /thumbnail     → JPEG 1280x720
- POST /fingerprint   → hash perceptual (8x8 grayscale) para duplicatas
"""

import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


class TranscodeService:
    """
    Wrapper para o serviço de transcodificação.

    Nota: o serviço EXIGE autenticação via Bearer token.
    """

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None,
                 timeout: int = 600):
        from app.config import TRANSCODER_URL, TRANSCODER_TOKEN
        self.base_url = (base_url or TRANSCODER_URL).rstrip('/')
        self.timeout = timeout
        self.headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token if token is not None else TRANSCODER_TOKEN}",
        }

    def _post(self, path: str, payload: Dict, timeout: int = None) -> Dict[str, Any]:
        response = requests.post(
            f"{self.base_url}{path}",
            json=payload,
            timeout=timeout or self.timeout,
            headers=self.headers
        )
        response.raise_for_status()
        return response.json()

    def probe(self, source_url: str) -> Dict[str, Any]:
        """
        ffprobe remoto.

        Returns:
            {"has_video": bool, "duration": float, "width": int,
             "height": int, "format": str}
        """
        result = self._post("/probe", {"url": source_url}, timeout=60)
        logger.info(f"🔎 Probe: {result.get('format')} {result.get('width')}x{result.get('height')} "
                    f"({result.get('duration')}s)")
        return result

    def transcode_hls(self, source_url: str, output_prefix: str,
                      height: int = 720, segment_seconds: int = 10) -> Dict[str, Any]:
        """
        Transcodifica para HLS (libx264/aac, crf 23).

        Returns:
            {"playlist_url": str, "segment_count": int, "duration": float,
             "resolution": "WxH", "format": str}
        """
        logger.info(f"🎞️ Transcodificando {source_url} → HLS {height}p")
        result = self._post("/transcode/hls", {
            "url": source_url,
            "output_prefix": output_prefix,
            "height": height,
            "segment_seconds": segment_seconds,
        })
        logger.info(f"✅ HLS pronto: {result.get('segment_count')} segmentos")
        return result

    def generate_thumbnail(self, source_url: str, output_prefix: str,
                           timestamp: str = "00:00:05", width: int = 1280,
                           height: int = 720, quality: int = 85) -> Dict[str, Any]:
        """Returns: {"thumbnail_url": str}"""
        return self._post("/thumbnail", {
            "url": source_url,
            "output_prefix": output_prefix,
            "timestamp": timestamp,
            "width": width,
            "height": height,
            "quality": quality,
        }, timeout=120)

    def fingerprint(self, source_url: str, timestamp: str = "00:00:03") -> str:
        """Hash perceptual de um frame do vídeo."""
        result = self._post("/fingerprint", {"url": source_url, "timestamp": timestamp}, timeout=120)
        return result["perceptual_hash"]

    def health_check(self) -> bool:
        try:
            response = requests.get(f"{self.base_url}/health", timeout=5)
            return response.status_code == 200
        except requests.exceptions.RequestException:
            return False
