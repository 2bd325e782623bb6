"""
🎬 Content Services - Wrappers HTTP para os colaboradores externos

Cada wrapper só fala HTTP e levanta exceção em falha. A classificação
transitória/permanente fica no StepRunner (ConnectionError, 5xx e 429 → retry;
timeout de leitura só com retry_on_timeout), exceto quando o próprio serviço sabe que a
falha é definitiva (ex.: saldo insuficiente no mint → PermanentStepError).

Serviços:
1. TranscodeService: probe, HLS, thumbnail e fingerprint perceptual
2. IPFSPinningService: Pinata (arquivos por URL e JSON de metadata)
3. OriginMintService: relay de mint de IP-NFT na Origin
4. ContentIndexService: tabela videos no Supabase (índice público)
"""

from .transcode_service import TranscodeService
from .ipfs_pinning_service import IPFSPinningService
from .origin_mint_service import OriginMintService
from .content_index_service import ContentIndexService

__all__ = [
    'TranscodeService',
    'IPFSPinningService',
    'OriginMintService',
    'ContentIndexService',
]
