"""
🎬 Content Pipeline - Processamento assíncrono de conteúdo

validate → transcode → thumbnail → fingerprint → pin_ipfs → mint → index

1. Steps modulares via decorator (@register_step), cada um com sua política
2. PipelineOrchestrator leva o job pelos steps, persistindo cada transição
3. EngineBridge como ponto de entrada (API e worker)
"""

from .endpoints import content_pipeline_bp
from .engine.bridge import EngineBridge, get_engine_bridge

__all__ = [
    'content_pipeline_bp',
    'EngineBridge',
    'get_engine_bridge',
]
