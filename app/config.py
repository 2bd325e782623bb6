"""
Configuração do provn-worker.

Tudo vem de variáveis de ambiente, com defaults de desenvolvimento.

Uso:
    from app.config import PIPELINE_QUEUE_NAME, step_policy_override
"""

import os
from typing import Dict, Optional


def _env_bool(key: str, default: str = 'false') -> bool:
    return os.environ.get(key, default).lower() in ('true', '1', 'yes')


# ============================================================================
# Backends de persistência
# ============================================================================

# postgres (produção) | memory (dev/testes, sem durabilidade)
JOB_STORE_BACKEND = os.environ.get('JOB_STORE_BACKEND', 'postgres')
INTERACTION_STORE_BACKEND = os.environ.get('INTERACTION_STORE_BACKEND', 'postgres')

# ============================================================================
# Fila Redis
# ============================================================================

REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = int(os.environ.get('REDIS_PORT', 6379))
REDIS_PASSWORD = os.environ.get('REDIS_PASSWORD', None)
PIPELINE_QUEUE_NAME = os.environ.get('PIPELINE_QUEUE_NAME', 'provn_pipeline')
# Se a fila estiver fora, roda o job numa thread do próprio processo da API
PIPELINE_INLINE_FALLBACK = _env_bool('PIPELINE_INLINE_FALLBACK', 'true')
JOB_LOCK_TIMEOUT_S = int(os.environ.get('JOB_LOCK_TIMEOUT_S', 3600))

# ============================================================================
# Auth
# ============================================================================

JWT_SECRET = os.environ.get('JWT_SECRET', os.environ.get('GOTRUE_JWT_SECRET', 'provn-dev-secret'))
JWT_ALGORITHMS = ['HS256']

# ============================================================================
# Validação de upload
# ============================================================================

MAX_VIDEO_SIZE_MB = int(os.environ.get('MAX_VIDEO_SIZE_MB', 100))
ALLOWED_VIDEO_FORMATS = [
    f.strip().lower()
    for f in os.environ.get('ALLOWED_VIDEO_FORMATS', 'mp4,mov,avi,mkv,webm').split(',')
    if f.strip()
]

# ============================================================================
# Colaboradores externos
# ============================================================================

TRANSCODER_URL = os.environ.get('TRANSCODER_URL', 'http://localhost:8090')
TRANSCODER_TOKEN = os.environ.get('TRANSCODER_TOKEN', '')

PINATA_API_URL = os.environ.get('PINATA_API_URL', 'https://api.pinata.cloud')
PINATA_JWT = os.environ.get('PINATA_JWT', '')
IPFS_GATEWAY_URL = os.environ.get('IPFS_GATEWAY_URL', 'https://gateway.pinata.cloud')

ORIGIN_MINT_URL = os.environ.get('ORIGIN_MINT_URL', 'http://localhost:8091')
ORIGIN_API_KEY = os.environ.get('ORIGIN_API_KEY', '')
EXPLORER_URL = os.environ.get('EXPLORER_URL', 'https://explorer.basecamp.network')

SUPABASE_URL = os.environ.get('SUPABASE_URL', 'http://rest:3000')
SERVICE_ROLE_KEY = os.environ.get('SERVICE_ROLE_KEY')

# ============================================================================
# Política por step (override via env)
# ============================================================================


def step_policy_override(step_name: str) -> Dict[str, float]:
    """
    Lê STEP_<NOME>_MAX_ATTEMPTS, STEP_<NOME>_TIMEOUT_S e
    STEP_<NOME>_BACKOFF_S. Só devolve as chaves presentes no ambiente.
    """
    prefix = f"STEP_{step_name.upper()}_"
    overrides = {}
    raw: Optional[str]

    raw = os.environ.get(prefix + 'MAX_ATTEMPTS')
    if raw:
        overrides['max_attempts'] = max(1, int(raw))
    raw = os.environ.get(prefix + 'TIMEOUT_S')
    if raw:
        overrides['timeout_s'] = float(raw)
    raw = os.environ.get(prefix + 'BACKOFF_S')
    if raw:
        overrides['backoff_base_s'] = float(raw)
    return overrides
