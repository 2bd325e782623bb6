"""
Base imports e helpers para steps.
Cada step importa daqui para evitar repetição.

Contrato de um step:
    def meu_step(job: Job, params: dict) -> dict

- job é um snapshot: o step nunca escreve no JobStore
- o dict devolvido vira step_results[step].output
- falha = exceção (InvalidInput / PermanentStepError / TransientStepError
  ou erros de rede do requests, classificados pelo StepRunner)
"""

import logging
import os
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from ..engine.errors import InvalidInput, PermanentStepError, TransientStepError
from ..engine.models import Job
from ..engine.step_registry import register_step

logger = logging.getLogger(__name__)


def metadata(job: Job) -> Dict[str, Any]:
    """Metadata enviada pelo cliente na criação do job (imutável)."""
    return job.payload or {}


def file_extension(name: Optional[str]) -> str:
    """Extensão sem ponto, minúscula. Aceita nome de arquivo ou URL."""
    if not name:
        return ''
    path = urlparse(name).path or name
    return os.path.splitext(path)[1].lower().lstrip('.')
