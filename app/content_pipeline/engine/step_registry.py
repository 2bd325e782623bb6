"""
Registro dos steps do pipeline de conteúdo e das topologias por tipo de job.

Cada step entra via @register_step junto com sua política
(tentativas, timeout, backoff); a ordem dos steps de cada tipo
(upload, derivative) é declarada com register_pipeline.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .errors import InvalidInput

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepDefinition:
    """Metadados e política de um step registrado."""
    name: str
    fn: Callable
    description: str = ""
    category: str = "default"            # validation, media, storage, chain, index
    produces: List[str] = field(default_factory=list)   # chaves do output que vão para job.result
    optional: bool = False               # Se True, falha vira skipped e o pipeline segue
    retryable: bool = True
    max_attempts: int = 3                # total de tentativas (1 = sem retry)
    timeout_s: float = 300               # por tentativa
    backoff_base_s: float = 1.0          # 1s, 2s, 4s...
    max_backoff_s: float = 30.0
    retry_on_timeout: bool = True        # False para side effects não idempotentes (mint)


class StepRegistry:
    """
    Tabela de steps por nome. Só é escrita durante o import de steps/.

    Uso:
        @register_step(name="pin", max_attempts=5, timeout_s=120)
        def pin_step(job, params):
            ...
    """
    _steps: Dict[str, StepDefinition] = {}
    _pipelines: Dict[str, List[str]] = {}
    _initialized: bool = False

    @classmethod
    def register(cls, **kwargs):
        """@register_step(name=..., **política)"""
        def decorator(fn):
            step_def = StepDefinition(fn=fn, **kwargs)
            cls._steps[step_def.name] = step_def
            logger.debug(f"📦 [REGISTRY] +{step_def.name} [{step_def.category}]")
            return fn
        return decorator

    @classmethod
    def register_pipeline(cls, job_type: str, steps: List[str]) -> None:
        """Registra a topologia (sequência ordenada de steps) de um tipo de job."""
        cls._pipelines[job_type] = list(steps)

    @classmethod
    def get(cls, name: str) -> Optional[StepDefinition]:
        """Busca step por nome, já com overrides de ambiente aplicados."""
        cls._ensure_initialized()
        step = cls._steps.get(name)
        if not step:
            logger.error(f"❌ [REGISTRY] step '{name}' inexistente (conhecidos: {sorted(cls._steps)})")
            return None
        from app.config import step_policy_override
        overrides = step_policy_override(name)
        return dataclasses.replace(step, **overrides) if overrides else step

    @classmethod
    def names(cls) -> List[str]:
        """Nomes registrados, na ordem de import."""
        cls._ensure_initialized()
        return list(cls._steps)

    @classmethod
    def pipeline_for(cls, job_type: str) -> List[str]:
        """Sequência de steps de um tipo de job."""
        cls._ensure_initialized()
        steps = cls._pipelines.get(job_type)
        if not steps:
            raise InvalidInput(
                f"Tipo de job inválido: '{job_type}'. Disponíveis: {sorted(cls._pipelines)}"
            )
        return list(steps)

    @classmethod
    def job_types(cls) -> List[str]:
        cls._ensure_initialized()
        return sorted(cls._pipelines)

    @classmethod
    def _ensure_initialized(cls):
        """Importa steps/ na primeira consulta; os decorators preenchem a tabela."""
        if cls._initialized:
            return
        cls._initialized = True
        try:
            from .. import steps  # noqa: F401
        except ImportError:
            cls._initialized = False
            logger.exception("❌ [REGISTRY] import de steps/ falhou")
            raise
        logger.info(f"📦 [REGISTRY] {len(cls._steps)} steps, "
                    f"{len(cls._pipelines)} topologias")

    @classmethod
    def reset(cls, initialized: bool = False):
        """Reset para testes. initialized=True evita o auto-discovery."""
        cls._steps = {}
        cls._pipelines = {}
        cls._initialized = initialized


# atalhos usados pelos módulos de steps/
register_step = StepRegistry.register
register_pipeline = StepRegistry.register_pipeline
