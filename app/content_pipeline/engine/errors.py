"""
Erros do Pipeline Engine.

Cada erro carrega o status HTTP correspondente para que os endpoints
possam responder sem traduzir caso a caso.

Classificação de falhas de step:
- TransientStepError: rede, rate limit, 5xx → retry com backoff
- PermanentStepError: conteúdo inválido, saldo insuficiente, 4xx → falha imediata
"""


class PipelineError(Exception):
    """Base de todos os erros do pipeline."""
    http_status = 500
    kind = "internal"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind}


class InvalidInput(PipelineError):
    http_status = 400
    kind = "invalid_input"


class Unauthorized(PipelineError):
    http_status = 401
    kind = "unauthorized"


class Forbidden(PipelineError):
    http_status = 403
    kind = "forbidden"


class NotFound(PipelineError):
    http_status = 404
    kind = "not_found"


class InvalidTransition(PipelineError):
    """Transição ilegal na máquina de estados (race ou bug de programação)."""
    http_status = 500
    kind = "invalid_transition"


class StepError(PipelineError):
    """Falha de um step contra um colaborador externo."""
    kind = "step"


class TransientStepError(StepError):
    """Falha recuperável: o runner tenta de novo dentro do orçamento do step."""
    kind = "transient"


class PermanentStepError(StepError):
    """Falha definitiva: nunca é re-tentada."""
    kind = "permanent"


class StepTimeout(StepError):
    """Tentativa excedeu timeout_s. O resultado tardio é descartado."""
    kind = "timeout"
