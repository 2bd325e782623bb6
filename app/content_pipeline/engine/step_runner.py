"""
Step Runner - Executa UM step com timeout, retry e idempotência.

- Idempotência: se job.step_results já tem o step como success, devolve o
  output gravado sem chamar o colaborador externo de novo.
- Timeout: cada tentativa roda numa thread; estourou timeout_s, a tentativa
  é abandonada e conta como falha 'timeout'. Se a chamada terminar depois,
  o resultado é descartado (a função recebe um snapshot do job e nunca
  escreve no store).
- Retry: exponential backoff (base * 2^n, com teto) só para falhas
  transitórias; falhas permanentes encerram na hora.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import Callable, Dict, Tuple

import requests

from .errors import InvalidInput, PermanentStepError, StepTimeout, TransientStepError
from .models import Job, StepOutcome, StepOutcomeKind, utc_now_iso
from .step_registry import StepDefinition

logger = logging.getLogger(__name__)

TRANSIENT = "transient"
PERMANENT = "permanent"
TIMEOUT = "timeout"

_TRANSIENT_HTTP_STATUS = (408, 425, 429)


def classify_failure(exc: BaseException) -> Tuple[str, str]:
    """
    Classifica uma exceção de step em (kind, mensagem).

    Exceções desconhecidas são permanentes: só re-tentamos o que sabemos
    ser seguro re-tentar.
    """
    message = str(exc) or exc.__class__.__name__

    if isinstance(exc, StepTimeout):
        return TIMEOUT, message
    if isinstance(exc, TransientStepError):
        return TRANSIENT, message
    if isinstance(exc, (PermanentStepError, InvalidInput)):
        return PERMANENT, message

    if isinstance(exc, requests.exceptions.HTTPError):
        status = exc.response.status_code if exc.response is not None else None
        if status is not None and (status >= 500 or status in _TRANSIENT_HTTP_STATUS):
            return TRANSIENT, f"HTTP {status}: {message}"
        return PERMANENT, f"HTTP {status}: {message}"
    if isinstance(exc, requests.exceptions.ConnectTimeout):
        return TRANSIENT, f"Erro de rede: {message}"
    if isinstance(exc, requests.exceptions.Timeout):
        # o pedido pode ter chegado ao servidor: só repete com retry_on_timeout
        return TIMEOUT, f"Timeout de leitura: {message}"
    if isinstance(exc, requests.exceptions.ConnectionError):
        return TRANSIENT, f"Erro de rede: {message}"
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return TRANSIENT, f"Erro de rede: {message}"

    return PERMANENT, message


class StepRunner:
    """
    Executa steps contra colaboradores externos.

    Não escreve no JobStore: devolve um StepOutcome e o orquestrador decide.
    """

    def __init__(self, sleep: Callable[[float], None] = time.sleep):
        self.sleep = sleep

    def run(self, step_def: StepDefinition, job: Job, params: Dict = None) -> StepOutcome:
        step_name = step_def.name

        recorded = job.step_results.get(step_name)
        if recorded is not None and recorded.outcome == StepOutcomeKind.SUCCESS:
            logger.info(f"⏭️ [{step_name}] Já completado anteriormente, reutilizando output")
            return StepOutcome(
                step_name=step_name,
                outcome=StepOutcomeKind.SUCCESS,
                output=recorded.output,
                attempts=recorded.attempts,
                started_at=recorded.started_at,
                finished_at=recorded.finished_at,
                reused=True,
            )

        started_at = utc_now_iso()
        started = time.time()
        attempt = 0
        logger.info(f"▶️ [{step_name}] Iniciando... (job={job.id}, "
                    f"max_attempts={step_def.max_attempts}, timeout={step_def.timeout_s}s)")

        while True:
            attempt += 1
            try:
                output = self._call_with_timeout(step_def, job, params)
                duration_ms = int((time.time() - started) * 1000)
                logger.info(f"✅ [{step_name}] Completo em {duration_ms}ms (tentativa {attempt})")
                return StepOutcome(
                    step_name=step_name,
                    outcome=StepOutcomeKind.SUCCESS,
                    output=output,
                    attempts=attempt,
                    started_at=started_at,
                    finished_at=utc_now_iso(),
                )

            except Exception as e:
                kind, message = classify_failure(e)
                can_retry = kind == TRANSIENT or (kind == TIMEOUT and step_def.retry_on_timeout)

                if can_retry and step_def.retryable and attempt < step_def.max_attempts:
                    wait = min(step_def.backoff_base_s * (2 ** (attempt - 1)),
                               step_def.max_backoff_s)
                    logger.warning(f"⚠️ [{step_name}] Tentativa {attempt} falhou ({kind}): "
                                   f"{message}. Retry em {wait}s...")
                    self.sleep(wait)
                    continue

                if kind == PERMANENT and not isinstance(e, (PermanentStepError, InvalidInput)):
                    logger.exception(f"❌ [{step_name}] Erro inesperado: {message}")
                logger.error(f"❌ [{step_name}] Falhou após {attempt} tentativa(s) ({kind}): {message}")
                return StepOutcome(
                    step_name=step_name,
                    outcome=StepOutcomeKind.FAILURE,
                    error=message,
                    error_kind=kind,
                    attempts=attempt,
                    started_at=started_at,
                    finished_at=utc_now_iso(),
                )

    def _call_with_timeout(self, step_def: StepDefinition, job: Job, params: Dict) -> Dict:
        """Roda a função do step numa thread e espera até timeout_s."""
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"step_{step_def.name}")
        future = executor.submit(step_def.fn, job.snapshot(), dict(params or {}))
        try:
            output = future.result(timeout=step_def.timeout_s)
        except FuturesTimeout:
            if future.done():
                # TimeoutError levantado pela própria função do step
                raise
            future.cancel()
            raise StepTimeout(f"Timeout: step '{step_def.name}' excedeu {step_def.timeout_s}s")
        finally:
            # Não espera a thread: uma chamada presa não pode travar o pipeline
            executor.shutdown(wait=False)

        if output is None:
            return {}
        if not isinstance(output, dict):
            return {'value': output}
        return output
