"""
Step 05: Hash perceptual + detecção de duplicata.

Um derivado pode bater com o próprio parent; qualquer outro match é
duplicata e falha de forma permanente.
"""

from ._base import *


@register_step(
    name="fingerprint",
    description="Gera hash perceptual e bloqueia conteúdo duplicado",
    category="validation",
    produces=["perceptualHash"],
    max_attempts=3,
    timeout_s=120,
)
def fingerprint_step(job: Job, params: dict) -> dict:
    from ..services.transcode_service import TranscodeService
    from ..services.content_index_service import ContentIndexService

    perceptual_hash = TranscodeService().fingerprint(metadata(job)['sourceUrl'])

    existing = ContentIndexService().find_by_perceptual_hash(perceptual_hash)
    parent_token_id = str(metadata(job).get('parentTokenId') or '')
    if existing and str(existing.get('token_id')) != parent_token_id:
        raise PermanentStepError(
            f"Conteúdo duplicado: já registrado como token {existing.get('token_id')}"
        )

    return {'perceptualHash': perceptual_hash}
