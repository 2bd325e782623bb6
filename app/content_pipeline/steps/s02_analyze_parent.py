"""
Step 02 (derivados): confere o conteúdo original.

O parent precisa estar indexado e permitir remix. Se não, o derivado
falha de forma permanente.
"""

from ._base import *


@register_step(
    name="analyze_parent",
    description="Verifica se o conteúdo original existe e permite remix",
    category="validation",
    produces=["parentTokenId"],
    max_attempts=3,
    timeout_s=30,
)
def analyze_parent_step(job: Job, params: dict) -> dict:
    from ..services.content_index_service import ContentIndexService

    parent_token_id = str(metadata(job).get('parentTokenId') or '')
    if not parent_token_id:
        raise InvalidInput("parentTokenId é obrigatório para derivados")

    parent = ContentIndexService().get_by_token_id(parent_token_id)
    if not parent:
        raise PermanentStepError(f"Conteúdo original {parent_token_id} não encontrado")
    if not parent.get('allow_remixing'):
        raise PermanentStepError(f"Conteúdo original {parent_token_id} não permite remix")

    logger.info(f"🧬 [ANALYZE_PARENT] Derivado de {parent_token_id} "
                f"(criador {parent.get('creator_address')})")
    return {
        'parentTokenId': parent_token_id,
        'parentCreator': parent.get('creator_address'),
        'parentTitle': parent.get('title'),
    }
