"""
Step 01: Validação do upload.

Regras locais (tamanho, formato, título, tags, parent de derivado) e probe
remoto confirmando que o arquivo tem stream de vídeo. Tudo que falha aqui
é permanente: re-tentar não conserta um arquivo inválido.
"""

from ._base import *

MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 2000
MAX_TAGS = 10


def check_metadata(job_type: str, meta: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validação local da metadata. Também usada pelo POST /api/processing
    para responder 400 antes de criar o job.

    Returns:
        {'format': ext, 'fileSize': bytes | None}

    Raises:
        InvalidInput: primeira regra violada
    """
    from app.config import MAX_VIDEO_SIZE_MB, ALLOWED_VIDEO_FORMATS

    if not isinstance(meta, dict):
        raise InvalidInput("metadata deve ser um objeto")

    title = (meta.get('title') or '').strip()
    if not title:
        raise InvalidInput("Título é obrigatório")
    if len(title) > MAX_TITLE_LENGTH:
        raise InvalidInput(f"Título excede {MAX_TITLE_LENGTH} caracteres")

    if len(meta.get('description') or '') > MAX_DESCRIPTION_LENGTH:
        raise InvalidInput(f"Descrição excede {MAX_DESCRIPTION_LENGTH} caracteres")

    tags = meta.get('tags') or []
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise InvalidInput("tags deve ser uma lista de strings")
    if len(tags) > MAX_TAGS:
        raise InvalidInput(f"Máximo de {MAX_TAGS} tags")

    source_url = meta.get('sourceUrl')
    if not source_url:
        raise InvalidInput("sourceUrl é obrigatório")

    file_size = meta.get('fileSize')
    if file_size is not None:
        try:
            file_size = int(file_size)
        except (TypeError, ValueError):
            raise InvalidInput("fileSize inválido")
        if file_size <= 0:
            raise InvalidInput("fileSize inválido")
        if file_size > MAX_VIDEO_SIZE_MB * 1024 * 1024:
            raise InvalidInput(f"Arquivo excede o limite de {MAX_VIDEO_SIZE_MB}MB")

    ext = file_extension(meta.get('fileName')) or file_extension(source_url)
    if ext not in ALLOWED_VIDEO_FORMATS:
        raise InvalidInput(
            f"Formato não suportado: {ext or '?'}. Permitidos: {', '.join(ALLOWED_VIDEO_FORMATS)}"
        )

    if job_type == 'derivative' and not meta.get('parentTokenId'):
        raise InvalidInput("parentTokenId é obrigatório para derivados")

    return {'format': ext, 'fileSize': file_size}


@register_step(
    name="validate",
    description="Valida metadata, tamanho, formato e stream de vídeo",
    category="validation",
    produces=["format", "fileSize"],
    max_attempts=3,
    timeout_s=60,
)
def validate_step(job: Job, params: dict) -> dict:
    from ..services.transcode_service import TranscodeService

    meta = metadata(job)
    checked = check_metadata(job.job_type, meta)

    probe = TranscodeService().probe(meta['sourceUrl'])
    if not probe.get('has_video'):
        raise PermanentStepError("Nenhum stream de vídeo encontrado no arquivo")

    logger.info(f"✅ [VALIDATE] {meta.get('title')!r} ({checked['format']}, "
                f"{probe.get('duration')}s)")
    return checked
