"""
Step 04: Thumbnail (opcional).

Sem thumbnail o vídeo ainda é publicado; a metadata só fica sem image.
"""

from ._base import *


@register_step(
    name="thumbnail",
    description="Gera thumbnail JPEG 1280x720",
    category="media",
    optional=True,
    max_attempts=2,
    timeout_s=120,
)
def thumbnail_step(job: Job, params: dict) -> dict:
    from ..services.transcode_service import TranscodeService

    result = TranscodeService().generate_thumbnail(
        source_url=metadata(job)['sourceUrl'],
        output_prefix=job.id,
        timestamp=params.get('thumbnail_timestamp', '00:00:05'),
    )
    return {'thumbnailUrl': result['thumbnail_url']}
