"""
Step 03: Transcodificação para HLS (720p, segmentos de 10s).
"""

from ._base import *


@register_step(
    name="transcode",
    description="Transcodifica o vídeo para HLS 720p",
    category="media",
    produces=["duration", "resolution", "hlsSegments"],
    max_attempts=3,
    timeout_s=900,
    backoff_base_s=5.0,
)
def transcode_step(job: Job, params: dict) -> dict:
    from ..services.transcode_service import TranscodeService

    result = TranscodeService().transcode_hls(
        source_url=metadata(job)['sourceUrl'],
        output_prefix=job.id,
        height=params.get('target_height', 720),
    )

    playlist_url = result.get('playlist_url')
    if not playlist_url:
        raise TransientStepError("Transcoder não devolveu playlist_url")

    return {
        'playlistUrl': playlist_url,
        'hlsSegments': result.get('segment_count', 0),
        'duration': result.get('duration'),
        'resolution': result.get('resolution'),
    }
