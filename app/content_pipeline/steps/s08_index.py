"""
Step 08: Indexação.

Grava o vídeo mintado na tabela videos. A partir daqui o conteúdo aparece
no feed e passa a receber views, likes, shares e tips.
"""

from ._base import *


@register_step(
    name="index",
    description="Publica o vídeo no índice de conteúdo",
    category="index",
    max_attempts=5,
    timeout_s=30,
)
def index_step(job: Job, params: dict) -> dict:
    from ..services.content_index_service import ContentIndexService

    meta = metadata(job)
    minted = job.step_output('mint')
    pinned = job.step_output('pin_ipfs')
    transcode = job.step_output('transcode')

    row = {
        'token_id': minted['tokenId'],
        'creator_address': job.owner_identity,
        'title': meta['title'].strip(),
        'description': meta.get('description') or '',
        'tags': meta.get('tags') or [],
        'ipfs_hash': pinned.get('ipfsHash'),
        'thumbnail_hash': pinned.get('thumbnailHash'),
        'metadata_uri': pinned.get('contentUri'),
        'perceptual_hash': job.step_output('fingerprint').get('perceptualHash'),
        'playlist_url': transcode.get('playlistUrl'),
        'duration': transcode.get('duration'),
        'resolution': transcode.get('resolution'),
        'allow_remixing': bool(meta.get('allowRemixing')),
        'parent_token_id': meta.get('parentTokenId'),
        'transaction_hash': minted.get('transactionHash'),
        'processing_id': job.id,
    }
    saved = ContentIndexService().upsert_video(row)
    return {'videoId': saved.get('id'), 'indexed': True}
