"""
Step 06: Pin no IPFS (Pinata).

1. Arquivo original do vídeo
2. Thumbnail (se o step opcional gerou)
3. Metadata JSON do IP-NFT → contentUri = ipfs://<hash da metadata>
"""

from ._base import *


@register_step(
    name="pin_ipfs",
    description="Pina vídeo, thumbnail e metadata no IPFS",
    category="storage",
    produces=["ipfsHash", "thumbnailHash", "contentUri"],
    max_attempts=5,
    timeout_s=600,
    backoff_base_s=2.0,
)
def pin_ipfs_step(job: Job, params: dict) -> dict:
    from ..services.ipfs_pinning_service import IPFSPinningService

    meta = metadata(job)
    service = IPFSPinningService()
    key_values = {'content-type': 'video', 'creator': job.owner_identity, 'processing-id': job.id}

    fmt = job.step_output('validate').get('format') or file_extension(meta['sourceUrl']) or 'mp4'
    video = service.pin_file_from_url(meta['sourceUrl'], name=f"{job.id}.{fmt}",
                                      key_values=key_values)

    thumbnail_hash = None
    thumbnail_url = job.step_output('thumbnail').get('thumbnailUrl')
    if thumbnail_url:
        thumbnail = service.pin_file_from_url(
            thumbnail_url, name=f"{job.id}-thumbnail.jpg",
            key_values={'content-type': 'image', 'related-video': video['ipfs_hash']}
        )
        thumbnail_hash = thumbnail['ipfs_hash']

    transcode = job.step_output('transcode')
    nft_metadata = service.build_video_metadata(
        title=meta['title'].strip(),
        description=meta.get('description'),
        creator=job.owner_identity,
        tags=meta.get('tags') or [],
        video_hash=video['ipfs_hash'],
        thumbnail_hash=thumbnail_hash,
        duration=transcode.get('duration'),
        resolution=transcode.get('resolution'),
        allow_remixing=bool(meta.get('allowRemixing')),
        parent_token_id=meta.get('parentTokenId'),
    )
    pinned_metadata = service.pin_json(nft_metadata, name=f"{job.id}-metadata.json",
                                       key_values=key_values)

    return {
        'ipfsHash': video['ipfs_hash'],
        'thumbnailHash': thumbnail_hash,
        'metadataHash': pinned_metadata['ipfs_hash'],
        'contentUri': f"ipfs://{pinned_metadata['ipfs_hash']}",
        'gatewayUrl': video['gateway_url'],
    }
