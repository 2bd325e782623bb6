"""
Step 07: Mint do IP-NFT na Origin.

retry_on_timeout=False: depois de um timeout a transação pode já ter sido
enviada, e um segundo envio criaria outro token. Falhas transitórias antes
da resposta (5xx, conexão recusada) ainda re-tentam.
"""

from ._base import *


@register_step(
    name="mint",
    description="Minta o IP-NFT (original ou derivado) na Origin",
    category="chain",
    produces=["tokenId", "transactionHash", "explorerUrl"],
    max_attempts=3,
    timeout_s=180,
    backoff_base_s=5.0,
    retry_on_timeout=False,
)
def mint_step(job: Job, params: dict) -> dict:
    from ..services.origin_mint_service import OriginMintService

    meta = metadata(job)
    pinned = job.step_output('pin_ipfs')
    content_uri = pinned.get('contentUri')
    if not content_uri:
        raise PermanentStepError("contentUri ausente: step pin_ipfs não produziu metadata")

    license_terms = {'allowRemixing': bool(meta.get('allowRemixing'))}
    if meta.get('royaltyPercent') is not None:
        license_terms['royaltyPercent'] = meta['royaltyPercent']

    minted = OriginMintService().mint(
        creator=job.owner_identity,
        content_uri=content_uri,
        metadata={'title': meta['title'].strip(), 'ipfsHash': pinned.get('ipfsHash')},
        idempotency_key=job.id,
        parent_token_id=meta.get('parentTokenId'),
        license_terms=license_terms,
    )
    return {
        'tokenId': minted['token_id'],
        'transactionHash': minted['transaction_hash'],
        'blockNumber': minted.get('block_number'),
        'explorerUrl': minted['explorer_url'],
    }
