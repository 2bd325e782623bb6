"""
Interactions - Engajamento em conteúdo publicado

Endpoints:
- POST /api/content/<id>/like    → toggle (ator obrigatório)
- GET  /api/content/<id>/like    → estado do like do ator + contagem
- POST /api/content/<id>/view    → conta a primeira view do ator/sessão
- GET  /api/content/<id>/view    → contagem de views
- POST /api/content/<id>/share   → incrementa (platform obrigatório)
- GET  /api/content/<id>/share   → contagem de shares
- POST /api/content/<id>/tip     → registra tip (amount > 0)
- GET  /api/content/<id>/stats   → contadores + isLiked do ator

Views anônimas usam X-Session-Id (ou body.sessionId); sem nenhum dos dois
um id novo é gerado e devolvido, e a view conta.
"""

import logging
import math
import uuid

from flask import Blueprint, g, jsonify, request

from app.content_pipeline.engine.errors import PipelineError
from app.routes.auth_decorators import actor_optional, actor_required
from app.services.interaction_aggregator import (
    LIKE, SHARE, TIP, VIEW, get_interaction_aggregator,
)

logger = logging.getLogger(__name__)

interactions_bp = Blueprint('interactions', __name__)

MAX_PLATFORM_LENGTH = 50
MAX_TIP_MESSAGE_LENGTH = 280


@interactions_bp.errorhandler(PipelineError)
def handle_pipeline_error(error: PipelineError):
    return jsonify({'success': False, **error.to_dict()}), error.http_status


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@interactions_bp.route('/content/<content_id>/like', methods=['POST'])
@actor_required
def toggle_like(content_id):
    result = get_interaction_aggregator().toggle(content_id, actor_id=g.actor_identity, kind=LIKE)
    return jsonify({
        'success': True,
        'isLiked': result['active'],
        'likeCount': result['count'],
        'message': 'Video liked successfully' if result['active'] else 'Video unliked successfully',
    })


@interactions_bp.route('/content/<content_id>/like', methods=['GET'])
@actor_optional
def get_like(content_id):
    aggregator = get_interaction_aggregator()
    return jsonify({
        'success': True,
        'isLiked': aggregator.is_active(content_id, g.actor_identity, LIKE),
        'likeCount': aggregator.count(content_id, LIKE),
    })


@interactions_bp.route('/content/<content_id>/view', methods=['POST'])
@actor_optional
def record_view(content_id):
    """
    Body (opcional): {"sessionId": "..."}

    A identidade da view é, em ordem: carteira do ator, X-Session-Id,
    body.sessionId, id gerado.
    """
    session_id = request.headers.get('X-Session-Id') or _body().get('sessionId')
    if g.actor_identity:
        viewer_id = g.actor_identity
    else:
        if not session_id:
            session_id = uuid.uuid4().hex
        viewer_id = f"session:{session_id}"

    result = get_interaction_aggregator().record_view_once(content_id, viewer_id)
    response = {
        'success': True,
        'counted': result['counted'],
        'viewCount': result['count'],
        'message': 'View tracked successfully' if result['counted'] else 'View already tracked',
    }
    if not g.actor_identity:
        response['sessionId'] = session_id
    return jsonify(response)


@interactions_bp.route('/content/<content_id>/view', methods=['GET'])
def get_views(content_id):
    return jsonify({'success': True, 'viewCount': get_interaction_aggregator().count(content_id, VIEW)})


@interactions_bp.route('/content/<content_id>/share', methods=['POST'])
@actor_optional
def record_share(content_id):
    """Body: {"platform": "twitter"}"""
    platform = _body().get('platform')
    if not isinstance(platform, str) or not platform.strip():
        return jsonify({'success': False, 'error': 'platform is required'}), 400
    platform = platform.strip().lower()[:MAX_PLATFORM_LENGTH]

    count = get_interaction_aggregator().increment(
        content_id, SHARE, actor_id=g.actor_identity, details={'platform': platform}
    )
    return jsonify({
        'success': True,
        'shareCount': count,
        'platform': platform,
        'message': f'Share to {platform} tracked successfully',
    })


@interactions_bp.route('/content/<content_id>/share', methods=['GET'])
def get_shares(content_id):
    return jsonify({'success': True, 'shareCount': get_interaction_aggregator().count(content_id, SHARE)})


@interactions_bp.route('/content/<content_id>/tip', methods=['POST'])
@actor_required
def record_tip(content_id):
    """
    Body: {"amount": 1.5, "message": "...", "transactionHash": "0x..."}

    A transferência on-chain é feita pelo cliente; aqui só contamos e
    guardamos a auditoria.
    """
    data = _body()
    amount = data.get('amount')
    if (isinstance(amount, bool) or not isinstance(amount, (int, float))
            or not math.isfinite(amount) or amount <= 0):
        return jsonify({'success': False, 'error': 'Invalid tip amount'}), 400

    message = data.get('message')
    if message is not None and not isinstance(message, str):
        return jsonify({'success': False, 'error': 'message must be a string'}), 400

    details = {'amount': amount}
    if message:
        details['message'] = message[:MAX_TIP_MESSAGE_LENGTH]
    if data.get('transactionHash'):
        details['transaction_hash'] = str(data['transactionHash'])

    count = get_interaction_aggregator().increment(
        content_id, TIP, actor_id=g.actor_identity, details=details
    )
    return jsonify({
        'success': True,
        'tipCount': count,
        'message': 'Tip sent successfully',
    })


@interactions_bp.route('/content/<content_id>/stats', methods=['GET'])
@actor_optional
def get_stats(content_id):
    stats = get_interaction_aggregator().stats(content_id, actor_id=g.actor_identity)
    return jsonify({'success': True, 'stats': stats})
