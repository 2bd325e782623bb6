"""
🎬 Content Pipeline Endpoints - API REST

Endpoints para iniciar e acompanhar o processamento de conteúdo:
- POST /api/processing                 → cria job e enfileira (202)
- GET  /api/processing/<id>/status     → StatusView (polling, só o dono)
- GET  /api/processing                 → jobs do ator
- GET  /api/queue/status               → fila Redis + workers vivos

Dependências:
- EngineBridge (get_engine_bridge) para criar/ler jobs
- queue.py para estatísticas da fila
"""

import logging

from flask import Blueprint, g, jsonify, request

from app.routes.auth_decorators import actor_required
from .engine.bridge import get_engine_bridge
from .engine.errors import InvalidInput, PipelineError
from .engine.step_registry import StepRegistry

logger = logging.getLogger(__name__)

content_pipeline_bp = Blueprint('content_pipeline', __name__)


@content_pipeline_bp.errorhandler(PipelineError)
def handle_pipeline_error(error: PipelineError):
    if error.http_status >= 500:
        logger.error(f"❌ [API] {request.path}: {error.message}")
        return jsonify({"error": "Erro interno", "kind": error.kind}), error.http_status
    return jsonify(error.to_dict()), error.http_status


@content_pipeline_bp.route('/processing', methods=['POST'])
@actor_required
def create_processing():
    """
    POST /api/processing

    Body:
    {
        "jobType": "upload" | "derivative",
        "metadata": {
            "title": "...", "description": "...", "tags": [...],
            "sourceUrl": "https://...", "fileName": "clip.mp4", "fileSize": 1234,
            "allowRemixing": true, "parentTokenId": "42"
        }
    }

    Response 202:
    {"processingId": "proc_...", "status": "queued", "queued": true}
    """
    from .steps.s01_validate import check_metadata

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidInput("Body JSON obrigatório")

    job_type = data.get('jobType') or 'upload'
    if job_type not in StepRegistry.job_types():
        raise InvalidInput(f"jobType inválido: {job_type}")

    meta = data.get('metadata')
    check_metadata(job_type, meta)

    job_id, queued = get_engine_bridge().start_processing(
        owner_identity=g.actor_identity,
        job_type=job_type,
        metadata=meta,
    )
    return jsonify({
        "processingId": job_id,
        "status": "queued",
        "queued": queued,
    }), 202


@content_pipeline_bp.route('/processing/<job_id>/status', methods=['GET'])
@actor_required
def get_processing_status(job_id: str):
    """
    GET /api/processing/{id}/status

    401 sem identidade, 404 job desconhecido, 403 job de outro ator.

    Response:
    {
        "processingId": "proc_...",
        "status": "running",
        "progress": 29,
        "currentStep": "thumbnail",
        "steps": [
            {"id": "validate", "status": "completed"},
            {"id": "transcode", "status": "completed"},
            {"id": "thumbnail", "status": "processing"},
            {"id": "fingerprint", "status": "pending"},
            ...
        ]
    }
    """
    return jsonify(get_engine_bridge().get_status(job_id, g.actor_identity))


@content_pipeline_bp.route('/processing', methods=['GET'])
@actor_required
def list_processing():
    """GET /api/processing?limit=20 → jobs do ator, mais recentes primeiro."""
    try:
        limit = min(max(int(request.args.get('limit', 20)), 1), 100)
    except ValueError:
        raise InvalidInput("limit deve ser inteiro")

    jobs = get_engine_bridge().list_jobs(g.actor_identity, limit=limit)
    return jsonify({"jobs": jobs, "count": len(jobs)})


@content_pipeline_bp.route('/queue/status', methods=['GET'])
def queue_status():
    """GET /api/queue/status → tamanho da fila e heartbeats dos workers."""
    from .queue import get_queue_stats

    stats = get_queue_stats()
    if stats is None:
        return jsonify({"status": "unavailable", "error": "Redis indisponível"}), 503
    return jsonify({"status": "ok", **stats})
