"""
provn-worker API - Pipeline de conteúdo e engajamento

Contem:
- Content Pipeline (criação e status de processamento)
- Interactions (views, likes, shares, tips)

Comunicacao:
- Redis: fila de jobs (consumida pelo worker.py) e eventos de progresso
- PostgreSQL: jobs e contadores de interação
- Supabase: índice de conteúdo (tabela videos)
"""

import atexit
import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .db import init_db_pool, close_db_pool, check_db_health

from .content_pipeline import content_pipeline_bp
from .routes.interactions import interactions_bp

logger = logging.getLogger(__name__)


def _uses_postgres() -> bool:
    from .config import JOB_STORE_BACKEND, INTERACTION_STORE_BACKEND
    return 'postgres' in (JOB_STORE_BACKEND.lower(), INTERACTION_STORE_BACKEND.lower())


def create_app(bridge=None, aggregator=None):
    """
    Cria e configura a aplicacao Flask.

    bridge / aggregator: substituem os singletons (testes, scripts).
    """
    app = Flask(__name__)

    if bridge is not None:
        from .content_pipeline.engine.bridge import set_engine_bridge
        set_engine_bridge(bridge)
    if aggregator is not None:
        from .services.interaction_aggregator import set_interaction_aggregator
        set_interaction_aggregator(aggregator)

    app.register_blueprint(content_pipeline_bp, url_prefix='/api')
    app.register_blueprint(interactions_bp, url_prefix='/api')

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        if isinstance(error, HTTPException):
            return jsonify({"error": error.description}), error.code
        # Detalhe fica no log, nunca na resposta
        logger.exception(f"❌ [API] Erro inesperado: {error}")
        return jsonify({"error": "Erro interno"}), 500

    # === DB POOL ===
    if _uses_postgres():
        try:
            init_db_pool()
            logger.info("✅ [provn-worker] Connection Pool PostgreSQL inicializado")
        except Exception as e:
            logger.warning(f"⚠️ [provn-worker] Erro ao inicializar Connection Pool: {e}")
        atexit.register(close_db_pool)

    @app.route('/health')
    def health_check():
        return "provn-worker API is healthy!"

    @app.route('/health/db')
    def health_check_db():
        if not _uses_postgres():
            return jsonify({"service": "provn-worker", "status": "healthy", "database": "memory"})
        try:
            db = check_db_health()
        except Exception as e:
            logger.error(f"❌ [HEALTH] Banco indisponível: {e}")
            return jsonify({"service": "provn-worker", "status": "unhealthy"}), 503
        return jsonify({"service": "provn-worker", **db})

    return app


app = create_app()
