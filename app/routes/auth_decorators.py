"""
Auth Decorators - Identidade do ator (carteira) nas rotas

A identidade vem do colaborador de auth, em ordem:
1. Header Authorization: Bearer <jwt> (HS256, claim 'address')
2. Header X-Wallet-Address (compatível com o frontend atual)

Não há verificação de assinatura da carteira: o endereço é confiado como
veio. Só o formato é validado (0x + 40 hex) e ele é normalizado para
minúsculas.
"""

import logging
import re
from functools import wraps
from typing import Optional

import jwt
from flask import g, jsonify, request

logger = logging.getLogger(__name__)

ADDRESS_RE = re.compile(r'^0x[0-9a-fA-F]{40}$')


class IdentityError(Exception):
    """Credencial presente mas inválida."""


def normalize_address(address: Optional[str]) -> Optional[str]:
    """Valida e normaliza um endereço de carteira. None se vazio."""
    if not address:
        return None
    address = address.strip()
    if not ADDRESS_RE.match(address):
        raise IdentityError(f"Endereço de carteira inválido: {address[:50]}")
    return address.lower()


def _address_from_bearer(auth_header: str) -> Optional[str]:
    token = auth_header[len('Bearer '):].strip() if auth_header.startswith('Bearer ') else ''
    if not token:
        return None

    from app.config import JWT_SECRET, JWT_ALGORITHMS
    try:
        decoded = jwt.decode(token, JWT_SECRET, algorithms=JWT_ALGORITHMS)
    except jwt.ExpiredSignatureError:
        raise IdentityError("Token expirado")
    except jwt.InvalidTokenError as e:
        raise IdentityError(f"Token inválido: {e}")

    address = decoded.get('address') or decoded.get('wallet_address')
    if not address:
        raise IdentityError("Token sem claim 'address'")
    return normalize_address(address)


def get_actor_identity() -> Optional[str]:
    """
    Resolve a identidade do request atual.

    Returns:
        Endereço normalizado, ou None se nenhuma credencial foi enviada

    Raises:
        IdentityError: credencial enviada mas inválida
    """
    address = _address_from_bearer(request.headers.get('Authorization', ''))
    if address:
        return address
    return normalize_address(request.headers.get('X-Wallet-Address'))


def actor_required(f):
    """
    Exige identidade. Disponível em g.actor_identity.

    Uso:
        @bp.route('/content/<content_id>/like', methods=['POST'])
        @actor_required
        def like(content_id):
            ...

    Retorna 401 sem credencial ou com credencial inválida.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            identity = get_actor_identity()
        except IdentityError as e:
            logger.info(f"🔒 {request.path}: {e}")
            return jsonify({'success': False, 'error': str(e)}), 401

        if not identity:
            logger.info(f"🚫 Acesso negado a {request.path} - identidade requerida")
            return jsonify({
                'success': False,
                'error': 'Wallet address required',
                'hint': 'Envie Authorization: Bearer <jwt> ou X-Wallet-Address',
            }), 401

        g.actor_identity = identity
        return f(*args, **kwargs)

    return decorated_function


def actor_optional(f):
    """
    Identidade opcional: g.actor_identity fica None para anônimos.
    Credencial inválida também vira anônimo.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            g.actor_identity = get_actor_identity()
        except IdentityError as e:
            logger.info(f"🔒 {request.path}: credencial ignorada ({e})")
            g.actor_identity = None
        return f(*args, **kwargs)

    return decorated_function
