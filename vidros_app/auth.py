# vidros_app/auth.py
from dataclasses import dataclass
from datetime import timedelta
from functools import wraps
from typing import Optional

from flask import current_app, request
from flask_jwt_extended import create_access_token, get_jwt, get_jwt_identity, verify_jwt_in_request

from .errors import ForbiddenError


@dataclass
class Principal:
    """Identidade do utilizador autenticado, tal como vem no token."""
    id: int
    email: Optional[str]
    role: str
    loja_id: Optional[int]


def emitir_token(user):
    """Token assinado com {id, email, role, loja_id}; expira após JWT_EXPIRES_HOURS."""
    horas = current_app.config.get('JWT_EXPIRES_HOURS', 24)
    return create_access_token(
        identity=str(user.id),
        additional_claims={'email': user.email, 'role': user.role, 'loja_id': user.loja_id},
        expires_delta=timedelta(hours=horas),
    )


def current_principal():
    claims = get_jwt()
    return Principal(
        id=int(get_jwt_identity()),
        email=claims.get('email'),
        role=claims.get('role'),
        loja_id=claims.get('loja_id'),
    )


def autorizar(principal, roles):
    if principal.role not in roles:
        raise ForbiddenError('Sem permissão para esta operação')


def exigir_autenticacao(*roles):
    """Para uso em before_request: valida o token e, se indicado, o papel."""
    if request.method == 'OPTIONS':
        return None
    verify_jwt_in_request()
    principal = current_principal()
    if roles:
        autorizar(principal, roles)
    return principal


def require_roles(*roles):
    """Decorator que exige token válido e um dos papéis indicados."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            autorizar(current_principal(), roles)
            return fn(*args, **kwargs)
        return wrapper
    return decorator
