# vidros_app/errors.py
import logging
from flask import jsonify
from werkzeug.exceptions import HTTPException
from .extensions import jwt

logger = logging.getLogger(__name__)

MENSAGEM_RATE_LIMIT = 'Demasiados pedidos deste IP, tente novamente mais tarde'


class ApiError(Exception):
    """Erro de negócio convertido em {"error": mensagem} com o código HTTP da classe."""
    status_code = 400

    def __init__(self, mensagem):
        super().__init__(mensagem)
        self.mensagem = mensagem


class ValidationError(ApiError):
    status_code = 400


class AuthError(ApiError):
    status_code = 401


class ForbiddenError(ApiError):
    status_code = 403


class NotFoundError(ApiError):
    status_code = 404


class ConflictError(ApiError):
    status_code = 400


def traduzir_violacao_unica(erro):
    """
    Converte uma IntegrityError de unicidade em ConflictError para username/email.
    Qualquer outra falha de base de dados é relançada como está.
    """
    texto = str(getattr(erro, 'orig', erro)).lower()
    if 'unique' not in texto and 'duplicate' not in texto:
        raise erro
    if any(chave in texto for chave in ('users.email', 'users_email', 'key (email)')):
        raise ConflictError('Email já existe') from erro
    raise ConflictError('Username já existe') from erro


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(e):
        return jsonify({'error': e.mensagem}), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        if e.code == 404:
            return jsonify({'error': 'Rota não encontrada'}), 404
        if e.code == 429:
            return jsonify({'error': MENSAGEM_RATE_LIMIT}), 429
        return jsonify({'error': e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception(f"Erro não tratado: {e}")
        return jsonify({'error': 'Erro interno do servidor'}), 500


@jwt.unauthorized_loader
def token_ausente(motivo):
    return jsonify({'error': 'Token não fornecido'}), 401


@jwt.invalid_token_loader
def token_invalido(motivo):
    return jsonify({'error': 'Token inválido'}), 401


@jwt.expired_token_loader
def token_expirado(jwt_header, jwt_payload):
    return jsonify({'error': 'Token expirado'}), 401
