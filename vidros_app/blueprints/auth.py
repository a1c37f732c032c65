# vidros_app/blueprints/auth.py
import logging
from flask import Blueprint, request, jsonify
from werkzeug.security import check_password_hash
from ..auth import emitir_token, exigir_autenticacao
from ..errors import AuthError, NotFoundError, ValidationError
from ..extensions import db, limiter, limite_api
from ..models import User

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')
limiter.shared_limit(limite_api, scope='api')(auth_bp)


def serialize_perfil(u):
    """Perfil público do utilizador (nunca inclui hashes)."""
    return {
        'id': u.id,
        'username': u.username,
        'email': u.email,
        'name': u.name,
        'role': u.role,
        'loja_id': u.loja_id,
        'loja_name': u.loja.name if u.loja else None,
    }


@auth_bp.route('/login', methods=['POST'])
def login():
    """Aceita email ou username no campo 'email'."""
    dados = request.get_json(silent=True) or {}
    if not dados.get('email') or not dados.get('password'):
        raise ValidationError('Email e password são obrigatórios')

    user_input = str(dados.get('email')).strip()
    password = dados.get('password')

    query = User.query.filter_by(active=True)
    if '@' in user_input:
        usuario = query.filter_by(email=user_input).first()
    else:
        usuario = query.filter_by(username=user_input).first()

    if not usuario or not check_password_hash(usuario.password_hash, password):
        logger.warning(f"Login falhado para '{user_input}'")
        raise AuthError('Credenciais inválidas')

    return jsonify({'token': emitir_token(usuario), 'user': serialize_perfil(usuario)})


@auth_bp.route('/me', methods=['GET'])
def me():
    principal = exigir_autenticacao()
    usuario = db.session.get(User, principal.id)
    if not usuario:
        raise NotFoundError('Utilizador não encontrado')
    return jsonify(serialize_perfil(usuario))


@auth_bp.route('/logout', methods=['POST'])
def logout():
    # Sem sessão no servidor: o cliente apenas descarta o token
    exigir_autenticacao()
    return jsonify({'message': 'Logout efetuado com sucesso'})
