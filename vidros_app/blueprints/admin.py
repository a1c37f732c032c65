# vidros_app/blueprints/admin.py
import logging
from flask import Blueprint, request, jsonify
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash
from ..auth import exigir_autenticacao, current_principal
from ..errors import ConflictError, NotFoundError, ValidationError, traduzir_violacao_unica
from ..extensions import db, limiter, limite_api
from ..models import Loja, User, Pedido, PedidoUpdate, ROLES
from ..utils import iso

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')
limiter.shared_limit(limite_api, scope='api')(admin_bp)


@admin_bp.before_request
def apenas_admin():
    exigir_autenticacao('admin')


def serialize_loja(l):
    return {
        'id': l.id,
        'name': l.name,
        'address': l.address,
        'phone': l.phone,
        'email': l.email,
        'active': l.active,
        'created_at': iso(l.created_at),
    }


def serialize_user(u):
    """Utilizador para o painel admin, com o nome da loja e sem hashes."""
    return {
        'id': u.id,
        'username': u.username,
        'email': u.email,
        'name': u.name,
        'role': u.role,
        'loja_id': u.loja_id,
        'loja_name': u.loja.name if u.loja else None,
        'active': u.active,
        'created_at': iso(u.created_at),
    }


def _get_ou_404(modelo, id, mensagem):
    obj = db.session.get(modelo, id)
    if obj is None:
        raise NotFoundError(mensagem)
    return obj


def _commit_utilizador():
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        traduzir_violacao_unica(e)


def _validar_loja(loja_id):
    if db.session.get(Loja, loja_id) is None:
        raise ValidationError('Loja não encontrada')


# --- LOJAS ---

@admin_bp.route('/lojas', methods=['GET'])
def listar_lojas():
    lojas = Loja.query.order_by(Loja.name.asc()).all()
    return jsonify([serialize_loja(l) for l in lojas])


@admin_bp.route('/lojas', methods=['POST'])
def criar_loja():
    dados = request.get_json(silent=True) or {}
    if not dados.get('name'):
        raise ValidationError('Nome da loja é obrigatório')

    loja = Loja(
        name=dados['name'],
        address=dados.get('address'),
        phone=dados.get('phone'),
        email=dados.get('email'),
    )
    db.session.add(loja)
    db.session.commit()
    return jsonify(serialize_loja(loja)), 201


@admin_bp.route('/lojas/<int:loja_id>', methods=['PUT'])
def atualizar_loja(loja_id):
    dados = request.get_json(silent=True) or {}
    loja = _get_ou_404(Loja, loja_id, 'Loja não encontrada')

    # Campos ausentes ou null mantêm o valor atual
    for campo in ('name', 'address', 'phone', 'email', 'active'):
        if dados.get(campo) is not None:
            setattr(loja, campo, dados[campo])

    db.session.commit()
    return jsonify(serialize_loja(loja))


@admin_bp.route('/lojas/<int:loja_id>', methods=['DELETE'])
def eliminar_loja(loja_id):
    loja = _get_ou_404(Loja, loja_id, 'Loja não encontrada')
    if User.query.filter_by(loja_id=loja_id).count() > 0:
        raise ConflictError('Não é possível eliminar loja com utilizadores associados')

    db.session.delete(loja)
    db.session.commit()
    return jsonify({'message': 'Loja eliminada com sucesso'})


@admin_bp.route('/lojas/<int:loja_id>/reset-pedidos', methods=['POST'])
def reset_pedidos_loja(loja_id):
    loja = _get_ou_404(Loja, loja_id, 'Loja não encontrada')

    pedidos = Pedido.query.filter_by(loja_id=loja_id).all()
    for pedido in pedidos:
        # delete pelo ORM para levar fotos e updates junto
        db.session.delete(pedido)
    db.session.commit()

    total = len(pedidos)
    logger.info(f"Reset de pedidos da loja {loja.name} (ID: {loja_id}): {total} pedido(s) eliminado(s)")
    return jsonify({
        'message': f'{total} pedido(s) eliminado(s) da loja {loja.name}',
        'loja_id': loja_id,
        'loja_name': loja.name,
        'pedidos_eliminados': total,
    })


# --- UTILIZADORES ---

@admin_bp.route('/users', methods=['GET'])
def listar_users():
    users = User.query.order_by(User.name.asc()).all()
    return jsonify([serialize_user(u) for u in users])


@admin_bp.route('/users', methods=['POST'])
def criar_user():
    dados = request.get_json(silent=True) or {}
    username, password, name, role = dados.get('username'), dados.get('password'), dados.get('name'), dados.get('role')

    if not all([username, password, name, role]):
        raise ValidationError('Username, password, nome e role são obrigatórios')
    if role not in ROLES:
        raise ValidationError('Role inválido')

    loja_id = dados.get('loja_id') if role == 'loja' else None
    if role == 'loja':
        if not loja_id:
            raise ValidationError('Loja é obrigatória para utilizadores do tipo loja')
        _validar_loja(loja_id)

    usuario = User(
        username=username,
        email=dados.get('email') or None,
        password_hash=generate_password_hash(password),
        name=name,
        role=role,
        loja_id=loja_id,
    )
    db.session.add(usuario)
    _commit_utilizador()

    logger.info(f"Utilizador '{usuario.username}' criado com role {usuario.role}")
    return jsonify(serialize_user(usuario)), 201


@admin_bp.route('/users/<int:user_id>', methods=['PUT'])
def atualizar_user(user_id):
    dados = request.get_json(silent=True) or {}
    usuario = _get_ou_404(User, user_id, 'Utilizador não encontrado')

    role = dados.get('role') if dados.get('role') is not None else usuario.role
    if role not in ROLES:
        raise ValidationError('Role inválido')

    loja_id = dados.get('loja_id') if dados.get('loja_id') is not None else usuario.loja_id
    if role == 'loja':
        if not loja_id:
            raise ValidationError('Loja é obrigatória para utilizadores do tipo loja')
        _validar_loja(loja_id)
    else:
        loja_id = None

    for campo in ('username', 'name', 'active'):
        if dados.get(campo) is not None:
            setattr(usuario, campo, dados[campo])
    if dados.get('email') is not None:
        # string vazia limpa o email, como na criação
        usuario.email = dados['email'] or None
    if dados.get('password'):
        usuario.password_hash = generate_password_hash(dados['password'])
    usuario.role = role
    usuario.loja_id = loja_id

    _commit_utilizador()
    return jsonify(serialize_user(usuario))


@admin_bp.route('/users/<int:user_id>', methods=['DELETE'])
def eliminar_user(user_id):
    principal = current_principal()
    if user_id == principal.id:
        raise ValidationError('Não pode eliminar o seu próprio utilizador')

    usuario = _get_ou_404(User, user_id, 'Utilizador não encontrado')

    tem_historico = (
        Pedido.query.filter_by(user_id=user_id).count() > 0
        or PedidoUpdate.query.filter_by(user_id=user_id).count() > 0
    )
    if tem_historico:
        raise ConflictError('Não é possível eliminar utilizador com pedidos ou atualizações associadas')

    db.session.delete(usuario)
    db.session.commit()
    logger.info(f"Utilizador {user_id} eliminado por {principal.id}")
    return jsonify({'message': 'Utilizador eliminado com sucesso'})


@admin_bp.route('/users/<int:user_id>/reset-password', methods=['POST'])
def reset_password(user_id):
    dados = request.get_json(silent=True) or {}
    new_password = dados.get('new_password')
    if not new_password or len(new_password) < 6:
        raise ValidationError('Password deve ter pelo menos 6 caracteres')

    usuario = _get_ou_404(User, user_id, 'Utilizador não encontrado')
    # Grava na coluna legada 'password'; o login continua a validar password_hash
    usuario.password = generate_password_hash(new_password)
    db.session.commit()

    logger.info(f"Password do utilizador {user_id} reposta")
    return jsonify({
        'message': 'Password alterada com sucesso',
        'user': {'id': usuario.id, 'name': usuario.name, 'email': usuario.email, 'role': usuario.role},
    })


# --- ESTATÍSTICAS ---

@admin_bp.route('/stats', methods=['GET'])
def estatisticas():
    por_status = (
        db.session.query(Pedido.status, func.count(Pedido.id))
        .group_by(Pedido.status)
        .all()
    )
    return jsonify({
        'total_lojas': Loja.query.filter_by(active=True).count(),
        'total_users': User.query.filter_by(active=True).count(),
        'total_pedidos': Pedido.query.count(),
        'pedidos_por_status': [{'status': s, 'count': c} for s, c in por_status],
    })
