# vidros_app/blueprints/pedidos.py
import logging
from flask import Blueprint, request, jsonify
from sqlalchemy import func, or_, select
from ..auth import exigir_autenticacao, current_principal, require_roles
from ..errors import NotFoundError, ValidationError
from ..extensions import db, limiter, limite_api
from ..models import Loja, User, Pedido, PedidoFoto, PedidoUpdate, utcnow
from ..utils import iso, tem_atividade_nova, parse_data_filtro

logger = logging.getLogger(__name__)

pedidos_bp = Blueprint('pedidos', __name__, url_prefix='/api/pedidos')
limiter.shared_limit(limite_api, scope='api')(pedidos_bp)

CAMPOS_OBRIGATORIOS = ('matricula', 'marca_carro', 'modelo_carro', 'tipo_vidro')


@pedidos_bp.before_request
def autenticado():
    exigir_autenticacao()


def serialize_pedido(p):
    """Converte um objeto Pedido do SQLAlchemy em um dicionário."""
    return {
        'id': p.id,
        'loja_id': p.loja_id,
        'user_id': p.user_id,
        'matricula': p.matricula,
        'marca_carro': p.marca_carro,
        'modelo_carro': p.modelo_carro,
        'ano_carro': p.ano_carro,
        'tipo_vidro': p.tipo_vidro,
        'descricao': p.descricao,
        'status': p.status,
        'valor': p.valor,
        'custo': p.custo,
        'fornecedor': p.fornecedor,
        'disponibilidade': p.disponibilidade,
        'notas': p.notas,
        'ultima_visualizacao_loja': iso(p.ultima_visualizacao_loja),
        'ultima_visualizacao_dept': iso(p.ultima_visualizacao_dept),
        'created_at': iso(p.created_at),
    }


def serialize_foto(f):
    return {
        'id': f.id,
        'pedido_id': f.pedido_id,
        'foto_url': f.foto_url,
        'created_at': iso(f.created_at),
    }


def serialize_update(u, **extras):
    dados = {
        'id': u.id,
        'pedido_id': u.pedido_id,
        'user_id': u.user_id,
        'tipo': u.tipo,
        'conteudo': u.conteudo,
        'visivel_loja': u.visivel_loja,
        'created_at': iso(u.created_at),
    }
    dados.update(extras)
    return dados


def _ultima_visualizacao(pedido, principal):
    """Timestamp de 'visto' do papel que está a consultar."""
    if principal.role == 'loja':
        return pedido.ultima_visualizacao_loja
    return pedido.ultima_visualizacao_dept


def _marcar_visto(pedido, principal):
    if principal.role == 'loja':
        pedido.ultima_visualizacao_loja = utcnow()
    else:
        pedido.ultima_visualizacao_dept = utcnow()


def _pedido_no_escopo(pedido_id, principal, mensagem='Pedido não encontrado'):
    """Carrega o pedido; para utilizadores de loja, só se for da sua loja."""
    query = Pedido.query.filter(Pedido.id == pedido_id)
    if principal.role == 'loja':
        query = query.filter(Pedido.loja_id == principal.loja_id)
    pedido = query.first()
    if pedido is None:
        raise NotFoundError(mensagem)
    return pedido


def _numero_ou_none(dados, campo):
    valor = dados.get(campo)
    if valor is None or valor == '':
        return None
    if isinstance(valor, bool):
        raise ValidationError(f'{campo} inválido')
    try:
        return float(valor)
    except (TypeError, ValueError):
        raise ValidationError(f'{campo} inválido')


def _anexar_fotos(pedido, fotos):
    for foto_url in fotos:
        db.session.add(PedidoFoto(pedido_id=pedido.id, foto_url=foto_url))
    db.session.flush()


@pedidos_bp.route('', methods=['GET'])
def listar_pedidos():
    principal = current_principal()
    args = request.args

    total_fotos = (
        select(func.count(PedidoFoto.id))
        .where(PedidoFoto.pedido_id == Pedido.id)
        .correlate(Pedido)
        .scalar_subquery()
    )
    total_updates = (
        select(func.count(PedidoUpdate.id))
        .where(PedidoUpdate.pedido_id == Pedido.id)
        .correlate(Pedido)
        .scalar_subquery()
    )
    ultima_atualizacao = (
        select(func.max(PedidoUpdate.created_at))
        .where(PedidoUpdate.pedido_id == Pedido.id)
        .correlate(Pedido)
        .scalar_subquery()
    )

    query = (
        db.session.query(
            Pedido,
            Loja.name.label('loja_name'),
            User.name.label('user_name'),
            total_fotos.label('total_fotos'),
            total_updates.label('total_updates'),
            ultima_atualizacao.label('ultima_atualizacao'),
        )
        .join(Loja, Pedido.loja_id == Loja.id)
        .outerjoin(User, Pedido.user_id == User.id)
    )

    if principal.role == 'loja':
        query = query.filter(Pedido.loja_id == principal.loja_id)
    elif args.get('loja_id'):
        try:
            query = query.filter(Pedido.loja_id == int(args['loja_id']))
        except ValueError:
            raise ValidationError('loja_id inválido')

    if args.get('status'):
        query = query.filter(Pedido.status == args['status'])

    data_inicio = parse_data_filtro(args.get('data_inicio'), 'data_inicio')
    data_fim = parse_data_filtro(args.get('data_fim'), 'data_fim', fim_do_dia=True)
    if data_inicio:
        query = query.filter(Pedido.created_at >= data_inicio)
    if data_fim:
        query = query.filter(Pedido.created_at <= data_fim)

    resultado = []
    for pedido, loja_name, user_name, n_fotos, n_updates, ultima in query.order_by(
            Pedido.created_at.desc(), Pedido.id.desc()).all():
        item = serialize_pedido(pedido)
        item.update({
            'loja_name': loja_name,
            'user_name': user_name,
            'total_fotos': n_fotos or 0,
            'total_updates': n_updates or 0,
            'ultima_atualizacao': iso(ultima),
            'has_new_activity': tem_atividade_nova(
                pedido.status, ultima, _ultima_visualizacao(pedido, principal)),
        })
        resultado.append(item)

    return jsonify(resultado)


@pedidos_bp.route('/<int:pedido_id>', methods=['GET'])
def obter_pedido(pedido_id):
    principal = current_principal()
    pedido = _pedido_no_escopo(pedido_id, principal)

    dados = serialize_pedido(pedido)
    dados.update({
        'loja_name': pedido.loja.name,
        'loja_email': pedido.loja.email,
        'loja_phone': pedido.loja.phone,
        'user_name': pedido.user.name if pedido.user else None,
    })

    fotos = (
        PedidoFoto.query.filter_by(pedido_id=pedido.id)
        .order_by(PedidoFoto.created_at.asc(), PedidoFoto.id.asc())
        .all()
    )
    dados['fotos'] = [serialize_foto(f) for f in fotos]

    updates = (
        db.session.query(PedidoUpdate, User.name, User.role)
        .outerjoin(User, PedidoUpdate.user_id == User.id)
        .filter(PedidoUpdate.pedido_id == pedido.id)
    )
    if principal.role == 'loja':
        # a loja vê o que é visível e também as suas próprias mensagens
        updates = updates.filter(or_(PedidoUpdate.visivel_loja.is_(True), PedidoUpdate.user_id == principal.id))
    updates = updates.order_by(PedidoUpdate.created_at.asc(), PedidoUpdate.id.asc()).all()
    dados['updates'] = [serialize_update(u, user_name=nome, user_role=role) for u, nome, role in updates]

    _marcar_visto(pedido, principal)
    db.session.commit()

    return jsonify(dados)


@pedidos_bp.route('', methods=['POST'])
@require_roles('loja')
def criar_pedido():
    principal = current_principal()
    dados = request.get_json(silent=True) or {}

    if not all(dados.get(campo) for campo in CAMPOS_OBRIGATORIOS):
        raise ValidationError('Matrícula, marca, modelo e tipo de vidro são obrigatórios')

    fotos = dados.get('fotos') or []
    if not isinstance(fotos, list) or not all(isinstance(f, str) and f for f in fotos):
        raise ValidationError('Fotos devem ser uma lista de URLs')

    novo_pedido = Pedido(
        loja_id=principal.loja_id,
        user_id=principal.id,
        matricula=dados['matricula'],
        marca_carro=dados['marca_carro'],
        modelo_carro=dados['modelo_carro'],
        ano_carro=dados.get('ano_carro'),
        tipo_vidro=dados['tipo_vidro'],
        descricao=dados.get('descricao'),
        status='pendente',
    )

    # Pedido e fotos são gravados juntos ou nada é gravado
    try:
        db.session.add(novo_pedido)
        db.session.flush()
        _anexar_fotos(novo_pedido, fotos)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(f"Pedido {novo_pedido.id} criado pela loja {principal.loja_id} com {len(fotos)} foto(s)")
    return jsonify(serialize_pedido(novo_pedido)), 201


@pedidos_bp.route('/<int:pedido_id>', methods=['PUT'])
@require_roles('departamento', 'admin')
def atualizar_pedido(pedido_id):
    dados = request.get_json(silent=True) or {}

    alteracoes = {}
    if dados.get('status'):
        alteracoes['status'] = dados['status']
    for campo in ('valor', 'custo'):
        if campo in dados:
            alteracoes[campo] = _numero_ou_none(dados, campo)
    if 'fornecedor' in dados:
        alteracoes['fornecedor'] = dados['fornecedor']

    if not alteracoes:
        raise ValidationError('Nenhum campo para atualizar')

    pedido = db.session.get(Pedido, pedido_id)
    if pedido is None:
        raise NotFoundError('Pedido não encontrado')

    for campo, valor in alteracoes.items():
        setattr(pedido, campo, valor)
    db.session.commit()

    return jsonify(serialize_pedido(pedido))


@pedidos_bp.route('/<int:pedido_id>/fotos', methods=['POST'])
def adicionar_foto(pedido_id):
    principal = current_principal()
    dados = request.get_json(silent=True) or {}
    if not dados.get('foto_url'):
        raise ValidationError('URL da foto é obrigatória')

    pedido = _pedido_no_escopo(pedido_id, principal)
    foto = PedidoFoto(pedido_id=pedido.id, foto_url=dados['foto_url'])
    db.session.add(foto)
    db.session.commit()
    return jsonify(serialize_foto(foto)), 201


@pedidos_bp.route('/<int:pedido_id>/updates', methods=['POST'])
@require_roles('loja', 'departamento', 'admin')
def adicionar_update(pedido_id):
    principal = current_principal()
    dados = request.get_json(silent=True) or {}
    mensagem = dados.get('mensagem')
    if not isinstance(mensagem, str) or not mensagem.strip():
        raise ValidationError('Mensagem é obrigatória')

    pedido = _pedido_no_escopo(pedido_id, principal, 'Pedido não encontrado ou sem permissão')
    update = PedidoUpdate(
        pedido_id=pedido.id,
        user_id=principal.id,
        tipo='geral',
        conteudo=mensagem,
        visivel_loja=dados.get('visivel_loja') is not False,
    )
    db.session.add(update)
    db.session.commit()
    return jsonify(serialize_update(update)), 201


@pedidos_bp.route('/<int:pedido_id>/updates', methods=['GET'])
def listar_updates(pedido_id):
    principal = current_principal()
    pedido = _pedido_no_escopo(pedido_id, principal)

    query = (
        db.session.query(PedidoUpdate, User.name)
        .outerjoin(User, PedidoUpdate.user_id == User.id)
        .filter(PedidoUpdate.pedido_id == pedido.id)
    )
    if principal.role == 'loja':
        query = query.filter(PedidoUpdate.visivel_loja.is_(True))
    updates = query.order_by(PedidoUpdate.created_at.desc(), PedidoUpdate.id.desc()).all()
    return jsonify([serialize_update(u, user_name=nome) for u, nome in updates])


@pedidos_bp.route('/<int:pedido_id>', methods=['DELETE'])
def cancelar_pedido(pedido_id):
    principal = current_principal()
    pedido = _pedido_no_escopo(pedido_id, principal)
    pedido.status = 'cancelado'
    db.session.commit()

    logger.info(f"Pedido {pedido.id} cancelado por {principal.id} ({principal.role})")
    return jsonify({'message': 'Pedido cancelado com sucesso', 'pedido': serialize_pedido(pedido)})
