# vidros_app/models.py
from datetime import datetime, timezone
from .extensions import db


def utcnow():
    return datetime.now(timezone.utc)


ROLES = ('admin', 'loja', 'departamento')


class Loja(db.Model):
    __tablename__ = 'lojas'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.Text)
    phone = db.Column(db.String(50))
    email = db.Column(db.String(255))
    active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    users = db.relationship('User', back_populates='loja')
    pedidos = db.relationship('Pedido', back_populates='loja', cascade='all, delete-orphan')


class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)
    # Coluna legada: é onde o reset de senha do painel admin grava (ver DESIGN.md)
    password = db.Column(db.String(255))
    name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False)
    loja_id = db.Column(db.Integer, db.ForeignKey('lojas.id'))
    active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    loja = db.relationship('Loja', back_populates='users')


class Pedido(db.Model):
    __tablename__ = 'pedidos'
    id = db.Column(db.Integer, primary_key=True)
    loja_id = db.Column(db.Integer, db.ForeignKey('lojas.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    matricula = db.Column(db.String(20), nullable=False)
    marca_carro = db.Column(db.String(100), nullable=False)
    modelo_carro = db.Column(db.String(100), nullable=False)
    ano_carro = db.Column(db.String(10))
    tipo_vidro = db.Column(db.String(100), nullable=False)
    descricao = db.Column(db.Text)
    # Texto livre: não há tabela de transições
    status = db.Column(db.String(50), default='pendente', nullable=False)
    valor = db.Column(db.Float)
    custo = db.Column(db.Float)
    fornecedor = db.Column(db.String(255))
    disponibilidade = db.Column(db.Text)
    notas = db.Column(db.Text)
    ultima_visualizacao_loja = db.Column(db.DateTime(timezone=True))
    ultima_visualizacao_dept = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    loja = db.relationship('Loja', back_populates='pedidos')
    user = db.relationship('User')
    fotos = db.relationship('PedidoFoto', back_populates='pedido', cascade='all, delete-orphan',
                            order_by=lambda: [PedidoFoto.created_at, PedidoFoto.id])
    updates = db.relationship('PedidoUpdate', back_populates='pedido', cascade='all, delete-orphan',
                              order_by=lambda: [PedidoUpdate.created_at, PedidoUpdate.id])


class PedidoFoto(db.Model):
    __tablename__ = 'pedido_fotos'
    id = db.Column(db.Integer, primary_key=True)
    pedido_id = db.Column(db.Integer, db.ForeignKey('pedidos.id', ondelete='CASCADE'), nullable=False)
    foto_url = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    pedido = db.relationship('Pedido', back_populates='fotos')


class PedidoUpdate(db.Model):
    __tablename__ = 'pedido_updates'
    id = db.Column(db.Integer, primary_key=True)
    pedido_id = db.Column(db.Integer, db.ForeignKey('pedidos.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    tipo = db.Column(db.String(50), default='geral', nullable=False)
    conteudo = db.Column(db.Text, nullable=False)
    visivel_loja = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    pedido = db.relationship('Pedido', back_populates='updates')
    user = db.relationship('User')
