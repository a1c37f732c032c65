import pytest
from werkzeug.security import generate_password_hash

from vidros_app import create_app
from vidros_app.auth import emitir_token
from vidros_app.extensions import db
from vidros_app.models import Loja, User

SENHA = 'segredo123'

CONFIG_TESTE = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite://',
    'JWT_SECRET_KEY': 'chave-de-testes-com-tamanho-suficiente-para-hs256',
    'RATELIMIT_ENABLED': False,
    'LOG_LEVEL': 'WARNING',
}


@pytest.fixture
def app():
    app = create_app(CONFIG_TESTE)
    # O contexto fica ativo durante o teste: os pedidos do client reutilizam-no
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def criar_loja(app):
    def _criar(name='Loja Centro', **campos):
        loja = Loja(name=name, **campos)
        db.session.add(loja)
        db.session.commit()
        return loja
    return _criar


@pytest.fixture
def criar_user(app):
    def _criar(username, role, loja=None, email=None, name=None, active=True, password=SENHA):
        user = User(
            username=username,
            email=email,
            name=name or username.title(),
            role=role,
            loja_id=loja.id if loja else None,
            active=active,
            password_hash=generate_password_hash(password),
        )
        db.session.add(user)
        db.session.commit()
        return user
    return _criar


@pytest.fixture
def headers():
    def _headers(user):
        return {'Authorization': f'Bearer {emitir_token(user)}'}
    return _headers


@pytest.fixture
def cenario(criar_loja, criar_user):
    """Duas lojas, um utilizador por loja, um do departamento e um admin."""
    loja_a = criar_loja('Loja Alfa', email='alfa@vidros.pt', phone='210000001')
    loja_b = criar_loja('Loja Beta')
    return {
        'loja_a': loja_a,
        'loja_b': loja_b,
        'user_a': criar_user('alfa', 'loja', loja=loja_a, email='alfa@lojas.pt', name='Utilizador Alfa'),
        'user_b': criar_user('beta', 'loja', loja=loja_b, email='beta@lojas.pt', name='Utilizador Beta'),
        'dept': criar_user('dept', 'departamento', email='dept@vidros.pt', name='Departamento'),
        'admin': criar_user('admin', 'admin', email='admin@vidros.pt', name='Administrador'),
    }


@pytest.fixture
def criar_pedido(client, headers):
    """Cria um pedido pela API em nome de um utilizador de loja; devolve o JSON."""
    def _criar(user, fotos=None, **campos):
        payload = {
            'matricula': '12-AB-34',
            'marca_carro': 'Renault',
            'modelo_carro': 'Clio',
            'ano_carro': '2019',
            'tipo_vidro': 'para-brisas',
            'descricao': 'Fissura no canto inferior',
        }
        payload.update(campos)
        if fotos is not None:
            payload['fotos'] = fotos
        resp = client.post('/api/pedidos', json=payload, headers=headers(user))
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()
    return _criar
