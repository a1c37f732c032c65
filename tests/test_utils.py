from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine, inspect, text

from vidros_app.errors import ValidationError
from vidros_app.migrations import ensure_schema
from vidros_app.utils import tem_atividade_nova, parse_data_filtro, como_utc

AGORA = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize('status', ['cancelado', 'concluido'])
def test_estados_finais_nunca_tem_atividade(status):
    assert tem_atividade_nova(status, AGORA, None) is False
    assert tem_atividade_nova(status, AGORA, AGORA - timedelta(days=1)) is False


def test_sem_updates_nao_tem_atividade():
    assert tem_atividade_nova('pendente', None, None) is False
    assert tem_atividade_nova('pendente', None, AGORA) is False


def test_update_nunca_visto_tem_atividade():
    assert tem_atividade_nova('pendente', AGORA, None) is True


def test_compara_update_com_visualizacao():
    assert tem_atividade_nova('em_progresso', AGORA, AGORA - timedelta(seconds=1)) is True
    assert tem_atividade_nova('em_progresso', AGORA, AGORA + timedelta(seconds=1)) is False
    assert tem_atividade_nova('em_progresso', AGORA, AGORA) is False


def test_datetimes_sem_fuso_sao_tratados_como_utc():
    naive = datetime(2024, 5, 10, 11, 0)
    assert tem_atividade_nova('pendente', AGORA, naive) is True
    assert como_utc(naive) == datetime(2024, 5, 10, 11, 0, tzinfo=timezone.utc)


def test_data_fim_sem_hora_cobre_o_dia_todo():
    fim = parse_data_filtro('2024-05-10', 'data_fim', fim_do_dia=True)
    assert fim == datetime(2024, 5, 10, 23, 59, 59, 999999, tzinfo=timezone.utc)

    inicio = parse_data_filtro('2024-05-10', 'data_inicio')
    assert inicio == datetime(2024, 5, 10, 0, 0, tzinfo=timezone.utc)


def test_data_com_hora_e_respeitada():
    fim = parse_data_filtro('2024-05-10T08:30:00', 'data_fim', fim_do_dia=True)
    assert fim == datetime(2024, 5, 10, 8, 30, tzinfo=timezone.utc)


def test_data_invalida():
    with pytest.raises(ValidationError) as exc:
        parse_data_filtro('ontem', 'data_inicio')
    assert exc.value.status_code == 400
    assert parse_data_filtro('', 'data_inicio') is None


def test_ensure_schema_adiciona_colunas_e_preenche_username():
    engine = create_engine('sqlite://')
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE users (id INTEGER PRIMARY KEY, email VARCHAR(255), password_hash VARCHAR(255), "
            "name VARCHAR(255), role VARCHAR(20))"
        ))
        conn.execute(text("CREATE TABLE pedidos (id INTEGER PRIMARY KEY, matricula VARCHAR(20))"))
        conn.execute(text("INSERT INTO users (id, email, name, role) VALUES (1, 'ana@lojas.pt', 'Ana', 'loja')"))
        conn.execute(text("INSERT INTO users (id, email, name, role) VALUES (2, 'ana@vidros.pt', 'Ana B', 'admin')"))

    ensure_schema(engine)

    insp = inspect(engine)
    colunas_users = {c['name'] for c in insp.get_columns('users')}
    colunas_pedidos = {c['name'] for c in insp.get_columns('pedidos')}
    assert {'username', 'password'} <= colunas_users
    assert {'disponibilidade', 'notas'} <= colunas_pedidos

    with engine.connect() as conn:
        usernames = conn.execute(text("SELECT username FROM users ORDER BY id")).scalars().all()
    assert usernames == ['ana', 'ana2']

    # segunda execução não faz nada
    ensure_schema(engine)


def test_ensure_schema_usernames_sem_colisoes():
    engine = create_engine('sqlite://')
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE users (id INTEGER PRIMARY KEY, email VARCHAR(255), password_hash VARCHAR(255), "
            "name VARCHAR(255), role VARCHAR(20))"
        ))
        for user_id, email in ((1, 'ana@lojas.pt'), (2, 'ana12@lojas.pt'), (12, 'ana@vidros.pt')):
            conn.execute(text("INSERT INTO users (id, email, name, role) VALUES (:id, :email, 'Ana', 'loja')"),
                         {'id': user_id, 'email': email})

    ensure_schema(engine)

    with engine.connect() as conn:
        usernames = conn.execute(text("SELECT username FROM users ORDER BY id")).scalars().all()
    assert usernames == ['ana', 'ana12', 'ana13']


def test_ensure_schema_torna_email_opcional():
    engine = create_engine('sqlite://')
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE users (id INTEGER PRIMARY KEY, email VARCHAR(255) NOT NULL UNIQUE, "
            "password_hash VARCHAR(255), name VARCHAR(255), role VARCHAR(20))"
        ))
        conn.execute(text(
            "CREATE TABLE pedidos (id INTEGER PRIMARY KEY, user_id INTEGER REFERENCES users(id), "
            "matricula VARCHAR(20))"
        ))
        conn.execute(text("INSERT INTO users (id, email, name, role) VALUES (1, 'rui@vidros.pt', 'Rui', 'admin')"))
        conn.execute(text("INSERT INTO pedidos (id, user_id, matricula) VALUES (1, 1, '12-AB-34')"))

    ensure_schema(engine)

    colunas = {c['name']: c for c in inspect(engine).get_columns('users')}
    assert colunas['email']['nullable'] is True
    assert colunas['username']['nullable'] is False
    assert inspect(engine).get_foreign_keys('pedidos')[0]['referred_table'] == 'users'

    with engine.begin() as conn:
        assert conn.execute(text("SELECT username, email FROM users")).fetchall() == [('rui', 'rui@vidros.pt')]
        assert conn.execute(text("SELECT user_id FROM pedidos")).scalar() == 1
        conn.execute(text("INSERT INTO users (id, username, name, role) VALUES (2, 'sem_email', 'X', 'loja')"))
