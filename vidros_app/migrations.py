# vidros_app/migrations.py
import logging
from sqlalchemy import MetaData, Table, inspect, text

logger = logging.getLogger(__name__)


def _ensure_column(conn, table, col, sqltype):
    """Adiciona a coluna em falta via ALTER TABLE ADD COLUMN."""
    conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {col} {sqltype}"))
    logger.info(f"Coluna {table}.{col} adicionada")


def _preencher_usernames(conn):
    """username inicial = parte local do email, com sufixo quando já está em uso."""
    linhas = conn.execute(text("SELECT id, email FROM users WHERE username IS NULL ORDER BY id")).fetchall()
    usados = set(conn.execute(text("SELECT username FROM users WHERE username IS NOT NULL")).scalars())
    for user_id, email in linhas:
        base = (email or f'user{user_id}').split('@')[0]
        candidato, sufixo = base, user_id
        while candidato in usados:
            candidato = f'{base}{sufixo}'
            sufixo += 1
        usados.add(candidato)
        conn.execute(
            text("UPDATE users SET username = :username WHERE id = :id"),
            {'username': candidato, 'id': user_id},
        )


def _restricoes_users_pendentes(engine):
    cols = {c['name']: c for c in inspect(engine).get_columns('users')}
    return not cols['email']['nullable'] or cols['username']['nullable']


def _ajustar_restricoes_users(engine):
    """email passa a opcional e username a obrigatório."""
    if engine.dialect.name != 'sqlite':
        with engine.begin() as conn:
            conn.execute(text("ALTER TABLE users ALTER COLUMN email DROP NOT NULL"))
            conn.execute(text("ALTER TABLE users ALTER COLUMN username SET NOT NULL"))
        logger.info("Restrições de users.email/users.username atualizadas")
        return

    # O SQLite não altera restrições de colunas: a tabela é recriada
    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
        try:
            meta = MetaData()
            antiga = Table('users', meta, autoload_with=conn)
            nova = antiga.to_metadata(meta, name='users_novo')
            nova.c.email.nullable = True
            nova.c.username.nullable = False
            for indice in inspect(conn).get_indexes('users'):
                conn.execute(text(f"DROP INDEX {indice['name']}"))
            nova.create(conn)
            colunas = ', '.join(c.name for c in antiga.columns)
            conn.execute(text(f"INSERT INTO users_novo ({colunas}) SELECT {colunas} FROM users"))
            conn.execute(text("DROP TABLE users"))
            conn.execute(text("ALTER TABLE users_novo RENAME TO users"))
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.exec_driver_sql("PRAGMA foreign_keys=ON")
    logger.info("Tabela users recriada com email opcional")


def ensure_schema(engine):
    """Acrescenta colunas introduzidas depois da primeira versão da base de dados."""
    with engine.begin() as conn:
        insp = inspect(conn)
        tabelas = insp.get_table_names()

        if 'users' in tabelas:
            cols = {c['name'] for c in insp.get_columns('users')}
            if 'password' not in cols:
                _ensure_column(conn, 'users', 'password', 'VARCHAR(255)')
            if 'username' not in cols:
                _ensure_column(conn, 'users', 'username', 'VARCHAR(100)')
                _preencher_usernames(conn)
                conn.execute(text("CREATE UNIQUE INDEX IF NOT EXISTS ix_users_username ON users (username)"))

        if 'pedidos' in tabelas:
            cols = {c['name'] for c in insp.get_columns('pedidos')}
            if 'disponibilidade' not in cols:
                _ensure_column(conn, 'pedidos', 'disponibilidade', 'TEXT')
            if 'notas' not in cols:
                _ensure_column(conn, 'pedidos', 'notas', 'TEXT')

    if 'users' in tabelas and _restricoes_users_pendentes(engine):
        _ajustar_restricoes_users(engine)
