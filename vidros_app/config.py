# vidros_app/config.py
import os
from dotenv import load_dotenv

# Carrega as variáveis de ambiente do arquivo .env
load_dotenv()


def _database_url():
    url = os.environ.get('DATABASE_URL') or 'sqlite:///portal_vidros.db'
    # Heroku/Render ainda entregam o esquema antigo
    if url.startswith('postgres://'):
        url = 'postgresql://' + url[len('postgres://'):]
    return url


class Config:
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {'pool_pre_ping': True}

    # Só valem para bancos servidor (Postgres); o SQLite usa o pool padrão
    DB_POOL_SIZE = int(os.environ.get('DB_POOL_SIZE') or 20)
    DB_MAX_OVERFLOW = int(os.environ.get('DB_MAX_OVERFLOW') or 5)
    DB_POOL_TIMEOUT = int(os.environ.get('DB_POOL_TIMEOUT') or 2)

    # Tokens JWT (HS256, 24h por padrão)
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET') or 'troque_esta_chave_em_producao'
    JWT_EXPIRES_HOURS = int(os.environ.get('JWT_EXPIRES_HOURS') or 24)
    JWT_TOKEN_LOCATION = ['headers']

    CORS_ORIGINS = [o.strip() for o in (os.environ.get('CORS_ORIGINS') or '*').split(',') if o.strip()]

    # Limite partilhado por todas as rotas /api/*
    RATELIMIT_ENABLED = True
    RATELIMIT_API = os.environ.get('RATELIMIT_API') or '100 per 15 minutes'
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI') or 'memory://'
    RATELIMIT_HEADERS_ENABLED = True

    # Fotos em data-URL podem ser grandes
    MAX_CONTENT_LENGTH = 50 * 1024 * 1024

    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    PORT = int(os.environ.get('PORT') or 3001)
