# vidros_app/extensions.py
from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

db = SQLAlchemy()
jwt = JWTManager()
cors = CORS()
limiter = Limiter(key_func=get_remote_address)


def limite_api():
    """Limite configurado para o grupo /api/* (lido a cada pedido)."""
    return current_app.config['RATELIMIT_API']
