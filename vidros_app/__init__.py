# vidros_app/__init__.py
import logging
from datetime import datetime, timezone
from flask import Flask, jsonify
from sqlalchemy import event
from .config import Config
from .extensions import db, jwt, cors, limiter

logger = logging.getLogger(__name__)

API_VERSION = '1.0.0'


def _configurar_logging(nivel):
    logging.basicConfig(
        level=getattr(logging, str(nivel).upper(), logging.INFO),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    )


def _ativar_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    _configurar_logging(app.config.get('LOG_LEVEL', 'INFO'))

    uri = app.config['SQLALCHEMY_DATABASE_URI']
    if not uri.startswith('sqlite'):
        opcoes = dict(app.config.get('SQLALCHEMY_ENGINE_OPTIONS') or {})
        opcoes.setdefault('pool_size', app.config['DB_POOL_SIZE'])
        opcoes.setdefault('max_overflow', app.config['DB_MAX_OVERFLOW'])
        opcoes.setdefault('pool_timeout', app.config['DB_POOL_TIMEOUT'])
        app.config['SQLALCHEMY_ENGINE_OPTIONS'] = opcoes

    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}})
    limiter.init_app(app)

    from .errors import register_error_handlers
    register_error_handlers(app)

    # Importa e registra os blueprints
    from .blueprints.auth import auth_bp
    from .blueprints.admin import admin_bp
    from .blueprints.pedidos import pedidos_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(pedidos_bp)

    @app.route('/')
    def index():
        return jsonify({'message': 'API Portal de Vidros Especiais', 'version': API_VERSION, 'status': 'online'})

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok', 'timestamp': datetime.now(timezone.utc).isoformat()})

    # Cria as tabelas no banco de dados se não existirem
    with app.app_context():
        from . import models
        from .migrations import ensure_schema
        if uri.startswith('sqlite'):
            event.listen(db.engine, 'connect', _ativar_foreign_keys)
        db.create_all()
        ensure_schema(db.engine)
        logger.info(f"Base de dados pronta: {db.engine.url.render_as_string(hide_password=True)}")

    return app
