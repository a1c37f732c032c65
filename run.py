# run.py (versão para servidor)
import logging
from waitress import serve
from vidros_app import create_app

logger = logging.getLogger(__name__)

if __name__ == '__main__':
    app = create_app()
    PORT = app.config['PORT']

    logger.info("--- API Portal de Vidros Especiais ---")
    logger.info(f"Iniciando na porta: {PORT}")

    # host='0.0.0.0' aceita conexões de qualquer IP na rede
    serve(app, host='0.0.0.0', port=PORT)
