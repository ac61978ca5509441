from flask import Flask, jsonify
import flask
import markupsafe
# Patch para compatibilidade do Flasgger com Flask 3.0+
flask.Markup = markupsafe.Markup

from flasgger import Swagger
from cloudrent.config import DevelopmentConfig

from cloudrent.extensions import db, migrate, cors, jwt

from proxmoxer import ResourceException, AuthenticationError
from cloudrent.proxmox.client import ProxmoxTaskFailedError
from cloudrent.lifecycle.errors import LifecycleError
from cloudrent.services.resilience import CircuitOpenError, CallTimeoutError
import logging

from cloudrent.api.main import main_bp


def create_app(config_class=DevelopmentConfig, engine_overrides=None):
    """
    Factory do aplicativo Flask.
    engine_overrides permite injetar clientes externos já construídos
    (ex: mocks nos testes) no LifecycleEngine.
    """
    app = Flask(__name__)
    app.config.from_object(config_class)

    # REGISTRO DE COMANDOS
    from cloudrent.commands import register_commands
    register_commands(app)

    # Configuração do Swagger
    swagger_config = {
        "headers": [],
        "specs": [
            {
                "endpoint": 'apispec',
                "route": '/apispec.json',
                "rule_filter": lambda rule: True,
                "model_filter": lambda tag: True,
            }
        ],
        "static_url_path": "/flasgger_static",
        "swagger_ui": True,
        "specs_route": "/docs"
    }

    swagger_template = {
        "info": {
            "title": "CloudRent API",
            "description": "Aluguel de containers LXC: instâncias, snapshots, domínios e pontos.",
            "version": "0.1.0"
        },
        "securityDefinitions": {
            "Bearer": {
                "type": "apiKey",
                "name": "Authorization",
                "in": "header",
                "description": "Token JWT emitido pelo serviço de identidade: 'Bearer <token>'"
            }
        }
    }

    Swagger(app, config=swagger_config, template=swagger_template)

    # 1. INICIALIZAR EXTENSÕES
    init_extensions(app)

    # 2. CONFIGURAR LOGGING
    configure_logging(app)

    # 3. MOTOR DE CICLO DE VIDA (filas e pipeline; o agendador é ligado por run.py/wsgi.py)
    init_engine(app, engine_overrides or {})

    # 4. REGISTRAR ROTAS
    register_blueprints(app)

    # Registra a rota raiz (Health Check / Main)
    app.register_blueprint(main_bp)

    # 5. TRATAMENTO DE ERROS
    register_error_handlers(app)

    return app


def init_extensions(app):
    """Inicializa todas as extensões do Flask."""
    db.init_app(app)
    migrate.init_app(app, db)

    cors.init_app(app, resources={r"/*": {
        "origins": app.config.get('CORS_ORIGINS', []),
        "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        "allow_headers": ["Content-Type", "Authorization"],
        "expose_headers": ["Content-Range", "X-Total-Count"]
    }}, supports_credentials=True)

    jwt.init_app(app)
    register_jwt_handlers()


def register_jwt_handlers():
    """Erros de token no mesmo formato JSON do resto da API."""

    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify({'success': False, 'error': f"Token ausente: {reason}"}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({'success': False, 'error': f"Token inválido: {reason}"}), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return jsonify({'success': False, 'error': "Token expirado."}), 401


def init_engine(app, overrides):
    from cloudrent.lifecycle.engine import LifecycleEngine

    engine = LifecycleEngine(app, **overrides)
    engine.start()
    return engine


def configure_logging(app):
    if not app.debug:
        logging.basicConfig(level=logging.INFO)


def register_blueprints(app):
    """Registra os módulos de rotas (Blueprints)."""
    prefix = app.config.get('API_PREFIX', '/api')

    # Imports dentro da função evitam ciclos
    from cloudrent.api.catalog.routes import bp as catalog_bp
    app.register_blueprint(catalog_bp, url_prefix=f"{prefix}/catalog")

    from cloudrent.api.instances.routes import bp as instances_bp
    app.register_blueprint(instances_bp, url_prefix=f"{prefix}/instances")

    from cloudrent.api.account.routes import bp as account_bp
    app.register_blueprint(account_bp, url_prefix=f"{prefix}/account")


def register_error_handlers(app):
    """Centraliza o tratamento de exceções da aplicação."""

    @app.errorhandler(LifecycleError)
    def handle_lifecycle_error(e):
        app.logger.warning(f"Pedido rejeitado: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), e.status_code

    @app.errorhandler(ResourceException)
    def handle_proxmox_resource_error(e):
        app.logger.error(f"Proxmox Resource Error: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500

    @app.errorhandler(AuthenticationError)
    def handle_auth_error(e):
        app.logger.error(f"Proxmox Auth Error: {str(e)}")
        return jsonify({'success': False, 'error': 'Falha de autenticação com o Proxmox backend.'}), 401

    @app.errorhandler(ProxmoxTaskFailedError)
    def handle_task_error(e):
        app.logger.error(f"Proxmox Task Error: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500

    @app.errorhandler(CircuitOpenError)
    @app.errorhandler(CallTimeoutError)
    def handle_unavailable(e):
        app.logger.error(f"Serviço externo indisponível: {str(e)}")
        return jsonify({'success': False, 'error': 'Serviço temporariamente indisponível. Tente novamente mais tarde.'}), 503

    @app.errorhandler(400)
    def handle_bad_request(e):
        return jsonify({'success': False, 'error': e.description}), 400

    @app.errorhandler(401)
    def handle_unauthorized(e):
        return jsonify({'success': False, 'error': e.description}), 401

    @app.errorhandler(403)
    def handle_forbidden(e):
        return jsonify({'success': False, 'error': e.description}), 403

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'success': False, 'error': error.description}), 404

    @app.errorhandler(500)
    def handle_generic_error(e):
        app.logger.error(f"Internal Server Error: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500
