import logging
import os

import redis
from flask import Flask, jsonify, request
from flask_login import LoginManager
from flask_migrate import Migrate
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .config import config
from .models import db
from .errors import AppError, UnauthorizedError
from .i18n import translate, resolve_language
from .plan_catalog import PlanCatalog, seed_plans
from .plan_cache import PlanCache
from .plan_manager import PlanManager
from .entitlements import EntitlementChecker
from .match_registry import MatchRegistry
from .user_manager import UserManager
from .auth import AuthService
from shared.pubsub import EventPublisher

logger = logging.getLogger(__name__)

migrate = Migrate()
login_manager = LoginManager()


def create_app(config_name: str = None) -> Flask:
    """Application factory for the gamehub API."""
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config[config_name])

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    redis_url = app.config.get('REDIS_URL')
    app.redis = redis.from_url(
        redis_url,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5
    ) if redis_url else None

    # Create tables and load reference data
    with app.app_context():
        db.create_all()
        seed_plans()
        catalog = PlanCatalog.load()

    # Initialize services
    publisher = EventPublisher(app.redis)
    app.plans = PlanManager(catalog, PlanCache(app.redis, ttl=app.config['PLAN_CACHE_TTL']))
    app.entitlements = EntitlementChecker(app.plans)
    app.registry = MatchRegistry(publisher)
    app.users = UserManager(app.plans, publisher)
    app.auth_service = AuthService(app.users)

    register_auth(app)
    register_error_handlers(app)
    register_routes(app)

    logger.info(f"Gamehub API created ({config_name}), {len(catalog)} plans loaded")
    return app


def register_auth(app: Flask):
    """Bearer-token identity for Flask-Login."""

    @login_manager.request_loader
    def load_user_from_request(req):
        header = req.headers.get('Authorization', '')
        if not header.startswith('Bearer '):
            return None
        return app.auth_service.load_user_from_token(header[len('Bearer '):].strip())

    @login_manager.unauthorized_handler
    def unauthorized():
        raise UnauthorizedError('auth.UNAUTHORIZED')


def register_error_handlers(app: Flask):
    """Map the error taxonomy onto JSON responses in the caller's language."""

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        message = translate(error.key, resolve_language(), **error.args_map)
        logger.info(f"{request.method} {request.path} -> {error.status_code} {error.key}")
        return jsonify(error.to_dict(message)), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        return jsonify({'error': error.description, 'code': error.name.upper().replace(' ', '_')}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.path}")
        db.session.rollback()
        message = translate('common.INTERNAL_ERROR', resolve_language())
        return jsonify({'error': message, 'code': 'INTERNAL_ERROR'}), 500


def register_routes(app: Flask):
    """Register API blueprints and the health check."""
    from .routes import auth, users, matches, plans
    app.register_blueprint(auth.bp)
    app.register_blueprint(users.bp)
    app.register_blueprint(matches.bp)
    app.register_blueprint(plans.bp)

    @app.route('/health')
    def health_check():
        """Health check endpoint."""
        redis_status = 'disabled'
        if app.redis is not None:
            try:
                app.redis.ping()
                redis_status = 'connected'
            except redis.RedisError:
                redis_status = 'disconnected'

        try:
            db.session.execute(text('SELECT 1'))
            db_ok = True
        except SQLAlchemyError:
            db_ok = False

        healthy = db_ok and redis_status != 'disconnected'
        return jsonify({
            'status': 'healthy' if healthy else 'unhealthy',
            'redis': redis_status,
            'database': 'connected' if db_ok else 'disconnected'
        }), 200 if healthy else 503
