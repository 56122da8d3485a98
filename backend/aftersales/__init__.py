from flask import Flask, current_app
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any, Callable
from datetime import datetime
import logging
import os

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()

logger = logging.getLogger(__name__)


def _error_payload(status: int, title: str, detail: str):
    return {'error': {'status': status, 'title': title, 'detail': detail}}, status


def create_app(config: Optional[Dict[str, Any]] = None, clock: Optional[Callable[[], datetime]] = None):
    global db_engine, SessionLocal
    from .config.settings import Settings
    from .models.types import utcnow
    from .services.store import Store
    from .services.context import ServiceContext

    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
    app.config['DB_ISOLATION_LEVEL'] = os.getenv('DB_ISOLATION_LEVEL', 'SERIALIZABLE')
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')
    for key in Settings.KEYS:
        if os.getenv(key) is not None:
            app.config[key] = os.getenv(key)

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    logging.getLogger(__name__).setLevel(str(app.config['LOG_LEVEL']).upper())

    # Database
    db_url = app.config['DATABASE_URL']
    engine_kwargs: Dict[str, Any] = {'echo': False, 'future': True}
    if app.config.get('DB_ISOLATION_LEVEL'):
        engine_kwargs['isolation_level'] = app.config['DB_ISOLATION_LEVEL']
    if db_url.endswith(':memory:'):
        # Ensure a single shared in-memory SQLite database across all sessions
        db_engine = create_engine(
            db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            **engine_kwargs,
        )
    else:
        db_engine = create_engine(db_url, **engine_kwargs)
    session_factory = sessionmaker(bind=db_engine, expire_on_commit=False)
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    settings = Settings.from_mapping(app.config)
    ctx = ServiceContext(
        store=Store(session_factory, retries=settings.store_conflict_retries),
        settings=settings,
        clock=clock or utcnow,
    )
    app.extensions['aftersales'] = ctx
    app.extensions['aftersales.engine'] = db_engine

    jwt.init_app(app)

    @jwt.unauthorized_loader
    def _missing_token(reason):
        return _error_payload(401, 'Unauthorized', reason)

    @jwt.invalid_token_loader
    def _invalid_token(reason):
        return _error_payload(401, 'Unauthorized', reason)

    @jwt.expired_token_loader
    def _expired_token(jwt_header, jwt_payload):
        return _error_payload(401, 'Unauthorized', 'Token has expired')

    from .routes.auth import auth_bp
    from .routes.requests import requests_bp
    from .routes.request_parts import request_parts_bp
    from .routes.storage import storage_bp
    from .routes.notifications import notifications_bp
    from .routes.statuses import statuses_bp
    from .routes.reports import rpt_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(requests_bp, url_prefix='/requests')
    app.register_blueprint(request_parts_bp, url_prefix='/request-parts')
    app.register_blueprint(storage_bp, url_prefix='/storage')
    app.register_blueprint(notifications_bp, url_prefix='/notifications')
    app.register_blueprint(statuses_bp, url_prefix='/statuses')
    app.register_blueprint(rpt_bp, url_prefix='/reports')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    @app.teardown_appcontext
    def remove_session(exc=None):
        SessionLocal.remove()

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            return _error_payload(e.code, e.name, e.description)
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        return _error_payload(500, 'Internal Server Error', 'Unexpected error')

    logger.info('aftersales app created (db=%s)', db_engine.url.render_as_string(hide_password=True))
    return app


def get_db():
    return SessionLocal()


def get_services():
    """ServiceContext of the current app."""
    return current_app.extensions['aftersales']
