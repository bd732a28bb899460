from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import logging
import os

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def _error_payload(status: int, title: str, detail: str):
    return {'error': {'status': status, 'title': title, 'detail': detail}}, status


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    level = getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.INFO)
    app.logger.setLevel(level)
    logging.getLogger('batch_installer').setLevel(level)

    # Database
    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # Ensure a single shared in-memory SQLite database across all sessions
        db_engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_engine = create_engine(db_url, echo=False, future=True)
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    from .routes.iam import iam_bp
    from .routes.repositories import repos_bp
    from .routes.plugins import plugins_bp
    app.register_blueprint(iam_bp, url_prefix='/iam')
    app.register_blueprint(repos_bp, url_prefix='/repositories')
    app.register_blueprint(plugins_bp, url_prefix='/plugins')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    from .utils.fsm import FSMError
    from .services.installation import InstallationError, PluginNotFound
    from .services.state_manager import RepositoryNotFound

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if SessionLocal is not None:
            SessionLocal.rollback()
        if isinstance(e, HTTPException):
            return _error_payload(e.code, e.name, e.description)
        if isinstance(e, (RepositoryNotFound, PluginNotFound)):
            return _error_payload(404, 'Not Found', str(e))
        if isinstance(e, (FSMError, InstallationError)):
            app.logger.info('Rejected request: %s', e)
            return _error_payload(400, 'Bad Request', str(e))
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        return _error_payload(500, 'Internal Server Error', 'Unexpected error')

    from .openapi import build_openapi_spec

    @app.route('/openapi.json')
    def openapi_spec():
        return build_openapi_spec()

    return app


def get_db():
    return SessionLocal()
