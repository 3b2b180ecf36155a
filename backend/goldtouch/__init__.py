from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import os

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
REQUEST_OVERHEAD_BYTES = 64 * 1024

# HTTP status -> error code exposed to clients
ERROR_CODES = {
    400: 'BAD_REQUEST',
    401: 'UNAUTHORIZED',
    403: 'FORBIDDEN',
    404: 'NOT_FOUND',
    405: 'BAD_REQUEST',
    409: 'CONFLICT',
    413: 'BAD_REQUEST',
    415: 'BAD_REQUEST',
    500: 'INTERNAL_SERVER_ERROR',
}


def error_payload(status: int, title: str, detail: str):
    return {
        'error': {
            'status': status,
            'code': ERROR_CODES.get(status, 'INTERNAL_SERVER_ERROR' if status >= 500 else 'BAD_REQUEST'),
            'title': title,
            'detail': detail,
        }
    }, status


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
    app.config['UPLOAD_FOLDER'] = os.getenv('UPLOAD_FOLDER', os.path.abspath('uploads'))
    app.config['MAX_UPLOAD_BYTES'] = int(os.getenv('MAX_UPLOAD_BYTES', MAX_UPLOAD_BYTES))
    # attendance import: shift start (HH:MM) and minutes of grace before a check-in counts as late
    app.config['HR_SHIFT_START'] = os.getenv('HR_SHIFT_START', '09:00')
    app.config['HR_SHIFT_GRACE_MINUTES'] = int(os.getenv('HR_SHIFT_GRACE_MINUTES', '15'))
    # Session token travels in an HTTP-only cookie; bearer headers stay accepted for API clients
    app.config['JWT_TOKEN_LOCATION'] = ['headers', 'cookies']
    app.config['JWT_ACCESS_COOKIE_NAME'] = os.getenv('SESSION_COOKIE_NAME', 'GT_SESSION')
    app.config['JWT_COOKIE_SECURE'] = _env_flag('JWT_COOKIE_SECURE')
    app.config['JWT_COOKIE_CSRF_PROTECT'] = _env_flag('JWT_COOKIE_CSRF_PROTECT')
    app.config['JWT_COOKIE_SAMESITE'] = 'Lax'

    from .constants.permissions import DEFAULT_PERMISSION_CONFIG
    app.config['PERMISSION_CONFIG'] = DEFAULT_PERMISSION_CONFIG

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)
    if app.config.get('MAX_CONTENT_LENGTH') is None:
        # base64 JSON bodies are a third larger than the decoded file
        app.config['MAX_CONTENT_LENGTH'] = app.config['MAX_UPLOAD_BYTES'] * 4 // 3 + REQUEST_OVERHEAD_BYTES

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
    _register_jwt_callbacks()

    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.clients import clients_bp
    from .routes.projects import projects_bp
    from .routes.tasks import tasks_bp
    from .routes.invoices import invoices_bp
    from .routes.accounting import acc_bp
    from .routes.hr import hr_bp
    from .routes.approvals import approvals_bp
    from .routes.notifications import notifications_bp
    from .routes.reports import rpt_bp
    from .routes.files import files_bp
    from .routes.dashboard import dashboard_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(users_bp, url_prefix='/users')
    app.register_blueprint(clients_bp, url_prefix='/clients')
    app.register_blueprint(projects_bp, url_prefix='/projects')
    app.register_blueprint(tasks_bp, url_prefix='/tasks')
    app.register_blueprint(invoices_bp, url_prefix='/invoices')
    app.register_blueprint(acc_bp, url_prefix='/accounting')
    app.register_blueprint(hr_bp, url_prefix='/hr')
    app.register_blueprint(approvals_bp, url_prefix='/approvals')
    app.register_blueprint(notifications_bp, url_prefix='/notifications')
    app.register_blueprint(rpt_bp, url_prefix='/reports')
    app.register_blueprint(files_bp, url_prefix='/files')
    app.register_blueprint(dashboard_bp, url_prefix='/dashboard')

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
            return error_payload(e.code, e.name, e.description)
        SessionLocal.rollback()
        if isinstance(e, IntegrityError):
            app.logger.warning('Integrity violation: %s', e.orig)
            return error_payload(409, 'Conflict', 'Duplicate or conflicting record')
        app.logger.exception('Unhandled exception')
        return error_payload(500, 'Internal Server Error', 'Unexpected error')

    return app


def _register_jwt_callbacks():
    @jwt.unauthorized_loader
    def _missing_token(reason):
        return error_payload(401, 'Unauthorized', reason)

    @jwt.invalid_token_loader
    def _invalid_token(reason):
        return error_payload(401, 'Unauthorized', reason)

    @jwt.expired_token_loader
    def _expired_token(jwt_header, jwt_payload):
        return error_payload(401, 'Unauthorized', 'Session expired')


def get_db():
    return SessionLocal()
