from flask import Flask, jsonify, request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from werkzeug.exceptions import HTTPException

from .extensions import db, migrate, bcrypt, jwt, celery
from .utils.errors import ApiError
import logging
import os

# Setup basic logging
logging.basicConfig(
    level=os.getenv('LOG_LEVEL', 'INFO'),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s'
)
logger = logging.getLogger(__name__)


def _error(message, status_code, errors=None):
    body = {'success': False, 'message': message}
    if errors:
        body['errors'] = errors
    return jsonify(body), status_code


def init_celery(app):
    """Bind the shared Celery instance to this app's configuration."""
    celery.conf.update(
        broker_url=app.config['CELERY_BROKER_URL'],
        result_backend=app.config['CELERY_RESULT_BACKEND'],
        task_serializer=app.config['CELERY_TASK_SERIALIZER'],
        accept_content=app.config['CELERY_ACCEPT_CONTENT'],
        result_serializer=app.config['CELERY_RESULT_SERIALIZER'],
        timezone=app.config['CELERY_TIMEZONE'],
        enable_utc=app.config['CELERY_ENABLE_UTC'],
        task_always_eager=app.config['CELERY_TASK_ALWAYS_EAGER'],
        beat_schedule=app.config['CELERY_BEAT_SCHEDULE'],
    )
    # FlaskContextTask pushes this app's context for worker-side runs
    celery.flask_app = app
    # Register tasks
    import clinic_tasks  # noqa: F401
    return celery


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(e):
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(e):
        db.session.rollback()
        logger.warning(f"Integrity error: {e.orig}")
        return _error('Duplicate field value', 409)

    @app.errorhandler(StaleDataError)
    def handle_stale_data(e):
        db.session.rollback()
        logger.warning(f"Concurrent update rejected: {e}")
        return _error('The record was modified by another request. Please retry.', 409)

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        if e.code == 404:
            return _error('Endpoint not found', 404)
        return _error(e.description or e.name, e.code)

    @app.errorhandler(Exception)
    def handle_exception(e):
        db.session.rollback()
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        return _error('Internal server error. Check server logs for details.', 500)


def register_jwt_handlers():
    @jwt.unauthorized_loader
    def missing_token(reason):
        return _error('Authentication required', 401)

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return _error('Invalid token', 401)

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return _error('Token has expired', 401)


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.getLogger('clinic_api').setLevel(level)
    logging.getLogger('clinic_tasks').setLevel(level)

    if not app.debug and not app.testing:
        from logging.handlers import RotatingFileHandler

        log_file = app.config.get('LOG_FILE', 'logs/app.log')
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10240000,
            backupCount=10
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(level)
        # Module loggers propagate to root
        logging.getLogger().addHandler(file_handler)
        app.logger.setLevel(level)
        app.logger.info('Application startup')


def create_app(config_name=None):
    """Create Flask application factory"""
    app = Flask(__name__)

    # Load configuration
    from .config import config, get_config, DEFAULT_SECRET_KEY
    if config_name:
        app.config.from_object(config.get(config_name, config['default']))
    else:
        app.config.from_object(get_config())

    if config_name == 'production' or os.getenv('FLASK_ENV') == 'production':
        app.config['DEBUG'] = False
        app.config['TESTING'] = False
        if app.config.get('SECRET_KEY') in (None, '', DEFAULT_SECRET_KEY):
            raise ValueError('SECRET_KEY must be set in production!')

    # Initialize extensions first (before error handlers)
    db.init_app(app)
    migrate.init_app(app, db)
    bcrypt.init_app(app)
    jwt.init_app(app)
    register_jwt_handlers()

    # Initialize CORS
    from .utils.cors import init_cors
    init_cors(app)

    configure_logging(app)
    register_error_handlers(app)
    init_celery(app)

    # Security headers middleware
    @app.after_request
    def set_security_headers(response):
        """Add security headers to all responses"""
        if not app.debug:
            response.headers['X-Content-Type-Options'] = 'nosniff'
            response.headers['X-Frame-Options'] = 'DENY'
            response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
            # Only add HSTS if using HTTPS
            if request.is_secure:
                response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response

    @app.after_request
    def log_request(response):
        if not app.debug:
            logger.info(f"{request.method} {request.path} {response.status_code}")
        return response

    # Import models to register them with SQLAlchemy
    from . import models  # noqa: F401

    # Register blueprints
    from .routes import (
        auth_bp,
        clinic_bp,
        user_bp,
        patient_bp,
        appointment_bp,
        invoice_bp,
        payment_bp,
        prescription_bp,
        medical_record_bp,
        notification_bp,
        health_bp,
    )
    app.register_blueprint(health_bp)  # Register health check first
    app.register_blueprint(auth_bp)
    app.register_blueprint(clinic_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(patient_bp)
    app.register_blueprint(appointment_bp)
    app.register_blueprint(invoice_bp)
    app.register_blueprint(payment_bp)
    app.register_blueprint(prescription_bp)
    app.register_blueprint(medical_record_bp)
    app.register_blueprint(notification_bp)

    return app
