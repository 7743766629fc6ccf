"""
Health check endpoints for monitoring and load balancers
"""
from datetime import datetime

from flask import Blueprint, current_app, jsonify

from clinic_api.extensions import celery, db

health_bp = Blueprint('health', __name__, url_prefix='/health')


def _database_status():
    try:
        db.session.execute(db.text('SELECT 1'))
        return 'connected'
    except Exception as e:
        db.session.rollback()
        return f'error: {e}'


def _broker_status():
    """Reminder and receipt jobs queue through the Celery broker."""
    if celery.conf.task_always_eager:
        return 'eager'
    try:
        with celery.connection_for_write() as connection:
            connection.ensure_connection(max_retries=1)
        return 'connected'
    except Exception as e:
        return f'error: {e}'


def _channels():
    config = current_app.config
    return {
        'email': bool(config.get('MAIL_SERVER') and config.get('MAIL_USERNAME') and config.get('MAIL_PASSWORD')),
        'sms': bool(
            config.get('TWILIO_ACCOUNT_SID') and config.get('TWILIO_AUTH_TOKEN') and config.get('TWILIO_PHONE_NUMBER')
        ),
    }


@health_bp.route('', methods=['GET'])
def health_check():
    """Basic health check - no database connection"""
    return jsonify({
        'status': 'healthy',
        'timestamp': datetime.utcnow().isoformat(),
        'service': 'clinic-api'
    }), 200


@health_bp.route('/ready', methods=['GET'])
def readiness_check():
    """
    Readiness check.

    The API cannot serve without the database (503). A broker outage only
    delays notifications, so it reports 'degraded' with 200.
    """
    db_status = _database_status()
    broker_status = _broker_status()

    if db_status != 'connected':
        status, code = 'not_ready', 503
    elif broker_status.startswith('error'):
        status, code = 'degraded', 200
    else:
        status, code = 'ready', 200

    return jsonify({
        'status': status,
        'database': db_status,
        'broker': broker_status,
        'channels': _channels(),
        'timestamp': datetime.utcnow().isoformat()
    }), code


@health_bp.route('/live', methods=['GET'])
def liveness_check():
    """Liveness check for Kubernetes/containers"""
    return jsonify({
        'status': 'alive',
        'timestamp': datetime.utcnow().isoformat()
    }), 200
