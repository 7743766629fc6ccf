"""
CORS Configuration
Centralized CORS settings for the application
"""
from flask_cors import CORS

CORS_CONFIG = {
    "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    "allow_headers": [
        "Content-Type",
        "Authorization",
        "X-Requested-With",
        "Accept",
        "Origin",
    ],
    "expose_headers": [
        "Content-Type",
        "Authorization",
    ],
    "max_age": 86400,  # 24 hours
}


def parse_origins(value):
    if not value or value.strip() == '*':
        return '*'
    return [origin.strip() for origin in value.split(',') if origin.strip()]


def init_cors(app):
    """
    Initialize CORS for the API blueprints from CORS_ORIGINS
    """
    origins = parse_origins(app.config.get('CORS_ORIGINS'))
    CORS(app,
         resources={r"/api/*": {"origins": origins}},
         methods=CORS_CONFIG["methods"],
         allow_headers=CORS_CONFIG["allow_headers"],
         expose_headers=CORS_CONFIG["expose_headers"],
         # Credentialed requests need explicit origins
         supports_credentials=origins != '*',
         max_age=CORS_CONFIG["max_age"])

    app.logger.info(f"CORS enabled for origins: {origins}")
