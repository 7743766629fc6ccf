from celery import Celery, Task
from flask import has_app_context
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_bcrypt import Bcrypt
from flask_jwt_extended import JWTManager


class FlaskContextTask(Task):
    """Run celery tasks inside the Flask app context of the bound application."""

    def __call__(self, *args, **kwargs):
        # Eager tasks dispatched from a request already have a context
        if has_app_context():
            return self.run(*args, **kwargs)
        with self.app.flask_app.app_context():
            return self.run(*args, **kwargs)


# Shared database and migration instances
db = SQLAlchemy()
migrate = Migrate()
bcrypt = Bcrypt()
jwt = JWTManager()
celery = Celery(__name__, task_cls=FlaskContextTask)
