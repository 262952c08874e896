import logging

from flask import Flask

from commands import register_commands
from config import Config
from database import connect_db
from errors import register_error_handlers
from extensions import bcrypt, cors, jwt

LOG_FORMAT = "[books] %(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(app):
    level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO'), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    app.logger.setLevel(level)


def create_app(config_object=None):
    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    configure_logging(app)

    if not app.config.get('JWT_SECRET_KEY'):
        raise RuntimeError('Please add JWT_SECRET_KEY to your environment variables')

    cors.init_app(app, origins=app.config['CORS_ORIGINS'], supports_credentials=True)
    bcrypt.init_app(app)
    jwt.init_app(app)

    # MongoDB connection from MONGODB_SETTINGS
    connect_db(app)

    # Import and register the blueprint
    from routes import routes
    app.register_blueprint(routes)

    register_error_handlers(app)
    register_commands(app)
    return app


if __name__ == '__main__':
    create_app().run(debug=True)
