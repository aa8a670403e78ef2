import logging

from flask import Flask
from config import config
from auditguard.extensions import db, cors, migrate


def create_app(config_name='default'):
    app = Flask(__name__)
    app.config.from_object(config[config_name]())

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Configure CORS
    cors_origins = app.config.get('CORS_ORIGINS', '*')
    if cors_origins == '*' or cors_origins.strip() == '':
        cors.init_app(app)
    else:
        cors.init_app(app, origins=[o.strip() for o in cors_origins.split(',')])

    # Register Blueprints
    from auditguard.routes import register_routes
    register_routes(app)

    logging.getLogger(__name__).info("AuditGuard started (%s)", app.config.get('ENV_NAME'))
    return app
