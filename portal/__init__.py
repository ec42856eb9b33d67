"""
Flask application factory.

Creates and configures the Flask app, resolves the lead store and
registers the API blueprint.
"""
import logging

from flask import Flask


def create_app(store=None, repository=None):
    """
    Create and configure the Flask application.

    A missing or unreachable store configuration does not stop the app
    from starting: the error is kept as the boot error and every data
    route answers 503 with it.
    """
    from portal import config
    from portal.errors import ConfigurationError
    from portal.logging_config import configure_logging
    from portal.services.repository import LeadRepository

    app = Flask(__name__)

    configure_logging(app)
    logger = logging.getLogger('portal')

    # Secret key for the access-session cookie
    app.secret_key = config.SECRET_KEY

    boot_error = None
    if repository is None:
        if store is None:
            from portal.services.bootstrap import build_store
            try:
                store = build_store()
            except ConfigurationError as e:
                logger.error("Boot failed: %s", e)
                boot_error = str(e)
        if store is not None:
            repository = LeadRepository(store)

    app.extensions['lead_repository'] = repository
    app.extensions['boot_error'] = boot_error

    from portal.routes.api import bp as api_bp
    app.register_blueprint(api_bp)

    return app
