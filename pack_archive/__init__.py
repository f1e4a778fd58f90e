"""Flask application factory."""
import logging
import os

from flask import Flask, jsonify

from pack_archive.exceptions import ConfigurationError, PackagingError


def _configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )
    app.logger.setLevel(level)


def _validate_config(app):
    """Fail fast on settings the archive cannot run without."""
    from pack_archive.store import STORE_KINDS
    from pack_archive.utils.dates import resolve_timezone

    store_kind = app.config.get('DOCUMENT_STORE')
    if store_kind not in STORE_KINDS:
        raise ConfigurationError(f"Unknown DOCUMENT_STORE '{store_kind}', expected one of {STORE_KINDS}")
    if store_kind == 'sql' and not app.config.get('SQLALCHEMY_DATABASE_URI'):
        raise ConfigurationError(
            "Missing database connection: set DATABASE_URL or DB_HOST/DB_NAME/DB_USER/DB_PASSWORD"
        )
    for key in ('PACKAGING_PAGE_SIZE', 'PACKAGING_BATCH_SIZE', 'JOB_MAX_ATTEMPTS'):
        if int(app.config.get(key, 1)) < 1:
            raise ConfigurationError(f"{key} must be at least 1")
    resolve_timezone(app.config.get('ARCHIVAL_TIMEZONE', 'UTC'))


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    _configure_logging(app)
    _validate_config(app)

    # Initialize Sentry for error tracking in production
    if app.config.get('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis read-through cache for archived snapshots
    from pack_archive.services.cache_service import init_cache
    init_cache(app)

    # Initialize database and document store
    if app.config['DOCUMENT_STORE'] == 'sql':
        from pack_archive.database import init_db
        init_db(app)

    from pack_archive.store import init_store
    init_store(app)

    # Blueprints
    from pack_archive.blueprints.packaging_cache import packaging_cache_bp
    from pack_archive.blueprints.metrics import metrics_bp
    app.register_blueprint(packaging_cache_bp)
    app.register_blueprint(metrics_bp)

    # Error Handlers
    @app.errorhandler(PackagingError)
    def handle_packaging_error(error):
        """Handle custom application exceptions."""
        app.logger.error(f"PackagingError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Not Found'}), 404

    # CLI commands
    from pack_archive.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"Packaging archive ready (store={app.config['DOCUMENT_STORE']})")
    return app
