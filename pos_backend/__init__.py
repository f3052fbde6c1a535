"""Flask application factory."""
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from pos_backend.database import init_db
import logging
import os


def create_app(config_object='config.Config', test_config=None):
    """Create and configure the Flask application.

    ``test_config`` (a mapping) is applied after ``config_object`` and before
    the database is initialized, so tests can point at their own database.
    """
    app = Flask(__name__)
    app.config.from_object(config_object)
    if test_config:
        app.config.from_mapping(test_config)

    app.json.sort_keys = app.config.get('JSON_SORT_KEYS', False)

    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    app.logger.setLevel(level)

    # Sentry error tracking in production
    sentry_dsn = app.config.get('SENTRY_DSN')
    if sentry_dsn and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,  # 10% of transactions for performance monitoring
            environment=app.config.get('ENV'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis cache (degrades to no-op when unavailable)
    from pos_backend.services.cache_service import init_cache
    init_cache(app)

    # Prometheus metrics instrumentation
    from pos_backend.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Initialize database
    init_db(app)

    # Error Handlers
    from pos_backend.exceptions import PosError

    @app.errorhandler(PosError)
    def handle_pos_error(error):
        """Handle application exceptions as JSON."""
        if error.status_code >= 500:
            app.logger.error(f"PosError [{error.status_code}] {error.code}: {error.message}")
        else:
            app.logger.warning(f"PosError [{error.status_code}] {error.code}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({
            'status': 'error',
            'code': error.name.replace(' ', ''),
            'message': error.description,
        }), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception: {error}")
        return jsonify({
            'status': 'error',
            'code': 'InternalError',
            'message': 'Internal Server Error',
        }), 500

    @app.route('/health')
    def health():
        from sqlalchemy import text
        from pos_backend.database import get_session
        from pos_backend.services.cache_service import get_cache

        db_ok = True
        try:
            get_session().execute(text('SELECT 1'))
        except Exception as e:
            app.logger.error(f"Health check database error: {e}")
            db_ok = False

        body = {
            'status': 'ok' if db_ok else 'degraded',
            'database': db_ok,
            'cache': get_cache().is_available(),
        }
        return jsonify(body), 200 if db_ok else 503

    # Register blueprints
    from pos_backend.blueprints.catalog import catalog_bp
    from pos_backend.blueprints.customers import customers_bp
    from pos_backend.blueprints.sales import sales_bp
    from pos_backend.blueprints.inventory import inventory_bp
    from pos_backend.blueprints.purchase_orders import purchase_orders_bp
    from pos_backend.blueprints.audit import audit_bp
    from pos_backend.blueprints.metrics import metrics_bp

    app.register_blueprint(catalog_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(purchase_orders_bp)
    app.register_blueprint(audit_bp)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from pos_backend.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
