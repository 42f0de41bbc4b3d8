"""Flask application factory."""
from flask import Flask, request, jsonify
from flask_wtf.csrf import CSRFProtect, CSRFError
from werkzeug.exceptions import HTTPException
from lojapdv.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # CSRF: JSON clients send the token in the X-CSRFToken header
    CSRFProtect(app)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        return jsonify({'status': 'error', 'message': 'A sessão expirou. Recarregue a página.'}), 400

    # Sentry error tracking in production
    if os.getenv('SENTRY_DSN') and (app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'):
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis cache (statistics)
    from lojapdv.services.cache_service import init_cache
    init_cache(app)

    # Prometheus instrumentation
    from lojapdv.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # HTTPS behind Nginx reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    init_db(app)

    # User and store context before each request
    from lojapdv.middleware import load_user_and_store

    @app.before_request
    def before_request_handler():
        load_user_and_store()

    # Error handlers
    from lojapdv.exceptions import PdvError

    @app.errorhandler(PdvError)
    def handle_pdv_error(error):
        """Application errors keep their status and payload (line_errors, saved...)."""
        if error.status_code >= 500:
            app.logger.error(f"PdvError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"PdvError [{error.status_code}] {request.path}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'status': 'error', 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception: {error}")
        return jsonify({'status': 'error', 'message': 'Erro interno do servidor.'}), 500

    # Register blueprints
    from lojapdv.blueprints.auth import auth_bp
    from lojapdv.blueprints.main import main_bp
    from lojapdv.blueprints.metrics import metrics_bp
    from lojapdv.blueprints.products import products_bp
    from lojapdv.blueprints.stock import stock_bp
    from lojapdv.blueprints.customers import customers_bp
    from lojapdv.blueprints.finance import finance_bp
    from lojapdv.blueprints.sales import sales_bp
    from lojapdv.blueprints.statistics import statistics_bp
    from lojapdv.blueprints.admin import admin_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(main_bp)
    app.register_blueprint(metrics_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(finance_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(statistics_bp)
    app.register_blueprint(admin_bp)

    from lojapdv.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
