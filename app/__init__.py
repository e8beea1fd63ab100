"""Flask application factory."""
from flask import Flask, request, jsonify
from flask_wtf.csrf import CSRFProtect, CSRFError
from werkzeug.exceptions import HTTPException
from app.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Initialize CSRF protection (X-CSRFToken header for JSON calls)
    csrf = CSRFProtect(app)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        return jsonify({'status': 'error', 'message': 'A sessão expirou. Recarregue a página.'}), 400

    # Error tracking in production
    if app.config.get('SENTRY_DSN') and (app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'):
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Email (welcome credentials, password reset)
    from app.services.email_service import init_mail
    init_mail(app)

    # Prometheus metrics instrumentation
    from app.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: Enable ProxyFix for HTTPS behind a reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    # Initialize database
    init_db(app)

    # Resolve the authenticated session once per request
    from app.middleware import load_session_context

    @app.before_request
    def before_request_handler():
        load_session_context()

    # Error Handlers
    from app.exceptions import SaasError

    @app.errorhandler(SaasError)
    def handle_saas_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"SaasError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"SaasError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'status': 'error', 'message': error.name}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception on {request.method} {request.path}: {error}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from app.blueprints.auth import auth_bp
    from app.blueprints.main import main_bp
    from app.blueprints.perfil import perfil_bp
    from app.blueprints.propostas import propostas_bp
    from app.blueprints.metrics import metrics_bp
    from app.blueprints.checkout import checkout_bp
    from app.blueprints.webhooks import webhooks_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(main_bp)
    app.register_blueprint(perfil_bp)
    app.register_blueprint(propostas_bp)
    app.register_blueprint(metrics_bp)

    # Called by the landing page and by Stripe, without a session token
    csrf.exempt(checkout_bp)
    csrf.exempt(webhooks_bp)
    app.register_blueprint(checkout_bp)
    app.register_blueprint(webhooks_bp)

    # Register CLI commands
    from app.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"MAIL_SERVER={app.config.get('MAIL_SERVER')}")
    app.logger.info(f"MAIL_DEFAULT_SENDER={app.config.get('MAIL_DEFAULT_SENDER')}")

    return app
