import logging

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_mail import Mail
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from config import Config

# ✅ Fix for Windows: Use PyMySQL instead of MySQLdb
import pymysql
pymysql.install_as_MySQLdb()

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
mail = Mail()
limiter = Limiter(key_func=get_remote_address, default_limits=[])


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    configure_logging(app)

    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)
    mail.init_app(app)
    limiter.init_app(app)

    origins = [o.strip() for o in app.config['CORS_ORIGINS'].split(',') if o.strip()]
    CORS(app, resources={r"/api/*": {"origins": origins}},
         allow_headers=["Content-Type", "Authorization"])

    # Token-only API: no cookie sessions to protect
    login_manager.session_protection = None

    with app.app_context():
        # Import models and routes here to register with the app
        from edutrack import models  # noqa: F401
        from edutrack import auth, cli
        from edutrack.routes import auth as auth_routes, reports, dashboard, schools, notifications, main

        auth.init_auth(login_manager)

        # Register blueprints
        app.register_blueprint(main.bp)
        app.register_blueprint(auth_routes.bp)
        app.register_blueprint(reports.bp)
        app.register_blueprint(dashboard.bp)
        app.register_blueprint(schools.bp)
        app.register_blueprint(notifications.bp)

        cli.register_commands(app)

        # Create all database tables (if not already created)
        db.create_all()

        # Register error handlers
        register_error_handlers(app)

    app.logger.info('EduTrack API initialised (%s)', app.config['APP_ENV'])
    return app


def configure_logging(app):
    """Configure root logging once for the process"""
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )
    app.logger.setLevel(level)


def register_error_handlers(app):
    """Register global error handlers"""
    from flask import jsonify
    from werkzeug.exceptions import HTTPException
    from edutrack.errors import APIError

    @app.errorhandler(APIError)
    def api_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def http_error(error):
        messages = {
            404: 'Resource not found',
            405: 'Method not allowed',
            413: 'Uploaded payload is too large',
            429: 'Too many requests, please try again later.',
        }
        payload = {
            'success': False,
            'message': messages.get(error.code, error.description),
        }
        return jsonify(payload), error.code

    @app.errorhandler(Exception)
    def handle_exception(e):
        # Log the error
        app.logger.exception('Unhandled exception: %s', e)
        db.session.rollback()

        payload = {'success': False, 'message': 'Internal server error'}
        if app.config.get('APP_ENV') == 'development':
            payload['error'] = str(e)
        else:
            payload['error'] = 'Internal server error'
        return jsonify(payload), 500
