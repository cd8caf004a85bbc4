import os

import sentry_sdk
from dotenv import load_dotenv
from flask import Flask, jsonify
from sentry_sdk.integrations.flask import FlaskIntegration
from werkzeug.middleware.proxy_fix import ProxyFix

from handrest.config import config_by_env
from handrest.errors import register_error_handlers
from handrest.extensions import bcrypt, cache, csrf, db, limiter, login_manager, migrate
from handrest.models import User
from handrest.routes.api.v1 import api_v1_bp


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Login required", "code": "unauthorized"}), 401


def create_app(config_name=None):
    load_dotenv()
    env = config_name or os.getenv("FLASK_ENV", "development")
    project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_by_env.get(env, config_by_env["development"]))
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)
    _configure_sqlite(app, project_root)

    os.makedirs(app.instance_path, exist_ok=True)

    db.init_app(app)
    migrate.init_app(app, db)
    bcrypt.init_app(app)
    csrf.init_app(app)
    cache.init_app(app)
    limiter.init_app(app)
    login_manager.init_app(app)
    _init_sentry(app, env)

    register_error_handlers(app)
    app.register_blueprint(api_v1_bp, url_prefix="/api/v1")

    if env == "development":
        with app.app_context():
            db.create_all()

    return app


def _configure_sqlite(app, project_root):
    """Resolve relative SQLite paths and give file databases a busy timeout.

    Concurrent job acceptances queue on the database lock instead of failing
    with "database is locked".
    """
    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if not db_uri.startswith("sqlite:") or db_uri == "sqlite:///:memory:":
        return
    if db_uri.startswith("sqlite:///") and not db_uri.startswith("sqlite:////"):
        relative_path = db_uri.replace("sqlite:///", "", 1)
        absolute_path = os.path.join(project_root, relative_path)
        os.makedirs(os.path.dirname(absolute_path), exist_ok=True)
        app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{absolute_path}"

    engine_options = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
    connect_args = dict(engine_options.get("connect_args") or {})
    connect_args.setdefault("timeout", 30)
    engine_options["connect_args"] = connect_args
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options


def _init_sentry(app, env):
    dsn = app.config.get("SENTRY_DSN")
    if not dsn:
        return
    try:
        sentry_sdk.init(
            dsn=dsn,
            integrations=[FlaskIntegration()],
            traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.05")),
            environment=env,
        )
        app.logger.info("Sentry initialized.")
    except Exception as exc:
        app.logger.warning("Sentry initialization failed: %s", exc)
