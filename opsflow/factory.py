# -*- coding: utf-8 -*-
import os
from typing import Optional

from flask import Flask
from flask_cors import CORS
from flask_jwt_extended import JWTManager

from opsflow.config import Config
from opsflow.database import db

# Observability imports
from opsflow.services.metrics import init_metrics
from opsflow.services.request_context import init_request_context
from opsflow.services.structured_logging import init_logging

from opsflow.middleware.errors import register_error_handlers
from opsflow.services.collaborators import init_collaborators


def _normalize_db_url(url: str) -> str:
    """
    Normalize DATABASE_URL so SQLAlchemy loads the right DBAPI.
    We standardize on the psycopg v3 driver ('+psycopg').
    """
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://") and "+psycopg://" not in url:
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def _default_db_url() -> str:
    db_path = os.path.join(os.path.dirname(__file__), "..", "instance", "opsflow.db")
    os.makedirs(os.path.dirname(db_path), exist_ok=True)
    return f"sqlite:///{os.path.abspath(db_path)}"


def create_app(config_overrides: Optional[dict] = None) -> Flask:
    app = Flask(__name__)
    app.url_map.strict_slashes = False

    # --- Core config ---
    app.config.from_object(Config)
    # Re-read env at app creation so tests can patch os.environ
    if os.environ.get("DATABASE_URL"):
        app.config["SQLALCHEMY_DATABASE_URI"] = os.environ["DATABASE_URL"]
    if config_overrides:
        app.config.update(config_overrides)

    db_url = app.config.get("SQLALCHEMY_DATABASE_URI") or _default_db_url()
    app.config["SQLALCHEMY_DATABASE_URI"] = _normalize_db_url(db_url)
    db.init_app(app)

    # --- JWT ---
    JWTManager(app)

    # --- CORS ---
    cors_origins = [
        origin.strip()
        for origin in app.config.get("CORS_ALLOWED_ORIGINS", "").split(",")
        if origin.strip()
    ]
    CORS(app, resources={
        r"/api/*": {
            "origins": cors_origins,
            "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization", "X-Request-ID", "X-Webhook-Source"],
            "supports_credentials": False,
            "max_age": 600,
        }}
    )

    # --- Observability ---
    init_request_context(app)
    init_logging(app)
    init_metrics(app)

    # --- Collaborators (LLM, notifications, HTTP egress) ---
    init_collaborators(app)

    register_error_handlers(app)

    # --- Blueprints ---
    from opsflow.routes.health import health_bp
    from opsflow.routes.workflows import workflows_bp
    from opsflow.routes.webhooks import hooks_bp
    from opsflow.routes.integrations import integrations_bp
    from opsflow.routes.agents import agents_bp
    from opsflow.routes.tools import tools_bp
    from opsflow.routes.monitors import monitors_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(workflows_bp)
    app.register_blueprint(hooks_bp)
    app.register_blueprint(integrations_bp)
    app.register_blueprint(agents_bp)
    app.register_blueprint(tools_bp)
    app.register_blueprint(monitors_bp)

    with app.app_context():
        import opsflow.models  # noqa: F401  (register tables)
        db.create_all()

    return app
