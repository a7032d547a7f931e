"""Bootstrap helpers for configuring the Flask application."""

from __future__ import annotations

import logging
from typing import Optional

from flask import Flask

from .error_handlers import register_error_handlers
from .extensions import EngineServices, init_engine
from .logging_config import setup_logging
from .module_registry import register_default_modules


def configure_logging(app: Flask) -> None:
    """Configure application logging if no handlers are present."""

    if not app.config.get("TESTING"):
        setup_logging(
            app,
            log_level=app.config.get("LOG_LEVEL", "INFO"),
            log_dir=app.config.get("LOG_DIR"),
            json_format=app.config.get("LOG_JSON", False),
        )

    if app.logger.handlers:
        return

    app.logger.setLevel(logging.DEBUG)
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    app.logger.addHandler(handler)
    app.logger.propagate = False
    app.logger.info("Flask app logger configured successfully.")


def register_extensions(app: Flask, services: Optional[EngineServices] = None) -> None:
    """Attach the engine collaborators and the per-app session registry."""

    services = init_engine(app, services)
    missing = [
        name for name in ("repository", "rating", "embeddings", "generation")
        if getattr(services, name) is None
    ]
    if missing:
        app.logger.warning("Engine services not configured: %s", ", ".join(missing))


def register_blueprints(app: Flask) -> None:
    """Register all default blueprints with the app."""

    register_default_modules(app)


def register_handlers(app: Flask) -> None:
    register_error_handlers(app)
