"""Application factory for the Lexigraph learning-session engine."""

from __future__ import annotations

from typing import Optional

from flask import Flask

from .config import Config
from .core.bootstrap import (
    configure_logging,
    register_blueprints,
    register_extensions,
    register_handlers,
)
from .core.extensions import EngineServices

__all__ = ["create_app", "EngineServices"]


def create_app(
    config_class: type[Config] = Config,
    services: Optional[EngineServices] = None,
) -> Flask:
    """Create and configure a Flask application instance."""

    app = Flask(__name__)
    app.config.from_object(config_class)
    config_class.init_app(app)

    configure_logging(app)
    register_extensions(app, services)
    register_blueprints(app)
    register_handlers(app)

    return app
