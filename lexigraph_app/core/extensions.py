# File: lexigraph_app/core/extensions.py
# Infrastructure Layer: engine collaborators attached to the Flask app

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from flask import Flask, current_app

from .defaults import EngineSettings
from .error_handlers import ServiceUnavailableError

EXTENSION_KEY = "lexigraph"


@dataclass
class EngineServices:
    """
    The external collaborators every learning session talks to.

    ``repository`` implements ``CardRepository``, ``rating`` implements
    ``RatingService``, ``embeddings`` implements ``EmbeddingService`` and
    ``generation`` implements ``GenerationService`` (see models/contracts.py).
    """

    repository: object = None
    rating: object = None
    embeddings: object = None
    generation: object = None
    settings: EngineSettings = field(default_factory=EngineSettings)

    def require(self, name: str):
        value = getattr(self, name, None)
        if value is None:
            raise ServiceUnavailableError(f"'{name}' is not configured", service=name)
        return value


def init_engine(app: Flask, services: Optional[EngineServices] = None) -> EngineServices:
    """Attach engine services and the session registry to ``app.extensions``."""
    from ..modules.session.services.session_registry import SessionRegistry

    settings = EngineSettings.from_mapping(app.config)
    if services is None:
        services = EngineServices(settings=settings)
    else:
        services.settings = settings

    app.extensions[EXTENSION_KEY] = {
        "services": services,
        "sessions": SessionRegistry(),
    }
    return services


def get_services() -> EngineServices:
    state = current_app.extensions.get(EXTENSION_KEY)
    if state is None:
        raise ServiceUnavailableError("Lexigraph engine is not initialised", service="engine")
    return state["services"]


def get_session_registry():
    state = current_app.extensions.get(EXTENSION_KEY)
    if state is None:
        raise ServiceUnavailableError("Lexigraph engine is not initialised", service="engine")
    return state["sessions"]
