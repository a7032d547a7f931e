"""Utilities for declaratively registering application modules.

Each blueprint-backed module is described with a small piece of metadata so
that discovery and registration stay in one place. A module package exposes a
``blueprint`` object and may expose ``setup_module(app)`` to import its routes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from flask import Blueprint, Flask
from werkzeug.utils import import_string


@dataclass(frozen=True)
class ModuleDefinition:
    """Describe how a blueprint-backed module is registered with the app."""

    import_path: str
    attribute: str = "blueprint"
    url_prefix: Optional[str] = None
    version: str = "1.0"

    def load_module(self):
        return import_string(self.import_path)

    def load_blueprint(self, module=None) -> Blueprint:
        """Import and return the blueprint described by this definition."""

        module = module or self.load_module()
        blueprint = getattr(module, self.attribute, None)
        if not isinstance(blueprint, Blueprint):
            raise TypeError(
                "Expected attribute '%s' in '%s' to be a Flask Blueprint, got %r instead"
                % (self.attribute, self.import_path, type(blueprint))
            )
        return blueprint


def register_modules(app: Flask, modules: Sequence[ModuleDefinition]) -> None:
    """Run each module's setup hook and register its blueprint with the app."""

    for definition in modules:
        module = definition.load_module()
        metadata = getattr(module, "module_metadata", {}) or {}
        if not metadata.get("enabled", True):
            app.logger.info("Skipping disabled module %s", definition.import_path)
            continue

        setup = getattr(module, "setup_module", None)
        if callable(setup):
            setup(app)

        blueprint = definition.load_blueprint(module)
        url_prefix = definition.url_prefix or metadata.get("url_prefix")
        app.register_blueprint(blueprint, url_prefix=url_prefix)
        app.logger.debug(
            "Registered module %s (version %s) at prefix %s",
            definition.import_path,
            definition.version,
            url_prefix or "<root>",
        )


def register_default_modules(app: Flask) -> None:
    """Convenience helper that registers the built-in Lexigraph modules."""

    register_modules(app, DEFAULT_MODULES)


DEFAULT_MODULES: Iterable[ModuleDefinition] = (
    ModuleDefinition("lexigraph_app.modules.session", url_prefix="/session", version="1.0"),
    ModuleDefinition("lexigraph_app.modules.graph", url_prefix="/graph", version="1.0"),
)
