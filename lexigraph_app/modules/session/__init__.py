# File: lexigraph_app/modules/session/__init__.py
from flask import Blueprint

blueprint = Blueprint('session', __name__)

# Module Metadata
module_metadata = {
    'name': 'Learning Sessions',
    'icon': 'clock-rotate-left',
    'category': 'Core',
    'url_prefix': '/session',
    'enabled': True
}


def setup_module(app):
    """Register routes for the session module."""
    from .routes import api  # noqa: F401
