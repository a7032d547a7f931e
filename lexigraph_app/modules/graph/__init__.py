# File: lexigraph_app/modules/graph/__init__.py
from flask import Blueprint

blueprint = Blueprint('graph', __name__)

# Module Metadata
module_metadata = {
    'name': 'Semantic Graph',
    'icon': 'diagram-project',
    'category': 'Core',
    'url_prefix': '/graph',
    'enabled': True
}


def setup_module(app):
    """Register routes for the graph module."""
    from .routes import api  # noqa: F401
