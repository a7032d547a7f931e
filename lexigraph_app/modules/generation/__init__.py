# File: lexigraph_app/modules/generation/__init__.py
"""Text generation for relation labels, bridging examples and related words."""

from .services.generation_gateway import GenerationGateway

__all__ = ['GenerationGateway']
