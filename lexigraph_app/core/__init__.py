# File: lexigraph_app/core/__init__.py
# Infrastructure layer: configuration defaults, logging, signals, errors, bootstrap.
