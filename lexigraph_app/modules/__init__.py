# File: lexigraph_app/modules/__init__.py
