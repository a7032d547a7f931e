"""
Centralized Default Configuration for the Lexigraph engine.

This file is the "Source of Truth" for every engine tunable. Values are used
as fallbacks when the Flask config (or the mapping handed to
``EngineSettings.from_mapping``) does not define the key.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

DEFAULT_ENGINE_CONFIGS = {
    # --- Cache Manager ---
    'CACHE_TTL_DAYS': 30,
    'MEMORY_CACHE_SIZE': 512,

    # --- Semantic Graph Builder ---
    'CONTEXT_WORD_LIMIT': 15,        # K context nodes per group graph
    'TARGET_EDGE_LIMIT': 4,          # retained edges per Target node
    'CONTEXT_EDGE_LIMIT': 2,         # retained edges per Context node
    'EDGE_SIMILARITY_THRESHOLD': 0.6,
    'LABEL_BATCH_SIZE': 100,
    'CONTEXT_NEIGHBOR_LIMIT': 6,     # neighbours in a single-card review graph

    # --- Layout Force Augmenter ---
    'GRAVITY_THRESHOLD': 0.5,
    'GRAVITY_STRENGTH': 0.15,
    'GRAVITY_BASE_DISTANCE': 50.0,
    'GRAVITY_DISTANCE_SPAN': 400.0,

    # --- Viewport Framing ---
    'ZOOM_MIN': 0.8,
    'ZOOM_MAX': 5.0,
    'SINGLE_NODE_ZOOM': 3.5,
    'FRAME_PADDING': 100.0,

    # --- Session Queue Controller ---
    'LEARN_PROMOTE_OFFSET': 3,
    'REINSERT_OFFSET': 2,

    # --- Deck clustering ---
    'CLUSTER_LINK_THRESHOLD': 0.6,
    'CLUSTER_MIN_SIZE': 10,
    'CLUSTER_MAX_SIZE': 30,
    'CLUSTER_TARGET_SIZE': 20,
    'CLUSTER_KMEANS_ITERATIONS': 10,
}


@dataclass(frozen=True)
class EngineSettings:
    """Resolved engine tunables shared by every component of one session."""

    cache_ttl_days: int = DEFAULT_ENGINE_CONFIGS['CACHE_TTL_DAYS']
    memory_cache_size: int = DEFAULT_ENGINE_CONFIGS['MEMORY_CACHE_SIZE']

    context_word_limit: int = DEFAULT_ENGINE_CONFIGS['CONTEXT_WORD_LIMIT']
    target_edge_limit: int = DEFAULT_ENGINE_CONFIGS['TARGET_EDGE_LIMIT']
    context_edge_limit: int = DEFAULT_ENGINE_CONFIGS['CONTEXT_EDGE_LIMIT']
    edge_similarity_threshold: float = DEFAULT_ENGINE_CONFIGS['EDGE_SIMILARITY_THRESHOLD']
    label_batch_size: int = DEFAULT_ENGINE_CONFIGS['LABEL_BATCH_SIZE']
    context_neighbor_limit: int = DEFAULT_ENGINE_CONFIGS['CONTEXT_NEIGHBOR_LIMIT']

    gravity_threshold: float = DEFAULT_ENGINE_CONFIGS['GRAVITY_THRESHOLD']
    gravity_strength: float = DEFAULT_ENGINE_CONFIGS['GRAVITY_STRENGTH']
    gravity_base_distance: float = DEFAULT_ENGINE_CONFIGS['GRAVITY_BASE_DISTANCE']
    gravity_distance_span: float = DEFAULT_ENGINE_CONFIGS['GRAVITY_DISTANCE_SPAN']

    zoom_min: float = DEFAULT_ENGINE_CONFIGS['ZOOM_MIN']
    zoom_max: float = DEFAULT_ENGINE_CONFIGS['ZOOM_MAX']
    single_node_zoom: float = DEFAULT_ENGINE_CONFIGS['SINGLE_NODE_ZOOM']
    frame_padding: float = DEFAULT_ENGINE_CONFIGS['FRAME_PADDING']

    learn_promote_offset: int = DEFAULT_ENGINE_CONFIGS['LEARN_PROMOTE_OFFSET']
    reinsert_offset: int = DEFAULT_ENGINE_CONFIGS['REINSERT_OFFSET']

    cluster_link_threshold: float = DEFAULT_ENGINE_CONFIGS['CLUSTER_LINK_THRESHOLD']
    cluster_min_size: int = DEFAULT_ENGINE_CONFIGS['CLUSTER_MIN_SIZE']
    cluster_max_size: int = DEFAULT_ENGINE_CONFIGS['CLUSTER_MAX_SIZE']
    cluster_target_size: int = DEFAULT_ENGINE_CONFIGS['CLUSTER_TARGET_SIZE']
    cluster_kmeans_iterations: int = DEFAULT_ENGINE_CONFIGS['CLUSTER_KMEANS_ITERATIONS']

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_days * 86400.0

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]] = None) -> 'EngineSettings':
        """
        Build settings from an upper-case mapping (e.g. ``app.config``).

        Keys follow ``DEFAULT_ENGINE_CONFIGS``; unknown keys are ignored and
        missing ones fall back to the defaults.
        """
        mapping = mapping or {}
        values = {}
        for f in fields(cls):
            key = f.name.upper()
            if key in mapping and mapping[key] is not None:
                default = DEFAULT_ENGINE_CONFIGS[key]
                try:
                    values[f.name] = type(default)(mapping[key])
                except (TypeError, ValueError):
                    values[f.name] = default
        return cls(**values)
