"""
Configuration Management
========================

Configuration utilities for the extraction and export engine.
"""

from idml_core.config.settings import (
    EngineConfig,
    TagConfig,
    PackagingConfig,
    CacheConfig,
    TrackingConfig,
    load_config,
    save_config,
    get_default_config,
    setup_logging,
)

__all__ = [
    "EngineConfig",
    "TagConfig",
    "PackagingConfig",
    "CacheConfig",
    "TrackingConfig",
    "load_config",
    "save_config",
    "get_default_config",
    "setup_logging",
]
