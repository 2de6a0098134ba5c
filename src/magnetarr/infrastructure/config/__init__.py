from __future__ import annotations

from .load import load_config
from .schema import (
    AppConfig,
    DebridConfig,
    EnvOverrides,
    IndexerConfig,
    StremioConfig,
)

__all__ = [
    "AppConfig",
    "DebridConfig",
    "EnvOverrides",
    "IndexerConfig",
    "StremioConfig",
    "load_config",
]
