"""Interior Design Generator - prompt and photo driven interior designs."""

__version__ = "1.0.0"

from interiorgen.core.config import InteriorgenConfig, config

__all__ = [
    "InteriorgenConfig",
    "config",
]
