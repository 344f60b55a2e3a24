"""id5resolver: cross-site user identifier resolution and caching."""

from id5resolver.version import __version__

__all__ = ["__version__"]
