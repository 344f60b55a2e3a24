"""Public API."""

from id5resolver.api.facade import Id5Api

__all__ = ["Id5Api"]
