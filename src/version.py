# src/version.py — v1
"""Package version, sent to the identity service as the ``v`` field."""

__version__ = "1.0.0"
