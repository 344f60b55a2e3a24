"""Logging setup: formatters, context, handlers."""
