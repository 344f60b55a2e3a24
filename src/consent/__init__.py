"""Consent gate and TCF payload normalization."""
