"""Data model and error taxonomy."""
