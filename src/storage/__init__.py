"""Key/value storage backends with per-key expiration."""
