"""HTTP exchange with the identity service."""
