"""Process settings and per-call options."""
