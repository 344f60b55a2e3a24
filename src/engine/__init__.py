"""Resolution engine, per-call status, request builders."""
