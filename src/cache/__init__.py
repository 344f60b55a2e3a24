"""Identity cache over modern and legacy storage."""
