"""Frame-ancestry referer detection."""
