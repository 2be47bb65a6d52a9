"""Error handling and request parsing helpers."""
