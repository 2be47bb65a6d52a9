"""API blueprints, all mounted under /api/v1."""
