"""Business logic shared by the route modules."""
