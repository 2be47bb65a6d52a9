"""
Testing package for the Agency Ops API.

This package contains:
- Unit tests for the services and helpers
- Integration tests for API endpoints
- Shared fixtures (conftest.py) backed by an in-memory SQLite database
"""
