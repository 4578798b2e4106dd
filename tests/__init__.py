"""
MediaSearch Test Suite

Tests are organized into:
- unit/: Unit tests for individual components (client, storage, middleware)
- integration/: API tests driving the FastAPI app in-process
"""
