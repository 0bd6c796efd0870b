"""
API routers for the community feed aggregator.

This package contains all FastAPI router modules for different API endpoints.
"""

__all__ = ["feed", "health", "metrics"]
