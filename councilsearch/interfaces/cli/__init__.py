"""
CLI Interface - Command-line tools for CouncilSearch.

Provides commands for:
- Connector status and per-city index status
- Validating, previewing and applying a city scope
- Search queries
- Running the API server
"""

from .main import app, main

__all__ = ["app", "main"]
