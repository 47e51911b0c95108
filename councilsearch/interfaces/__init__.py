"""
Interfaces - User-facing entry points.

- api: FastAPI REST API (search and sync administration)
- cli: Command-line interface
"""

__all__ = ["api", "cli"]
