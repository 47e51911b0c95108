"""
Configuration - Application settings, error taxonomy, and logging setup.
"""

from .errors import (
    ConfigurationError,
    CouncilSearchError,
    ErrorCode,
    ExtractionError,
    InputError,
    SearchError,
    StorageError,
    TransientInfraError,
)
from .logging import configure_logging
from .settings import Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "configure_logging",
    # Errors
    "ErrorCode",
    "CouncilSearchError",
    "TransientInfraError",
    "ConfigurationError",
    "InputError",
    "ExtractionError",
    "SearchError",
    "StorageError",
]
