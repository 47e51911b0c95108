"""
Adapters - External service integrations.

All external API calls are wrapped here to isolate domains from third-party changes.
"""

from .elasticsearch import ElasticsearchClient, ElasticsearchResponseError
from .geocoding import PlacesClient
from .ollama import OllamaClient
from .postgres import PostgresRepository

__all__ = [
    "ElasticsearchClient",
    "ElasticsearchResponseError",
    "PostgresRepository",
    "OllamaClient",
    "PlacesClient",
]
