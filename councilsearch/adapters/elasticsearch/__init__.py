"""
Elasticsearch Adapter - search engine query and connector management API.
"""

from .client import ElasticsearchClient, ElasticsearchResponseError

__all__ = ["ElasticsearchClient", "ElasticsearchResponseError"]
