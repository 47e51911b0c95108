"""
CouncilSearch - hybrid search over council meeting subjects, and the safety
checks that keep the search index connector pointed at the right cities.

Example:
    >>> from councilsearch.interfaces.api.deps import get_search_service
    >>> from councilsearch.domains.search import SearchRequest
    >>> response = await get_search_service().search(SearchRequest(query="πεζοδρόμια"))
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
