"""
Search Routes - Hybrid search over released council subjects.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from councilsearch.config import Settings, get_settings
from councilsearch.domains.search import (
    SearchConfig,
    SearchRequest,
    SearchResponse,
    SearchService,
)
from councilsearch.interfaces.api.deps import get_search_service

router = APIRouter()


@router.post("", response_model=SearchResponse)
async def search(
    request: SearchRequest,
    service: SearchService = Depends(get_search_service),
    settings: Settings = Depends(get_settings),
) -> SearchResponse:
    """
    Search subjects of released meetings.

    - **query**: Free text; city, date range and place names in it become filters
    - **city_ids / person_ids / party_ids / topic_ids**: Explicit filters
    - **date_range / locations**: Explicit date and geographic filters
    - **config**: Page size, offset and ranking options; omitted options
      take the deployment defaults
    """
    config = SearchConfig.from_settings(settings).merged(
        **request.config.model_dump(exclude_unset=True)
    )
    return await service.search(request.model_copy(update={"config": config}))
