"""Search API endpoint."""

from fastapi import APIRouter, Depends, Query

from social_backend.api.dependencies import current_user_id, service
from social_backend.models.api_model import SearchResults
from social_backend.services.search_service import SearchService

router = APIRouter()


@router.get("/search", response_model=SearchResults, dependencies=[Depends(current_user_id)])
async def search_posts(
    query: str = Query(min_length=1, max_length=200),
    search_service: SearchService = Depends(service(SearchService)),
) -> SearchResults:
    """Search posts by content; the ten best matches, newest first on equal score."""
    return await search_service.search(query)
