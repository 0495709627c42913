"""API router initialization."""

from fastapi import APIRouter
from loguru import logger

from social_backend.api.media import router as media_router
from social_backend.api.posts import router as posts_router
from social_backend.api.search import router as search_router
from social_backend.constants import SERVICE_MEDIA, SERVICE_POST, SERVICE_SEARCH


def create_api_router(services: set[str]) -> APIRouter:
    """Create the API router with the endpoints of the active service roles.

    Args:
        services: Active service roles

    Returns:
        Router to be mounted under ``/api``
    """
    router = APIRouter()

    if SERVICE_POST in services:
        router.include_router(posts_router, tags=["posts"])
    if SERVICE_SEARCH in services:
        router.include_router(search_router, tags=["search"])
    if SERVICE_MEDIA in services:
        router.include_router(media_router, tags=["media"])

    logger.debug(f"API router initialized ({', '.join(sorted(services))} routers mounted)")
    return router
