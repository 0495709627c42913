"""
Media API - register and list media metadata.

The binary itself is uploaded to object storage by the client beforehand;
these endpoints only keep track of the resulting metadata. Media records are
removed by the ``post.deleted`` handler, not through this API.
"""

from fastapi import APIRouter, Depends, status

from social_backend.api.dependencies import current_user_id, service
from social_backend.models.api_model import MediaCreateInput, MediaResponse
from social_backend.services.media_service import MediaService

router = APIRouter()

media_service_dependency = Depends(service(MediaService))


@router.post("/media", response_model=MediaResponse, status_code=status.HTTP_201_CREATED)
async def register_media(
    data: MediaCreateInput,
    user_id: str = Depends(current_user_id),
    media_service: MediaService = media_service_dependency,
) -> MediaResponse:
    """Register an uploaded media file for the acting user."""
    return await media_service.register_media(user_id, data)


@router.get("/media", response_model=list[MediaResponse], dependencies=[Depends(current_user_id)])
async def list_media(media_service: MediaService = media_service_dependency) -> list[MediaResponse]:
    return await media_service.list_media()
