"""
Post API - create, read, list and delete posts.

Writes go to the post store first, then the affected cache entries are
invalidated and the matching domain event is published. Reads are served
through the read-through cache.

All endpoints delegate to PostService for business logic.
"""

from fastapi import APIRouter, Depends, Query, status

from social_backend.api.dependencies import current_user_id, service
from social_backend.models.api_model import OperationResponse, PostCreateInput, PostPage, PostResponse
from social_backend.services.post_service import PostService

router = APIRouter()

post_service_dependency = Depends(service(PostService))
user_dependency = Depends(current_user_id)


@router.post("/posts", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    data: PostCreateInput,
    user_id: str = user_dependency,
    post_service: PostService = post_service_dependency,
) -> PostResponse:
    """Create a new post for the acting user.

    Args:
        data: Post content and the ids of already uploaded media
        user_id: Acting user
        post_service: Post service instance

    Returns:
        The created post
    """
    return await post_service.create_post(user_id, data)


@router.get("/posts", response_model=PostPage)
async def list_posts(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    post_service: PostService = post_service_dependency,
) -> PostPage:
    """Get one page of posts, newest first."""
    return await post_service.list_posts(page, limit)


@router.get("/posts/{post_id}", response_model=PostResponse)
async def get_post(post_id: str, post_service: PostService = post_service_dependency) -> PostResponse:
    """Get a post by ID.

    Raises:
        ResourceNotFoundError: If the post does not exist (mapped to 404)
    """
    return await post_service.get_post(post_id)


@router.delete("/posts/{post_id}", response_model=OperationResponse)
async def delete_post(
    post_id: str,
    user_id: str = user_dependency,
    post_service: PostService = post_service_dependency,
) -> OperationResponse:
    """Delete a post owned by the acting user.

    Posts of other users are reported as not found.
    """
    await post_service.delete_post(post_id, user_id)
    return OperationResponse(message="Post deleted successfully")
