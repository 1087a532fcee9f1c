"""Video post routes."""
import logging
from fastapi import APIRouter, Depends, Query, status

from eventpulse.container import Services, get_services
from eventpulse.schemas.post import PostCreate, PostOut, PostRecord
from eventpulse.services.post_service import LATEST_POSTS

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=PostRecord, status_code=status.HTTP_201_CREATED)
async def create_post(payload: PostCreate, services: Services = Depends(get_services)):
    """Create a video post; media fields are already-uploaded URLs."""
    return await services.posts.create_post(payload)


@router.get("/", response_model=list[PostOut])
async def list_posts(services: Services = Depends(get_services)):
    """List posts newest first with their creators resolved."""
    return await services.posts.list_posts()


@router.get("/search", response_model=list[PostOut])
async def search_posts(q: str = Query(..., min_length=1), services: Services = Depends(get_services)):
    """Case-insensitive search on post titles."""
    return await services.posts.search_posts(q)


@router.get("/latest", response_model=list[PostOut])
async def latest_posts(
    limit: int = Query(LATEST_POSTS, ge=1, le=100), services: Services = Depends(get_services),
):
    return await services.posts.latest_posts(limit)


@router.get("/user/{user_id}", response_model=list[PostOut])
async def list_user_posts(user_id: str, services: Services = Depends(get_services)):
    return await services.posts.list_user_posts(user_id)
