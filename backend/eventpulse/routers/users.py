"""User API routes."""
import logging
from fastapi import APIRouter, Depends, status

from eventpulse.container import Services, get_services
from eventpulse.schemas.user import PublicUser, PushTokenUpdate, RoleUpdate, UserCreate, UserRecord

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=UserRecord, status_code=status.HTTP_201_CREATED)
async def create_user(payload: UserCreate, services: Services = Depends(get_services)):
    """Register a user document for an authenticated account."""
    return await services.users.register_user(payload)


@router.get("/", response_model=list[PublicUser])
async def list_users(services: Services = Depends(get_services)):
    """List all users, paging through the directory. Emails and push tokens are omitted."""
    return [PublicUser.from_record(user) for user in await services.users.list_users()]


@router.put("/role", response_model=UserRecord)
async def update_role(payload: RoleUpdate, services: Services = Depends(get_services)):
    """Promote or demote a user (admin only)."""
    return await services.users.update_role(payload.actor_id, payload.target_account_id, payload.role)


@router.get("/{user_id}", response_model=UserRecord)
async def get_user(user_id: str, services: Services = Depends(get_services)):
    """Fetch a single user by ID."""
    return await services.users.get_user(user_id)


@router.put("/{user_id}/push-token", response_model=UserRecord)
async def update_push_token(user_id: str, payload: PushTokenUpdate, services: Services = Depends(get_services)):
    """Register the device push token used for event alerts."""
    return await services.users.update_push_token(user_id, payload.push_token)
