"""User service: registration, role changes and push token updates."""
import logging

from eventpulse.database import utcnow
from eventpulse.exceptions import DuplicateRecord, PermissionDenied, RecordNotFound
from eventpulse.models.user import UserRole
from eventpulse.schemas.base import parse_record
from eventpulse.schemas.user import UserCreate, UserRecord
from eventpulse.services.directory import UserDirectory
from eventpulse.services.document_store import USERS, DocumentStore

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, store: DocumentStore, directory: UserDirectory):
        self.store = store
        self.directory = directory

    async def register_user(self, payload: UserCreate) -> UserRecord:
        """Create a user with the default role; an accountId maps to at most one user."""
        existing = await self.directory.find_by_account_id(payload.account_id)
        if existing.ok:
            raise DuplicateRecord(USERS, payload.account_id)
        doc = await self.store.create(USERS, {
            "accountId": payload.account_id,
            "username": payload.username,
            "email": payload.email,
            "avatar": payload.avatar,
            "role": UserRole.user.value,
        })
        user = parse_record(UserRecord, USERS, doc)
        logger.info("Registered user %s (%s)", user.id, user.username)
        return user

    async def get_user(self, user_id: str) -> UserRecord:
        lookup = await self.directory.get_user(user_id)
        if not lookup.ok:
            raise RecordNotFound(USERS, user_id)
        return lookup.user

    async def list_users(self) -> list[UserRecord]:
        return await self.directory.list_all_users()

    async def require_admin(self, user_id: str) -> UserRecord:
        """Authorization hook: only admins create events or change roles."""
        user = await self.get_user(user_id)
        if not user.is_admin:
            raise PermissionDenied("Access denied. Only administrators can perform this action.")
        return user

    async def update_role(self, actor_id: str, target_account_id: str, role: str) -> UserRecord:
        """Change a user's role; the target is addressed by account id."""
        await self.require_admin(actor_id)
        target = await self.directory.find_by_account_id(target_account_id)
        if not target.ok:
            raise RecordNotFound(USERS, target_account_id)
        doc = await self.store.update(USERS, target.user.id, {"role": role})
        logger.info("User %s role set to %s by %s", target.user.username, role, actor_id)
        return parse_record(UserRecord, USERS, doc)

    async def update_push_token(self, user_id: str, push_token: str) -> UserRecord:
        doc = await self.store.update(USERS, user_id, {
            "pushToken": push_token,
            "lastTokenUpdate": utcnow(),
        })
        logger.info("Push token updated for user %s", user_id)
        return parse_record(UserRecord, USERS, doc)
