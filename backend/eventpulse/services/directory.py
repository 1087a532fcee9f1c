"""User directory reader: paged enumeration and lookup of registered users.

Lookups never raise for a missing user: they return ``Found`` or
``NotFound`` so that callers can compose resolution strategies (primary id
first, then account id alias) without catching exceptions.
"""
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Union

from eventpulse.exceptions import DirectoryUnavailable, MalformedRecord, StoreUnavailable
from eventpulse.schemas.base import parse_records
from eventpulse.schemas.user import UserRecord
from eventpulse.services.document_store import USERS, DocumentStore, Query

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


@dataclass(frozen=True)
class Found:
    user: UserRecord
    strategy: str  # "id" or "accountId"

    ok = True


@dataclass(frozen=True)
class NotFound:
    reference: Any
    reason: str

    ok = False


LookupResult = Union[Found, NotFound]


def _is_reference(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


class UserDirectory:
    """Reads the users collection page by page."""

    def __init__(self, store: DocumentStore, page_size: int = DEFAULT_PAGE_SIZE):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.store = store
        self.page_size = page_size

    async def iter_pages(self) -> AsyncIterator[list[UserRecord]]:
        """Yield fixed-size pages until a short page marks the end.

        Every call restarts from the first page. A failed page request
        raises DirectoryUnavailable.
        """
        offset = 0
        while True:
            query = Query().order_asc("createdAt").limit(self.page_size).offset(offset)
            try:
                docs = await self.store.list(USERS, query)
                page = parse_records(UserRecord, USERS, docs)
            except (StoreUnavailable, MalformedRecord) as exc:
                raise DirectoryUnavailable(f"user page at offset {offset} failed: {exc}") from exc
            if page:
                yield page
            if len(page) < self.page_size:
                return
            offset += self.page_size

    async def iter_users(self) -> AsyncIterator[UserRecord]:
        async for page in self.iter_pages():
            for user in page:
                yield user

    async def list_all_users(self) -> list[UserRecord]:
        """Return every registered user, or raise DirectoryUnavailable."""
        users = [user async for user in self.iter_users()]
        logger.debug("Directory listed %d users", len(users))
        return users

    async def get_user(self, user_id: Any) -> LookupResult:
        """Look a user up by primary id."""
        return await self._lookup("id", user_id)

    async def find_by_account_id(self, account_id: Any) -> LookupResult:
        """Look a user up by external account id (alias lookup)."""
        return await self._lookup("accountId", account_id)

    async def resolve(self, reference: Any) -> LookupResult:
        """Resolve a reference by primary id, falling back to the account id alias."""
        result: LookupResult = NotFound(reference, "unresolved")
        for strategy in (self.get_user, self.find_by_account_id):
            result = await strategy(reference)
            if result.ok:
                return result
        return result

    async def _lookup(self, field: str, value: Any) -> LookupResult:
        if not _is_reference(value):
            return NotFound(value, "malformed")
        docs = await self.store.list(USERS, Query().equal(field, value).limit(1))
        if not docs:
            return NotFound(value, f"no user with {field} {value!r}")
        return Found(parse_records(UserRecord, USERS, docs)[0], field)
