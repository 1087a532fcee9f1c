"""Creator reference diagnosis and repair for video posts.

A post's ``creator`` is a user reference written by the post-creation flow
and never enforced by the store. It should match a user's primary id, but
older clients wrote the account id instead, and deleted users leave
references pointing nowhere. Each post is classified as:

* ``Valid``: creator is an existing user id.
* ``ValidByAlias``: creator is an existing user's account id.
* ``Orphaned``: creator is absent, malformed, or resolves to no user.

``diagnose`` inspects a bounded sample; it is a diagnostic tool, not a
full-table scan. ``repair`` is admin-invoked and reassigns orphaned posts to
a fallback user one update at a time, collecting failures instead of
stopping.
"""
import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from eventpulse.exceptions import EventPulseError, RecordNotFound
from eventpulse.schemas.base import parse_records
from eventpulse.schemas.post import PostRecord
from eventpulse.schemas.user import UserRecord
from eventpulse.services.directory import Found, LookupResult, UserDirectory
from eventpulse.services.document_store import POSTS, USERS, DocumentStore, Query

logger = logging.getLogger(__name__)

DEFAULT_RECORD_CAP = 50
DEFAULT_USER_CAP = 100


class ReferenceStatus(str, enum.Enum):
    valid = "Valid"
    valid_by_alias = "ValidByAlias"
    orphaned = "Orphaned"


class OrphanReason(str, enum.Enum):
    missing_creator = "missing_creator"
    malformed_creator = "malformed_creator"
    unresolved_creator = "unresolved_creator"


@dataclass(frozen=True)
class Classification:
    record_id: str
    status: ReferenceStatus
    user: Optional[UserRecord] = None
    reason: Optional[OrphanReason] = None


@dataclass(frozen=True)
class OrphanedReference:
    record_id: str
    reason: OrphanReason
    creator: Any = None


@dataclass
class Diagnosis:
    total_records: int = 0
    valid: int = 0  # includes the alias-resolved records
    valid_by_alias: int = 0
    orphaned: list[OrphanedReference] = field(default_factory=list)


@dataclass(frozen=True)
class RepairFailed:
    record_id: str
    cause: str


@dataclass
class RepairReport:
    attempted: int = 0
    fixed: int = 0
    errors: list[RepairFailed] = field(default_factory=list)


class _SampledUsers:
    """In-memory id and account id index over the sampled users."""

    def __init__(self, users: list[UserRecord]):
        self.by_id = {user.id: user for user in users}
        self.by_account = {user.account_id: user for user in users}


class ReferenceDiagnostician:
    def __init__(
        self,
        store: DocumentStore,
        directory: UserDirectory,
        record_cap: int = DEFAULT_RECORD_CAP,
        user_cap: int = DEFAULT_USER_CAP,
    ):
        self.store = store
        self.directory = directory
        self.record_cap = record_cap
        self.user_cap = user_cap

    async def classify(self, record: PostRecord, sample: Optional[_SampledUsers] = None) -> Classification:
        creator = record.creator
        if creator is None or creator == "":
            return Classification(record.id, ReferenceStatus.orphaned, reason=OrphanReason.missing_creator)
        if not isinstance(creator, str) or not creator.strip():
            return Classification(record.id, ReferenceStatus.orphaned, reason=OrphanReason.malformed_creator)

        direct = await self._by_id(creator, sample)
        if direct.ok:
            return Classification(record.id, ReferenceStatus.valid, user=direct.user)
        alias = await self._by_account(creator, sample)
        if alias.ok:
            return Classification(record.id, ReferenceStatus.valid_by_alias, user=alias.user)
        return Classification(record.id, ReferenceStatus.orphaned, reason=OrphanReason.unresolved_creator)

    async def diagnose(self) -> Diagnosis:
        post_docs = await self.store.list(POSTS, Query().order_desc("createdAt").limit(self.record_cap))
        user_docs = await self.store.list(USERS, Query().order_asc("createdAt").limit(self.user_cap))
        posts = parse_records(PostRecord, POSTS, post_docs)
        sample = _SampledUsers(parse_records(UserRecord, USERS, user_docs))

        classifications = await asyncio.gather(*(self.classify(post, sample) for post in posts))
        diagnosis = Diagnosis(total_records=len(posts))
        by_id = {post.id: post for post in posts}
        for item in classifications:
            if item.status is ReferenceStatus.orphaned:
                diagnosis.orphaned.append(OrphanedReference(item.record_id, item.reason, by_id[item.record_id].creator))
            else:
                diagnosis.valid += 1
                if item.status is ReferenceStatus.valid_by_alias:
                    diagnosis.valid_by_alias += 1

        logger.info(
            "Creator diagnosis: %d posts, %d valid (%d by alias), %d orphaned",
            diagnosis.total_records, diagnosis.valid, diagnosis.valid_by_alias, len(diagnosis.orphaned),
        )
        return diagnosis

    async def repair(self, diagnosis: Diagnosis, fallback_user_id: str) -> RepairReport:
        fallback = await self.directory.get_user(fallback_user_id)
        if not fallback.ok:
            raise RecordNotFound(USERS, fallback_user_id)

        report = RepairReport(attempted=len(diagnosis.orphaned))
        for orphan in diagnosis.orphaned:
            try:
                await self.store.update(POSTS, orphan.record_id, {"creator": fallback.user.id})
            except EventPulseError as exc:
                logger.warning("Could not reassign post %s: %s", orphan.record_id, exc)
                report.errors.append(RepairFailed(orphan.record_id, str(exc)))
                continue
            report.fixed += 1

        logger.info(
            "Reassigned %d of %d orphaned posts to user %s",
            report.fixed, report.attempted, fallback.user.id,
        )
        return report

    # Sampled users answer first; anything outside the sample is looked up in the store
    async def _by_id(self, reference: str, sample: Optional[_SampledUsers]) -> LookupResult:
        if sample is not None and reference in sample.by_id:
            return Found(sample.by_id[reference], "id")
        return await self.directory.get_user(reference)

    async def _by_account(self, reference: str, sample: Optional[_SampledUsers]) -> LookupResult:
        if sample is not None and reference in sample.by_account:
            return Found(sample.by_account[reference], "accountId")
        return await self.directory.find_by_account_id(reference)
