"""Video post creation and listing with creator resolution."""
import asyncio
import logging

from eventpulse.schemas.base import parse_record, parse_records
from eventpulse.schemas.post import CreatorSummary, PostCreate, PostOut, PostRecord
from eventpulse.schemas.user import UserRecord
from eventpulse.services.directory import UserDirectory
from eventpulse.services.document_store import POSTS, DocumentStore, Query

logger = logging.getLogger(__name__)

UNKNOWN_CREATOR = CreatorSummary(id=None, username="Unknown User", avatar=None)
LATEST_POSTS = 7


class PostService:
    def __init__(self, store: DocumentStore, directory: UserDirectory):
        self.store = store
        self.directory = directory

    async def create_post(self, payload: PostCreate) -> PostRecord:
        doc = await self.store.create(POSTS, {
            "title": payload.title,
            "thumbnail": payload.thumbnail,
            "video": payload.video,
            "prompt": payload.prompt,
            "creator": payload.creator,
        })
        post = parse_record(PostRecord, POSTS, doc)
        logger.info("Video post created: %s by %s", post.id, post.creator)
        return post

    async def list_posts(self) -> list[PostOut]:
        docs = await self.store.list(POSTS, Query().order_desc("createdAt"))
        return await self._with_creators(parse_records(PostRecord, POSTS, docs))

    async def list_user_posts(self, user_id: str) -> list[PostOut]:
        docs = await self.store.list(POSTS, Query().equal("creator", user_id).order_desc("createdAt"))
        return await self._with_creators(parse_records(PostRecord, POSTS, docs))

    async def search_posts(self, text: str) -> list[PostOut]:
        """Case-insensitive title search, newest first."""
        docs = await self.store.list(POSTS, Query().search("title", text).order_desc("createdAt"))
        return await self._with_creators(parse_records(PostRecord, POSTS, docs))

    async def latest_posts(self, limit: int = LATEST_POSTS) -> list[PostOut]:
        docs = await self.store.list(POSTS, Query().order_desc("createdAt").limit(limit))
        return await self._with_creators(parse_records(PostRecord, POSTS, docs))

    async def _with_creators(self, posts: list[PostRecord]) -> list[PostOut]:
        creators = await asyncio.gather(*(self._creator(post) for post in posts))
        return [
            PostOut(
                id=post.id,
                title=post.title,
                thumbnail=post.thumbnail,
                video=post.video,
                prompt=post.prompt,
                creator=creator,
                created_at=post.created_at,
            )
            for post, creator in zip(posts, creators)
        ]

    async def _creator(self, post: PostRecord) -> CreatorSummary:
        lookup = await self.directory.resolve(post.creator)
        if not lookup.ok:
            logger.debug("Post %s has unresolved creator %r", post.id, post.creator)
            return UNKNOWN_CREATOR
        return _summary(lookup.user)


def _summary(user: UserRecord) -> CreatorSummary:
    return CreatorSummary(id=user.id, username=user.username, avatar=user.avatar)
