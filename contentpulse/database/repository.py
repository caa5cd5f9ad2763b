"""
Repository Layer - Content Store

Read side: SqlContentStore.list_content() feeds the analytics service.
Write side: ContentRepository mutations commit the row, then await cache
invalidation for the owning user before returning.

SQLAlchemy sessions are synchronous; every query runs in a worker thread
via asyncio.to_thread so the event loop never blocks on the database.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from contentpulse.analytics.engagement import measure_text
from contentpulse.analytics.helpers import ContentStatus, ContentType, PlatformTarget
from contentpulse.cache.invalidation import CacheEvent, CacheInvalidator

from .models import Content
from .session import get_db_context

logger = logging.getLogger(__name__)

# Fields a caller may change through ContentRepository.update()
EDITABLE_FIELDS = {"topic", "keyword", "generated_text", "platform_target"}


def content_to_dict(c: Content) -> Dict[str, Any]:
    return {
        "id": c.id,
        "user_id": c.user_id,
        "topic": c.topic,
        "keyword": c.keyword,
        "content_type": c.content_type.value if c.content_type else None,
        "platform_target": c.platform_target.value if c.platform_target else None,
        "generated_text": c.generated_text,
        "word_count": c.word_count,
        "character_count": c.character_count,
        "user_edited": c.user_edited,
        "status": c.status.value if c.status else None,
        "scheduled_at": c.scheduled_at,
        "potential_reach_metric": c.potential_reach_metric,
        "created_at": c.created_at,
        "updated_at": c.updated_at,
    }


def _platform(value: Optional[str]) -> Optional[PlatformTarget]:
    return PlatformTarget(value) if value else None


# =============================================================================
# READ SIDE
# =============================================================================

class ContentStore(Protocol):
    """What the analytics service needs from storage."""

    async def list_content(
        self,
        user_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
        newest_first: bool = False,
    ) -> List[Dict[str, Any]]:
        ...


class SqlContentStore:
    """ContentStore backed by the SQLAlchemy Content table."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory

    async def list_content(
        self,
        user_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
        newest_first: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        Rows for a user, optionally restricted to created_at in [start, end).

        Args:
            user_id: Owner
            start: Inclusive lower bound on created_at
            end: Exclusive upper bound on created_at
            limit: Maximum rows
            newest_first: Order by created_at descending instead of ascending
        """
        return await asyncio.to_thread(
            self._list_content, user_id, start, end, limit, newest_first
        )

    def _list_content(self, user_id, start, end, limit, newest_first) -> List[Dict[str, Any]]:
        query = select(Content).where(Content.user_id == user_id)
        if start is not None:
            query = query.where(Content.created_at >= start)
        if end is not None:
            query = query.where(Content.created_at < end)

        order = Content.created_at.desc() if newest_first else Content.created_at.asc()
        query = query.order_by(order, Content.id)
        if limit is not None:
            query = query.limit(limit)

        with get_db_context(self.session_factory) as db:
            return [content_to_dict(c) for c in db.scalars(query).all()]


# =============================================================================
# WRITE SIDE
# =============================================================================

class ContentRepository:
    """
    Content mutations with cache invalidation.

    Every successful write awaits CacheInvalidator.handle_event() for the
    owning user, so the next analytics read recomputes from the database.
    Writes that match no row leave the cache alone.
    """

    def __init__(
        self,
        invalidator: CacheInvalidator,
        session_factory: Optional[sessionmaker] = None,
    ):
        self.invalidator = invalidator
        self.session_factory = session_factory

    async def _invalidate(self, event: CacheEvent, user_id: int) -> None:
        result = await self.invalidator.handle_event(event, user_id=user_id)
        if not result.success:
            logger.warning(f"Cache invalidation after {event.value} failed: {result.errors}")

    async def create(
        self,
        user_id: int,
        topic: str,
        content_type: str,
        generated_text: str,
        keyword: Optional[str] = None,
        platform_target: Optional[str] = None,
        potential_reach_metric: int = 0,
        word_count: Optional[int] = None,
        character_count: Optional[int] = None,
        created_at: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Insert a draft and return it as a dict."""
        measured_words, measured_chars = measure_text(generated_text)

        def _create():
            with get_db_context(self.session_factory) as db:
                content = Content(
                    user_id=user_id,
                    topic=topic,
                    keyword=keyword,
                    content_type=ContentType(content_type),
                    platform_target=_platform(platform_target),
                    generated_text=generated_text,
                    word_count=measured_words if word_count is None else word_count,
                    character_count=measured_chars if character_count is None else character_count,
                    potential_reach_metric=potential_reach_metric,
                    status=ContentStatus.DRAFT,
                    created_at=created_at or datetime.utcnow(),
                )
                db.add(content)
                db.flush()
                logger.info(f"Created content {content.id} for user {user_id}")
                return content_to_dict(content)

        row = await asyncio.to_thread(_create)
        await self._invalidate(CacheEvent.CONTENT_CREATED, user_id)
        return row

    async def _mutate(self, content_id: int, user_id: int, event: CacheEvent, apply) -> Optional[Dict[str, Any]]:
        def _run():
            with get_db_context(self.session_factory) as db:
                content = db.get(Content, content_id)
                if content is None or content.user_id != user_id:
                    return None
                apply(content)
                content.updated_at = datetime.utcnow()
                db.flush()
                return content_to_dict(content)

        row = await asyncio.to_thread(_run)
        if row is None:
            logger.warning(f"Content {content_id} not found for user {user_id}")
            return None

        await self._invalidate(event, user_id)
        return row

    async def update(self, content_id: int, user_id: int, **changes) -> Optional[Dict[str, Any]]:
        """
        Edit a content row.

        Editing generated_text recounts words/characters and marks the
        row as user-edited.

        Raises:
            ValueError: a field outside EDITABLE_FIELDS was given
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not editable: {sorted(unknown)}")

        def apply(content: Content):
            if "topic" in changes:
                content.topic = changes["topic"]
            if "keyword" in changes:
                content.keyword = changes["keyword"]
            if "platform_target" in changes:
                content.platform_target = _platform(changes["platform_target"])
            if "generated_text" in changes:
                text = changes["generated_text"]
                content.generated_text = text
                content.word_count, content.character_count = measure_text(text)
                content.user_edited = True

        return await self._mutate(content_id, user_id, CacheEvent.CONTENT_UPDATED, apply)

    async def schedule(
        self,
        content_id: int,
        user_id: int,
        scheduled_at: datetime,
    ) -> Optional[Dict[str, Any]]:
        """Mark a row scheduled for a given time."""
        def apply(content: Content):
            content.status = ContentStatus.SCHEDULED
            content.scheduled_at = scheduled_at

        return await self._mutate(content_id, user_id, CacheEvent.CONTENT_SCHEDULED, apply)

    async def mark_posted(self, content_id: int, user_id: int) -> Optional[Dict[str, Any]]:
        """Mark a row as (simulated) posted."""
        def apply(content: Content):
            content.status = ContentStatus.POSTED_SIMULATED

        return await self._mutate(content_id, user_id, CacheEvent.CONTENT_POSTED, apply)

    async def delete(self, content_id: int, user_id: int) -> bool:
        """Delete a row. Returns False when nothing matched."""
        def _delete():
            with get_db_context(self.session_factory) as db:
                content = db.get(Content, content_id)
                if content is None or content.user_id != user_id:
                    return False
                db.delete(content)
                logger.info(f"Deleted content {content_id} for user {user_id}")
                return True

        deleted = await asyncio.to_thread(_delete)
        if deleted:
            await self._invalidate(CacheEvent.CONTENT_DELETED, user_id)
        return deleted
