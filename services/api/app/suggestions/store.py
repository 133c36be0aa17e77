"""
Relational reads behind the suggestion scorer.

Each method is a single logical read (one or two round trips). Driver and SQL errors are
re-raised as UpstreamQueryFailure so callers can decide per query whether a
failure is fatal (requester context) or just zeroes one score component.
"""
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import and_, distinct, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import UpstreamQueryFailure
from app.models import (
    Comment,
    Follow,
    Like,
    Post,
    PostHashtag,
    Profile,
    SuggestionInteraction,
)


class SuggestionStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _scalars(self, query_name: str, stmt) -> list:
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise UpstreamQueryFailure(query_name, f"{query_name} query failed: {exc}") from exc
        return list(result.scalars().all())

    async def _scalar(self, query_name: str, stmt):
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise UpstreamQueryFailure(query_name, f"{query_name} query failed: {exc}") from exc
        return result.scalar()

    # ── Requester context ──────────────────────────────────────────────────

    async def following_ids(self, user_id: str) -> list[str]:
        return await self._scalars(
            "following",
            select(Follow.following_id).where(Follow.follower_id == user_id),
        )

    async def profile_location(self, user_id: str) -> Optional[str]:
        return await self._scalar(
            "profile_location",
            select(Profile.location).where(Profile.id == user_id),
        )

    async def author_hashtag_ids(self, user_id: str) -> list[str]:
        """Distinct hashtag ids used on any post written by `user_id`."""
        return await self._scalars(
            "author_hashtags",
            select(distinct(PostHashtag.hashtag_id))
            .join(Post, Post.id == PostHashtag.post_id)
            .where(Post.user_id == user_id),
        )

    async def interacted_user_ids(
        self, user_id: str, interaction_type: str, since: datetime
    ) -> list[str]:
        return await self._scalars(
            f"interactions_{interaction_type}",
            select(distinct(SuggestionInteraction.suggested_user_id)).where(
                SuggestionInteraction.user_id == user_id,
                SuggestionInteraction.interaction_type == interaction_type,
                SuggestionInteraction.created_at >= since,
            ),
        )

    async def locations(self, user_ids: Sequence[str]) -> list[Optional[str]]:
        if not user_ids:
            return []
        return await self._scalars(
            "locations",
            select(Profile.location).where(Profile.id.in_(user_ids)),
        )

    async def candidate_profiles(self, exclude_ids: Sequence[str]) -> list[Profile]:
        """Every profile not in `exclude_ids`, in a stable enumeration order."""
        stmt = select(Profile).order_by(Profile.created_at, Profile.id)
        if exclude_ids:
            stmt = stmt.where(Profile.id.not_in(exclude_ids))
        return await self._scalars("candidates", stmt)

    # ── Per-candidate signals ──────────────────────────────────────────────

    async def connected_user_ids(self, candidate_id: str, user_ids: Sequence[str]) -> set[str]:
        """Members of `user_ids` joined to the candidate by a follow edge in either direction."""
        if not user_ids:
            return set()
        rows = await self._scalars(
            "mutual_connections",
            select(Follow.following_id).where(
                Follow.follower_id == candidate_id,
                Follow.following_id.in_(user_ids),
            ),
        )
        rows += await self._scalars(
            "mutual_connections",
            select(Follow.follower_id).where(
                Follow.following_id == candidate_id,
                Follow.follower_id.in_(user_ids),
            ),
        )
        return set(rows)

    async def has_edge_with_any(self, candidate_id: str, user_ids: Sequence[str]) -> bool:
        if not user_ids:
            return False
        count = await self._scalar(
            "second_degree",
            select(func.count())
            .select_from(Follow)
            .where(
                or_(
                    and_(Follow.follower_id.in_(user_ids), Follow.following_id == candidate_id),
                    and_(Follow.follower_id == candidate_id, Follow.following_id.in_(user_ids)),
                )
            ),
        )
        return bool(count)

    async def follows_count(self, candidate_id: str, user_ids: Sequence[str]) -> int:
        """How many of `user_ids` the candidate follows."""
        if not user_ids:
            return 0
        return await self._scalar(
            "follows_count",
            select(func.count())
            .select_from(Follow)
            .where(Follow.follower_id == candidate_id, Follow.following_id.in_(user_ids)),
        ) or 0

    async def shared_hashtag_links(self, candidate_id: str, hashtag_ids: Sequence[str]) -> int:
        """Hashtag links on the candidate's posts whose tag is in `hashtag_ids`."""
        if not hashtag_ids:
            return 0
        return await self._scalar(
            "shared_hashtags",
            select(func.count(PostHashtag.id))
            .join(Post, Post.id == PostHashtag.post_id)
            .where(Post.user_id == candidate_id, PostHashtag.hashtag_id.in_(hashtag_ids)),
        ) or 0

    async def likes_given(self, user_id: str, author_id: str) -> int:
        return await self._scalar(
            "likes",
            select(func.count(Like.id))
            .join(Post, Post.id == Like.post_id)
            .where(Like.user_id == user_id, Post.user_id == author_id),
        ) or 0

    async def comments_given(self, user_id: str, author_id: str) -> int:
        return await self._scalar(
            "comments",
            select(func.count(Comment.id))
            .join(Post, Post.id == Comment.post_id)
            .where(Comment.user_id == user_id, Post.user_id == author_id),
        ) or 0

    async def posts_since(self, author_id: str, since: datetime) -> int:
        return await self._scalar(
            "recent_activity",
            select(func.count(Post.id)).where(
                Post.user_id == author_id, Post.created_at >= since
            ),
        ) or 0
