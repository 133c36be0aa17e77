"""
"People you may know" — weighted linear scoring of follow candidates.

For a requesting user R with following set F, every other profile that is
not R, not in F (and, optionally, not recently dismissed by R) is scored
independently as a sum of per-component capped points:

  component          signal                                       points
  ─────────────────  ───────────────────────────────────────────  ───────────────
  mutual_connections members of F joined to c by a follow edge   min(n*10, 40)
  second_degree      any follow edge between F and c              30 (flat)
  shared_hashtags    c's hashtag links whose tag R has also used  min(n*5, 20)
  likes              R's likes on c's posts                       min(n*3, 15)
  comments           R's comments on c's posts                    min(n*5, 15)
  same_location      non-empty, case-insensitively equal          10 (flat)
  verified           c.is_verified                                5 (flat)
  recent_activity    c's posts in the trailing window (7 days)    min(n*2, 10)

With learning enabled, two more components reward candidates resembling
users R previously followed from suggestions (same location, or followed
by the candidate).

Candidates scoring exactly 0 are dropped; the rest are sorted by score,
descending, ties keeping store enumeration order, and cut to `limit`.

A failed read for one component counts as 0 for that component only.
Failing to read R's following set or the candidate pool aborts the request.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from opentelemetry import trace
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.errors import InvalidRequest, UpstreamQueryFailure
from app.models import Profile, utcnow
from app.suggestions.store import SuggestionStore
from app.telemetry import SUGGESTION_CANDIDATES_TOTAL, SUGGESTION_QUERY_FAILURES_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass(frozen=True)
class ScoringWeights:
    mutual_per_connection: int = 10
    mutual_cap: int = 40
    second_degree: int = 30
    hashtag_per_link: int = 5
    hashtag_cap: int = 20
    like_per: int = 3
    like_cap: int = 15
    comment_per: int = 5
    comment_cap: int = 15
    same_location: int = 10
    verified: int = 5
    recent_post_per: int = 2
    recent_post_cap: int = 10
    # learned preferences
    learned_location_per: int = 10
    learned_location_cap: int = 30
    learned_follow_per: int = 15
    learned_follow_cap: int = 30


@dataclass
class RequesterContext:
    user_id: str
    following_ids: list[str]
    location: Optional[str] = None
    hashtag_ids: list[str] = field(default_factory=list)
    dismissed_ids: list[str] = field(default_factory=list)
    followed_from_suggestions: list[str] = field(default_factory=list)
    followed_locations: list[Optional[str]] = field(default_factory=list)


@dataclass
class ScoredCandidate:
    profile: Profile
    score: int
    mutual_connections: int
    components: dict[str, int] = field(default_factory=dict)


def capped(count: int, per: int, cap: int) -> int:
    return min(count * per, cap)


def same_location(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.lower() == b.lower()


class SuggestionScorer:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        weights: Optional[ScoringWeights] = None,
        *,
        default_limit: int = 10,
        max_concurrency: int = 8,
        recent_window: timedelta = timedelta(days=7),
        exclude_dismissed: bool = True,
        interaction_window: timedelta = timedelta(days=30),
        learning_enabled: bool = False,
        store_cls: type[SuggestionStore] = SuggestionStore,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self.weights = weights or ScoringWeights()
        self.default_limit = default_limit
        self.max_concurrency = max(1, max_concurrency)
        self.recent_window = recent_window
        self.exclude_dismissed = exclude_dismissed
        self.interaction_window = interaction_window
        self.learning_enabled = learning_enabled
        self._store_cls = store_cls
        self._clock = clock

    @classmethod
    def from_settings(
        cls, session_factory: async_sessionmaker[AsyncSession], **overrides
    ) -> "SuggestionScorer":
        options = dict(
            default_limit=settings.suggestion_default_limit,
            max_concurrency=settings.suggestion_max_concurrency,
            recent_window=timedelta(days=settings.suggestion_recent_window_days),
            exclude_dismissed=settings.suggestion_exclude_dismissed,
            interaction_window=timedelta(days=settings.suggestion_dismissal_window_days),
            learning_enabled=settings.suggestion_learning_enabled,
        )
        options.update(overrides)
        return cls(session_factory, **options)

    async def suggest(self, user_id: str, limit: Optional[int] = None) -> list[ScoredCandidate]:
        """Rank follow candidates for `user_id`, best first, at most `limit` of them."""
        if limit is None:
            limit = self.default_limit
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise InvalidRequest("limit must be a positive integer")

        now = self._clock()

        with tracer.start_as_current_span("suggestions.requester_context") as span:
            async with self._session_factory() as session:
                store = self._store_cls(session)
                ctx = await self._requester_context(store, user_id, now)
                excluded = {user_id, *ctx.following_ids, *ctx.dismissed_ids}
                candidates = await store.candidate_profiles(sorted(excluded))
            span.set_attribute("suggestions.following", len(ctx.following_ids))
            span.set_attribute("suggestions.candidates", len(candidates))

        if not candidates:
            logger.info("No suggestion candidates left for %s", user_id)
            return []

        SUGGESTION_CANDIDATES_TOTAL.inc(len(candidates))

        semaphore = asyncio.Semaphore(self.max_concurrency)
        with tracer.start_as_current_span("suggestions.score_candidates"):
            scored = await asyncio.gather(
                *(self._score_candidate(semaphore, ctx, profile, now) for profile in candidates)
            )

        # sorted() is stable, so equal scores keep enumeration order
        ranked = sorted(
            (s for s in scored if s.score > 0),
            key=lambda s: s.score,
            reverse=True,
        )
        logger.info(
            "Scored %d candidates for %s: %d positive, returning %d",
            len(candidates), user_id, len(ranked), min(len(ranked), limit),
        )
        return ranked[:limit]

    # ── Internals ──────────────────────────────────────────────────────────

    async def _recover(self, store: SuggestionStore, component: str, pending, default):
        """Await a store read; a failed read is logged and replaced by `default`."""
        try:
            return await pending
        except UpstreamQueryFailure as exc:
            logger.warning("Suggestion query %s failed, counting as zero: %s", component, exc)
            SUGGESTION_QUERY_FAILURES_TOTAL.labels(component=component).inc()
            try:
                await store.session.rollback()
            except SQLAlchemyError as rollback_exc:
                logger.warning("Rollback after failed %s query failed: %s", component, rollback_exc)
            return default

    async def _requester_context(
        self, store: SuggestionStore, user_id: str, now: datetime
    ) -> RequesterContext:
        ctx = RequesterContext(
            user_id=user_id,
            following_ids=await store.following_ids(user_id),
        )
        ctx.location = await self._recover(
            store, "same_location", store.profile_location(user_id), None
        )
        ctx.hashtag_ids = await self._recover(
            store, "shared_hashtags", store.author_hashtag_ids(user_id), []
        )

        since = now - self.interaction_window
        if self.exclude_dismissed:
            ctx.dismissed_ids = await self._recover(
                store, "dismissed", store.interacted_user_ids(user_id, "dismissed", since), []
            )
        if self.learning_enabled:
            ctx.followed_from_suggestions = await self._recover(
                store, "learned", store.interacted_user_ids(user_id, "followed", since), []
            )
            ctx.followed_locations = await self._recover(
                store, "learned_location", store.locations(ctx.followed_from_suggestions), []
            )
        return ctx

    async def _score_candidate(
        self,
        semaphore: asyncio.Semaphore,
        ctx: RequesterContext,
        profile: Profile,
        now: datetime,
    ) -> ScoredCandidate:
        w = self.weights
        components: dict[str, int] = {}

        async with semaphore:
            async with self._session_factory() as session:
                store = self._store_cls(session)

                connected = await self._recover(
                    store,
                    "mutual_connections",
                    store.connected_user_ids(profile.id, ctx.following_ids),
                    set(),
                )
                mutual = len(connected)
                components["mutual_connections"] = capped(
                    mutual, w.mutual_per_connection, w.mutual_cap
                )

                reached = await self._recover(
                    store,
                    "second_degree",
                    store.has_edge_with_any(profile.id, ctx.following_ids),
                    False,
                )
                components["second_degree"] = w.second_degree if reached else 0

                links = await self._recover(
                    store,
                    "shared_hashtags",
                    store.shared_hashtag_links(profile.id, ctx.hashtag_ids),
                    0,
                )
                components["shared_hashtags"] = capped(links, w.hashtag_per_link, w.hashtag_cap)

                likes = await self._recover(
                    store, "likes", store.likes_given(ctx.user_id, profile.id), 0
                )
                components["likes"] = capped(likes, w.like_per, w.like_cap)

                comments = await self._recover(
                    store, "comments", store.comments_given(ctx.user_id, profile.id), 0
                )
                components["comments"] = capped(comments, w.comment_per, w.comment_cap)

                components["same_location"] = (
                    w.same_location if same_location(ctx.location, profile.location) else 0
                )
                components["verified"] = w.verified if profile.is_verified else 0

                recent = await self._recover(
                    store,
                    "recent_activity",
                    store.posts_since(profile.id, now - self.recent_window),
                    0,
                )
                components["recent_activity"] = capped(
                    recent, w.recent_post_per, w.recent_post_cap
                )

                if self.learning_enabled and ctx.followed_from_suggestions:
                    similar = sum(
                        1 for loc in ctx.followed_locations if same_location(loc, profile.location)
                    )
                    components["learned_location"] = capped(
                        similar, w.learned_location_per, w.learned_location_cap
                    )
                    followed = await self._recover(
                        store,
                        "learned_follow",
                        store.follows_count(profile.id, ctx.followed_from_suggestions),
                        0,
                    )
                    components["learned_follow"] = capped(
                        followed, w.learned_follow_per, w.learned_follow_cap
                    )

        return ScoredCandidate(
            profile=profile,
            score=sum(components.values()),
            mutual_connections=mutual,
            components=components,
        )
