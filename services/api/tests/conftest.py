import os
import tempfile
from datetime import datetime, timedelta
from itertools import count
from typing import Optional

# Must be set before app.config is imported anywhere
os.environ.setdefault("OTEL_ENABLED", "false")
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), 'suggest-users-unused.db')}",
)

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.clients.auth_client import auth_client
from app.database import Base, get_db, get_session_factory
from app.models import (
    Comment,
    Follow,
    Hashtag,
    Like,
    Post,
    PostHashtag,
    Profile,
    SuggestionInteraction,
    utcnow,
)
from app.suggestions.scorer import SuggestionScorer


@pytest.fixture
def now() -> datetime:
    return utcnow().replace(microsecond=0)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


class GraphBuilder:
    """Writes profiles, edges and content straight to the test database."""

    def __init__(self, session_factory, now: datetime) -> None:
        self._session_factory = session_factory
        self.now = now
        self._seq = count()

    async def _add(self, *rows):
        async with self._session_factory() as session:
            session.add_all(rows)
            await session.commit()
        return rows[0] if len(rows) == 1 else rows

    async def user(
        self, handle: str, location: Optional[str] = None, verified: bool = False
    ) -> str:
        # explicit, increasing created_at keeps the enumeration order deterministic
        created = self.now - timedelta(days=365) + timedelta(seconds=next(self._seq))
        profile = await self._add(
            Profile(
                user_name=handle.title(),
                user_handle=handle,
                location=location,
                is_verified=verified,
                created_at=created,
            )
        )
        return profile.id

    async def follow(self, follower_id: str, following_id: str) -> None:
        await self._add(Follow(follower_id=follower_id, following_id=following_id))

    async def post(
        self,
        author_id: str,
        tags: tuple[str, ...] = (),
        age: timedelta = timedelta(days=30),
    ) -> str:
        async with self._session_factory() as session:
            post = Post(user_id=author_id, content="post", created_at=self.now - age)
            session.add(post)
            await session.flush()
            for tag in tags:
                hashtag = (
                    await session.execute(select(Hashtag).where(Hashtag.tag == tag))
                ).scalar_one_or_none()
                if hashtag is None:
                    hashtag = Hashtag(tag=tag)
                    session.add(hashtag)
                    await session.flush()
                session.add(PostHashtag(post_id=post.id, hashtag_id=hashtag.id))
            await session.commit()
            return post.id

    async def like(self, user_id: str, post_id: str) -> None:
        await self._add(Like(user_id=user_id, post_id=post_id))

    async def comment(self, user_id: str, post_id: str) -> None:
        await self._add(Comment(user_id=user_id, post_id=post_id, content="nice"))

    async def interaction(
        self,
        user_id: str,
        suggested_user_id: str,
        kind: str,
        age: timedelta = timedelta(days=1),
    ) -> None:
        await self._add(
            SuggestionInteraction(
                user_id=user_id,
                suggested_user_id=suggested_user_id,
                interaction_type=kind,
                created_at=self.now - age,
            )
        )


@pytest.fixture
def graph(session_factory, now) -> GraphBuilder:
    return GraphBuilder(session_factory, now)


@pytest.fixture
def make_scorer(session_factory, now):
    def factory(**kwargs) -> SuggestionScorer:
        kwargs.setdefault("clock", lambda: now)
        return SuggestionScorer(session_factory, **kwargs)

    return factory


@pytest.fixture
def tokens(monkeypatch) -> dict[str, str]:
    """Bearer token → user id table consulted instead of the auth provider."""
    table: dict[str, str] = {}

    async def resolve_user_id(token: str) -> Optional[str]:
        return table.get(token)

    monkeypatch.setattr(auth_client, "resolve_user_id", resolve_user_id)
    return table


@pytest.fixture
async def client(session_factory, tokens):
    from app.main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c

    app.dependency_overrides.clear()
