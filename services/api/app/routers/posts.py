"""
Content endpoints:
  POST /posts                 — create a post (hashtags extracted from content)
  GET  /posts/{id}            — fetch a single post
  POST /posts/{id}/like       — like a post
  POST /posts/{id}/comments   — comment on a post
"""
import logging
import re

from fastapi import APIRouter, Depends, HTTPException, status
from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models import Comment, Hashtag, Like, Post, PostHashtag, Profile
from app.schemas import CommentCreate, CommentResponse, LikeRequest, PostCreate, PostResponse
from app.telemetry import POST_INGESTION_TOTAL

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)

HASHTAG_RE = re.compile(r"#(\w{1,100})", re.UNICODE)


def extract_hashtags(content: str | None) -> list[str]:
    """Distinct lower-cased tags in order of first appearance."""
    seen: dict[str, None] = {}
    for match in HASHTAG_RE.finditer(content or ""):
        seen.setdefault(match.group(1).lower(), None)
    return list(seen)


async def _post_tags(db: AsyncSession, post_id: str) -> list[str]:
    rows = await db.execute(
        select(Hashtag.tag)
        .join(PostHashtag, PostHashtag.hashtag_id == Hashtag.id)
        .where(PostHashtag.post_id == post_id)
        .order_by(PostHashtag.created_at, Hashtag.tag)
    )
    return [r[0] for r in rows.all()]


def _build_post_response(post: Post, author: Profile | None, hashtags: list[str]) -> PostResponse:
    return PostResponse(
        id=post.id,
        user_id=post.user_id,
        user_handle=author.user_handle if author else None,
        user_name=author.user_name if author else None,
        content=post.content,
        image_url=post.image_url,
        hashtags=hashtags,
        created_at=post.created_at,
    )


@router.post("/", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(body: PostCreate, db: AsyncSession = Depends(get_db)):
    """
    1. Validate the author exists.
    2. Persist the post.
    3. Link every distinct #tag in the content, creating unseen tags.
    """
    with tracer.start_as_current_span("create_post") as span:
        author = await db.get(Profile, body.user_id)
        if not author:
            raise HTTPException(status_code=404, detail="Author not found")

        post = Post(user_id=body.user_id, content=body.content, image_url=body.image_url)
        db.add(post)
        await db.flush()     # materialise post id

        tags = extract_hashtags(body.content)
        if tags:
            rows = await db.execute(select(Hashtag).where(Hashtag.tag.in_(tags)))
            known = {h.tag: h for h in rows.scalars().all()}
            for tag in tags:
                hashtag = known.get(tag)
                if hashtag is None:
                    hashtag = Hashtag(tag=tag)
                    db.add(hashtag)
                    await db.flush()
                db.add(PostHashtag(post_id=post.id, hashtag_id=hashtag.id))
            await db.flush()

        span.set_attribute("post.id", post.id)
        span.set_attribute("post.hashtags", len(tags))

        POST_INGESTION_TOTAL.inc()
        logger.info("Post created: %s by user %s (%d hashtags)", post.id, post.user_id, len(tags))
        return _build_post_response(post, author, tags)


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(post_id: str, db: AsyncSession = Depends(get_db)):
    post = await db.get(Post, post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return _build_post_response(post, post.author, await _post_tags(db, post_id))


@router.post("/{post_id}/like", status_code=status.HTTP_204_NO_CONTENT)
async def like_post(post_id: str, body: LikeRequest, db: AsyncSession = Depends(get_db)):
    """Like a post — idempotent."""
    with tracer.start_as_current_span("like_post"):
        post = await db.get(Post, post_id)
        if not post:
            raise HTTPException(status_code=404, detail="Post not found")
        if not await db.get(Profile, body.user_id):
            raise HTTPException(status_code=404, detail="User not found")

        existing = await db.execute(
            select(Like).where(Like.user_id == body.user_id, Like.post_id == post_id)
        )
        if existing.scalar_one_or_none():
            return  # already liked

        db.add(Like(user_id=body.user_id, post_id=post_id))
        await db.flush()


@router.post(
    "/{post_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def comment_on_post(post_id: str, body: CommentCreate, db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("comment_on_post"):
        post = await db.get(Post, post_id)
        if not post:
            raise HTTPException(status_code=404, detail="Post not found")
        if not await db.get(Profile, body.user_id):
            raise HTTPException(status_code=404, detail="User not found")

        comment = Comment(post_id=post_id, user_id=body.user_id, content=body.content)
        db.add(comment)
        await db.flush()
        logger.info("Comment %s on post %s by %s", comment.id, post_id, body.user_id)
        return comment
