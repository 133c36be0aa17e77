"""
Profile & social graph endpoints:
  POST  /users              — create a profile
  GET   /users/{id}         — fetch a profile
  PATCH /users/{id}         — edit a profile (incl. verification flag)
  POST  /users/follow       — follow another user
  POST  /users/unfollow     — unfollow
  GET   /users/{id}/followers — list followers
  GET   /users/{id}/following — list followed users
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from opentelemetry import trace
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models import Follow, Profile
from app.schemas import FollowRequest, ProfileCreate, ProfileResponse, ProfileUpdate

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.post("/", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
async def create_profile(body: ProfileCreate, db: AsyncSession = Depends(get_db)):
    """
    Register a profile.

    The id normally comes from the auth provider's signup response so that
    bearer tokens resolve to this row; handles are unique.
    """
    with tracer.start_as_current_span("create_profile"):
        existing = await db.execute(
            select(Profile).where(Profile.user_handle == body.user_handle)
        )
        if existing.scalar_one_or_none():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Handle '{body.user_handle}' already taken",
            )
        if body.id and await db.get(Profile, body.id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Profile {body.id} already exists",
            )

        profile = Profile(**body.model_dump(exclude_none=True))
        db.add(profile)
        await db.flush()  # get id before commit

        logger.info("Created profile %s (id=%s)", profile.user_handle, profile.id)
        return profile


@router.get("/{user_id}", response_model=ProfileResponse)
async def get_profile(user_id: str, db: AsyncSession = Depends(get_db)):
    profile = await db.get(Profile, user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="User not found")
    return profile


@router.patch("/{user_id}", response_model=ProfileResponse)
async def update_profile(user_id: str, body: ProfileUpdate, db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("update_profile"):
        profile = await db.get(Profile, user_id)
        if not profile:
            raise HTTPException(status_code=404, detail="User not found")

        for name, value in body.model_dump(exclude_unset=True).items():
            setattr(profile, name, value)
        await db.flush()
        await db.refresh(profile)
        return profile


@router.post("/follow", status_code=status.HTTP_204_NO_CONTENT)
async def follow_user(body: FollowRequest, db: AsyncSession = Depends(get_db)):
    """Create a follower → following edge in the social graph."""
    with tracer.start_as_current_span("follow_user"):
        if body.follower_id == body.following_id:
            raise HTTPException(status_code=400, detail="Cannot follow yourself")

        # Check both users exist
        for uid in (body.follower_id, body.following_id):
            if not await db.get(Profile, uid):
                raise HTTPException(status_code=404, detail=f"User {uid} not found")

        existing = await db.execute(
            select(Follow).where(
                Follow.follower_id == body.follower_id,
                Follow.following_id == body.following_id,
            )
        )
        if existing.scalar_one_or_none():
            return  # already following — idempotent

        db.add(Follow(follower_id=body.follower_id, following_id=body.following_id))
        logger.info("%s followed %s", body.follower_id, body.following_id)


@router.post("/unfollow", status_code=status.HTTP_204_NO_CONTENT)
async def unfollow_user(body: FollowRequest, db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("unfollow_user"):
        await db.execute(
            delete(Follow).where(
                Follow.follower_id == body.follower_id,
                Follow.following_id == body.following_id,
            )
        )


@router.get("/{user_id}/followers")
async def list_followers(user_id: str, db: AsyncSession = Depends(get_db)):
    rows = await db.execute(
        select(Follow.follower_id).where(Follow.following_id == user_id)
    )
    return {"user_id": user_id, "followers": [r[0] for r in rows.all()]}


@router.get("/{user_id}/following")
async def list_following(user_id: str, db: AsyncSession = Depends(get_db)):
    rows = await db.execute(
        select(Follow.following_id).where(Follow.follower_id == user_id)
    )
    return {"user_id": user_id, "following": [r[0] for r in rows.all()]}
