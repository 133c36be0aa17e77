"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.
"""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


# ──────────────────────────── Profiles ────────────────────────────────────

class ProfileCreate(BaseModel):
    # Normally the id issued by the auth provider; generated when omitted
    id: Optional[str] = None
    user_name: str = Field(..., min_length=1, max_length=255)
    user_handle: str = Field(..., min_length=3, max_length=100)
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None


class ProfileUpdate(BaseModel):
    user_name: Optional[str] = Field(None, min_length=1, max_length=255)
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    is_verified: Optional[bool] = None


class ProfileResponse(BaseModel):
    id: str
    user_name: str
    user_handle: str
    avatar_url: Optional[str]
    bio: Optional[str]
    location: Optional[str]
    website: Optional[str]
    is_verified: bool
    created_at: datetime

    class Config:
        from_attributes = True


class FollowRequest(BaseModel):
    follower_id: str
    following_id: str


# ──────────────────────────── Posts ───────────────────────────────────────

class PostCreate(BaseModel):
    user_id: str
    content: str = Field(..., min_length=1)
    image_url: Optional[str] = None


class PostResponse(BaseModel):
    id: str
    user_id: str
    user_handle: Optional[str] = None
    user_name: Optional[str] = None
    content: Optional[str]
    image_url: Optional[str]
    hashtags: list[str] = []
    created_at: datetime


class LikeRequest(BaseModel):
    user_id: str


class CommentCreate(BaseModel):
    user_id: str
    content: str = Field(..., min_length=1)


class CommentResponse(BaseModel):
    id: str
    post_id: str
    user_id: str
    content: str
    created_at: datetime

    class Config:
        from_attributes = True


# ──────────────────────────── Suggestions ─────────────────────────────────

class SuggestionRequest(BaseModel):
    limit: Optional[int] = Field(None, ge=1, strict=True)


class SuggestedUser(BaseModel):
    """A ranked candidate — public profile plus the signals behind its rank."""
    id: str
    user_name: str
    user_handle: str
    avatar_url: Optional[str]
    bio: Optional[str]
    location: Optional[str]
    is_verified: bool
    score: int
    # camelCase is part of the public response contract
    mutualConnections: int


class SuggestionsResponse(BaseModel):
    suggestions: list[SuggestedUser]


class InteractionCreate(BaseModel):
    suggested_user_id: str
    interaction_type: Literal["shown", "followed", "dismissed"]


class InteractionResponse(BaseModel):
    id: str
    user_id: str
    suggested_user_id: str
    interaction_type: str
    created_at: datetime

    class Config:
        from_attributes = True
