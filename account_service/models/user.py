"""User, channel and watch-history view models.

None of these carry ``password_hash`` or the refresh-token slot; those
columns never leave ``CredentialStore``.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class User(CamelModel):
    """Safe view of a registered user."""

    id: UUID
    username: str
    email: str
    full_name: str
    avatar_url: str = Field(alias="avatar")
    cover_image_url: Optional[str] = Field(default=None, alias="coverImage")
    watch_history: List[UUID] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ChannelProfile(CamelModel):
    """Public channel page for a user, with subscription counts."""

    id: UUID
    full_name: str
    username: str
    email: str
    avatar_url: str = Field(alias="avatar")
    cover_image_url: Optional[str] = Field(default=None, alias="coverImage")
    subscribers_count: int = Field(ge=0)
    channels_subscribed_to_count: int = Field(ge=0)
    is_subscribed: bool = False


class VideoOwner(CamelModel):
    """Public owner projection nested in a watch-history entry."""

    id: UUID
    full_name: str
    username: str
    avatar_url: str = Field(alias="avatar")


class WatchHistoryVideo(CamelModel):
    """A video from a user's watch history, with its owner resolved."""

    id: UUID
    video_file: str
    thumbnail: str
    title: str
    description: str
    duration: float
    views: int
    is_published: bool
    created_at: datetime
    owner: Optional[VideoOwner] = None
