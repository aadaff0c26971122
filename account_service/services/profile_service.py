"""Read-side aggregation queries: channel profile and watch history."""

from typing import Optional
from uuid import UUID

import structlog

from account_service.database import get_pool
from account_service.errors import ValidationError
from account_service.models.user import ChannelProfile, VideoOwner, WatchHistoryVideo

logger = structlog.get_logger(__name__)

# Stage 1 matches the channel by username; the two lateral stages join
# subscriptions once as channel and once as subscriber and reduce each
# side to a count. ``is_subscribed`` is whether the viewer is among the
# channel's subscribers.
CHANNEL_PROFILE_QUERY = """
    SELECT u.id,
           u.full_name,
           u.username,
           u.email,
           u.avatar_url,
           u.cover_image_url,
           subscribers.subscribers_count,
           subscribers.is_subscribed,
           subscribed_to.channels_subscribed_to_count
    FROM users u
    LEFT JOIN LATERAL (
        SELECT COUNT(*) AS subscribers_count,
               COALESCE(BOOL_OR(s.subscriber_id = $2::uuid), FALSE) AS is_subscribed
        FROM subscriptions s
        WHERE s.channel_id = u.id
    ) subscribers ON TRUE
    LEFT JOIN LATERAL (
        SELECT COUNT(*) AS channels_subscribed_to_count
        FROM subscriptions s
        WHERE s.subscriber_id = u.id
    ) subscribed_to ON TRUE
    WHERE u.username = $1
"""

# watch_history is unnested WITH ORDINALITY and the result is ordered by
# that position, so the join never reorders entries. The owner join is
# collapsed to its first match with LIMIT 1.
WATCH_HISTORY_QUERY = """
    SELECT v.id,
           v.video_file,
           v.thumbnail,
           v.title,
           v.description,
           v.duration,
           v.views,
           v.is_published,
           v.created_at,
           owner.id AS owner_id,
           owner.full_name AS owner_full_name,
           owner.username AS owner_username,
           owner.avatar_url AS owner_avatar_url
    FROM users u
    CROSS JOIN LATERAL unnest(u.watch_history) WITH ORDINALITY AS history(video_id, position)
    JOIN videos v ON v.id = history.video_id
    LEFT JOIN LATERAL (
        SELECT o.id, o.full_name, o.username, o.avatar_url
        FROM users o
        WHERE o.id = v.owner_id
        ORDER BY o.id
        LIMIT 1
    ) owner ON TRUE
    WHERE u.id = $1
    ORDER BY history.position ASC
"""


def _row_to_video(row) -> WatchHistoryVideo:
    owner = None
    if row["owner_id"] is not None:
        owner = VideoOwner(
            id=row["owner_id"],
            full_name=row["owner_full_name"],
            username=row["owner_username"],
            avatar_url=row["owner_avatar_url"],
        )

    return WatchHistoryVideo(
        id=row["id"],
        video_file=row["video_file"],
        thumbnail=row["thumbnail"],
        title=row["title"],
        description=row["description"],
        duration=row["duration"],
        views=row["views"],
        is_published=row["is_published"],
        created_at=row["created_at"],
        owner=owner,
    )


class ProfileAggregator:
    """Channel profile and watch-history queries joined in PostgreSQL."""

    async def get_channel_profile(
        self, viewer_id: Optional[UUID], channel_username: str
    ) -> Optional[ChannelProfile]:
        """Build the public channel page for a username.

        Args:
            viewer_id: The requesting user, used for ``is_subscribed``
            channel_username: Channel to look up (case-insensitive)

        Returns:
            ChannelProfile, or None when no user has that username

        Raises:
            ValidationError: If the username is blank
        """
        if not channel_username or not channel_username.strip():
            raise ValidationError("username is missing")

        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                CHANNEL_PROFILE_QUERY,
                channel_username.strip().lower(),
                viewer_id,
            )

        if row is None:
            logger.info("channel_not_found", username=channel_username)
            return None

        return ChannelProfile(
            id=row["id"],
            full_name=row["full_name"],
            username=row["username"],
            email=row["email"],
            avatar_url=row["avatar_url"],
            cover_image_url=row["cover_image_url"] or None,
            subscribers_count=row["subscribers_count"],
            channels_subscribed_to_count=row["channels_subscribed_to_count"],
            is_subscribed=bool(row["is_subscribed"]),
        )

    async def get_watch_history(self, user_id: UUID) -> list[WatchHistoryVideo]:
        """Resolve a user's watch history into videos with owner profiles.

        Entries keep the order of the stored history. Ids that no longer
        resolve to a video are skipped.
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(WATCH_HISTORY_QUERY, user_id)

        return [_row_to_video(row) for row in rows]
