"""Publishing posts to LinkedIn and recording the outcome."""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from authority_pilot.database import db, LinkedInAccount, LinkedInPostRecord
from authority_pilot.errors import LinkedInAPIError, TokenExpiredError
from authority_pilot.linkedin.api import create_linkedin_api


def linkedin_platform_data(result: Dict[str, str], published_at: datetime) -> Dict[str, Any]:
    return {
        "linkedin": {
            "postId": result["id"],
            "activityId": result["activity"],
            "url": result["share_url"],
            "publishedAt": published_at.isoformat(),
        }
    }


async def mark_content_published(content_post_id: Any, result: Dict[str, str], published_at: datetime) -> None:
    """Flag the source content post as published on LinkedIn."""
    await db.update_content_post(content_post_id, {
        "status": "published",
        "published_at": published_at.isoformat(),
        "platform_data": linkedin_platform_data(result, published_at),
    })


async def publish_scheduled_post(record: LinkedInPostRecord,
                                 account: Optional[LinkedInAccount]) -> LinkedInPostRecord:
    """
    Publish a scheduled row and update it to published or failed.

    Args:
        record: Row of linkedin_posts in scheduled state
        account: Active LinkedIn account of the row's owner, if any

    Returns:
        The updated row
    """
    if account is None:
        logger.warning(f"Scheduled post {record.id} failed: LinkedIn account not connected")
        updated = await db.update_linkedin_post(record.id, {"status": "failed"})
        return updated or record

    try:
        api = create_linkedin_api(account)
        result = await api.create_post(record.content)
    except (TokenExpiredError, LinkedInAPIError, httpx.HTTPError) as e:
        logger.error(f"Scheduled post {record.id} failed: {e}")
        updated = await db.update_linkedin_post(record.id, {"status": "failed"})
        return updated or record

    published_at = datetime.now(timezone.utc)
    updated = await db.update_linkedin_post(record.id, {
        "status": "published",
        "linkedin_post_id": result["id"],
        "linkedin_activity_id": result["activity"],
        "linkedin_url": result["share_url"],
        "published_at": published_at.isoformat(),
    })
    if record.content_post_id:
        await mark_content_published(record.content_post_id, result, published_at)
    logger.info(f"Scheduled post {record.id} published: {result['share_url']}")
    return updated or record
