"""LinkedIn integration module."""
from authority_pilot.linkedin.api import (
    LinkedInAPI,
    create_linkedin_api,
    build_share_url,
    get_profile_picture_url,
    VISIBILITY_OPTIONS,
)
from authority_pilot.linkedin.publishing import (
    linkedin_platform_data,
    mark_content_published,
    publish_scheduled_post,
)

__all__ = [
    "LinkedInAPI",
    "create_linkedin_api",
    "build_share_url",
    "get_profile_picture_url",
    "VISIBILITY_OPTIONS",
    "linkedin_platform_data",
    "mark_content_published",
    "publish_scheduled_post",
]
