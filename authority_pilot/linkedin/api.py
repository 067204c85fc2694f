"""LinkedIn REST API client."""
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
from loguru import logger

from authority_pilot.config import settings
from authority_pilot.database.models import LinkedInAccount
from authority_pilot.errors import LinkedInAPIError, TokenExpiredError

PROFILE_PROJECTION = (
    "/people/~:(id,firstName,lastName,headline,"
    "profilePicture(displayImage~:playableStreams))"
)
UGC_POST_PREFIX = "urn:li:ugcPost:"
VISIBILITY_OPTIONS = ("PUBLIC", "CONNECTIONS", "LOGGED_IN_MEMBERS")


def build_share_url(post_id: str) -> str:
    """Public feed URL for a UGC post id."""
    return f"https://www.linkedin.com/feed/update/{post_id.replace(UGC_POST_PREFIX, '')}/"


def get_profile_picture_url(profile: Dict[str, Any]) -> Optional[str]:
    """Largest display image identifier from a profile projection."""
    elements = (
        profile.get("profilePicture", {})
        .get("displayImage~", {})
        .get("elements", [])
    )
    if not elements:
        return None
    identifiers = elements[-1].get("identifiers") or []
    if not identifiers:
        return None
    return identifiers[0].get("identifier")


class LinkedInAPI:
    """Thin async wrapper around the LinkedIn v2 REST API."""

    def __init__(self, access_token: str, base_url: Optional[str] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize API client.

        Args:
            access_token: OAuth access token of the member
            base_url: Override for the API base URL
            transport: Optional httpx transport (used by tests)
        """
        self.access_token = access_token
        self.base_url = (base_url or settings.linkedin_api_base).rstrip("/")
        self._transport = transport

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-Restli-Protocol-Version": "2.0.0",
        }

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None,
                       params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        """Send a request and raise LinkedInAPIError on non-2xx status."""
        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=settings.linkedin_timeout,
            transport=self._transport
        ) as client:
            response = await client.request(method, path, json=json, params=params)

        if response.is_error:
            try:
                details = response.json()
            except ValueError:
                details = response.text
            logger.error(f"LinkedIn API {method} {path} failed ({response.status_code}): {details}")
            raise LinkedInAPIError(
                f"LinkedIn API error: {response.status_code}",
                status_code=response.status_code,
                details=details
            )
        return response

    async def get_profile(self) -> Dict[str, Any]:
        """Get the authenticated member's profile."""
        response = await self._request("GET", PROFILE_PROJECTION)
        return response.json()

    async def create_post(self, text: str, visibility: str = "PUBLIC") -> Dict[str, str]:
        """
        Publish a text-only UGC post.

        Args:
            text: Post commentary
            visibility: PUBLIC, CONNECTIONS or LOGGED_IN_MEMBERS

        Returns:
            Dictionary with id, activity and share_url
        """
        profile = await self.get_profile()
        payload = {
            "author": f"urn:li:person:{profile['id']}",
            "lifecycleState": "PUBLISHED",
            "specificContent": {
                "com.linkedin.ugc.ShareContent": {
                    "shareCommentary": {"text": text},
                    "shareMediaCategory": "NONE",
                }
            },
            "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": visibility},
        }

        response = await self._request("POST", "/ugcPosts", json=payload)
        body = response.json() if response.content else {}
        post_id = body.get("id") or response.headers.get("x-restli-id", "")
        activity = response.headers.get("x-restli-id") or post_id

        logger.info(f"Published LinkedIn post: {post_id}")
        return {"id": post_id, "activity": activity, "share_url": build_share_url(post_id)}

    async def fetch_post_metrics(self, post_urn: str) -> Dict[str, int]:
        """Get likes/comments for a post, raising when LinkedIn is unavailable."""
        response = await self._request("GET", f"/socialActions/{quote(post_urn, safe='')}")
        data = response.json()
        return {
            "likes": data.get("likesSummary", {}).get("totalLikes", 0),
            "comments": data.get("commentsSummary", {}).get("aggregatedTotalComments", 0),
            "shares": data.get("sharesSummary", {}).get("totalShares", 0),
            "impressions": data.get("impressionCount", 0),
        }

    async def get_post_metrics(self, post_urn: str) -> Dict[str, int]:
        """Get likes/comments for a post; zeros when unavailable."""
        try:
            return await self.fetch_post_metrics(post_urn)
        except (LinkedInAPIError, httpx.HTTPError) as e:
            logger.warning(f"Could not fetch metrics for {post_urn}: {e}")
            return {"likes": 0, "comments": 0, "shares": 0, "impressions": 0}

    async def like_post(self, post_urn: str, actor_id: str) -> bool:
        """Like a post as the member."""
        try:
            await self._request(
                "POST",
                f"/socialActions/{quote(post_urn, safe='')}/likes",
                json={"actor": f"urn:li:person:{actor_id}", "object": post_urn}
            )
            return True
        except (LinkedInAPIError, httpx.HTTPError) as e:
            logger.warning(f"Failed to like {post_urn}: {e}")
            return False

    async def comment_on_post(self, post_urn: str, actor_id: str, text: str) -> bool:
        """Comment on a post as the member."""
        try:
            await self._request(
                "POST",
                f"/socialActions/{quote(post_urn, safe='')}/comments",
                json={"actor": f"urn:li:person:{actor_id}", "message": {"text": text}}
            )
            return True
        except (LinkedInAPIError, httpx.HTTPError) as e:
            logger.warning(f"Failed to comment on {post_urn}: {e}")
            return False

    async def get_network_metrics(self) -> Dict[str, int]:
        """Connection count for the member; zeros when unavailable."""
        try:
            response = await self._request("GET", "/connections", params={"q": "viewer", "count": 0})
            data = response.json()
        except (LinkedInAPIError, httpx.HTTPError) as e:
            logger.warning(f"Could not fetch network metrics: {e}")
            return {"connections": 0}
        return {"connections": data.get("paging", {}).get("total", 0)}


def create_linkedin_api(account: LinkedInAccount) -> LinkedInAPI:
    """Build an API client for a stored account, rejecting expired tokens."""
    if account.is_expired():
        raise TokenExpiredError("LinkedIn token expired. Please reconnect your account.")
    return LinkedInAPI(account.access_token)
