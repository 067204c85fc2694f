"""Tests for the LinkedIn client and scheduled publishing."""
import json
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import httpx
import pytest

from authority_pilot.database import LinkedInAccount, LinkedInPostRecord
from authority_pilot.errors import LinkedInAPIError, TokenExpiredError
from authority_pilot.linkedin import (
    LinkedInAPI,
    build_share_url,
    create_linkedin_api,
    get_profile_picture_url,
    publish_scheduled_post,
)
from authority_pilot.linkedin import publishing

POST_ID = "urn:li:ugcPost:7001"


def linkedin_handler(requests, post_status=201):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path.startswith("/v2/people/"):
            return httpx.Response(200, json={"id": "abc123"})
        if request.url.path == "/v2/ugcPosts":
            if post_status >= 400:
                return httpx.Response(post_status, json={"message": "Duplicate post"})
            return httpx.Response(post_status, json={"id": POST_ID}, headers={"x-restli-id": "urn:li:share:42"})
        if request.url.path.startswith("/v2/socialActions/"):
            return httpx.Response(200, json={
                "likesSummary": {"totalLikes": 7},
                "commentsSummary": {"aggregatedTotalComments": 2},
            })
        return httpx.Response(404, text="not found")
    return handler


def client(requests, post_status=201):
    return LinkedInAPI("token-1", "https://api.linkedin.com/v2",
                       transport=httpx.MockTransport(linkedin_handler(requests, post_status)))


def account(**overrides):
    return LinkedInAccount(user_id=uuid4(), access_token="token-1", **overrides)


def test_share_url_and_picture():
    assert build_share_url(POST_ID) == "https://www.linkedin.com/feed/update/7001/"
    profile = {"profilePicture": {"displayImage~": {"elements": [
        {"identifiers": [{"identifier": "small.jpg"}]},
        {"identifiers": [{"identifier": "large.jpg"}]},
    ]}}}
    assert get_profile_picture_url(profile) == "large.jpg"
    assert get_profile_picture_url({}) is None


async def test_create_post_sends_ugc_payload():
    requests = []

    result = await client(requests).create_post("Hello LinkedIn", "CONNECTIONS")

    assert result == {
        "id": POST_ID,
        "activity": "urn:li:share:42",
        "share_url": "https://www.linkedin.com/feed/update/7001/",
    }
    post = requests[-1]
    assert post.headers["Authorization"] == "Bearer token-1"
    assert post.headers["X-Restli-Protocol-Version"] == "2.0.0"
    payload = json.loads(post.content)
    assert payload["author"] == "urn:li:person:abc123"
    assert payload["visibility"] == {"com.linkedin.ugc.MemberNetworkVisibility": "CONNECTIONS"}
    assert payload["specificContent"]["com.linkedin.ugc.ShareContent"]["shareCommentary"] == {"text": "Hello LinkedIn"}


async def test_error_status_raises_with_details():
    with pytest.raises(LinkedInAPIError) as excinfo:
        await client([], post_status=422).create_post("Hello")

    assert excinfo.value.status_code == 422
    assert excinfo.value.details == {"message": "Duplicate post"}


async def test_metrics_and_fallbacks():
    api = client([])

    assert await api.get_post_metrics(POST_ID) == {"likes": 7, "comments": 2, "shares": 0, "impressions": 0}
    assert await api.get_network_metrics() == {"connections": 0}
    assert await api.like_post(POST_ID, "abc123") is True


async def test_fetch_metrics_raises_where_get_metrics_falls_back():
    api = LinkedInAPI("token-1", "https://api.linkedin.com/v2",
                      transport=httpx.MockTransport(lambda request: httpx.Response(503, text="unavailable")))

    with pytest.raises(LinkedInAPIError):
        await api.fetch_post_metrics(POST_ID)
    assert await api.get_post_metrics(POST_ID) == {"likes": 0, "comments": 0, "shares": 0, "impressions": 0}


async def test_scheduled_posts_publish_publicly(mock_db, monkeypatch):
    requests = []
    monkeypatch.setattr(publishing, "create_linkedin_api", lambda acc: client(requests))
    record = LinkedInPostRecord(id=uuid4(), user_id=uuid4(), content="Hello", status="scheduled")

    await publish_scheduled_post(record, account())

    payload = json.loads(requests[-1].content)
    assert payload["visibility"] == {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"}


def test_expired_account_is_rejected():
    expired = account(expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))

    with pytest.raises(TokenExpiredError):
        create_linkedin_api(expired)
    assert isinstance(create_linkedin_api(account()), LinkedInAPI)


async def test_publish_scheduled_post(mock_db, monkeypatch):
    requests = []
    monkeypatch.setattr(publishing, "create_linkedin_api", lambda acc: client(requests))
    content_post_id = uuid4()
    record = LinkedInPostRecord(id=uuid4(), user_id=uuid4(), content_post_id=content_post_id,
                                content="Scheduled hello", status="scheduled")

    await publish_scheduled_post(record, account())

    record_id, changes = mock_db.update_linkedin_post.call_args.args
    assert record_id == record.id
    assert changes["status"] == "published"
    assert changes["linkedin_post_id"] == POST_ID
    assert changes["linkedin_url"] == "https://www.linkedin.com/feed/update/7001/"
    content_id, content_changes = mock_db.update_content_post.call_args.args
    assert content_id == content_post_id
    assert content_changes["platform_data"]["linkedin"]["activityId"] == "urn:li:share:42"


async def test_publish_scheduled_post_records_failure(mock_db, monkeypatch):
    monkeypatch.setattr(publishing, "create_linkedin_api", lambda acc: client([], post_status=500))
    record = LinkedInPostRecord(id=uuid4(), user_id=uuid4(), content="Hello", status="scheduled")

    result = await publish_scheduled_post(record, account())

    assert result is record
    mock_db.update_linkedin_post.assert_awaited_once_with(
        record.id, {"status": "failed"}
    )
    mock_db.update_content_post.assert_not_awaited()


async def test_publish_with_expired_token_fails_row(mock_db):
    record = LinkedInPostRecord(id=uuid4(), user_id=uuid4(), content="Hello", status="scheduled")
    expired = account(expires_at=datetime.now(timezone.utc) - timedelta(days=1))

    await publish_scheduled_post(record, expired)

    mock_db.update_linkedin_post.assert_awaited_once_with(record.id, {"status": "failed"})
