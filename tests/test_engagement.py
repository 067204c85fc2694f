"""Tests for the engagement agent."""
import json
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from authority_pilot.agents import engagement
from authority_pilot.agents.engagement import (
    FALLBACK_COMMENT,
    EngagementOpportunity,
    engagement_agent,
    predict_engagement_outcome,
)
from authority_pilot.database import LinkedInAccount, LinkedInEngagement, LinkedInPostRecord, Profile


@pytest.fixture
def me(voice_profile):
    return Profile(id=voice_profile.user_id, industry="fintech")


@pytest.fixture
def peers():
    return {
        "fintech": Profile(id=uuid4(), industry="fintech"),
        "retail": Profile(id=uuid4(), industry="retail"),
    }


def published(author, content, post_id=None, **metrics):
    return LinkedInPostRecord(
        id=uuid4(), user_id=author.id, content=content, status="published",
        linkedin_post_id=post_id or f"urn:li:ugcPost:{uuid4().hex[:8]}", performance_data=metrics or None
    )


@pytest.fixture
def linkedin(monkeypatch):
    api = MagicMock()
    api.get_profile = AsyncMock(return_value={"id": "member42"})
    api.comment_on_post = AsyncMock(return_value=True)
    api.like_post = AsyncMock(return_value=True)
    monkeypatch.setattr(engagement, "create_linkedin_api", lambda account: api)
    return api


def test_opportunities_skip_own_and_engaged_posts(me, peers, voice_profile):
    posts = [
        published(me, "Ship small, ship often"),
        published(peers["fintech"], "We ship small and ship often", post_id="urn:li:ugcPost:done"),
        published(peers["retail"], "Store layouts for the holidays", likes=300, comments=50),
        published(peers["fintech"], "Ship small, ship often in payments"),
    ]
    by_id = {str(p.id): p for p in peers.values()}

    opportunities = engagement_agent.find_opportunities(me, voice_profile, posts, by_id, {"urn:li:ugcPost:done"})

    assert [o.content for o in opportunities] == [
        "Ship small, ship often in payments",
        "Store layouts for the holidays",
    ]
    assert opportunities[0].strategic_value == 0.8
    assert opportunities[1].authority_gain == 10.0


def test_predicted_value():
    opportunity = EngagementOpportunity(
        post_id="p", author_id="a", content="", relevance=1.0, strategic_value=0.8, authority_gain=0.0
    )

    assert predict_engagement_outcome(opportunity, {"value_added": True}) == pytest.approx(0.8)
    assert predict_engagement_outcome(opportunity, {"value_added": False}) == pytest.approx(0.6)


async def test_comment_falls_back_without_model_output(mock_openai, voice_profile):
    opportunity = EngagementOpportunity(
        post_id="p", author_id="a", content="Hello", relevance=0.5, strategic_value=0.4, authority_gain=0.0
    )

    response = await engagement_agent.craft_engagement_response(opportunity, voice_profile)

    assert response == {"comment": FALLBACK_COMMENT, "value_added": False}
    assert mock_openai.call_args.kwargs["temperature"] == 0.7
    assert mock_openai.call_args.kwargs["max_tokens"] == 500


async def test_valuable_post_gets_a_comment(me, peers, voice_profile, mock_db, mock_openai, linkedin):
    mock_openai.return_value = json.dumps({"comment": "Same lesson here with payouts.", "value_added": True})
    post = published(peers["fintech"], "Ship small, ship often")
    account = LinkedInAccount(user_id=me.id, account_id="abc123", access_token="token")

    result = await engagement_agent.engage_for_user(
        me, voice_profile, account, [post], {str(p.id): p for p in peers.values()}
    )

    assert result == {"opportunities": 1, "comments": 1, "likes": 0}
    linkedin.comment_on_post.assert_awaited_once_with(post.linkedin_post_id, "abc123", "Same lesson here with payouts.")
    recorded: LinkedInEngagement = mock_db.create_linkedin_engagement.call_args.args[0]
    assert recorded.engagement_type == "comment"
    assert recorded.status == "completed"
    assert recorded.linkedin_post_author_id == str(peers["fintech"].id)


async def test_low_value_post_gets_a_like(me, peers, voice_profile, mock_db, mock_openai, linkedin):
    linkedin.like_post.return_value = False
    post = published(peers["retail"], "Store layouts for the holidays")
    account = LinkedInAccount(user_id=me.id, access_token="token")

    result = await engagement_agent.engage_for_user(
        me, voice_profile, account, [post], {str(p.id): p for p in peers.values()}
    )

    assert result == {"opportunities": 1, "comments": 0, "likes": 0}
    # No account_id stored, so the actor comes from the profile call
    linkedin.like_post.assert_awaited_once_with(post.linkedin_post_id, "member42")
    recorded: LinkedInEngagement = mock_db.create_linkedin_engagement.call_args.args[0]
    assert recorded.engagement_type == "like"
    assert recorded.status == "failed"
    assert recorded.our_content is None


async def test_nothing_to_engage_with(me, voice_profile, mock_db, linkedin):
    account = LinkedInAccount(user_id=me.id, access_token="token")

    result = await engagement_agent.engage_for_user(me, voice_profile, account, [], {})

    assert result == {"opportunities": 0, "comments": 0, "likes": 0}
    linkedin.get_profile.assert_not_awaited()
