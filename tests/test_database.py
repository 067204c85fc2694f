"""Tests for the rows the Supabase client writes."""
from datetime import datetime, timezone
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from authority_pilot.database import (
    DatabaseClient,
    LinkedInEngagement,
    LinkedInPostRecord,
    VoiceProfile,
)

LINKEDIN_POST_COLUMNS = {
    "id", "user_id", "content_post_id", "linkedin_post_id", "linkedin_activity_id", "content", "status",
    "scheduled_for", "published_at", "linkedin_url", "performance_data", "created_at", "updated_at",
}
LINKEDIN_ENGAGEMENT_COLUMNS = {
    "id", "user_id", "linkedin_post_id", "linkedin_post_author_id", "engagement_type", "our_content",
    "engagement_id", "status", "engaged_at", "response_data", "ai_generated", "created_at",
}


@pytest.fixture
def supabase():
    return MagicMock()


@pytest.fixture
def database(supabase):
    client = DatabaseClient()
    client._client = supabase
    return client


def returns(supabase, row):
    supabase.table.return_value.insert.return_value.execute.return_value.data = [row]


def inserted(supabase):
    return supabase.table.return_value.insert.call_args.args[0]


@pytest.mark.parametrize("record", [
    LinkedInPostRecord(user_id=uuid4(), content="Tomorrow", status="scheduled",
                       scheduled_for=datetime(2026, 3, 5, 9, tzinfo=timezone.utc)),
    LinkedInPostRecord(user_id=uuid4(), content="Now", status="published", linkedin_post_id="urn:li:ugcPost:1",
                       linkedin_activity_id="urn:li:share:1", linkedin_url="https://www.linkedin.com/feed/update/1/",
                       published_at=datetime(2026, 3, 5, 9, tzinfo=timezone.utc), content_post_id=uuid4()),
    LinkedInPostRecord(user_id=uuid4(), content="Broken", status="failed"),
])
async def test_linkedin_post_insert_only_uses_table_columns(database, supabase, record):
    returns(supabase, {"id": str(uuid4()), "user_id": str(record.user_id), "content": record.content,
                       "status": record.status})

    await database.create_linkedin_post(record)

    supabase.table.assert_called_with("linkedin_posts")
    assert set(inserted(supabase)) <= LINKEDIN_POST_COLUMNS


async def test_engagement_insert_only_uses_table_columns(database, supabase):
    engagement = LinkedInEngagement(user_id=uuid4(), linkedin_post_id="urn:li:ugcPost:1",
                                    linkedin_post_author_id="author", engagement_type="comment",
                                    our_content="Nice", engaged_at=datetime(2026, 3, 5, tzinfo=timezone.utc))
    returns(supabase, {"id": str(uuid4()), "user_id": str(engagement.user_id),
                       "linkedin_post_id": "urn:li:ugcPost:1", "engagement_type": "comment"})

    await database.create_linkedin_engagement(engagement)

    assert set(inserted(supabase)) <= LINKEDIN_ENGAGEMENT_COLUMNS


async def test_new_voice_profile_stores_writing_samples(database, supabase):
    user_id = uuid4()
    samples = ["First sample long enough", "Second sample long enough"]
    supabase.table.return_value.select.return_value.eq.return_value.execute.return_value.data = []
    returns(supabase, {"id": str(uuid4()), "user_id": str(user_id), "writing_samples": samples})

    saved = await database.save_voice_profile(VoiceProfile(user_id=user_id, writing_samples=samples))

    assert inserted(supabase)["writing_samples"] == samples
    assert saved.writing_samples == samples
