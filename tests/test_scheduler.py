"""Tests for the loop controller and the autonomous scheduler."""
import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from authority_pilot import scheduler as scheduler_module
from authority_pilot.agents import automation_engine, collective_intelligence, communication_bus, human_loop, learning_engine
from authority_pilot.database import ContentPost, LinkedInAccount, LinkedInPostRecord, Profile, SystemAlert
from authority_pilot.errors import LinkedInAPIError, NotFoundError
from authority_pilot.scheduler import (
    AutonomousScheduler,
    ContentPreferences,
    EmergencyThresholds,
    LoopController,
    SchedulerConfig,
    UserActivity,
    next_posting_windows,
)

NOW = datetime(2026, 3, 5, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def controller():
    return LoopController()


@pytest.fixture
def scheduler():
    return AutonomousScheduler(SchedulerConfig())


def fail(controller, *loop_ids):
    for loop_id in loop_ids:
        controller.status[loop_id].status = "failed"


# ==================== LOOP CONTROLLER ====================

async def test_successful_run_updates_metrics(controller):
    controller.handlers["publishing"] = AsyncMock(return_value={"published": 2})

    result = await controller.execute_loop("publishing")

    status = controller.status["publishing"]
    assert result == {"published": 2}
    assert status.status == "idle"
    assert status.run_count == 1
    assert status.success_rate == pytest.approx(1.0)
    assert status.performance_score > 0.8
    assert status.adaptive_multiplier == pytest.approx(1.1)
    assert status.next_run > status.last_run
    completed = communication_bus.get_history()[-1]
    assert completed.type == "loop_completed"
    assert completed.payload == {"loopId": "publishing", "summary": {"published": 2}}


async def test_non_adaptive_loop_keeps_its_pace(controller):
    controller.handlers["orchestration"] = AsyncMock(return_value={})

    await controller.execute_loop("orchestration")

    assert controller.status["orchestration"].adaptive_multiplier == 1.0


async def test_failed_run_raises_alert(controller):
    controller.handlers["analytics"] = AsyncMock(side_effect=RuntimeError("metrics API down"))

    assert await controller.execute_loop("analytics") is None

    status = controller.status["analytics"]
    assert status.status == "failed"
    assert status.last_error == "metrics API down"
    assert status.success_rate == pytest.approx(0.9)
    alert = controller.alerts[-1]
    assert alert.severity == "error"
    assert alert.source == "analytics"
    assert "metrics API down" in alert.message


async def test_run_longer_than_max_duration_fails(controller):
    async def slow():
        await asyncio.sleep(1)

    controller.handlers["automation"] = slow
    controller.loops["automation"].max_duration = 0.01

    await controller.execute_loop("automation")

    assert controller.status["automation"].status == "failed"
    assert controller.status["automation"].last_error == "TimeoutError"


async def test_failed_dependency_pauses_loop(controller):
    handler = AsyncMock(return_value={})
    controller.handlers["strategy"] = handler
    fail(controller, "analytics")

    assert await controller.execute_loop("strategy") is None
    assert controller.status["strategy"].status == "paused"
    assert controller.status["strategy"].blocked_by == "analytics"
    handler.assert_not_awaited()

    controller.resume_loop("analytics")
    assert controller.resume_unblocked() == ["strategy"]
    assert controller.status["strategy"].status == "idle"


async def test_paused_loop_is_skipped(controller):
    handler = AsyncMock(return_value={})
    controller.handlers["publishing"] = handler

    controller.pause_loop("publishing")
    assert await controller.execute_loop("publishing") is None
    handler.assert_not_awaited()

    with pytest.raises(NotFoundError):
        controller.pause_loop("gardening")


def test_system_status_levels(controller):
    assert controller.get_system_status()["overall"] == "healthy"

    fail(controller, "publishing")
    assert controller.get_system_status()["overall"] == "degraded"

    fail(controller, "automation", "analytics")
    status = controller.get_system_status()
    assert status["overall"] == "critical"
    assert status["isRunning"] is False
    assert status["resources"]["loopUtilization"] == 0.0


def test_emergency_actions(controller):
    controller.slow_down()
    assert controller.status["publishing"].adaptive_multiplier == 0.5
    assert controller.status["orchestration"].adaptive_multiplier == 1.0

    paused = controller.pause_non_critical()
    assert "orchestration" not in paused
    assert controller.status["strategy"].status == "paused"
    assert controller.status["orchestration"].status == "idle"


async def test_start_and_stop_manage_tasks(controller):
    await controller.start()
    assert controller.is_running
    assert len(controller._tasks) == 7
    assert controller.status["orchestration"].next_run is not None

    await controller.stop()
    assert not controller.is_running
    assert controller._tasks == {}


async def test_cancelled_run_returns_loop_to_idle(controller):
    started = asyncio.Event()

    async def hang():
        started.set()
        await asyncio.Event().wait()

    controller.handlers["publishing"] = hang
    task = asyncio.create_task(controller.execute_loop("publishing"))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert controller.status["publishing"].status == "idle"
    controller.handlers["publishing"] = AsyncMock(return_value={"published": 0})
    assert await controller.execute_loop("publishing") == {"published": 0}


def test_content_loop_waits_on_strategy(controller):
    assert controller.loops["content"].dependencies == ["strategy"]
    assert controller.loops["engagement"].interval == 30 * 60


async def test_restart_resets_failed_loops_without_starting(controller):
    fail(controller, "publishing")

    await controller.restart()

    assert controller.status["publishing"].status == "idle"
    assert controller.is_running is False


# ==================== LOOP WORK ====================

async def test_publishing_loop_fails_posts_without_account(controller, mock_db):
    record = LinkedInPostRecord(id=uuid4(), user_id=uuid4(), content="Hello", status="scheduled")
    mock_db.get_due_scheduled_posts.return_value = [record]
    mock_db.update_linkedin_post.return_value = record.model_copy(update={"status": "failed"})

    assert await controller.run_publishing() == {"published": 0, "failed": 1}
    mock_db.update_linkedin_post.assert_awaited_once_with(
        record.id, {"status": "failed"}
    )


async def test_strategy_loop_shares_plans(controller, mock_db, mock_openai, voice_profile):
    profile = Profile(id=voice_profile.user_id, industry="fintech")
    mock_db.list_profiles.return_value = [profile, Profile(id=uuid4())]
    mock_db.get_voice_profile.side_effect = [voice_profile, None]

    assert await controller.run_strategy() == {"usersPlanned": 1}
    session = next(iter(collective_intelligence.sessions.values()))
    assert session.proposal.insight == "Ship small, ship often"
    assert session.proposal.applicability == {"industries": ["fintech"]}
    assert controller.weekly_plans[str(profile.id)]["focus"] == "Ship small, ship often"


def connected_account(user_id):
    return LinkedInAccount(id=uuid4(), user_id=user_id, account_id="abc123", access_token="token")


def fake_linkedin(monkeypatch, **methods):
    api = MagicMock()
    api.get_profile = AsyncMock(return_value={"id": "abc123", "headline": "CTO"})
    api.get_network_metrics = AsyncMock(return_value={"connections": 500})
    for name, mock in methods.items():
        setattr(api, name, mock)
    monkeypatch.setattr(scheduler_module, "create_linkedin_api", lambda account: api)
    return api


async def test_analytics_loop_stores_metrics_and_learns(controller, mock_db, monkeypatch):
    record = LinkedInPostRecord(id=uuid4(), user_id=uuid4(), content="Hello", status="published",
                                linkedin_post_id="urn:li:ugcPost:1")
    account = connected_account(record.user_id)
    mock_db.list_published_linkedin_posts.return_value = [record]
    mock_db.get_active_linkedin_account.return_value = account
    metrics = {"likes": 4, "comments": 1, "shares": 0, "impressions": 90}
    fake_linkedin(monkeypatch, fetch_post_metrics=AsyncMock(return_value=metrics))

    assert await controller.run_analytics() == {"postsAnalyzed": 1}

    mock_db.update_linkedin_post.assert_awaited_once_with(record.id, {"performance_data": metrics})
    assert len(learning_engine.patterns["analytics_agent"]) == 1
    account_id, updates = mock_db.update_linkedin_account.call_args.args
    assert account_id == account.id
    assert updates["profile_data"]["connections"] == 500
    assert updates["profile_data"]["headline"] == "CTO"


async def test_analytics_loop_keeps_metrics_when_linkedin_fails(controller, mock_db, monkeypatch):
    record = LinkedInPostRecord(id=uuid4(), user_id=uuid4(), content="Hello", status="published",
                                linkedin_post_id="urn:li:ugcPost:1", performance_data={"likes": 12})
    mock_db.list_published_linkedin_posts.return_value = [record]
    mock_db.get_active_linkedin_account.return_value = connected_account(record.user_id)
    fake_linkedin(monkeypatch, fetch_post_metrics=AsyncMock(
        side_effect=LinkedInAPIError("LinkedIn API error: 503", status_code=503)
    ))

    assert await controller.run_analytics() == {"postsAnalyzed": 0}

    mock_db.update_linkedin_post.assert_not_awaited()
    assert "analytics_agent" not in learning_engine.patterns


async def test_automation_loop_runs_due_schedule_rules(controller):
    rule = await automation_engine.create_automation_rule("user-1", {
        "name": "Weekly nudge",
        "trigger": {"type": "schedule", "intervalMinutes": 60},
        "actions": [{"id": "ping", "type": "send_message",
                     "parameters": {"to": "engagement_agent", "message_type": "engagement_review"}}],
        "status": "active",
    })

    result = await controller.run_automation()

    assert len(result["executions"]) == 1
    assert automation_engine.get_execution(result["executions"][0]).rule_id == rule.id
    assert rule.performance.total_executions == 1
    # Not due again until the interval has passed
    assert await controller.run_automation() == {"executions": []}


async def test_orchestration_loop_expires_tasks_and_resumes_loops(controller):
    await human_loop.create_validation_task(
        "user-1", "content_approval", "Old draft", {}, required_by=datetime(2020, 1, 1, tzinfo=timezone.utc)
    )
    controller.status["strategy"].status = "paused"
    controller.status["strategy"].blocked_by = "analytics"

    result = await controller.run_orchestration()

    assert result == {"expiredTasks": 1, "resumedLoops": ["strategy"], "overall": "healthy"}
    assert controller.status["strategy"].status == "idle"


async def test_content_loop_drafts_from_weekly_focus(controller, mock_db, mock_openai, voice_profile):
    profile = Profile(id=voice_profile.user_id, industry="fintech")
    mock_db.list_profiles.return_value = [profile]
    mock_db.get_voice_profile.return_value = voice_profile
    mock_db.create_content_post.side_effect = lambda post: post.model_copy(update={"id": uuid4()})
    mock_openai.return_value = "Small releases beat big launches. #shipping"
    controller.weekly_plans[str(profile.id)] = {"focus": "Hiring in fintech", "themes": [], "confidence": 0.7}

    assert await controller.run_content() == {"draftsCreated": 1}

    draft: ContentPost = mock_db.create_content_post.call_args.args[0]
    assert draft.generation_prompt == "Hiring in fintech"
    assert draft.content["hashtags"] == ["shipping"]
    assert draft.ai_generated is True
    queued = human_loop.feedback_queue[str(profile.id)]
    assert queued[0].agent_id == "content_creator_agent"
    assert queued[0].target["type"] == "content"


async def test_content_loop_skips_full_backlog(controller, mock_db, mock_openai, voice_profile):
    mock_db.list_profiles.return_value = [Profile(id=voice_profile.user_id)]
    mock_db.get_voice_profile.return_value = voice_profile
    mock_db.list_content_posts.return_value = [ContentPost(user_id=voice_profile.user_id)] * 3

    assert await controller.run_content() == {"draftsCreated": 0}
    mock_db.create_content_post.assert_not_awaited()


async def test_engagement_loop_skips_users_without_account(controller, mock_db):
    mock_db.list_profiles.return_value = [Profile(id=uuid4())]

    assert await controller.run_engagement() == {"comments": 0, "likes": 0}
    mock_db.get_voice_profile.assert_not_awaited()


# ==================== SCHEDULER ====================

def test_posting_windows_respect_frequency():
    activity = UserActivity(user_id="u1", content_preferences=ContentPreferences(frequency="low"))

    windows = next_posting_windows(activity, NOW)

    assert [w.astimezone(timezone.utc) for w in windows] == [
        datetime(2026, 3, 5, 12, tzinfo=timezone.utc),
        datetime(2026, 3, 6, 9, tzinfo=timezone.utc),
        datetime(2026, 3, 7, 9, tzinfo=timezone.utc),
    ]


def test_posting_windows_high_frequency_and_timezone():
    high = UserActivity(user_id="u1", content_preferences=ContentPreferences(frequency="high"))
    assert [w.hour for w in next_posting_windows(high, NOW)] == [12, 17, 20]

    # 13:30 UTC is 08:30 in New York
    eastern = UserActivity(user_id="u2", timezone="America/New_York", peak_hours=[9])
    first = next_posting_windows(eastern, datetime(2026, 3, 5, 13, 30, tzinfo=timezone.utc))[0]
    assert first.astimezone(timezone.utc) == datetime(2026, 3, 5, 14, tzinfo=timezone.utc)

    unknown = UserActivity(user_id="u3", timezone="Mars/Olympus", peak_hours=[12])
    assert next_posting_windows(unknown, NOW)[0].hour == 12


async def test_optimize_for_user(scheduler, mock_db):
    user_id = uuid4()
    mock_db.get_profile.return_value = Profile(
        id=user_id, timezone="UTC", preferences={"content_frequency": "high", "peak_hours": [8, 18]}
    )

    activity = await scheduler.optimize_for_user(str(user_id), NOW)

    assert [w.hour for w in activity.posting_windows] == [18, 8, 18]
    assert scheduler.user_activities[str(user_id)] is activity


async def test_optimize_for_unknown_user(scheduler, mock_db):
    with pytest.raises(NotFoundError):
        await scheduler.optimize_for_user(str(uuid4()))


async def test_load_user_activities_tolerates_database_errors(scheduler, mock_db):
    mock_db.list_profiles.side_effect = RuntimeError("supabase unavailable")

    await scheduler.load_user_activities()

    assert scheduler.user_activities == {}


async def test_high_failure_rate_slows_loops_and_stores_alert(mock_db):
    scheduler = AutonomousScheduler(SchedulerConfig(emergency_thresholds=EmergencyThresholds(failure_rate=0.25)))
    fail(scheduler.controller, "publishing", "automation")

    assert await scheduler.check_emergency_conditions() == ["high_failure_rate"]

    assert scheduler.controller.status["analytics"].adaptive_multiplier == 0.5
    alert: SystemAlert = mock_db.create_system_alert.call_args.args[0]
    assert alert.message == "Emergency condition: high_failure_rate"
    assert alert.severity == "critical"


async def test_slow_loops_trigger_slow_response(scheduler, mock_db):
    status = scheduler.controller.status["analytics"]
    status.run_count = 3
    status.average_duration = 60.0

    assert await scheduler.check_emergency_conditions() == ["slow_response"]


async def test_critical_system_restarts_loops(scheduler, mock_db):
    fail(scheduler.controller, "publishing", "automation", "analytics")

    triggered = await scheduler.check_emergency_conditions()

    assert triggered == ["high_failure_rate", "system_critical"]
    assert all(s.status != "failed" for s in scheduler.controller.status.values())


async def test_emergency_alert_storage_failure_is_logged(scheduler, mock_db):
    mock_db.create_system_alert.side_effect = RuntimeError("insert failed")

    await scheduler.handle_emergency("resource_exhaustion", {"current": 90.0})

    assert scheduler.controller.status["publishing"].status == "paused"


async def test_initialize_without_auto_start(scheduler, mock_db):
    await scheduler.initialize()

    status = scheduler.get_status()
    assert status["initialized"] is True
    assert status["systemHealth"]["isRunning"] is False
    assert status["userCount"] == 0
