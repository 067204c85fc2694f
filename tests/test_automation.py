"""Tests for the automation engine."""
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from authority_pilot.agents import communication_bus, human_loop, voice_trainer
from authority_pilot.agents.automation import (
    AdvancedAutomationEngine,
    evaluate_condition,
    resolve_field,
)
from authority_pilot.database import ContentPost, LinkedInPostRecord
from authority_pilot.errors import InvalidRequestError, NotFoundError

USER_ID = str(uuid4())


@pytest.fixture
def engine():
    return AdvancedAutomationEngine()


def message_rule(**overrides):
    definition = {
        "name": "Ping engagement",
        "trigger": {"type": "manual"},
        "actions": [
            {"id": "set", "type": "update_data", "parameters": {"values": {"topic": "AI"}}},
            {"id": "ping", "type": "send_message", "depends_on": ["set"],
             "parameters": {"to": "engagement_agent", "message_type": "engagement_review"}},
        ],
        "status": "active",
    }
    definition.update(overrides)
    return definition


def content_rule(**overrides):
    definition = {
        "name": "Write and schedule",
        "trigger": {"type": "manual"},
        "actions": [
            {"id": "create_post", "type": "create_content", "parameters": {"topic": "AI hiring"}},
            {"id": "schedule", "type": "schedule_post", "depends_on": ["create_post"],
             "parameters": {"delay_minutes": 30}},
        ],
        "status": "active",
    }
    definition.update(overrides)
    return definition


def test_resolve_field_and_conditions():
    assert resolve_field("post.metrics.likes", {"post": {"metrics": {"likes": 12}}}) == 12
    assert resolve_field("missing", {"a": 1}, {"missing": 2}) == 2
    assert resolve_field("a.b", {"a": 1}) is None

    assert evaluate_condition(5, "greater_than", 3)
    assert evaluate_condition(5, "between", [1, 10])
    assert evaluate_condition("linkedin", "in", ["linkedin", "twitter"])
    assert not evaluate_condition(None, "less_than", 3)
    assert not evaluate_condition("abc", "greater_than", 3)
    with pytest.raises(InvalidRequestError):
        evaluate_condition(1, "roughly", 1)


async def test_rule_definition_validation(engine):
    with pytest.raises(InvalidRequestError, match="name"):
        await engine.create_automation_rule(USER_ID, message_rule(name=""))
    with pytest.raises(InvalidRequestError, match="trigger type"):
        await engine.create_automation_rule(USER_ID, message_rule(trigger={"type": "telepathy"}))
    with pytest.raises(InvalidRequestError, match="action type"):
        await engine.create_automation_rule(USER_ID, message_rule(actions=[{"type": "dance"}]))
    with pytest.raises(InvalidRequestError, match="operator"):
        await engine.create_automation_rule(USER_ID, message_rule(conditions=[{"field": "x", "operator": "near"}]))


async def test_created_rule_gets_optimized_config(engine):
    rule = await engine.create_automation_rule(USER_ID, message_rule(category="engagement"))

    assert rule.status == "active"
    assert rule.config.priority == "low"
    assert rule.config.concurrency == 5
    assert rule.config.timeout == 10.0
    assert rule.config.custom_metrics == ["execution_time", "success_rate", "response_rate", "relationship_building"]


async def test_execute_runs_actions_in_order(engine):
    received = []
    communication_bus.subscribe("engagement_agent", received.append)
    rule = await engine.create_automation_rule(USER_ID, message_rule())

    execution = engine.get_execution(await engine.execute_automation_rule(rule.id))

    assert execution.status == "completed"
    assert [r.status for r in execution.results] == ["success", "success"]
    assert execution.variables == {"topic": "AI"}
    assert received[0].payload["ruleId"] == rule.id
    assert rule.performance.total_executions == 1
    assert rule.performance.success_rate == 1.0


async def test_conditions_not_met_skip_execution(engine):
    rule = await engine.create_automation_rule(USER_ID, message_rule(
        conditions=[{"field": "post.likes", "operator": "greater_than", "value": 100}]
    ))

    execution = engine.get_execution(await engine.execute_automation_rule(rule.id, {"post": {"likes": 3}}))

    assert execution.status == "skipped"
    assert execution.results == []
    assert rule.performance.total_executions == 0


async def test_draft_rules_only_run_as_dry_run(engine, mock_db):
    rule = await engine.create_automation_rule(USER_ID, content_rule(status="draft"))

    with pytest.raises(InvalidRequestError):
        await engine.execute_automation_rule(rule.id)

    execution = engine.get_execution(await engine.execute_automation_rule(rule.id, {"dry_run": True}))
    assert execution.status == "completed"
    assert execution.results[0].output["simulated"] is True
    assert rule.performance.total_executions == 0
    mock_db.get_voice_profile.assert_not_awaited()


async def test_content_is_generated_and_scheduled(engine, mock_db, voice_profile, monkeypatch):
    monkeypatch.setattr(voice_trainer, "generate_content",
                        AsyncMock(return_value={"content": "Hiring with AI #hiring", "confidence": 0.8}))
    content_id = uuid4()
    mock_db.get_voice_profile.return_value = voice_profile
    mock_db.create_content_post.side_effect = lambda post: post.model_copy(update={"id": content_id})
    mock_db.create_linkedin_post.side_effect = lambda post: post.model_copy(update={"id": uuid4()})
    rule = await engine.create_automation_rule(USER_ID, content_rule())

    execution = engine.get_execution(await engine.execute_automation_rule(rule.id))

    assert execution.status == "completed"
    scheduled: LinkedInPostRecord = mock_db.create_linkedin_post.call_args.args[0]
    assert scheduled.status == "scheduled"
    assert scheduled.content == "Hiring with AI #hiring"
    assert scheduled.content_post_id == content_id
    created: ContentPost = mock_db.create_content_post.call_args.args[0]
    assert created.voice_profile_version == 2


async def test_failed_action_skips_dependents(engine, mock_db):
    rule = await engine.create_automation_rule(USER_ID, content_rule())

    execution = engine.get_execution(await engine.execute_automation_rule(rule.id))

    assert execution.status == "failed"
    assert [r.status for r in execution.results] == ["failure", "skipped"]
    assert execution.errors == ["create_post: Voice profile not found"]
    assert rule.performance.failed_executions == 1


async def test_fallback_action(engine, mock_db):
    rule = await engine.create_automation_rule(USER_ID, {
        "name": "With fallback",
        "trigger": {"type": "manual"},
        "actions": [{
            "id": "write",
            "type": "create_content",
            "parameters": {"topic": "AI"},
            "fallbackAction": {"type": "send_notification", "parameters": {"message": "Could not write"}},
        }],
        "status": "active",
    })

    execution = engine.get_execution(await engine.execute_automation_rule(rule.id))

    assert execution.status == "completed"
    assert execution.results[0].notes == "Fallback action used"


async def test_approval_notification_creates_validation_task(engine):
    rule = await engine.create_automation_rule(USER_ID, {
        "name": "Ask first",
        "trigger": {"type": "manual"},
        "actions": [{"type": "send_notification", "parameters": {"require_approval": True, "title": "Check it"}}],
        "status": "active",
    })

    await engine.execute_automation_rule(rule.id)

    tasks = await human_loop.get_validation_tasks(USER_ID)
    assert [t.title for t in tasks] == ["Check it"]


async def test_nested_workflows_stop_at_depth_limit(engine):
    rule = await engine.create_automation_rule(USER_ID, message_rule(actions=[
        {"type": "trigger_workflow", "parameters": {"rule_id": "placeholder"}},
    ]))
    rule.actions[0].parameters["rule_id"] = rule.id

    outer = engine.get_execution(await engine.execute_automation_rule(rule.id))

    assert outer.status == "completed"
    assert len(engine.executions) == 4
    innermost = [e for e in engine.executions.values() if e.status == "failed"]
    assert len(innermost) == 1
    assert "Workflow nesting limit reached" in innermost[0].errors[0]


async def test_optimize_needs_enough_executions(engine):
    rule = await engine.create_automation_rule(USER_ID, message_rule())
    await engine.execute_automation_rule(rule.id)

    result = await engine.optimize_automation_performance(rule.id)

    assert result == {"optimized": False, "reason": "Insufficient execution data", "executions": 1}


async def test_optimize_adds_retries_after_failures(engine, mock_db):
    rule = await engine.create_automation_rule(USER_ID, content_rule(actions=[
        {"id": "create_post", "type": "create_content", "parameters": {"topic": "AI"}},
    ]))
    for _ in range(5):
        await engine.execute_automation_rule(rule.id)

    result = await engine.optimize_automation_performance(rule.id)

    assert result["optimized"] is True
    assert result["successRate"] == 0.0
    assert rule.config.concurrency == 4
    assert rule.actions[0].retry_policy is not None
    assert len(rule.optimization_history) == 1


async def test_pause_delete_and_due_rules(engine):
    rule = await engine.create_automation_rule(USER_ID, message_rule(trigger={"type": "schedule", "intervalMinutes": 60}))
    assert engine.get_due_scheduled_rules() == [rule]

    await engine.execute_automation_rule(rule.id)
    assert engine.get_due_scheduled_rules() == []
    assert engine.get_due_scheduled_rules(datetime.now(timezone.utc) + timedelta(hours=2)) == [rule]

    await engine.set_rule_paused(rule.id, True)
    assert rule.status == "paused"
    with pytest.raises(InvalidRequestError):
        await engine.execute_automation_rule(rule.id)

    await engine.delete_rule(rule.id)
    with pytest.raises(NotFoundError):
        engine.get_rule(rule.id)


async def test_templates_and_export(engine):
    assert [t["id"] for t in await engine.get_automation_templates("engagement")] == ["weekly_engagement_digest"]

    rule = await engine.create_from_template("daily_linkedin_post", USER_ID, {
        "name": "Morning post", "topic": "Fintech", "interval_minutes": 720, "status": "active",
    })
    assert rule.name == "Morning post"
    assert rule.trigger.interval_minutes == 720
    assert rule.actions[0].parameters["topic"] == "Fintech"
    assert rule.config.priority == "medium"

    exported = await engine.export_rules(USER_ID)
    assert exported[0]["name"] == "Morning post"
    assert "intervalMinutes" in exported[0]["trigger"]

    with pytest.raises(NotFoundError):
        await engine.create_from_template("missing", USER_ID)


async def test_dashboard_counts_time_saved(engine):
    rule = await engine.create_automation_rule(USER_ID, message_rule())
    await engine.execute_automation_rule(rule.id)
    await engine.execute_automation_rule(rule.id)

    dashboard = await engine.get_automation_dashboard(USER_ID)

    assert dashboard["summary"]["totalExecutions"] == 2
    assert dashboard["summary"]["timeSavedThisWeek"] == 10
    assert len(await engine.get_execution_logs(rule_id=rule.id, limit=1)) == 1


async def test_retry_backoff_fits_inside_rule_timeout(engine, mock_db):
    rule = await engine.create_automation_rule(USER_ID, content_rule(actions=[
        {"id": "create_post", "type": "create_content", "parameters": {"topic": "AI"}},
    ]))
    for _ in range(5):
        await engine.execute_automation_rule(rule.id)

    await engine.optimize_automation_performance(rule.id)

    policy = rule.actions[0].retry_policy
    assert policy.backoff_seconds == 1.0
    assert rule.config.timeout == 10.0 + policy.total_backoff()
    assert policy.total_backoff() < rule.config.timeout


async def test_execution_history_is_bounded(engine, monkeypatch):
    monkeypatch.setattr("authority_pilot.agents.automation.MAX_EXECUTION_HISTORY", 3)
    rule = await engine.create_automation_rule(USER_ID, message_rule())

    ids = [await engine.execute_automation_rule(rule.id) for _ in range(5)]

    assert list(engine.executions) == ids[-3:]
    with pytest.raises(NotFoundError):
        engine.get_execution(ids[0])
