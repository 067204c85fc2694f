"""Tests for the learning engine."""
from datetime import datetime, timedelta, timezone

import pytest

from authority_pilot.agents.learning_engine import Experience, LearningEngine, word_similarity


@pytest.fixture
def engine():
    return LearningEngine()


def experience(action="Post on Tuesday mornings", results=None, **kwargs):
    return Experience(
        category="publishing",
        objective="grow reach",
        action=action,
        results=results if results is not None else [{"status": "completed", "value": 12}],
        **kwargs
    )


def test_word_similarity():
    assert word_similarity("Post on Tuesday", "post on tuesday") == 1.0
    assert word_similarity("", "") == 0.0
    assert word_similarity("a b", "c d") == 0.0


async def test_similar_experiences_share_a_pattern(engine):
    first = await engine.learn_from_experience("strategy_agent", experience())
    second = await engine.learn_from_experience("strategy_agent", experience("post on tuesday mornings"))

    assert first.id == second.id
    assert len(second.evidence) == 2
    assert second.performance.sample_size == 2
    assert second.performance.success_rate == 1.0
    assert second.performance.avg_improvement == 12.0


async def test_different_actions_create_new_patterns(engine):
    await engine.learn_from_experience("strategy_agent", experience())
    await engine.learn_from_experience("strategy_agent", experience("Reply to every comment within an hour"))

    assert len(engine.patterns["strategy_agent"]) == 2


async def test_outcome_classification(engine):
    assert engine.determine_outcome(experience(results=[])) == "neutral"
    assert engine.determine_outcome(experience(results=[{"success": True}])) == "success"
    assert engine.determine_outcome(experience(results=[{"success": False}])) == "failure"
    mixed = [{"success": True}, {"success": False}]
    assert engine.determine_outcome(experience(results=mixed)) == "neutral"


async def test_confidence_combines_success_sample_and_recency(engine):
    failed = await engine.learn_from_experience("analytics_agent", experience(results=[{"success": False}]))
    assert failed.confidence == pytest.approx(0.12, abs=0.001)

    succeeded = await engine.learn_from_experience("content_agent", experience())
    assert succeeded.confidence == 1.0


async def test_recency_bonus_fades(engine):
    pattern = await engine.learn_from_experience("analytics_agent", experience(results=[{"success": False}]))
    later = datetime.now(timezone.utc) + timedelta(days=45)

    assert engine.calculate_confidence(pattern, later) == pytest.approx(0.02)


async def test_recommendations_filter_by_confidence_and_context(engine):
    await engine.learn_from_experience("strategy_agent", experience(context={"industry": "fintech"}))
    await engine.learn_from_experience(
        "strategy_agent",
        experience("Cross-post to newsletters weekly", results=[{"success": False}])
    )

    recommendations = await engine.get_recommendations("strategy_agent", {"industry": "fintech"})
    assert recommendations == ["Based on 1 experiences: Post on Tuesday mornings"]
    assert await engine.get_recommendations("strategy_agent", {"industry": "retail"}) == []


async def test_learning_report_and_insights(engine):
    await engine.learn_from_experience("strategy_agent", experience())
    await engine.learn_from_experience("analytics_agent", experience("Track weekly impressions"))

    report = await engine.generate_learning_report("strategy_agent")
    assert report["totalPatterns"] == 1
    assert report["highConfidencePatterns"] == 1
    assert report["objectives"] == ["grow reach"]
    assert report["learningVelocity"] == 1

    insights = await engine.get_pattern_insights()
    assert insights["totalPatterns"] == 2
    assert insights["byCategory"] == {"publishing": 2}
    assert insights["topPatterns"][0]["predictivePower"] == 1.0
