"""Tests for competitive intelligence."""
import json

import pytest

from authority_pilot.agents.competitive import CompetitiveIntelligenceAgent, default_profile, slugify
from authority_pilot.errors import InvalidRequestError, NotFoundError

PROFILE = {
    "description": "Payroll for startups",
    "strengths": ["Brand"],
    "weaknesses": ["Slow support"],
    "marketPosition": {"marketShare": 0.2, "brandRecognition": 0.6},
}
THREATS = {"threats": [
    {"type": "pricing_change", "severity": "medium", "description": "Price cut", "probability": 0.9},
    {"type": "product_launch", "severity": "critical", "description": "AI payroll launch", "probability": 0.4,
     "mitigationStrategies": ["Publish AI payroll guide"]},
    {"type": "acquisition", "severity": "high", "description": "Buys a rival", "probability": 0.8},
    {"severity": "low"},
]}
OPPORTUNITIES = {"opportunities": [
    {"type": "market_gap", "value": "medium", "description": "Contractor payroll", "probability": 0.9},
    {"type": "competitor_weakness", "value": "transformational", "description": "Better support content",
     "probability": 0.5, "actionItems": ["Weekly support tips"]},
]}


@pytest.fixture
def agent():
    return CompetitiveIntelligenceAgent()


async def add(agent, mock_openai, profile=None):
    mock_openai.return_value = json.dumps(profile or PROFILE)
    return await agent.add_competitor("Acme Pay", "acmepay.com", "fintech")


def test_slugify():
    assert slugify("  Acme Pay Inc ") == "acme_pay_inc"


async def test_add_competitor_builds_profile_and_insights(agent, mock_openai):
    competitor = await add(agent, mock_openai)

    assert competitor.id.startswith("comp_")
    assert competitor.id.endswith("_acme_pay")
    assert competitor.profile["description"] == "Payroll for startups"
    assert competitor.profile["stage"] == "growth"
    assert [(i.category, i.insight) for i in competitor.insights] == [
        ("strategy", "Acme Pay strength: Brand"),
        ("market", "Acme Pay weakness: Slow support"),
    ]
    assert competitor.tracking_metrics[0]["value"] == 0.2
    assert len(competitor.monitoring["sources"]) == 3
    assert mock_openai.await_args.kwargs["temperature"] == 0.2


async def test_add_competitor_uses_defaults_when_openai_fails(agent, mock_openai):
    mock_openai.side_effect = RuntimeError("down")

    competitor = await agent.add_competitor("Acme Pay", "acmepay.com", "fintech")

    assert competitor.profile == default_profile()
    assert competitor.insights == []


async def test_add_competitor_validation(agent):
    with pytest.raises(InvalidRequestError):
        await agent.add_competitor("", "acmepay.com", "fintech")
    with pytest.raises(InvalidRequestError):
        await agent.add_competitor("Acme Pay", "acmepay.com", "fintech", tier="frenemy")


async def test_threats_are_ranked_and_serious_ones_alerted(agent, mock_openai):
    competitor = await add(agent, mock_openai)
    mock_openai.return_value = json.dumps(THREATS)

    threats = await agent.detect_competitive_threats(competitor.id)

    assert [t.description for t in threats] == ["Buys a rival", "Price cut", "AI payroll launch"]
    assert threats[0].id == f"threat_{competitor.id}_buys_a_rival"
    assert {t.description for t in agent.alert_queue} == {"Buys a rival", "AI payroll launch"}

    # Same threats again are not queued twice
    await agent.detect_competitive_threats(competitor.id)
    assert len(agent.alert_queue) == 2

    assert [t.severity for t in await agent.get_competitive_alerts("urgent")] == ["high", "critical"]
    assert len(await agent.get_competitive_alerts("info")) == 2
    with pytest.raises(InvalidRequestError):
        await agent.get_competitive_alerts("panic")


async def test_unknown_competitor(agent):
    with pytest.raises(NotFoundError):
        await agent.detect_competitive_threats("comp_missing")
    with pytest.raises(NotFoundError):
        await agent.get_competitor_insights("comp_missing")


async def test_opportunities_sorted_by_priority(agent, mock_openai):
    mock_openai.return_value = json.dumps(OPPORTUNITIES)

    opportunities = await agent.identify_competitive_opportunities("fintech")

    assert [o.description for o in opportunities] == ["Better support content", "Contractor payroll"]
    assert opportunities[0].priority_score == 2.0
    assert opportunities[1].priority_score == pytest.approx(1.8)


async def test_landscape_is_stored(agent, mock_openai):
    mock_openai.return_value = json.dumps({"marketSize": 5000000, "growthRate": 0.12, "keyFactors": ["Trust"]})

    intelligence = await agent.analyze_competitive_landscape("fintech", "payroll")

    assert intelligence.market_size == 5000000
    assert intelligence.key_factors == ["Trust"]
    assert await agent.get_market_intelligence("fintech") is intelligence
    assert await agent.get_market_intelligence("retail") is None


async def test_strategic_report(agent, mock_openai):
    competitor = await add(agent, mock_openai)
    mock_openai.side_effect = [json.dumps(THREATS), json.dumps(OPPORTUNITIES)]

    report = await agent.generate_competitive_report(report_type="strategic")

    assert report["metadata"]["competitorCount"] == 1
    assert report["executiveSummary"] == (
        "Tracking 1 competitors. 3 active threats (1 critical) and 2 opportunities identified."
    )
    assert report["monitoringStatus"] == {"competitorsMonitored": 1, "activeSources": 3, "pendingAlerts": 2}
    assert [t.description for t in report["riskAssessment"]["critical"]] == ["AI payroll launch"]
    assert {a["action"] for a in report["actionPlan"]} == {"Publish AI payroll guide", "Weekly support tips"}
    assert report["keyInsights"][0].insight == "Acme Pay strength: Brand"
    assert "competitorProfiles" not in report

    # Cached threats and opportunities are reused
    detailed = await agent.generate_competitive_report(competitor.id, "detailed")
    assert detailed["competitorProfiles"][0]["weaknesses"] == ["Slow support"]
    assert mock_openai.await_count == 3


async def test_report_type_validation(agent):
    with pytest.raises(InvalidRequestError):
        await agent.generate_competitive_report(report_type="gossip")
