"""Competitive intelligence: competitor profiles, threats, opportunities and reports."""
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import Field
from loguru import logger

from authority_pilot.agents.base import APIModel, BaseAgent, get_current_context
from authority_pilot.errors import InvalidRequestError, NotFoundError

TIERS = ("direct", "indirect", "aspirational", "emerging")
REPORT_TYPES = ("summary", "detailed", "strategic")
SEVERITY_RANK = {"low": 1, "medium": 2, "high": 3, "critical": 4}
VALUE_RANK = {"low": 1, "medium": 2, "high": 3, "transformational": 4}
ALERT_LEVELS = {
    "info": ("low", "medium", "high", "critical"),
    "warning": ("medium", "high", "critical"),
    "urgent": ("high", "critical"),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def slugify(text: str) -> str:
    return re.sub(r"\s+", "_", text.strip().lower())


def default_profile() -> Dict[str, Any]:
    return {
        "description": "",
        "size": "medium",
        "stage": "growth",
        "strengths": [],
        "weaknesses": [],
        "keyPersonnel": [],
        "products": [],
        "marketPosition": {
            "ranking": 0, "marketShare": 0, "brandRecognition": 0,
            "thoughtLeadership": 0, "innovationIndex": 0, "customerLoyalty": 0,
        },
        "financials": {"revenue": 0, "growth": 0, "funding": [], "valuation": 0, "profitability": "unknown"},
    }


class CompetitiveInsight(APIModel):
    category: str
    insight: str
    confidence: float
    relevance: float
    implications: List[str] = Field(default_factory=list)


class CompetitiveThreat(APIModel):
    id: str
    competitor_id: str
    type: str = "market_expansion"
    severity: str = "medium"
    description: str
    probability: float = 0.5
    timeline: str = ""
    mitigation_strategies: List[str] = Field(default_factory=list)
    detected_at: datetime = Field(default_factory=_now)


class CompetitiveOpportunity(APIModel):
    id: str
    type: str = "market_gap"
    value: str = "medium"
    description: str
    probability: float = 0.5
    timeline: str = ""
    action_items: List[str] = Field(default_factory=list)
    resource_requirement: str = "medium"
    priority_score: float = 0.0


class Competitor(APIModel):
    """A tracked competitor and everything learned about it."""
    id: str
    name: str
    domain: str
    industry: str
    tier: str = "direct"
    profile: Dict[str, Any] = Field(default_factory=default_profile)
    monitoring: Dict[str, Any] = Field(default_factory=dict)
    insights: List[CompetitiveInsight] = Field(default_factory=list)
    tracking_metrics: List[Dict[str, Any]] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=_now)


class MarketIntelligence(APIModel):
    industry: str
    focus_area: Optional[str] = None
    market_size: float = 0
    growth_rate: float = 0
    segments: List[Dict[str, Any]] = Field(default_factory=list)
    trends: List[Dict[str, Any]] = Field(default_factory=list)
    threats: List[str] = Field(default_factory=list)
    opportunities: List[str] = Field(default_factory=list)
    key_factors: List[str] = Field(default_factory=list)
    analyzed_at: datetime = Field(default_factory=_now)


class CompetitiveIntelligenceAgent(BaseAgent):
    """Monitors competitors and turns what it finds into threats and opportunities."""

    def __init__(self):
        super().__init__("CompetitiveIntelligence")
        self.competitors: Dict[str, Competitor] = {}
        self.market_intelligence: Dict[str, MarketIntelligence] = {}
        self.alert_queue: List[CompetitiveThreat] = []
        self.threats: List[CompetitiveThreat] = []
        self.opportunities: List[CompetitiveOpportunity] = []

    async def process(self, competitor_id: Optional[str] = None) -> List[CompetitiveThreat]:
        return await self.detect_competitive_threats(competitor_id)

    def get_competitor(self, competitor_id: str) -> Competitor:
        competitor = self.competitors.get(competitor_id)
        if not competitor:
            raise NotFoundError(f"Competitor not found: {competitor_id}")
        return competitor

    # ==================== COMPETITORS ====================

    async def build_profile(self, name: str, domain: str, industry: str) -> Dict[str, Any]:
        system_prompt = """You are a competitive intelligence expert building competitor profiles
for strategic positioning.

Respond with JSON:
{
  "description": "2-3 sentence overview",
  "size": "startup|small|medium|large|enterprise",
  "stage": "early|growth|mature|declining",
  "strengths": ["..."],
  "weaknesses": ["..."],
  "keyPersonnel": [{"name": "...", "role": "...", "influence": 0.0}],
  "products": [{"name": "...", "category": "...", "description": "..."}],
  "marketPosition": {"ranking": 0, "marketShare": 0.0, "brandRecognition": 0.0,
                     "thoughtLeadership": 0.0, "innovationIndex": 0.0},
  "financials": {"revenue": 0, "growth": 0.0, "profitability": "profitable|breakeven|burning|unknown"}
}"""
        user_prompt = f"""Company: {name}
Domain: {domain}
Industry: {industry}
Analysis date: {get_current_context()['current_date']}"""

        analysis = await self.call_openai_json(system_prompt, user_prompt, default=None, temperature=0.2, max_tokens=2000)
        profile = default_profile()
        if not isinstance(analysis, dict):
            logger.warning(f"[{self.name}] Using default profile for {name}")
            return profile
        for key in profile:
            if analysis.get(key):
                profile[key] = analysis[key]
        return profile

    async def add_competitor(self, name: str, domain: str, industry: str, tier: str = "direct") -> Competitor:
        """
        Start tracking a competitor.

        Args:
            name: Company name
            domain: Company web domain
            industry: Industry used for landscape analysis
            tier: direct, indirect, aspirational or emerging

        Returns:
            The new competitor
        """
        if not name or not domain or not industry:
            raise InvalidRequestError("Name, domain and industry are required")
        if tier not in TIERS:
            raise InvalidRequestError(f"Invalid competitor tier: {tier}")

        logger.info(f"[{self.name}] Adding competitor: {name}")
        profile = await self.build_profile(name, domain, industry)
        position = profile.get("marketPosition") or {}

        insights = [
            CompetitiveInsight(category="strategy", insight=f"{name} strength: {s}", confidence=0.7, relevance=0.8)
            for s in profile.get("strengths") or []
        ] + [
            CompetitiveInsight(
                category="market", insight=f"{name} weakness: {w}", confidence=0.6, relevance=0.9,
                implications=[f"Position content where {name} is weak"]
            )
            for w in profile.get("weaknesses") or []
        ]

        competitor = Competitor(
            id=f"comp_{int(_now().timestamp() * 1000)}_{slugify(name)}",
            name=name,
            domain=domain,
            industry=industry,
            tier=tier,
            profile=profile,
            monitoring={
                "frequency": "daily",
                "sources": [
                    {"type": "website", "url": f"https://{domain}", "status": "active"},
                    {"type": "social_media", "platform": "linkedin", "parameters": {"company": name}, "status": "active"},
                    {"type": "news", "parameters": {"keywords": [name]}, "status": "active"},
                ],
                "keywords": [name, domain, f"{name} product"],
                "alerts": [{
                    "trigger": "funding_announcement",
                    "condition": "funding OR investment OR raised",
                    "severity": "warning",
                }],
            },
            insights=insights,
            tracking_metrics=[
                {"name": "Market Share", "category": "market", "value": position.get("marketShare", 0),
                 "trend": "stable", "change": 0, "benchmark": 0.1},
                {"name": "Brand Recognition", "category": "market", "value": position.get("brandRecognition", 0),
                 "trend": "stable", "change": 0, "benchmark": 0.5},
            ]
        )
        self.competitors[competitor.id] = competitor
        logger.info(f"[{self.name}] Competitor added: {competitor.id}")
        return competitor

    # ==================== ANALYSIS ====================

    async def analyze_competitive_landscape(self, industry: str, focus_area: Optional[str] = None) -> MarketIntelligence:
        competitors = [c for c in self.competitors.values() if c.industry == industry]
        summary = "\n".join(
            f"- {c.name} ({c.tier}): {c.profile.get('description', '')}" for c in competitors
        ) or "- No tracked competitors yet"

        analysis = await self.call_openai_json(
            """You are a market analyst. Respond with JSON:
{"marketSize": 0, "growthRate": 0.0,
 "segments": [{"name": "...", "size": 0, "growth": 0.0, "competition": "low|medium|high|saturated"}],
 "trends": [{"name": "...", "description": "...", "impact": "low|medium|high|transformational"}],
 "threats": ["..."], "opportunities": ["..."], "keyFactors": ["..."]}""",
            f"Industry: {industry}\nFocus area: {focus_area or 'overall'}\nCompetitors:\n{summary}",
            default={},
            temperature=0.3,
            max_tokens=2000
        )
        analysis = analysis if isinstance(analysis, dict) else {}

        intelligence = MarketIntelligence(
            industry=industry,
            focus_area=focus_area,
            market_size=analysis.get("marketSize") or 0,
            growth_rate=analysis.get("growthRate") or 0,
            segments=analysis.get("segments") or [],
            trends=analysis.get("trends") or [],
            threats=analysis.get("threats") or [],
            opportunities=analysis.get("opportunities") or [],
            key_factors=analysis.get("keyFactors") or []
        )
        self.market_intelligence[industry] = intelligence
        logger.info(f"[{self.name}] Landscape analyzed for {industry} ({len(competitors)} competitors)")
        return intelligence

    async def _analyze_threats(self, competitor: Competitor) -> List[CompetitiveThreat]:
        result = await self.call_openai_json(
            """You assess competitive threats to a professional's personal brand and business.
Respond with JSON:
{"threats": [{"type": "product_launch|pricing_change|market_expansion|acquisition|personnel_change",
              "severity": "low|medium|high|critical", "description": "...", "probability": 0.0-1.0,
              "timeline": "...", "mitigationStrategies": ["..."]}]}""",
            f"""Competitor: {competitor.name} ({competitor.domain}), tier {competitor.tier}
Industry: {competitor.industry}
Strengths: {', '.join(competitor.profile.get('strengths') or []) or 'unknown'}
Weaknesses: {', '.join(competitor.profile.get('weaknesses') or []) or 'unknown'}""",
            default={},
            temperature=0.3,
            max_tokens=1500
        )
        threats = []
        for item in (result.get("threats") if isinstance(result, dict) else None) or []:
            if not isinstance(item, dict) or not item.get("description"):
                continue
            severity = item.get("severity") if item.get("severity") in SEVERITY_RANK else "medium"
            threats.append(CompetitiveThreat(
                id=f"threat_{competitor.id}_{slugify(item['description'])[:40]}",
                competitor_id=competitor.id,
                type=item.get("type", "market_expansion"),
                severity=severity,
                description=item["description"],
                probability=float(item.get("probability", 0.5)),
                timeline=item.get("timeline", ""),
                mitigation_strategies=item.get("mitigationStrategies") or []
            ))
        return threats

    async def detect_competitive_threats(self, competitor_id: Optional[str] = None) -> List[CompetitiveThreat]:
        """Threats for one or all competitors, most serious first; serious ones go to the alert queue."""
        if competitor_id:
            competitors = [self.get_competitor(competitor_id)]
        else:
            competitors = list(self.competitors.values())

        threats: List[CompetitiveThreat] = []
        for competitor in competitors:
            threats.extend(await self._analyze_threats(competitor))
        threats.sort(key=lambda t: SEVERITY_RANK[t.severity] * t.probability, reverse=True)

        queued = {t.id for t in self.alert_queue}
        for threat in threats:
            serious = threat.severity == "critical" or (threat.severity == "high" and threat.probability > 0.7)
            if serious and threat.id not in queued:
                self.alert_queue.append(threat)
                queued.add(threat.id)

        self.threats = threats
        logger.info(f"[{self.name}] Detected {len(threats)} threats across {len(competitors)} competitors")
        return threats

    async def identify_competitive_opportunities(self, industry: Optional[str] = None,
                                                 timeframe: str = "6_months") -> List[CompetitiveOpportunity]:
        competitors = [c for c in self.competitors.values() if industry is None or c.industry == industry]
        weaknesses = [f"{c.name}: {w}" for c in competitors for w in c.profile.get("weaknesses") or []]

        result = await self.call_openai_json(
            """You find competitive opportunities for thought leadership.
Respond with JSON:
{"opportunities": [{"type": "market_gap|competitor_weakness|customer_dissatisfaction|technology_shift|regulatory_change",
                    "value": "low|medium|high|transformational", "description": "...", "probability": 0.0-1.0,
                    "timeline": "...", "actionItems": ["..."], "resourceRequirement": "low|medium|high"}]}""",
            f"""Industry: {industry or 'all tracked industries'}
Timeframe: {timeframe.replace('_', ' ')}
Known competitor weaknesses:
{chr(10).join(f'- {w}' for w in weaknesses) or '- none recorded'}""",
            default={},
            temperature=0.4,
            max_tokens=1500
        )

        opportunities = []
        for index, item in enumerate((result.get("opportunities") if isinstance(result, dict) else None) or []):
            if not isinstance(item, dict) or not item.get("description"):
                continue
            value = item.get("value") if item.get("value") in VALUE_RANK else "medium"
            probability = float(item.get("probability", 0.5))
            opportunities.append(CompetitiveOpportunity(
                id=f"opp_{slugify(industry or 'all')}_{index}_{slugify(item['description'])[:30]}",
                type=item.get("type", "market_gap"),
                value=value,
                description=item["description"],
                probability=probability,
                timeline=item.get("timeline", timeframe),
                action_items=item.get("actionItems") or [],
                resource_requirement=item.get("resourceRequirement", "medium"),
                priority_score=VALUE_RANK[value] * probability
            ))
        opportunities.sort(key=lambda o: o.priority_score, reverse=True)

        self.opportunities = opportunities
        logger.info(f"[{self.name}] Identified {len(opportunities)} opportunities")
        return opportunities

    # ==================== REPORTS & QUERIES ====================

    async def generate_competitive_report(self, competitor_id: Optional[str] = None,
                                          report_type: str = "summary") -> Dict[str, Any]:
        """Report over the latest threats and opportunities, detecting them first when none exist."""
        if report_type not in REPORT_TYPES:
            raise InvalidRequestError(f"Invalid report type: {report_type}")
        competitors = [self.get_competitor(competitor_id)] if competitor_id else list(self.competitors.values())

        threats = self.threats or await self.detect_competitive_threats(competitor_id)
        if competitor_id:
            threats = [t for t in threats if t.competitor_id == competitor_id]
        opportunities = self.opportunities or await self.identify_competitive_opportunities()

        critical = sum(1 for t in threats if t.severity == "critical")
        insights = sorted(
            (i for c in competitors for i in c.insights),
            key=lambda i: i.confidence * i.relevance,
            reverse=True
        )

        report: Dict[str, Any] = {
            "metadata": {
                "generatedAt": _now().isoformat(),
                "reportType": report_type,
                "competitorCount": len(competitors),
                "timeframe": "last_30_days",
            },
            "executiveSummary": (
                f"Tracking {len(competitors)} competitors. {len(threats)} active threats "
                f"({critical} critical) and {len(opportunities)} opportunities identified."
            ),
            "threats": threats,
            "opportunities": opportunities,
            "monitoringStatus": {
                "competitorsMonitored": len(competitors),
                "activeSources": sum(len(c.monitoring.get("sources", [])) for c in competitors),
                "pendingAlerts": len(self.alert_queue),
            },
            "keyInsights": insights[:5],
        }

        if report_type == "detailed":
            report["competitorProfiles"] = [
                {
                    "id": c.id, "name": c.name, "tier": c.tier, "industry": c.industry,
                    "description": c.profile.get("description", ""),
                    "strengths": c.profile.get("strengths") or [],
                    "weaknesses": c.profile.get("weaknesses") or [],
                    "trackingMetrics": c.tracking_metrics,
                }
                for c in competitors
            ]

        if report_type == "strategic":
            report["riskAssessment"] = {
                severity: [t for t in threats if t.severity == severity]
                for severity in ("critical", "high", "medium", "low")
            }
            report["actionPlan"] = (
                [{"source": "threat", "id": t.id, "action": m} for t in threats for m in t.mitigation_strategies]
                + [{"source": "opportunity", "id": o.id, "action": a} for o in opportunities for a in o.action_items]
            )

        return report

    async def get_competitive_alerts(self, severity: str = "warning") -> List[CompetitiveThreat]:
        levels = ALERT_LEVELS.get(severity)
        if levels is None:
            raise InvalidRequestError(f"Invalid alert severity: {severity}")
        return [t for t in self.alert_queue if t.severity in levels]

    async def get_competitor_insights(self, competitor_id: str) -> List[CompetitiveInsight]:
        competitor = self.get_competitor(competitor_id)
        return sorted(competitor.insights, key=lambda i: i.confidence * i.relevance, reverse=True)

    async def get_market_intelligence(self, industry: str) -> Optional[MarketIntelligence]:
        return self.market_intelligence.get(industry)


# Global competitive intelligence agent
competitive_intelligence = CompetitiveIntelligenceAgent()
