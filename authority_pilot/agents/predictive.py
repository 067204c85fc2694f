"""Predictive intelligence: forecasts, content performance and trend opportunities."""
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

from pydantic import Field
from loguru import logger

from authority_pilot.agents.base import APIModel, BaseAgent, get_current_context
from authority_pilot.agents.learning_engine import learning_engine
from authority_pilot.errors import NotFoundError

PREDICTIVE_POWER_THRESHOLD = 0.6
DEFAULT_ACCURACY = 0.7
URGENCY_RANK = {"low": 1, "medium": 2, "high": 3, "critical": 4}
TIMEFRAME_PATTERN = re.compile(r"(\d+)\s*(hour|day|week|month)s?", re.IGNORECASE)
TYPE_BY_CATEGORY = {
    "content": "content_performance",
    "engagement": "engagement_opportunity",
    "strategy": "market_shift",
    "analytics": "trend_emergence",
}
DEFAULT_WINDOW_HOURS = 72


def _now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timeframe(timeframe: Optional[str]) -> Dict[str, Any]:
    """Parse "3 days"-style text into {type, value, description}; 7 days by default."""
    match = TIMEFRAME_PATTERN.search(timeframe or "")
    if match:
        return {"type": f"{match.group(2).lower()}s", "value": int(match.group(1)), "description": timeframe}
    return {"type": "days", "value": 7, "description": "7 days"}


def timeframe_delta(timeframe: Dict[str, Any]) -> timedelta:
    value = timeframe["value"]
    unit = timeframe["type"]
    if unit == "hours":
        return timedelta(hours=value)
    if unit == "weeks":
        return timedelta(weeks=value)
    if unit == "months":
        return timedelta(days=30 * value)
    return timedelta(days=value)


def default_content_prediction(content_type: str, topic: str, platform: str) -> Dict[str, Any]:
    return {
        "contentType": content_type,
        "topic": topic,
        "platform": platform,
        "predictedMetrics": {
            "views": {"min": 50, "expected": 200, "max": 500, "confidence": 0.6},
            "likes": {"min": 5, "expected": 20, "max": 50, "confidence": 0.6},
            "comments": {"min": 1, "expected": 3, "max": 8, "confidence": 0.5},
            "shares": {"min": 0, "expected": 2, "max": 5, "confidence": 0.5},
            "engagementRate": {"min": 0.02, "expected": 0.04, "max": 0.08, "confidence": 0.6},
        },
        "optimalTiming": {"dayOfWeek": 2, "hour": 9, "timezone": "UTC", "confidence": 0.5},
        "audienceResonance": {"targetAudience": "general", "resonanceScore": 0.5, "reasoningFactors": []},
        "improvementSuggestions": [],
    }


class Prediction(APIModel):
    id: str = Field(default_factory=lambda: f"pred_{uuid4().hex[:12]}")
    type: str
    category: str
    prediction: str
    confidence: float
    probability: float
    timeframe: Dict[str, Any]
    impact: Dict[str, Any] = Field(default_factory=dict)
    evidence: List[Dict[str, Any]] = Field(default_factory=list)
    actionable_insights: List[str] = Field(default_factory=list)
    risk_factors: List[str] = Field(default_factory=list)
    monitoring_metrics: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    valid_until: datetime
    accuracy: Optional[float] = None


class TrendForecast(APIModel):
    id: str = Field(default_factory=lambda: f"trend_{uuid4().hex[:12]}")
    trend: str
    industry: str
    platform: str
    phase: str
    timeline: str = ""
    confidence: float = 0.5
    market_saturation: float = 0.5
    competition_level: str = "medium"
    window_closes: datetime
    content_suggestions: List[str] = Field(default_factory=list)
    strategic_recommendations: List[str] = Field(default_factory=list)


class Opportunity(APIModel):
    id: str = Field(default_factory=lambda: f"opp_{uuid4().hex[:12]}")
    user_id: Optional[str] = None
    type: str = "market_timing"
    opportunity: str
    urgency: str = "medium"
    window_start: datetime
    window_end: datetime
    competitive_advantage: float = 0.5
    requirements: List[str] = Field(default_factory=list)


class PredictiveIntelligenceAgent(BaseAgent):
    """Turns learned patterns and market signals into predictions."""

    def __init__(self):
        super().__init__("PredictiveIntelligence")
        self.predictions: Dict[str, List[Prediction]] = {}
        self.trend_forecasts: Dict[str, TrendForecast] = {}
        self.opportunities: List[Opportunity] = []
        self.accuracy_history: Dict[str, float] = {}

    async def process(self, context: Dict[str, Any]) -> List[Prediction]:
        return await self.generate_predictions(context)

    def historical_accuracy(self, prediction_type: str) -> float:
        return self.accuracy_history.get(prediction_type, DEFAULT_ACCURACY)

    # ==================== PREDICTIONS ====================

    async def _predict_from_pattern(self, pattern: Dict[str, Any], context: Dict[str, Any],
                                    time_horizons: Sequence[str]) -> Optional[Prediction]:
        system_prompt = f"""{get_current_context()['context_prompt']}

You are a predictive analytics expert who turns observed patterns into specific,
measurable predictions for personal brand building.

Respond with JSON:
{{
  "prediction": "Specific, measurable prediction",
  "confidence": 0.0-1.0,
  "probability": 0.0-1.0,
  "timeframe": "7 days",
  "impact": {{"magnitude": "low|medium|high", "scope": "individual|segment|platform",
              "engagement": 0.0, "reach": 0.0, "authority": 0.0}},
  "actionableInsights": ["..."],
  "riskFactors": ["..."],
  "monitoringMetrics": ["..."]
}}"""
        user_prompt = f"""Pattern: {pattern.get('pattern')}
Category: {pattern.get('category')}
Pattern confidence: {pattern.get('confidence', 0):.2f}
Success rate: {pattern.get('successRate', 0):.2f} over {pattern.get('sampleSize', 0)} samples
Industry: {context.get('industry', 'unknown')}
Time horizons to consider: {', '.join(time_horizons)}"""

        analysis = await self.call_openai_json(system_prompt, user_prompt, default={}, temperature=0.3, max_tokens=1000)
        if not isinstance(analysis, dict) or not analysis.get("prediction"):
            return None
        confidence = float(analysis.get("confidence") or 0)
        if confidence <= 0.5:
            return None

        category = pattern.get("category", "general")
        timeframe = parse_timeframe(analysis.get("timeframe"))
        now = _now()
        return Prediction(
            type=TYPE_BY_CATEGORY.get(category, "user_behavior"),
            category=category,
            prediction=analysis["prediction"],
            confidence=confidence,
            probability=float(analysis.get("probability") or confidence),
            timeframe=timeframe,
            impact=analysis.get("impact") or {},
            evidence=[{"source": "pattern", "patternId": pattern.get("id"), "confidence": pattern.get("confidence")}],
            actionable_insights=analysis.get("actionableInsights") or [],
            risk_factors=analysis.get("riskFactors") or [],
            monitoring_metrics=analysis.get("monitoringMetrics") or [],
            created_at=now,
            valid_until=now + timeframe_delta(timeframe)
        )

    async def generate_predictions(self, context: Dict[str, Any],
                                   time_horizons: Sequence[str] = ("24h", "7d", "30d")) -> List[Prediction]:
        """
        Generate predictions from the strongest learned patterns.

        Args:
            context: Dictionary with user_id and optional industry
            time_horizons: Horizons mentioned to the model

        Returns:
            Predictions scored by historical accuracy, best first
        """
        insights = await learning_engine.get_pattern_insights()
        candidates = [p for p in insights["topPatterns"] if p["predictivePower"] > PREDICTIVE_POWER_THRESHOLD]
        logger.info(f"[{self.name}] Generating predictions from {len(candidates)} patterns")

        predictions = []
        for pattern in candidates:
            prediction = await self._predict_from_pattern(pattern, context, time_horizons)
            if prediction:
                predictions.append(prediction)

        for prediction in predictions:
            prediction.confidence = prediction.confidence * self.historical_accuracy(prediction.type)
        predictions.sort(key=lambda p: p.confidence, reverse=True)

        user_id = context.get("user_id") or "global"
        self.predictions.setdefault(user_id, []).extend(predictions)
        logger.info(f"[{self.name}] Generated {len(predictions)} predictions for {user_id}")
        return predictions

    async def predict_content_performance(self, content_type: str, topic: str, platform: str,
                                          context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Forecast engagement for a planned piece of content."""
        context = context or {}
        default = default_content_prediction(content_type, topic, platform)
        system_prompt = """You are a content performance prediction expert for personal brands.
Respond with JSON:
{
  "predictedMetrics": {
    "views": {"min": 0, "expected": 0, "max": 0, "confidence": 0.0},
    "likes": {...}, "comments": {...}, "shares": {...}, "engagementRate": {...}
  },
  "optimalTiming": {"dayOfWeek": 0-6, "hour": 0-23, "timezone": "UTC", "confidence": 0.0},
  "audienceResonance": {"targetAudience": "...", "resonanceScore": 0.0, "reasoningFactors": ["..."]},
  "improvementSuggestions": ["..."]
}"""
        user_prompt = f"""Content type: {content_type}
Topic: {topic}
Platform: {platform}
Industry: {context.get('industry', 'unknown')}
Audience size: {context.get('audience_size', 'unknown')}"""

        prediction = await self.call_openai_json(system_prompt, user_prompt, default=None, temperature=0.2, max_tokens=1500)
        if not isinstance(prediction, dict) or "predictedMetrics" not in prediction:
            logger.warning(f"[{self.name}] Using default content prediction for {content_type} on {platform}")
            return default
        return {**default, **prediction, "contentType": content_type, "topic": topic, "platform": platform}

    # ==================== TRENDS & OPPORTUNITIES ====================

    async def _analyze_platform_trends(self, industry: str, platform: str) -> List[TrendForecast]:
        system_prompt = f"""{get_current_context()['context_prompt']}

You are a trend analysis expert who finds thought-leadership opportunities.
Respond with JSON:
{{
  "trends": [
    {{
      "trend": "...",
      "phase": "emerging|growing|peak|declining",
      "timeline": "next 3-6 months",
      "confidence": 0.0-1.0,
      "marketSaturation": 0.0-1.0,
      "competitionLevel": "low|medium|high|saturated",
      "windowHours": 72,
      "contentSuggestions": ["..."],
      "strategicRecommendations": ["..."]
    }}
  ]
}}"""
        user_prompt = f"Identify emerging trends in {industry} on {platform}."

        analysis = await self.call_openai_json(system_prompt, user_prompt, default={}, temperature=0.3, max_tokens=2000)
        trends = analysis.get("trends") if isinstance(analysis, dict) else None
        now = _now()
        forecasts = []
        for item in trends or []:
            if not isinstance(item, dict) or not item.get("trend"):
                continue
            hours = item.get("windowHours") or DEFAULT_WINDOW_HOURS
            forecasts.append(TrendForecast(
                trend=item["trend"],
                industry=industry,
                platform=platform,
                phase=item.get("phase", "emerging"),
                timeline=item.get("timeline", ""),
                confidence=float(item.get("confidence", 0.5)),
                market_saturation=float(item.get("marketSaturation", 0.5)),
                competition_level=item.get("competitionLevel", "medium"),
                window_closes=now + timedelta(hours=float(hours)),
                content_suggestions=item.get("contentSuggestions") or [],
                strategic_recommendations=item.get("strategicRecommendations") or []
            ))
        return forecasts

    async def detect_trend_opportunities(self, industry: str,
                                         platforms: Sequence[str] = ("linkedin", "twitter"),
                                         user_id: Optional[str] = None) -> List[TrendForecast]:
        """Emerging or growing trends, least saturated and most confident first."""
        forecasts: List[TrendForecast] = []
        for platform in platforms:
            forecasts.extend(await self._analyze_platform_trends(industry, platform))

        forecasts = [f for f in forecasts if f.phase in ("emerging", "growing")]
        forecasts.sort(key=lambda f: f.confidence * (1 - f.market_saturation), reverse=True)

        now = _now()
        for forecast in forecasts:
            self.trend_forecasts[forecast.id] = forecast
            if forecast.phase == "emerging":
                self.opportunities.append(Opportunity(
                    user_id=user_id,
                    opportunity=f"Get ahead of '{forecast.trend}' on {forecast.platform}",
                    urgency="high" if forecast.confidence > 0.8 else "medium",
                    window_start=now,
                    window_end=forecast.window_closes,
                    competitive_advantage=1 - forecast.market_saturation,
                    requirements=forecast.content_suggestions
                ))

        logger.info(f"[{self.name}] Found {len(forecasts)} trend opportunities in {industry}")
        return forecasts

    async def get_opportunity_alert(self, user_id: str, urgency: str = "medium") -> List[Opportunity]:
        """Open opportunities starting within a day, filtered by urgency."""
        now = _now()
        horizon = now + timedelta(hours=24)
        accepted = {"medium", "high"} if urgency == "medium" else {urgency}
        matching = [
            o for o in self.opportunities
            if o.urgency in accepted
            and o.user_id in (None, user_id)
            and o.window_end > now
            and o.window_start <= horizon
        ]
        matching.sort(key=lambda o: o.competitive_advantage * URGENCY_RANK.get(o.urgency, 2), reverse=True)
        return matching

    # ==================== VALIDATION ====================

    async def record_outcome(self, prediction_id: str, accurate: bool) -> Prediction:
        """Mark a prediction as accurate or not and refresh its type's accuracy."""
        prediction = next(
            (p for ps in self.predictions.values() for p in ps if p.id == prediction_id),
            None
        )
        if not prediction:
            raise NotFoundError(f"Prediction not found: {prediction_id}")

        prediction.accuracy = 1.0 if accurate else 0.0
        scored = [
            p.accuracy for ps in self.predictions.values() for p in ps
            if p.type == prediction.type and p.accuracy is not None
        ]
        self.accuracy_history[prediction.type] = sum(scored) / len(scored)
        return prediction

    async def validate_predictions(self) -> Dict[str, Any]:
        predictions = [p for ps in self.predictions.values() for p in ps]
        validated = [p for p in predictions if p.accuracy is not None]

        accuracy_by_type: Dict[str, float] = {}
        for prediction_type in {p.type for p in validated}:
            scores = [p.accuracy for p in validated if p.type == prediction_type]
            accuracy_by_type[prediction_type] = sum(scores) / len(scores)

        return {
            "totalPredictions": len(predictions),
            "validatedPredictions": len(validated),
            "averageAccuracy": sum(p.accuracy for p in validated) / len(validated) if validated else 0.0,
            "accuracyByType": accuracy_by_type,
            "improvementSuggestions": [
                f"Improve {t} predictions: accuracy is {a:.0%}"
                for t, a in sorted(accuracy_by_type.items()) if a < 0.6
            ],
        }

    async def get_predictions(self, user_id: str) -> List[Prediction]:
        return list(self.predictions.get(user_id, []))


# Global predictive intelligence agent
predictive_intelligence = PredictiveIntelligenceAgent()
