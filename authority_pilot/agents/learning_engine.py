"""Learning engine: turns agent experiences into weighted patterns."""
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import Field
from loguru import logger

from authority_pilot.agents.base import APIModel

SIMILARITY_THRESHOLD = 0.8
RECOMMENDATION_CONFIDENCE = 0.7
HIGH_CONFIDENCE = 0.8


def word_similarity(text1: str, text2: str) -> float:
    """Jaccard similarity of lowercased whitespace-separated words."""
    words1 = set(text1.lower().split())
    words2 = set(text2.lower().split())
    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)


class Experience(APIModel):
    """Something an agent did, and what came of it."""
    category: str = "general"
    objective: str = ""
    action: str
    context: Dict[str, Any] = Field(default_factory=dict)
    results: List[Dict[str, Any]] = Field(default_factory=list)


class Evidence(APIModel):
    experience_id: str
    outcome: str  # success, failure, neutral
    metrics: Dict[str, float] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PatternPerformance(APIModel):
    success_rate: float = 0.0
    avg_improvement: float = 0.0
    sample_size: int = 0


class LearningPattern(APIModel):
    """Repeated action whose outcomes are tracked over time."""
    id: str
    agent_id: str
    category: str
    objective: str = ""
    pattern: str
    context: Dict[str, Any] = Field(default_factory=dict)
    evidence: List[Evidence] = Field(default_factory=list)
    confidence: float = 0.0
    performance: PatternPerformance = Field(default_factory=PatternPerformance)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_validated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class LearningEngine:
    """Keeps per-agent learning patterns in memory."""

    def __init__(self):
        self.patterns: Dict[str, List[LearningPattern]] = {}
        logger.info("LearningEngine initialized")

    async def learn_from_experience(self, agent_id: str, experience: Experience) -> LearningPattern:
        """
        Record an experience and update (or create) the matching pattern.

        Args:
            agent_id: Agent that had the experience
            experience: What was done and the results

        Returns:
            The updated or newly created pattern
        """
        now = datetime.now(timezone.utc)
        evidence = Evidence(
            experience_id=f"exp_{uuid4().hex[:12]}",
            outcome=self.determine_outcome(experience),
            metrics=self.extract_metrics(experience),
            timestamp=now
        )

        agent_patterns = self.patterns.setdefault(agent_id, [])
        existing = next(
            (
                p for p in agent_patterns
                if p.category == experience.category
                and word_similarity(p.pattern, experience.action) > SIMILARITY_THRESHOLD
            ),
            None
        )

        if existing:
            existing.evidence.append(evidence)
            existing.last_validated = now
            pattern = existing
        else:
            pattern = LearningPattern(
                id=f"pattern_{agent_id}_{uuid4().hex[:8]}",
                agent_id=agent_id,
                category=experience.category,
                objective=experience.objective,
                pattern=experience.action,
                context=experience.context,
                evidence=[evidence],
                created_at=now,
                last_validated=now
            )
            agent_patterns.append(pattern)

        pattern.performance = self.calculate_performance(pattern)
        pattern.confidence = self.calculate_confidence(pattern, now)

        logger.info(
            f"Agent {agent_id} learned from '{experience.action}' "
            f"({evidence.outcome}, confidence {pattern.confidence:.2f}, n={len(pattern.evidence)})"
        )
        return pattern

    def determine_outcome(self, experience: Experience) -> str:
        """Classify an experience by its share of successful results."""
        results = experience.results
        if not results:
            return "neutral"
        successes = sum(1 for r in results if r.get("status") == "completed" or r.get("success"))
        ratio = successes / len(results)
        if ratio >= 0.7:
            return "success"
        if ratio <= 0.3:
            return "failure"
        return "neutral"

    def extract_metrics(self, experience: Experience) -> Dict[str, float]:
        metrics: Dict[str, float] = {}
        for index, result in enumerate(experience.results):
            for field in ("value", "duration", "score"):
                value = result.get(field)
                if isinstance(value, (int, float)) and not isinstance(value, bool):
                    metrics[f"result_{index}_{field}"] = float(value)
        return metrics

    def calculate_performance(self, pattern: LearningPattern) -> PatternPerformance:
        evidence = pattern.evidence
        successful = [e for e in evidence if e.outcome == "success"]
        improvements = [
            sum(e.metrics.values()) / len(e.metrics) if e.metrics else 0.0
            for e in successful
        ]
        return PatternPerformance(
            success_rate=len(successful) / len(evidence) if evidence else 0.0,
            avg_improvement=sum(improvements) / len(improvements) if improvements else 0.0,
            sample_size=len(evidence)
        )

    def calculate_confidence(self, pattern: LearningPattern, now: Optional[datetime] = None) -> float:
        """Success rate plus sample-size and recency bonuses, capped at 1."""
        evidence = pattern.evidence
        if not evidence:
            return 0.0
        now = now or datetime.now(timezone.utc)
        success_rate = sum(1 for e in evidence if e.outcome == "success") / len(evidence)
        sample_bonus = min(0.2, len(evidence) / 50)
        avg_age_days = sum((now - e.timestamp).total_seconds() for e in evidence) / len(evidence) / 86400
        recency_bonus = 0.1 * max(0.0, 1 - avg_age_days / 30)
        return min(1.0, success_rate + sample_bonus + recency_bonus)

    def is_applicable(self, pattern: LearningPattern, context: Dict[str, Any]) -> bool:
        """Pattern applies when every context key it shares with the caller matches."""
        if not pattern.context:
            return True
        shared = set(pattern.context) & set(context)
        return all(pattern.context[key] == context[key] for key in shared)

    async def get_recommendations(self, agent_id: str, context: Optional[Dict[str, Any]] = None) -> List[str]:
        """Top five confident, applicable patterns as recommendations."""
        context = context or {}
        candidates = [
            p for p in self.patterns.get(agent_id, [])
            if p.confidence > RECOMMENDATION_CONFIDENCE and self.is_applicable(p, context)
        ]
        candidates.sort(key=lambda p: p.confidence * p.performance.success_rate, reverse=True)
        return [f"Based on {len(p.evidence)} experiences: {p.pattern}" for p in candidates[:5]]

    async def generate_learning_report(self, agent_id: str) -> Dict[str, Any]:
        """Summarize what an agent has learned."""
        patterns = self.patterns.get(agent_id, [])
        week_ago = datetime.now(timezone.utc) - timedelta(days=7)
        top = sorted(patterns, key=lambda p: p.confidence, reverse=True)[:10]
        return {
            "agentId": agent_id,
            "totalPatterns": len(patterns),
            "highConfidencePatterns": sum(1 for p in patterns if p.confidence > HIGH_CONFIDENCE),
            "objectives": sorted({p.objective for p in patterns if p.objective}),
            "topPatterns": top,
            "learningVelocity": sum(1 for p in patterns if p.created_at >= week_ago),
        }

    async def get_pattern_insights(self, agent_id: Optional[str] = None) -> Dict[str, Any]:
        """Pattern overview across agents, with predictive power per pattern."""
        if agent_id:
            patterns = list(self.patterns.get(agent_id, []))
        else:
            patterns = [p for ps in self.patterns.values() for p in ps]

        ranked = sorted(
            patterns,
            key=lambda p: p.confidence * p.performance.success_rate,
            reverse=True
        )[:10]

        return {
            "totalPatterns": len(patterns),
            "byCategory": dict(Counter(p.category for p in patterns)),
            "averageConfidence": (
                sum(p.confidence for p in patterns) / len(patterns) if patterns else 0.0
            ),
            "topPatterns": [
                {
                    "id": p.id,
                    "agentId": p.agent_id,
                    "category": p.category,
                    "pattern": p.pattern,
                    "confidence": p.confidence,
                    "successRate": p.performance.success_rate,
                    "sampleSize": p.performance.sample_size,
                    "predictivePower": p.confidence * p.performance.success_rate,
                }
                for p in ranked
            ],
        }


# Global learning engine
learning_engine = LearningEngine()
