"""Searchable repository of structured knowledge entries."""
import json
import re
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import Field
from loguru import logger

from authority_pilot.agents.base import APIModel, BaseAgent
from authority_pilot.errors import InvalidRequestError, NotFoundError

KNOWLEDGE_TYPES = ("insight", "pattern", "prediction", "learning", "best_practice", "case_study")
CATEGORIES = ("content", "engagement", "strategy", "analytics", "general")
RANKINGS = ("relevance", "confidence", "popularity", "recency", "impact")
RELATIONSHIP_THRESHOLD = 0.7
VALIDATION_THRESHOLD = 0.7


def _now() -> datetime:
    return datetime.now(timezone.utc)


def content_similarity(text1: str, text2: str) -> float:
    """Jaccard similarity over lowercased word tokens."""
    words1 = {w for w in re.split(r"\W+", text1.lower()) if w}
    words2 = {w for w in re.split(r"\W+", text2.lower()) if w}
    union = words1 | words2
    return len(words1 & words2) / len(union) if union else 0.0


def generate_title(content: str) -> str:
    words = content.split()
    if len(words) > 10:
        return " ".join(words[:10]) + "..."
    return " ".join(words)


def generate_tags(content: str, category: str) -> List[str]:
    """Category first, then up to eight unique words of four or more letters."""
    terms = re.findall(r"\b\w{4,}\b", content.lower())
    unique = [t for t in dict.fromkeys(terms) if t != category]
    return [category] + unique[:8]


class KnowledgeRelationship(APIModel):
    type: str = "related"
    target_id: str
    strength: float
    reasoning: str = "Content similarity detected"


class KnowledgeUsage(APIModel):
    access_count: int = 0
    application_count: int = 0
    last_accessed: Optional[datetime] = None
    popularity_score: float = 0.0
    feedback_score: float = 0.0


class KnowledgeValidation(APIModel):
    is_validated: bool = False
    validation_score: float = 0.0
    last_validation: datetime = Field(default_factory=_now)
    validation_method: str = "automated_initial"
    validators: List[str] = Field(default_factory=lambda: ["system"])


class KnowledgeEntry(APIModel):
    """Structured knowledge with usage and validation tracking."""
    id: str = Field(default_factory=lambda: f"knowledge_{uuid4().hex[:12]}")
    type: str
    category: str
    title: str
    content: str
    confidence: float = 0.7
    impact_score: float = 0.0
    applicability: Dict[str, List[str]] = Field(default_factory=lambda: {"industries": [], "conditions": []})
    quality: Dict[str, float] = Field(default_factory=lambda: {
        "accuracy": 0.8, "completeness": 0.8, "clarity": 0.8, "relevance": 0.8, "timeliness": 0.8
    })
    tags: List[str] = Field(default_factory=list)
    relationships: List[KnowledgeRelationship] = Field(default_factory=list)
    usage: KnowledgeUsage = Field(default_factory=KnowledgeUsage)
    validation: KnowledgeValidation = Field(default_factory=KnowledgeValidation)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    version: int = 1


class SearchResult(APIModel):
    entry: KnowledgeEntry
    relevance_score: float
    match_reason: str
    suggested_application: str
    related_entries: List[str] = Field(default_factory=list)


class KnowledgeRepository(BaseAgent):
    """Stores knowledge entries and ranks them for search and recommendations."""

    def __init__(self):
        super().__init__("KnowledgeRepository")
        self.entries: Dict[str, KnowledgeEntry] = {}

    async def process(self, content: Any, type: str, category: str,
                      metadata: Optional[Dict[str, Any]] = None) -> str:
        return await self.store_knowledge(content, type, category, metadata)

    async def structure_content(self, content: Any, type: str) -> str:
        """Rewrite raw content as a clear knowledge description, or fall back to its JSON."""
        raw = json.dumps(content, default=str)
        try:
            structured = await self.call_openai(
                system_prompt=(
                    "You are a knowledge processing expert. Structure the given content into a clear, "
                    "searchable and actionable knowledge entry. State the core insight, the context "
                    "where it applies and any supporting evidence in one or two short paragraphs."
                ),
                user_prompt=f"Knowledge type: {type}\n\nContent:\n{raw}",
                temperature=0.2,
                max_tokens=1500
            )
        except Exception as e:
            logger.error(f"[{self.name}] Failed to structure content: {e}", exc_info=True)
            return raw
        return structured.strip() or raw

    async def store_knowledge(self, content: Any, type: str, category: str,
                              metadata: Optional[Dict[str, Any]] = None) -> str:
        """
        Store a new knowledge entry.

        Args:
            content: Raw knowledge (any JSON-serializable value)
            type: insight, pattern, prediction, learning, best_practice or case_study
            category: content, engagement, strategy, analytics or general
            metadata: Optional confidence, impact_score and applicability

        Returns:
            ID of the stored entry
        """
        if type not in KNOWLEDGE_TYPES:
            raise InvalidRequestError(f"Invalid knowledge type: {type}")
        if category not in CATEGORIES:
            raise InvalidRequestError(f"Invalid knowledge category: {category}")

        metadata = metadata or {}
        text = await self.structure_content(content, type)

        relationships = []
        for other in self.entries.values():
            similarity = content_similarity(text, other.content)
            if similarity > RELATIONSHIP_THRESHOLD:
                relationships.append(KnowledgeRelationship(target_id=other.id, strength=similarity))

        entry = KnowledgeEntry(
            type=type,
            category=category,
            title=generate_title(text),
            content=text,
            confidence=float(metadata.get("confidence", 0.7)),
            impact_score=float(metadata.get("impact_score", 0.0)),
            applicability={
                "industries": list(metadata.get("applicability", {}).get("industries", [])),
                "conditions": list(metadata.get("applicability", {}).get("conditions", [])),
            },
            tags=generate_tags(text, category),
            relationships=relationships
        )
        self.entries[entry.id] = entry

        logger.info(f"[{self.name}] Stored {type} knowledge in {category}: {entry.id}")
        return entry.id

    # ==================== SEARCH ====================

    def _matches_filters(self, entry: KnowledgeEntry, filters: Dict[str, Any], now: datetime) -> bool:
        categories = filters.get("category")
        if categories and entry.category not in categories:
            return False
        types = filters.get("type")
        if types and entry.type not in types:
            return False
        min_confidence = filters.get("min_confidence")
        if min_confidence is not None and entry.confidence < min_confidence:
            return False
        max_age_days = filters.get("max_age_days")
        if max_age_days is not None and entry.updated_at < now - timedelta(days=max_age_days):
            return False
        tags = filters.get("tags")
        if tags and not any(tag in entry.tags for tag in tags):
            return False
        industry = filters.get("industry")
        industries = entry.applicability.get("industries") or []
        if industry and industries and industry not in industries:
            return False
        return True

    def relevance_score(self, entry: KnowledgeEntry, query: str, now: Optional[datetime] = None) -> float:
        now = now or _now()
        age_months = (now - entry.updated_at).total_seconds() / (30 * 86400)
        score = (
            0.4 * content_similarity(entry.content, query)
            + 0.2 * entry.confidence
            + 0.2 * entry.impact_score
            + 0.1 * min(entry.usage.popularity_score, 1.0)
            + 0.1 * max(0.0, 1 - age_months)
        )
        return min(score, 1.0)

    async def search_knowledge(self, query: Dict[str, Any]) -> List[SearchResult]:
        """
        Search entries.

        ``query`` holds ``query`` text, optional ``filters`` (category, type,
        min_confidence, max_age_days, tags, industry), optional ``ranking``
        (``by`` and ``order``) and ``limit`` (default 20).
        """
        text = query.get("query", "")
        filters = query.get("filters") or {}
        ranking = query.get("ranking") or {}
        by = ranking.get("by", "relevance")
        if by not in RANKINGS:
            raise InvalidRequestError(f"Invalid ranking: {by}")
        descending = ranking.get("order", "desc") != "asc"
        limit = int(query.get("limit") or 20)
        now = _now()

        scored = [
            (entry, self.relevance_score(entry, text, now))
            for entry in self.entries.values()
            if self._matches_filters(entry, filters, now)
        ]

        sort_keys = {
            "relevance": lambda item: item[1],
            "confidence": lambda item: item[0].confidence,
            "popularity": lambda item: item[0].usage.popularity_score,
            "recency": lambda item: item[0].updated_at,
            "impact": lambda item: item[0].impact_score,
        }
        scored.sort(key=sort_keys[by], reverse=descending)

        results = []
        for entry, score in scored[:limit]:
            entry.usage.access_count += 1
            entry.usage.last_accessed = now
            entry.usage.popularity_score = min(1.0, entry.usage.access_count / 20)
            conditions = entry.applicability.get("conditions") or ["relevant to your goals"]
            results.append(SearchResult(
                entry=entry,
                relevance_score=score,
                match_reason=f"Matched based on {entry.category} relevance and {entry.confidence * 100:.0f}% confidence",
                suggested_application=f"Apply this {entry.type} when {' or '.join(conditions)}",
                related_entries=[r.target_id for r in entry.relationships][:3]
            ))

        logger.info(f"[{self.name}] Search '{text}' returned {len(results)} entries")
        return results

    async def get_recommendations(self, context: Dict[str, Any], type: Optional[str] = None,
                                  limit: int = 10) -> List[SearchResult]:
        """Recent, confident entries for a context, ranked by impact."""
        parts = []
        for goal in context.get("goals") or []:
            parts.append(goal.get("type", "") if isinstance(goal, dict) else str(goal))
        if context.get("industry"):
            parts.append(context["industry"])

        filters: Dict[str, Any] = {"min_confidence": 0.7, "max_age_days": 30}
        if type:
            filters["type"] = [type]
        if context.get("industry"):
            filters["industry"] = context["industry"]

        return await self.search_knowledge({
            "query": " ".join(p for p in parts if p),
            "filters": filters,
            "ranking": {"by": "impact", "order": "desc"},
            "limit": limit,
        })

    # ==================== MAINTENANCE ====================

    def _get(self, entry_id: str) -> KnowledgeEntry:
        entry = self.entries.get(entry_id)
        if not entry:
            raise NotFoundError(f"Knowledge entry not found: {entry_id}")
        return entry

    async def update_knowledge(self, entry_id: str, updates: Dict[str, Any]) -> KnowledgeEntry:
        entry = self._get(entry_id)
        protected = {"id", "created_at", "version"}
        merged = {**entry.model_dump(), **{k: v for k, v in updates.items() if k not in protected}}
        merged["updated_at"] = _now()
        merged["version"] = entry.version + 1
        updated = KnowledgeEntry.model_validate(merged)
        self.entries[entry_id] = updated
        return updated

    async def record_feedback(self, entry_id: str, successful: bool, score: float) -> KnowledgeEntry:
        """Record that an entry was applied, with a 0-1 feedback score."""
        entry = self._get(entry_id)
        usage = entry.usage
        previous = usage.application_count
        successes = entry.impact_score * previous + (1 if successful else 0)
        usage.application_count += 1
        usage.feedback_score = (usage.feedback_score * previous + score) / usage.application_count
        entry.impact_score = successes / usage.application_count
        entry.updated_at = _now()
        return entry

    async def validate_knowledge(self, entry_id: str, method: str, validator: str) -> bool:
        """Score an entry from its confidence and feedback; validated above 0.7."""
        entry = self._get(entry_id)
        feedback = entry.usage.feedback_score if entry.usage.application_count else 0.8
        score = 0.6 * entry.confidence + 0.4 * feedback

        entry.validation = KnowledgeValidation(
            is_validated=score > VALIDATION_THRESHOLD,
            validation_score=score,
            validation_method=method,
            validators=list(dict.fromkeys(entry.validation.validators + [validator]))
        )
        entry.updated_at = _now()
        entry.version += 1
        return entry.validation.is_validated

    async def get_knowledge_insights(self) -> Dict[str, Any]:
        entries = list(self.entries.values())
        week_ago = _now() - timedelta(days=7)

        quality = {"high": 0, "medium": 0, "low": 0}
        for entry in entries:
            average = sum(entry.quality.values()) / len(entry.quality) if entry.quality else 0.0
            quality["high" if average >= 0.8 else "medium" if average >= 0.5 else "low"] += 1

        total_access = sum(e.usage.access_count for e in entries)
        return {
            "totalEntries": len(entries),
            "byType": dict(Counter(e.type for e in entries)),
            "byCategory": dict(Counter(e.category for e in entries)),
            "qualityDistribution": quality,
            "topPerformers": sorted(
                entries, key=lambda e: e.impact_score * e.confidence, reverse=True
            )[:5],
            "recentAdditions": sum(1 for e in entries if e.created_at >= week_ago),
            "validationStatus": {
                "validated": sum(1 for e in entries if e.validation.is_validated),
                "unvalidated": sum(1 for e in entries if not e.validation.is_validated),
            },
            "usageStatistics": {
                "totalAccesses": total_access,
                "totalApplications": sum(e.usage.application_count for e in entries),
                "averageAccesses": total_access / len(entries) if entries else 0.0,
            },
        }


# Global knowledge repository
knowledge_repository = KnowledgeRepository()
