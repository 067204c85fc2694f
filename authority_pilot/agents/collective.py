"""Collective intelligence: knowledge shared between agents, accepted by consensus."""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import Field
from loguru import logger

from authority_pilot.agents.base import APIModel, BaseAgent
from authority_pilot.agents.communication import AgentMessage, communication_bus
from authority_pilot.agents.learning_engine import word_similarity
from authority_pilot.errors import InvalidRequestError, NotFoundError

DOMAINS = ("content", "engagement", "strategy", "analytics", "general")

AGENT_CAPABILITIES: Dict[str, List[str]] = {
    "strategy_agent": ["strategy", "general"],
    "content_creator_agent": ["content", "general"],
    "engagement_agent": ["engagement", "general"],
    "analytics_agent": ["analytics", "general"],
    "orchestrator_agent": ["general", "strategy", "analytics"],
}
CORE_AGENTS = ("orchestrator_agent", "strategy_agent", "analytics_agent")

DOMAIN_KEYWORDS: Dict[str, List[str]] = {
    "content": ["content", "writing", "post", "article", "copy"],
    "engagement": ["engagement", "comment", "reply", "relationship", "network"],
    "strategy": ["strategy", "goal", "plan", "position", "brand"],
    "analytics": ["analytics", "performance", "metrics", "data", "analysis"],
}

SIMILARITY_THRESHOLD = 0.8
CONSENSUS_THRESHOLD = 0.7
MIN_PARTICIPANTS = 3
MAX_PARTICIPANTS = 5
SESSION_TTL = timedelta(hours=24)
MAX_TRACKED_REQUESTS = 200
POSITIONS = ("agree", "disagree", "abstain")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class KnowledgeEvidence(APIModel):
    source_agent: str
    confidence: float
    weight: float = 1.0
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_now)


class CollectiveKnowledge(APIModel):
    """An insight accepted into the shared knowledge base."""
    id: str = Field(default_factory=lambda: f"knowledge_{uuid4().hex[:12]}")
    domain: str = "general"
    insight: str
    contributors: List[str] = Field(default_factory=list)
    evidence: List[KnowledgeEvidence] = Field(default_factory=list)
    confidence: float = 0.0
    agreement_score: float = 0.0
    applicability: Dict[str, List[str]] = Field(default_factory=lambda: {"industries": []})
    usage_count: int = 0
    version: int = 1
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class ConsensusVote(APIModel):
    agent_id: str
    position: str
    reasoning: str = ""
    confidence: float = 0.5
    timestamp: datetime = Field(default_factory=_now)


class ConsensusSession(APIModel):
    """Vote on whether a proposed insight becomes collective knowledge."""
    id: str = Field(default_factory=lambda: f"consensus_{uuid4().hex[:12]}")
    domain: str
    proposal: CollectiveKnowledge
    proposer: str
    participants: List[str]
    votes: List[ConsensusVote] = Field(default_factory=list)
    status: str = "open"  # open, consensus_reached, failed
    agreement_score: Optional[float] = None
    conflicting_views: List[Dict[str, str]] = Field(default_factory=list)
    emergency: bool = False
    knowledge_id: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    deadline: datetime = Field(default_factory=lambda: _now() + SESSION_TTL)


def infer_domain_from_query(query: str) -> str:
    """Keyword-based domain guess for a free-text query."""
    lowered = query.lower()
    for domain, words in DOMAIN_KEYWORDS.items():
        if any(word in lowered for word in words):
            return domain
    return "general"


def keyword_overlap(query: str, insight: str) -> int:
    """Number of query words that appear in (or contain) an insight word."""
    insight_words = insight.lower().split()
    return sum(
        1 for word in query.lower().split()
        if any(word in other or other in word for other in insight_words)
    )


class CollectiveIntelligence(BaseAgent):
    """Knowledge sharing and consensus building across agents."""

    def __init__(self):
        super().__init__("CollectiveIntelligence")
        self.knowledge_base: Dict[str, List[CollectiveKnowledge]] = {d: [] for d in DOMAINS}
        self.sessions: Dict[str, ConsensusSession] = {}
        self.requests: List[Dict[str, Any]] = []

    async def process(self, source_agent: str, learning: Dict[str, Any],
                      context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.share_knowledge(source_agent, learning, context or {})

    # ==================== SHARING ====================

    async def classify_domain(self, learning: Dict[str, Any], context: Dict[str, Any]) -> str:
        """Ask OpenAI which knowledge domain an insight belongs to."""
        system_prompt = (
            "You classify agent learnings into knowledge domains. "
            "Respond with JSON: {\"domain\": \"content|engagement|strategy|analytics|general\", "
            "\"confidence\": 0.0-1.0, \"reasoning\": \"...\"}"
        )
        user_prompt = f"""Classify this learning insight.

Insight: {learning.get('insight', '')}
Evidence: {learning.get('evidence', '')}
Industry: {context.get('industry', 'unknown')}

Domains:
- content: content creation, writing, messaging, voice matching
- engagement: social interaction, relationship building, networking
- strategy: positioning, goal setting, planning
- analytics: performance analysis, data interpretation, optimization
- general: cross-cutting insights"""

        result = await self.call_openai_json(system_prompt, user_prompt, default={}, temperature=0.1, max_tokens=500)
        domain = result.get("domain") if isinstance(result, dict) else None
        if domain not in DOMAINS:
            logger.debug(f"[{self.name}] Unclassified domain {domain!r}, using general")
            return "general"
        return domain

    async def share_knowledge(self, source_agent: str, learning: Dict[str, Any],
                              context: Dict[str, Any]) -> Dict[str, Any]:
        """
        Share a learning with the collective.

        Args:
            source_agent: Agent sharing the learning
            learning: Dictionary with insight, confidence and optional evidence
            context: Context such as the user's industry

        Returns:
            ``{"action": "contributed", "knowledgeId"}`` or
            ``{"action": "proposed", "sessionId"}``
        """
        insight = (learning.get("insight") or "").strip()
        if not insight:
            raise InvalidRequestError("Learning insight is required")

        logger.info(f"[{self.name}] {source_agent} sharing knowledge: {insight}")
        domain = await self.classify_domain(learning, context)

        evidence = KnowledgeEvidence(
            source_agent=source_agent,
            confidence=float(learning.get("confidence", 0.5)),
            data={"evidence": learning.get("evidence"), "context": context}
        )

        existing = next(
            (k for k in self.knowledge_base[domain] if word_similarity(k.insight, insight) > SIMILARITY_THRESHOLD),
            None
        )
        if existing:
            existing.evidence.append(evidence)
            if source_agent not in existing.contributors:
                existing.contributors.append(source_agent)
            existing.version += 1
            existing.updated_at = _now()
            existing.confidence = self.calculate_knowledge_confidence(existing)
            logger.info(f"[{self.name}] Contributed to {existing.id} (confidence {existing.confidence:.2f})")
            return {"action": "contributed", "knowledgeId": existing.id, "domain": domain}

        industry = context.get("industry")
        proposal = CollectiveKnowledge(
            domain=domain,
            insight=insight,
            contributors=[source_agent],
            evidence=[evidence],
            confidence=evidence.confidence,
            applicability={"industries": [industry] if industry else []}
        )
        session = await self.initiate_consensus(source_agent, proposal)
        return {"action": "proposed", "sessionId": session.id, "domain": domain}

    def calculate_knowledge_confidence(self, knowledge: CollectiveKnowledge) -> float:
        """Weighted evidence confidence plus a consensus bonus, capped at 1."""
        total_weight = sum(e.weight for e in knowledge.evidence)
        if total_weight == 0:
            return 0.0
        weighted = sum(e.confidence * e.weight for e in knowledge.evidence) / total_weight
        return min(1.0, weighted + knowledge.agreement_score * 0.2)

    # ==================== CONSENSUS ====================

    def select_participants(self, domain: str) -> List[str]:
        participants = [agent for agent, caps in AGENT_CAPABILITIES.items() if domain in caps]
        if len(participants) < MIN_PARTICIPANTS:
            for agent in CORE_AGENTS:
                if agent not in participants:
                    participants.append(agent)
        return participants[:MAX_PARTICIPANTS]

    async def initiate_consensus(self, proposer: str, proposal: CollectiveKnowledge,
                                 participants: Optional[List[str]] = None,
                                 emergency: bool = False) -> ConsensusSession:
        """Open a consensus session and notify its participants."""
        session = ConsensusSession(
            domain=proposal.domain,
            proposal=proposal,
            proposer=proposer,
            participants=participants or self.select_participants(proposal.domain),
            emergency=emergency
        )
        self.sessions[session.id] = session

        for participant in session.participants:
            await communication_bus.send_message(AgentMessage(
                from_agent=self.name,
                to_agent=participant,
                type="consensus_request",
                priority="critical" if emergency else "medium",
                payload={"sessionId": session.id, "domain": session.domain, "insight": proposal.insight}
            ))

        logger.info(f"[{self.name}] Consensus session {session.id} opened with {len(session.participants)} participants")
        return session

    async def participate(self, session_id: str, agent_id: str, position: str,
                          reasoning: str = "", confidence: float = 0.5) -> ConsensusSession:
        """Record a vote; the session is finalised once every participant voted."""
        session = self.sessions.get(session_id)
        if not session:
            raise NotFoundError(f"Consensus session not found: {session_id}")
        if session.status != "open":
            raise InvalidRequestError("Consensus session is closed")
        if agent_id not in session.participants:
            raise InvalidRequestError(f"{agent_id} is not a participant of this session")
        if position not in POSITIONS:
            raise InvalidRequestError(f"Invalid position: {position}")

        session.votes = [v for v in session.votes if v.agent_id != agent_id]
        session.votes.append(ConsensusVote(
            agent_id=agent_id, position=position, reasoning=reasoning, confidence=confidence
        ))

        if {v.agent_id for v in session.votes} >= set(session.participants):
            await self.finalize_consensus(session)
        return session

    async def consolidate_insight(self, session: ConsensusSession) -> str:
        """Merge the discussion into one refined insight, keeping the proposal on failure."""
        discussion = "\n".join(f"Agent {v.agent_id} ({v.position}): {v.reasoning}" for v in session.votes)
        result = await self.call_openai_json(
            "You consolidate agent discussions into a single actionable insight. "
            "Respond with JSON: {\"consolidated_insight\": \"...\"}",
            f"Proposed insight: {session.proposal.insight}\n\nDiscussion:\n{discussion}",
            default={},
            temperature=0.2,
            max_tokens=800
        )
        insight = result.get("consolidated_insight") if isinstance(result, dict) else None
        return insight if isinstance(insight, str) and insight.strip() else session.proposal.insight

    async def finalize_consensus(self, session: ConsensusSession) -> None:
        counts = {position: 0 for position in POSITIONS}
        for vote in session.votes:
            counts[vote.position] += 1
        total = sum(counts.values())
        agreement = (counts["agree"] + 0.5 * counts["abstain"]) / total if total else 0.0

        session.agreement_score = agreement
        session.conflicting_views = [
            {"agentId": v.agent_id, "reasoning": v.reasoning}
            for v in session.votes if v.position == "disagree"
        ]

        if agreement >= CONSENSUS_THRESHOLD:
            knowledge = session.proposal
            knowledge.insight = await self.consolidate_insight(session)
            knowledge.agreement_score = agreement
            knowledge.contributors = list(dict.fromkeys(knowledge.contributors + session.participants))
            knowledge.confidence = self.calculate_knowledge_confidence(knowledge)
            knowledge.updated_at = _now()
            self.knowledge_base.setdefault(knowledge.domain, []).append(knowledge)
            session.knowledge_id = knowledge.id
            session.status = "consensus_reached"
            logger.info(f"[{self.name}] Consensus reached ({agreement:.2f}): {knowledge.insight}")
        else:
            session.status = "failed"
            logger.info(f"[{self.name}] No consensus for {session.id} ({agreement:.2f})")

        await communication_bus.send_message(AgentMessage(
            from_agent=self.name,
            type="consensus_outcome",
            payload={
                "sessionId": session.id,
                "status": session.status,
                "agreementScore": agreement,
                "knowledgeId": session.knowledge_id,
            }
        ))

    # ==================== QUERIES ====================

    def is_applicable(self, knowledge: CollectiveKnowledge, context: Dict[str, Any]) -> bool:
        industries = knowledge.applicability.get("industries") or []
        industry = context.get("industry")
        if not industry or not industries:
            return True
        return "general" in industries or industry in industries

    async def request_knowledge(self, requesting_agent: str, query: str,
                                context: Optional[Dict[str, Any]] = None,
                                urgency: str = "medium") -> List[CollectiveKnowledge]:
        """
        Search the collective for knowledge relevant to a query.

        A critical request with no match opens an emergency consensus proposal.
        """
        context = context or {}
        domain = infer_domain_from_query(query)
        request = {
            "agentId": requesting_agent,
            "query": query,
            "domain": domain,
            "urgency": urgency,
            "status": "pending",
            "timestamp": _now(),
        }
        self.track_request(request)

        required = min(2, len(query.split()) * 0.3)
        matches = [
            k for entries in self.knowledge_base.values() for k in entries
            if keyword_overlap(query, k.insight) >= required
            and k.confidence > 0.6
            and self.is_applicable(k, context)
        ]
        matches.sort(key=lambda k: k.confidence, reverse=True)
        for knowledge in matches:
            knowledge.usage_count += 1
        request["status"] = "answered" if matches else "unanswered"

        if urgency == "critical" and not matches:
            logger.warning(f"[{self.name}] No knowledge for critical request from {requesting_agent}: {query}")
            industry = context.get("industry")
            session = await self.initiate_consensus(
                requesting_agent,
                CollectiveKnowledge(
                    domain=domain,
                    insight=query,
                    contributors=[requesting_agent],
                    applicability={"industries": [industry] if industry else []}
                ),
                emergency=True
            )
            request["status"] = "escalated"
            request["sessionId"] = session.id

        return matches

    def track_request(self, request: Dict[str, Any]) -> None:
        cutoff = _now() - SESSION_TTL
        self.requests = [r for r in self.requests if r["timestamp"] >= cutoff]
        self.requests.append(request)
        del self.requests[:-MAX_TRACKED_REQUESTS]

    def pending_requests(self) -> int:
        """Escalated requests whose consensus session is still open."""
        open_sessions = {s.id for s in self.sessions.values() if s.status == "open"}
        return sum(1 for r in self.requests if r.get("sessionId") in open_sessions)

    async def get_collective_wisdom(self, domain: str) -> List[CollectiveKnowledge]:
        return sorted(self.knowledge_base.get(domain, []), key=lambda k: k.confidence, reverse=True)

    async def get_system_insights(self) -> Dict[str, Any]:
        """Snapshot of the knowledge base and consensus activity."""
        entries = [k for ks in self.knowledge_base.values() for k in ks]
        distribution = {
            domain: {
                "count": len(ks),
                "averageConfidence": sum(k.confidence for k in ks) / len(ks) if ks else 0.0,
            }
            for domain, ks in self.knowledge_base.items() if ks
        }
        return {
            "totalKnowledge": len(entries),
            "activeSessions": sum(1 for s in self.sessions.values() if s.status == "open"),
            "completedSessions": sum(1 for s in self.sessions.values() if s.status != "open"),
            "pendingRequests": self.pending_requests(),
            "averageConfidence": sum(k.confidence for k in entries) / len(entries) if entries else 0.0,
            "domainDistribution": distribution,
            "topKnowledge": sorted(entries, key=lambda k: k.confidence, reverse=True)[:5],
        }


# Global collective intelligence instance
collective_intelligence = CollectiveIntelligence()
