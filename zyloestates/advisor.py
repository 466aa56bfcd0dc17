"""
AI advisory layer.

Formats store snapshots into prompts for a langchain chat model and parses the JSON
it replies with. The advisor only reads from the store, apart from logging chat
exchanges to the AI chat history.
"""
import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import structlog
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.prompts import ChatPromptTemplate
from pydantic import ValidationError

from . import prompts, schemas
from .errors import AdvisorError, InvalidPayload
from .store import Store, validate_payload
from .tools.search import CatalogSearch


logger = structlog.get_logger(__name__)

DISCLAIMER = "AI-generated response. Verify details with builders/RERA directly."
FALLBACK_ANSWER = "I'm having trouble processing your query right now. Please try again."
DEFAULT_CONFIDENCE = 0.8
MAX_LISTINGS = 5
COMPLIANCE_LEVELS = ("compliant", "warning", "critical")
_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def parse_json_reply(text: str) -> Dict[str, Any]:
    cleaned = _FENCE.sub("", (text or "").strip())
    data = json.loads(cleaned)
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


def _dump(items: Sequence[Any]) -> str:
    return json.dumps([i.model_dump(mode="json", by_alias=True) for i in items], ensure_ascii=False)


def _confidence(val: Any) -> float:
    try:
        return min(1.0, max(0.0, float(val)))
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Advisor:
    def __init__(self, store: Store, search: Optional[CatalogSearch] = None, llm: Optional[BaseChatModel] = None):
        self.store = store
        self.search = search or CatalogSearch(store)
        self.llm = llm

    def _ask(self, system: str, human: str, **values) -> Dict[str, Any]:
        if self.llm is None:
            raise AdvisorError("no language model configured")
        prompt = ChatPromptTemplate.from_messages([("system", system), ("human", human)])
        msgs = prompt.format_messages(**values)
        try:
            response = self.llm.invoke(msgs)
            text = response.content if hasattr(response, "content") else str(response)
            return parse_json_reply(text)
        except Exception as e:
            # provider errors vary by backend
            logger.warning("advisor_llm_failed", error=str(e))
            raise AdvisorError(str(e)) from e

    def _listings_for(self, ctx: schemas.ChatContext) -> List[schemas.Project]:
        if ctx.properties:
            found = (self.store.get_project(pid) for pid in ctx.properties)
            return [p for p in found if p is not None][:MAX_LISTINGS]
        return self.search.projects(ctx.search_filters or {})[:MAX_LISTINGS]

    def chat(
        self,
        query: str,
        session_id: Optional[str] = None,
        context: Any = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Answer a free-text question, falling back to a canned reply when the model fails."""
        ctx = validate_payload(schemas.ChatContext, "chat_context", context or {})
        listings = self._listings_for(ctx)
        try:
            reply = self._ask(
                prompts.ADVISOR_SYSTEM_PROMPT,
                prompts.ADVISOR_HUMAN_PROMPT,
                question=query,
                language=ctx.language or "English",
                listings=_dump(listings),
                context=json.dumps(ctx.model_dump(mode="json", by_alias=True, exclude_none=True), ensure_ascii=False),
            )
            fetched_at = _now_iso()
            result = {
                "status": "ok",
                "answer": str(reply.get("answer") or "Could you share a few more details about what you are looking for?"),
                "cards": reply.get("cards") if isinstance(reply.get("cards"), list) else [],
                "actions": reply.get("actions") if isinstance(reply.get("actions"), list) else [],
                "sources": [{"name": "ZyloAI Assistant", "url": "/ai", "fetched_at": fetched_at}]
                + [{"name": p.name, "url": f"/property/{p.id}", "fetched_at": fetched_at} for p in listings],
                "confidence": _confidence(reply.get("confidence", DEFAULT_CONFIDENCE)),
                "disclaimer": DISCLAIMER,
            }
        except AdvisorError as e:
            logger.warning("advisor_fallback", reason=e.reason, session_id=session_id)
            result = {
                "status": "error",
                "answer": FALLBACK_ANSWER,
                "cards": [],
                "actions": [],
                "sources": [],
                "confidence": 0.0,
                "disclaimer": DISCLAIMER,
            }
        if session_id:
            self.store.create_chat(
                schemas.AiChatHistoryCreate(
                    session_id=session_id, user_id=user_id, query=query, response=result["answer"], context=ctx
                )
            )
        return result

    def compare(self, project_ids: Sequence[str], preferences: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        found = (self.store.get_project(pid) for pid in dict.fromkeys(project_ids or []))
        projects = [p for p in found if p is not None]
        if len(projects) < 2:
            raise InvalidPayload("comparison", "at least 2 existing projects are required")
        reply = self._ask(
            prompts.COMPARE_PROMPT,
            prompts.COMPARE_HUMAN_PROMPT,
            projects=_dump(projects),
            preferences=json.dumps(preferences or {}, ensure_ascii=False),
        )
        ids = [p.id for p in projects]
        winner = reply.get("winner")
        return {
            "recommendation": str(reply.get("recommendation") or ""),
            "winner": winner if winner in ids else None,
            "comparison_matrix": reply.get("comparison_matrix") or {},
            "investment_analysis": reply.get("investment_analysis") or {},
            "projectIds": ids,
            "disclaimer": DISCLAIMER,
        }

    def market_insights(self, location: str, timeframe: str = "6months") -> Dict[str, Any]:
        stats = self.search.market_stats(location, "city")
        listings = self.search.projects({"city": location})[:10]
        reply = self._ask(
            prompts.MARKET_INSIGHTS_PROMPT,
            prompts.MARKET_INSIGHTS_HUMAN_PROMPT,
            location=location,
            timeframe=timeframe,
            stats=_dump(stats),
            listings=_dump(listings),
        )
        insights = reply.get("insights")
        return {
            "location": location,
            "timeframe": timeframe,
            "trends": reply.get("trends") or {},
            "forecast": reply.get("forecast") or {},
            "insights": [str(i) for i in insights] if isinstance(insights, list) else [],
            "investment_outlook": str(reply.get("investment_outlook") or ""),
            "marketStats": [s.model_dump(mode="json", by_alias=True) for s in stats],
            "disclaimer": DISCLAIMER,
        }

    def avm(self, project_id: str, unit_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Estimate a fair value range; None when the project or unit is unknown."""
        project = self.store.get_project(project_id)
        if project is None:
            return None
        units = self.store.units_by_project(project_id)
        if unit_id is not None:
            units = [u for u in units if u.id == unit_id]
            if not units:
                return None
        reply = self._ask(
            prompts.AVM_PROMPT,
            prompts.AVM_HUMAN_PROMPT,
            project=json.dumps(project.model_dump(mode="json", by_alias=True), ensure_ascii=False),
            units=_dump(units),
            stats=_dump(self.search.market_stats(project.city, "city")),
        )
        try:
            valuation = schemas.Avm.model_validate(reply)
        except ValidationError as e:
            logger.warning("advisor_avm_rejected", project_id=project_id, errors=e.error_count())
            raise AdvisorError("valuation reply is missing fairValue/low/high/confidence") from e
        return {
            **valuation.model_dump(by_alias=True),
            "comparables": reply.get("comparables") or [],
            "adjustments": reply.get("adjustments") or [],
            "rationale": str(reply.get("rationale") or ""),
            "projectId": project_id,
            "unitId": unit_id,
        }

    def legal_analysis(self, project_id: str, file_url: str) -> Optional[Dict[str, Any]]:
        """Review a legal document for buyer risk; None for an unknown project.

        When the project already holds a document at ``file_url``, its summary and
        risk flags are overwritten with the review.
        """
        project = self.store.get_project(project_id)
        if project is None:
            return None
        doc = next((d for d in self.store.legal_docs_by_project(project_id) if d.file_url == file_url), None)
        reply = self._ask(
            prompts.LEGAL_ANALYSIS_PROMPT,
            prompts.LEGAL_ANALYSIS_HUMAN_PROMPT,
            file_url=file_url,
            project=json.dumps(project.model_dump(mode="json", by_alias=True), ensure_ascii=False),
            document=json.dumps(doc.model_dump(mode="json", by_alias=True) if doc else {}, ensure_ascii=False),
        )
        summary = str(reply.get("summary") or "").strip()
        if not summary:
            raise AdvisorError("legal analysis reply has no summary")
        flags = reply.get("riskFlags")
        risk_flags = [str(f) for f in flags] if isinstance(flags, list) else []
        compliance = reply.get("compliance")
        if compliance not in COMPLIANCE_LEVELS:
            compliance = "warning"
        if doc is not None:
            self.store.update_legal_doc(doc.id, {"summary": summary, "risk_flags": risk_flags})
            logger.info("legal_doc_reviewed", doc_id=doc.id, flags=len(risk_flags))
        recs = reply.get("recommendations")
        return {
            "summary": summary,
            "riskFlags": risk_flags,
            "compliance": compliance,
            "recommendations": [str(r) for r in recs] if isinstance(recs, list) else [],
            "projectId": project_id,
            "fileUrl": file_url,
            "docId": doc.id if doc else None,
            "disclaimer": DISCLAIMER,
        }

    def negotiate(self, offer_id: str, preferences: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        offer = self.store.get_offer(offer_id)
        if offer is None:
            return None
        project = self.store.get_project(offer.project_id) if offer.project_id else None
        reply = self._ask(
            prompts.NEGOTIATE_PROMPT,
            prompts.NEGOTIATE_HUMAN_PROMPT,
            offer=json.dumps(offer.model_dump(mode="json", by_alias=True), ensure_ascii=False),
            project=json.dumps(project.model_dump(mode="json", by_alias=True) if project else {}, ensure_ascii=False),
            preferences=json.dumps(preferences or {}, ensure_ascii=False),
        )
        counters = reply.get("counters")
        if not isinstance(counters, list):
            raise AdvisorError("negotiation reply has no counters")
        terms = reply.get("terms")
        return {
            "counters": [c for c in counters if isinstance(c, dict)],
            "terms": [str(t) for t in terms] if isinstance(terms, list) else [],
            "expiry": str(reply["expiry"]) if reply.get("expiry") else None,
            "summary": str(reply.get("summary") or ""),
            "offerId": offer.id,
            "builderId": offer.builder_id,
            "disclaimer": DISCLAIMER,
        }
