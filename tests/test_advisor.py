import json
import types

import pytest
from langchain_core.language_models import FakeListChatModel

from zyloestates.advisor import DISCLAIMER, Advisor, parse_json_reply
from zyloestates.errors import AdvisorError, InvalidPayload
from zyloestates.tools.llm_provider import get_llm


class DummyLLM:
    def __init__(self, response: str):
        self._resp = response
        self.seen = []

    def invoke(self, messages, *_args, **_kwargs):
        self.seen.append(messages)
        return types.SimpleNamespace(content=self._resp)


class ExplodingLLM:
    def invoke(self, *_args, **_kwargs):
        raise RuntimeError("rate limited")


def test_parse_json_reply_strips_fences():
    assert parse_json_reply('```json\n{"answer": "hi"}\n```') == {"answer": "hi"}
    with pytest.raises(ValueError):
        parse_json_reply("[1, 2]")


def test_chat_returns_structured_answer_and_logs_history(seeded_store):
    llm = DummyLLM(json.dumps({
        "answer": "Prestige Lakeside Habitat fits a 2 Cr budget.",
        "cards": [{"type": "insight", "title": "Budget fit", "data": {}}],
        "actions": [{"type": "schedule_visit", "params": {"projectId": "project-prestige-lakeside"}}],
        "confidence": 0.72,
    }))
    advisor = Advisor(seeded_store, llm=llm)
    out = advisor.chat(
        "2BHK near Whitefield under 2 Cr?",
        session_id="sess-1",
        context={"properties": ["project-prestige-lakeside", "project-missing"]},
    )
    assert out["status"] == "ok"
    assert out["answer"].startswith("Prestige Lakeside")
    assert out["confidence"] == 0.72
    assert out["disclaimer"] == DISCLAIMER
    assert out["cards"][0]["title"] == "Budget fit"
    assert {s["url"] for s in out["sources"]} == {"/ai", "/property/project-prestige-lakeside"}
    human = llm.seen[0][-1].content
    assert "Whitefield" in human
    history = seeded_store.chat_history_by_session("sess-1")
    assert [h.response for h in history] == [out["answer"]]
    assert history[0].context.properties == ["project-prestige-lakeside", "project-missing"]


@pytest.mark.parametrize("llm", [None, ExplodingLLM(), DummyLLM("not json at all")])
def test_chat_falls_back_when_model_fails(seeded_store, llm):
    out = Advisor(seeded_store, llm=llm).chat("Is Godrej Reserve RERA approved?", session_id="sess-2")
    assert out["status"] == "error"
    assert out["confidence"] == 0.0
    assert out["cards"] == [] and out["actions"] == [] and out["sources"] == []
    assert out["disclaimer"] == DISCLAIMER
    assert len(seeded_store.chat_history_by_session("sess-2")) == 1


def test_chat_without_session_is_not_logged(seeded_store):
    Advisor(seeded_store, llm=DummyLLM('{"answer": "ok"}')).chat("hello")
    assert seeded_store.counts()["ai_chat_history"] == 0


def test_chat_clamps_confidence(seeded_store):
    out = Advisor(seeded_store, llm=DummyLLM('{"answer": "ok", "confidence": 7}')).chat("hello")
    assert out["confidence"] == 1.0


def test_compare_needs_two_existing_projects(seeded_store):
    advisor = Advisor(seeded_store, llm=DummyLLM("{}"))
    with pytest.raises(InvalidPayload):
        advisor.compare(["project-godrej-reserve", "project-missing"])
    with pytest.raises(InvalidPayload):
        advisor.compare(["project-godrej-reserve", "project-godrej-reserve"])


def test_compare_returns_verdict(seeded_store):
    llm = DummyLLM(json.dumps({
        "recommendation": "Godrej Reserve for end use.",
        "winner": "project-godrej-reserve",
        "comparison_matrix": {"pricePerSqft": {"project-godrej-reserve": 15900}},
        "investment_analysis": {"risk": "low"},
    }))
    out = Advisor(seeded_store, llm=llm).compare(
        ["project-godrej-reserve", "project-dlf-privana"], {"purpose": "enduse"}
    )
    assert out["winner"] == "project-godrej-reserve"
    assert out["investment_analysis"] == {"risk": "low"}
    assert out["projectIds"] == ["project-godrej-reserve", "project-dlf-privana"]


def test_compare_ignores_unknown_winner(seeded_store):
    llm = DummyLLM('{"recommendation": "x", "winner": "project-elsewhere"}')
    out = Advisor(seeded_store, llm=llm).compare(["project-godrej-reserve", "project-dlf-privana"])
    assert out["winner"] is None


def test_compare_without_model_raises(seeded_store):
    with pytest.raises(AdvisorError):
        Advisor(seeded_store).compare(["project-godrej-reserve", "project-dlf-privana"])


def test_market_insights_includes_stored_stats(seeded_store):
    llm = DummyLLM('{"insights": ["Whitefield absorbs fastest"], "investment_outlook": "positive"}')
    out = Advisor(seeded_store, llm=llm).market_insights("Bangalore")
    assert out["timeframe"] == "6months"
    assert out["insights"] == ["Whitefield absorbs fastest"]
    assert [s["id"] for s in out["marketStats"]] == ["market-bangalore-2024-08"]
    assert "6850" in llm.seen[0][-1].content


def test_avm(seeded_store):
    llm = DummyLLM(json.dumps({
        "fairValue": 12_600_000, "low": 11_900_000, "high": 13_300_000, "confidence": 0.8,
        "rationale": "In line with Whitefield resale",
    }))
    advisor = Advisor(seeded_store, llm=llm)
    out = advisor.avm("project-prestige-lakeside", "unit-1")
    assert out["fairValue"] == 12_600_000
    assert out["confidence"] == 0.8
    assert out["unitId"] == "unit-1"
    assert advisor.avm("project-missing") is None
    assert advisor.avm("project-prestige-lakeside", "unit-2") is None


def test_avm_rejects_incomplete_reply(seeded_store):
    with pytest.raises(AdvisorError):
        Advisor(seeded_store, llm=DummyLLM('{"fairValue": 1}')).avm("project-prestige-lakeside")


def test_fake_provider_drives_the_advisor(seeded_store, settings):
    llm = get_llm(settings=settings)
    assert isinstance(llm, FakeListChatModel)
    out = Advisor(seeded_store, llm=llm).chat("anything new in Pune?")
    assert out["status"] == "ok"
    assert out["answer"] == "Placeholder response"


def test_get_llm_unknown_provider(settings):
    assert get_llm(settings=settings.model_copy(update={"llm_provider": "nope"})) is None
    assert isinstance(get_llm(default_to_fake=True, settings=settings.model_copy(update={"llm_provider": "nope"})),
                      FakeListChatModel)


def test_legal_analysis_updates_stored_document(seeded_store):
    doc = seeded_store.create_legal_doc({
        "projectId": "project-dlf-privana",
        "type": "title",
        "fileUrl": "https://docs.test/privana-title.pdf",
    })
    llm = DummyLLM(json.dumps({
        "summary": "Clear title, one pending NOC",
        "riskFlags": ["Fire NOC pending"],
        "compliance": "warning",
        "recommendations": ["Ask for the fire NOC before booking"],
    }))
    out = Advisor(seeded_store, llm=llm).legal_analysis("project-dlf-privana", doc.file_url)
    assert out["riskFlags"] == ["Fire NOC pending"]
    assert out["compliance"] == "warning"
    assert out["docId"] == doc.id
    stored = seeded_store.get_legal_doc(doc.id)
    assert stored.summary == "Clear title, one pending NOC"
    assert stored.risk_flags == ["Fire NOC pending"]
    assert "privana-title.pdf" in llm.seen[0][-1].content


def test_legal_analysis_of_unstored_document(seeded_store):
    llm = DummyLLM('{"summary": "Layout approved", "compliance": "unsure"}')
    advisor = Advisor(seeded_store, llm=llm)
    out = advisor.legal_analysis("project-godrej-reserve", "https://docs.test/layout.pdf")
    assert out["docId"] is None
    assert out["compliance"] == "warning"
    assert out["riskFlags"] == [] and out["recommendations"] == []
    assert advisor.legal_analysis("project-missing", "https://docs.test/layout.pdf") is None
    with pytest.raises(AdvisorError):
        Advisor(seeded_store, llm=DummyLLM('{"riskFlags": []}')).legal_analysis(
            "project-godrej-reserve", "https://docs.test/layout.pdf"
        )


def _offer(store):
    return store.create_offer({
        "builderId": "builder-godrej",
        "projectId": "project-godrej-reserve",
        "type": "waiver",
        "title": "Stamp duty waiver",
        "details": "Builder pays stamp duty on bookings this month",
        "validTill": "2026-12-31T00:00:00",
    })


def test_negotiate_counters_for_stored_offer(seeded_store):
    offer = _offer(seeded_store)
    llm = DummyLLM(json.dumps({
        "counters": [{"title": "Parking", "ask": "One covered slot included", "rationale": "Budget cap"}, "junk"],
        "terms": ["All concessions in the agreement for sale"],
        "expiry": "2026-12-15",
    }))
    out = Advisor(seeded_store, llm=llm).negotiate(offer.id, {"budget": 50_000_000})
    assert [c["title"] for c in out["counters"]] == ["Parking"]
    assert out["terms"] == ["All concessions in the agreement for sale"]
    assert out["expiry"] == "2026-12-15"
    assert out["builderId"] == "builder-godrej"
    human = llm.seen[0][-1].content
    assert "Stamp duty waiver" in human and "Godrej Reserve" in human


def test_negotiate_unknown_offer_and_bad_reply(seeded_store):
    offer = _offer(seeded_store)
    assert Advisor(seeded_store, llm=DummyLLM("{}")).negotiate("offer-missing") is None
    with pytest.raises(AdvisorError):
        Advisor(seeded_store, llm=DummyLLM('{"terms": []}')).negotiate(offer.id)
