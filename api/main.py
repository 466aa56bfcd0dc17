from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from fastapi import Body, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import Field

from zyloestates.advisor import Advisor
from zyloestates.config import Settings, get_settings
from zyloestates.errors import AdvisorError, DuplicateKey, InvalidPayload
from zyloestates.etl import ListingsImporter, start_background_import
from zyloestates.log import configure_logging
from zyloestates.sample_data import seed_sample_data
from zyloestates.schemas import ChatContext, Schema
from zyloestates.store import Store
from zyloestates.tools.llm_provider import get_llm
from zyloestates.tools.pdf import generate_project_report
from zyloestates.tools.search import CatalogSearch


logger = structlog.get_logger(__name__)


class ChatRequest(Schema):
    query: str = Field(..., min_length=1)
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    context: Optional[ChatContext] = None


class CompareRequest(Schema):
    property_ids: List[str]
    user_preferences: Optional[Dict[str, Any]] = None


class InsightsRequest(Schema):
    location: Optional[str] = None
    timeframe: str = "6months"


class AvmRequest(Schema):
    project_id: Optional[str] = None
    unit_id: Optional[str] = None


class LegalAnalysisRequest(Schema):
    file_url: Optional[str] = None
    project_id: Optional[str] = None


class NegotiateRequest(Schema):
    offer_id: Optional[str] = None
    user_preferences: Optional[Dict[str, Any]] = None


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def create_app(store: Optional[Store] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_json)
    owns_store = store is None
    store = store or Store(settings.database_url)
    search = CatalogSearch(store, settings)

    app = FastAPI(title="ZyloEstates API", version="0.1.0")
    app.state.settings = settings
    app.state.store = store
    app.state.search = search
    app.state.advisor = Advisor(store, search, get_llm(settings=settings))
    app.state.importer = ListingsImporter(store, settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InvalidPayload)
    async def invalid_payload(_request: Request, exc: InvalidPayload):
        return _error(exc.reason, 400)

    @app.exception_handler(DuplicateKey)
    async def duplicate_key(_request: Request, exc: DuplicateKey):
        return _error(str(exc), 409)

    @app.exception_handler(AdvisorError)
    async def advisor_unavailable(_request: Request, exc: AdvisorError):
        return JSONResponse({"error": "AI service unavailable", "details": exc.reason}, status_code=503)

    @app.on_event("startup")
    def on_startup():
        store.init()
        if settings.seed_sample_data:
            seed_sample_data(store)
        if settings.import_on_startup:
            start_background_import(store, settings)

    @app.on_event("shutdown")
    def on_shutdown():
        if owns_store:
            store.close()

    # -- health ----------------------------------------------------------------

    @app.get("/api/health")
    def health():
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database": store.engine.dialect.name,
        }

    # -- properties ------------------------------------------------------------

    def _filters(city, locality, budget_min, budget_max, status, verified, rera_approved, credibility_min):
        filters: Dict[str, Any] = {
            "city": city,
            "locality": locality,
            "status": status or None,
            "verified": verified,
            "rera_approved": rera_approved,
            "credibility_min": credibility_min,
        }
        if budget_min is not None or budget_max is not None:
            filters["budget"] = {"min": budget_min, "max": budget_max}
        return {k: v for k, v in filters.items() if v is not None}

    @app.get("/api/properties")
    def list_properties(
        city: Optional[str] = None,
        locality: Optional[str] = None,
        budget_min: Optional[float] = Query(None, alias="budgetMin"),
        budget_max: Optional[float] = Query(None, alias="budgetMax"),
        status: Optional[List[str]] = Query(None),
        verified: Optional[bool] = None,
        rera_approved: Optional[bool] = Query(None, alias="reraApproved"),
        credibility_min: Optional[int] = Query(None, alias="credibilityMin"),
    ):
        filters = _filters(city, locality, budget_min, budget_max, status, verified, rera_approved, credibility_min)
        properties = search.projects(filters)
        return {"properties": properties, "total": len(properties)}

    @app.get("/api/properties/featured")
    def featured_properties(limit: int = Query(10, ge=0)):
        return {"properties": search.featured_projects(limit)}

    @app.get("/api/properties/search")
    def search_properties(
        q: str = "",
        city: Optional[str] = None,
        locality: Optional[str] = None,
        budget_min: Optional[float] = Query(None, alias="budgetMin"),
        budget_max: Optional[float] = Query(None, alias="budgetMax"),
        status: Optional[List[str]] = Query(None),
        verified: Optional[bool] = None,
        rera_approved: Optional[bool] = Query(None, alias="reraApproved"),
        credibility_min: Optional[int] = Query(None, alias="credibilityMin"),
    ):
        filters = _filters(city, locality, budget_min, budget_max, status, verified, rera_approved, credibility_min)
        properties = search.search_properties(q, filters)
        return {"properties": properties, "total": len(properties)}

    @app.get("/api/properties/{project_id}")
    def property_detail(project_id: str):
        project = store.get_project(project_id)
        if project is None:
            return _error("Property not found", 404)
        return {
            "property": project,
            "builder": store.get_builder(project.builder_id),
            "units": store.units_by_project(project_id),
            "offers": store.offers_by_project(project_id),
        }

    @app.get("/api/properties/{project_id}/units")
    def property_units(project_id: str):
        return {"units": store.units_by_project(project_id)}

    @app.get("/api/properties/{project_id}/report.pdf")
    def property_report(project_id: str):
        project = store.get_project(project_id)
        if project is None:
            return _error("Property not found", 404)
        pdf = generate_project_report(project, store.get_builder(project.builder_id), store.units_by_project(project_id))
        headers = {"Content-Disposition": f'attachment; filename="{project_id}.pdf"'}
        return Response(content=pdf, media_type="application/pdf", headers=headers)

    # -- builders --------------------------------------------------------------

    @app.get("/api/builders")
    def list_builders(verified: Optional[bool] = None):
        return {"builders": search.builders(verified=verified)}

    @app.get("/api/builders/{builder_id}")
    def builder_detail(builder_id: str):
        builder = store.get_builder(builder_id)
        if builder is None:
            return _error("Builder not found", 404)
        return {
            "builder": builder,
            "projects": store.projects_by_builder(builder_id),
            "offers": store.offers_by_builder(builder_id),
        }

    # -- market ----------------------------------------------------------------

    @app.get("/api/market/stats")
    def market_stats(geo: Optional[str] = None, geo_type: Optional[str] = Query(None, alias="geoType")):
        if not geo or not geo_type:
            return _error("geo and geoType are required", 400)
        return {"stats": search.market_stats(geo, geo_type)}

    @app.get("/api/market/trending")
    def market_trending(city: Optional[str] = None):
        if not city:
            return _error("city is required", 400)
        return {"localities": search.trending_localities(city)}

    @app.post("/api/market/insights")
    def market_insights(body: InsightsRequest):
        if not body.location:
            return _error("location is required", 400)
        return app.state.advisor.market_insights(body.location, body.timeframe)

    # -- AI --------------------------------------------------------------------

    @app.post("/api/ai/chat")
    def ai_chat(body: ChatRequest):
        return app.state.advisor.chat(
            body.query, session_id=body.session_id, context=body.context, user_id=body.user_id
        )

    @app.post("/api/ai/compare")
    def ai_compare(body: CompareRequest):
        return app.state.advisor.compare(body.property_ids, body.user_preferences)

    @app.get("/api/ai/chat-history/{session_id}")
    def ai_chat_history(session_id: str):
        return {"history": store.chat_history_by_session(session_id)}

    @app.post("/api/ai/avm")
    def ai_avm(body: AvmRequest):
        if not body.project_id:
            return _error("projectId is required", 400)
        result = app.state.advisor.avm(body.project_id, body.unit_id)
        if result is None:
            return _error("Project or unit not found", 404)
        return result

    @app.post("/api/ai/legal-analysis")
    def ai_legal_analysis(body: LegalAnalysisRequest):
        if not body.file_url or not body.project_id:
            return _error("fileUrl and projectId are required", 400)
        result = app.state.advisor.legal_analysis(body.project_id, body.file_url)
        if result is None:
            return _error("Project not found", 404)
        return result

    @app.post("/api/ai/negotiate")
    def ai_negotiate(body: NegotiateRequest):
        if not body.offer_id:
            return _error("offerId is required", 400)
        result = app.state.advisor.negotiate(body.offer_id, body.user_preferences)
        if result is None:
            return _error("Offer not found", 404)
        return result

    # -- leads, units, legal ---------------------------------------------------

    @app.post("/api/leads")
    def create_lead(payload: Dict[str, Any] = Body(...)):
        return {"lead": store.create_lead(payload)}

    @app.get("/api/units/{unit_id}")
    def unit_detail(unit_id: str):
        unit = store.get_unit(unit_id)
        if unit is None:
            return _error("Unit not found", 404)
        project = store.get_project(unit.project_id)
        builder = store.get_builder(project.builder_id) if project else None
        return {"unit": unit, "project": project, "builder": builder}

    @app.get("/api/legal/{project_id}")
    def legal_docs(project_id: str):
        return {"docs": store.legal_docs_by_project(project_id)}

    # -- admin -----------------------------------------------------------------

    @app.get("/api/admin/stats")
    def admin_stats():
        return search.admin_stats()

    @app.get("/api/admin/leads")
    def admin_leads(stage: Optional[str] = None):
        return store.leads(stage)

    @app.post("/api/admin/builders/{builder_id}/verify")
    def verify_builder(builder_id: str):
        builder = store.update_builder(builder_id, {"verified": True})
        if builder is None:
            return _error("Builder not found", 404)
        logger.info("builder_verified", builder_id=builder_id)
        return {"message": "Builder verified successfully", "builder": builder}

    @app.post("/api/admin/projects/{project_id}/approve")
    def approve_project(project_id: str):
        project = store.update_project(project_id, {"approved": True})
        if project is None:
            return _error("Project not found", 404)
        logger.info("project_approved", project_id=project_id)
        return {"message": "Project approved successfully", "property": project}

    # -- builder console -------------------------------------------------------

    @app.get("/api/builder/stats/{builder_id}")
    def builder_console_stats(builder_id: str):
        stats = search.builder_stats(builder_id)
        if stats is None:
            return _error("Builder not found", 404)
        return stats

    @app.get("/api/builder/projects/{builder_id}")
    def builder_console_projects(builder_id: str):
        return store.projects_by_builder(builder_id)

    @app.get("/api/builder/offers/{builder_id}")
    def builder_console_offers(builder_id: str):
        return store.offers_by_builder(builder_id)

    @app.get("/api/builder/leads/{builder_id}")
    def builder_console_leads(builder_id: str):
        return store.leads_by_builder(builder_id)

    # -- listings import -------------------------------------------------------

    @app.post("/api/import/sync")
    def import_sync():
        report = app.state.importer.run()
        return {"success": True, **report}

    @app.get("/api/import/preview")
    def import_preview():
        properties = app.state.importer.preview()
        return {"success": True, "count": len(properties), "properties": properties}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run("api.main:app", host=_settings.api_host, port=_settings.api_port)
