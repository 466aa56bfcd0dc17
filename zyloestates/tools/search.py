from typing import Any, Dict, List, Optional, Union

from sqlalchemy import and_, case, func, or_, select

from ..config import Settings, get_settings
from ..models import Builder, Lead, MarketStat, Project, Unit
from ..schemas import SearchFilters
from .. import schemas
from ..store import Store, validate_payload


FiltersLike = Union[SearchFilters, Dict[str, Any], None]


def _by_credibility(stmt):
    # highest credibility first; creation order keeps ties stable
    return stmt.order_by(func.coalesce(Project.credibility_score, 0).desc(), Project.created_at, Project.id)


class CatalogSearch:
    """Read-only views over the store: listings, rankings and aggregates."""

    def __init__(self, store: Store, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()

    def _filter_clauses(self, filters: SearchFilters) -> list:
        clauses = []
        if filters.city:
            clauses.append(Project.city.icontains(filters.city, autoescape=True))
        if filters.locality:
            clauses.append(Project.locality.icontains(filters.locality, autoescape=True))
        if filters.budget is not None:
            if filters.budget.min is not None:
                clauses.append(Project.price_min >= filters.budget.min)
            if filters.budget.max is not None:
                clauses.append(Project.price_max <= filters.budget.max)
        if filters.status:
            clauses.append(Project.status.in_(filters.status))
        if filters.verified:
            threshold = self.settings.verified_credibility_threshold
            clauses.append(func.coalesce(Project.credibility_score, 0) >= threshold)
        if filters.rera_approved:
            clauses.append(Project.rera_id.is_not(None))
        if filters.credibility_min is not None:
            clauses.append(func.coalesce(Project.credibility_score, 0) >= filters.credibility_min)
        return clauses

    @staticmethod
    def _text_clause(query_text: str):
        return or_(
            Project.name.icontains(query_text, autoescape=True),
            Project.locality.icontains(query_text, autoescape=True),
            Project.city.icontains(query_text, autoescape=True),
            Project.description.icontains(query_text, autoescape=True),
        )

    def projects(self, filters: FiltersLike = None) -> List[schemas.Project]:
        parsed = validate_payload(SearchFilters, "search_filters", filters or {})
        clauses = self._filter_clauses(parsed)
        stmt = select(Project).where(and_(*clauses)) if clauses else select(Project)
        return self.store.fetch(_by_credibility(stmt), schemas.Project)

    def search_properties(self, query_text: str = "", filters: FiltersLike = None) -> List[schemas.Project]:
        """Text match on name/locality/city/description, then the filters, both must hold."""
        parsed = validate_payload(SearchFilters, "search_filters", filters or {})
        clauses = self._filter_clauses(parsed)
        # blank queries match everything; otherwise the raw text, spaces included, is the substring
        text = query_text or ""
        if text.strip():
            clauses.insert(0, self._text_clause(text))
        stmt = select(Project).where(and_(*clauses)) if clauses else select(Project)
        return self.store.fetch(_by_credibility(stmt), schemas.Project)

    def builders(self, verified: Optional[bool] = None) -> List[schemas.Builder]:
        stmt = select(Builder)
        if verified is not None:
            stmt = stmt.where(Builder.verified == verified)
        stmt = stmt.order_by(func.coalesce(Builder.rating, 0).desc(), Builder.created_at, Builder.id)
        return self.store.fetch(stmt, schemas.Builder)

    def featured_projects(self, limit: Optional[int] = 10) -> List[schemas.Project]:
        limit = 10 if limit is None else max(0, int(limit))
        return self.store.fetch(_by_credibility(select(Project)).limit(limit), schemas.Project)

    def trending_localities(self, city: str, top: int = 5) -> List[Dict[str, Any]]:
        rows = self.store.fetch_rows(
            select(Project.locality).where(Project.city == city).order_by(Project.created_at, Project.id)
        )
        counts: Dict[str, int] = {}
        for (locality,) in rows:
            counts[locality] = counts.get(locality, 0) + 1
        # sorted() is stable, so equal counts keep first-seen order
        ranked = sorted(counts.items(), key=lambda item: -item[1])[:top]
        return [{"locality": locality, "count": count} for locality, count in ranked]

    def market_stats(self, geo: str, geo_type: str) -> List[schemas.MarketStat]:
        stmt = (
            select(MarketStat)
            .where(MarketStat.geo == geo, MarketStat.geo_type == geo_type)
            .order_by(MarketStat.period)
        )
        return self.store.fetch(stmt, schemas.MarketStat)

    def admin_stats(self) -> Dict[str, int]:
        threshold = self.settings.verified_credibility_threshold
        score = func.coalesce(Project.credibility_score, 0)
        no_rera = Project.rera_id.is_(None)
        counts = self.store.counts()

        def tally(cond):
            return func.coalesce(func.sum(case((cond, 1), else_=0)), 0)

        rows = self.store.fetch_rows(
            select(
                tally(Project.status != "ready"),
                tally(Project.rera_id.is_not(None)),
                tally(and_(no_rera, score < threshold)),
                tally(and_(no_rera, score < 50)),
            ).select_from(Project)
        )
        active, compliant, pending, non_compliant = (int(n) for n in rows[0])
        return {
            "totalBuilders": counts["builder"],
            "verifiedBuilders": len(self.builders(verified=True)),
            "totalProjects": counts["project"],
            "activeProjects": active,
            "totalLeads": counts["lead"],
            "compliantProjects": compliant,
            "pendingReview": pending,
            "nonCompliant": non_compliant,
        }

    def builder_stats(self, builder_id: str) -> Optional[Dict[str, Any]]:
        builder = self.store.get_builder(builder_id)
        if builder is None:
            return None
        projects = self.store.projects_by_builder(builder_id)
        project_ids = [p.id for p in projects]
        unit_rows = self.store.fetch_rows(
            select(Unit.inventory_status, func.count())
            .where(Unit.project_id.in_(project_ids))
            .group_by(Unit.inventory_status)
        ) if project_ids else []
        by_status = dict(unit_rows)
        stages = dict(self.store.fetch_rows(
            select(Lead.stage, func.count()).where(Lead.builder_id == builder_id).group_by(Lead.stage)
        ))
        scores = [p.credibility_score for p in projects]
        return {
            "totalProjects": len(projects),
            "activeProjects": sum(1 for p in projects if p.status != "ready"),
            "unitsAvailable": by_status.get("available", 0),
            "unitsOnHold": by_status.get("hold", 0),
            "unitsSold": by_status.get("sold", 0),
            "activeLeads": sum(n for stage, n in stages.items() if stage != "booked"),
            "leadsByStage": stages,
            "credibilityScore": round(sum(scores) / len(scores)) if scores else 0,
            "avgResponseTime": builder.sla_response_minutes,
            "rating": builder.rating,
        }
