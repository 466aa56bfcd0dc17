"""
Entity store: the single owner of every catalog entity.

A Store wraps one SQLAlchemy engine. Every session runs under the store lock, so a
create or update is indivisible for callers and concurrent creates never observe
each other half-written. Missing ids come back as None; rejected payloads raise
InvalidPayload or DuplicateKey before anything is written.
"""
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Type, TypeVar, Union

import structlog
from pydantic import BaseModel, ValidationError
from sqlalchemy import func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, schemas
from .db import get_engine, init_db, make_session_factory, session_scope
from .errors import DuplicateKey, InvalidPayload


logger = structlog.get_logger(__name__)

S = TypeVar("S", bound=BaseModel)
Payload = Union[BaseModel, Dict[str, Any]]


@dataclass(frozen=True)
class Kind:
    name: str
    model: Type[models.Base]
    read: Type[BaseModel]
    create: Type[BaseModel]
    update: Type[schemas.UpdateSchema]


USER = Kind("user", models.User, schemas.User, schemas.UserCreate, schemas.UserUpdate)
BUILDER = Kind("builder", models.Builder, schemas.Builder, schemas.BuilderCreate, schemas.BuilderUpdate)
PROJECT = Kind("project", models.Project, schemas.Project, schemas.ProjectCreate, schemas.ProjectUpdate)
UNIT = Kind("unit", models.Unit, schemas.Unit, schemas.UnitCreate, schemas.UnitUpdate)
OFFER = Kind("offer", models.Offer, schemas.Offer, schemas.OfferCreate, schemas.OfferUpdate)
MARKET_STAT = Kind("market_stat", models.MarketStat, schemas.MarketStat, schemas.MarketStatCreate,
                   schemas.MarketStatUpdate)
LEGAL_DOC = Kind("legal_doc", models.LegalDoc, schemas.LegalDoc, schemas.LegalDocCreate, schemas.LegalDocUpdate)
LEAD = Kind("lead", models.Lead, schemas.Lead, schemas.LeadCreate, schemas.LeadUpdate)
AI_CHAT = Kind("ai_chat_history", models.AiChatHistory, schemas.AiChatHistory, schemas.AiChatHistoryCreate,
               schemas.AiChatHistoryUpdate)

KINDS = (USER, BUILDER, PROJECT, UNIT, OFFER, MARKET_STAT, LEGAL_DOC, LEAD, AI_CHAT)

# (field on the payload, referenced kind); checked on create and update
REFERENCES: Dict[str, Sequence[tuple]] = {
    "project": (("builder_id", BUILDER),),
    "unit": (("project_id", PROJECT),),
    "offer": (("builder_id", BUILDER), ("project_id", PROJECT)),
    "legal_doc": (("project_id", PROJECT),),
    "lead": (("user_id", USER), ("project_id", PROJECT), ("builder_id", BUILDER)),
    "ai_chat_history": (("user_id", USER),),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def validate_payload(schema: Type[S], entity: str, payload: Payload) -> S:
    if isinstance(payload, schema):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(exclude_unset=isinstance(payload, schemas.UpdateSchema))
    try:
        return schema.model_validate(payload)
    except ValidationError as e:
        logger.warning("payload_rejected", entity=entity, errors=e.error_count())
        raise InvalidPayload.from_validation(entity, e) from e


class Store:
    def __init__(self, database_url: Optional[str] = None, engine: Optional[Engine] = None):
        self.engine = engine or get_engine(database_url)
        self._sessions = make_session_factory(self.engine)
        self._lock = threading.RLock()
        self._last_ts: Optional[datetime] = None

    # -- lifecycle ---------------------------------------------------------

    def init(self) -> "Store":
        init_db(self.engine)
        return self

    def close(self) -> None:
        self.engine.dispose()

    def __enter__(self) -> "Store":
        return self.init()

    def __exit__(self, *exc) -> None:
        self.close()

    # -- plumbing ----------------------------------------------------------

    @contextmanager
    def session(self) -> Iterator[Session]:
        with self._lock, session_scope(self._sessions) as s:
            yield s

    def _timestamp(self) -> datetime:
        # strictly increasing so creation order is total
        now = _utcnow()
        if self._last_ts is not None and now <= self._last_ts:
            now = self._last_ts + timedelta(microseconds=1)
        self._last_ts = now
        return now

    def fetch(self, stmt, schema: Type[S]) -> List[S]:
        with self.session() as s:
            return [schema.model_validate(row) for row in s.execute(stmt).scalars().all()]

    def fetch_rows(self, stmt) -> List[tuple]:
        with self.session() as s:
            return [tuple(row) for row in s.execute(stmt).all()]

    def _check_references(self, s: Session, kind: Kind, values: Dict[str, Any]) -> None:
        for field, ref in REFERENCES.get(kind.name, ()):
            ref_id = values.get(field)
            if ref_id is not None and s.get(ref.model, ref_id) is None:
                raise InvalidPayload(kind.name, f"{field}: unknown {ref.name} {ref_id!r}")

    def _check_unique(self, s: Session, kind: Kind, values: Dict[str, Any], entity_id: Optional[str] = None) -> None:
        if kind is USER:
            for field in ("username", "email"):
                if field not in values:
                    continue
                col = getattr(models.User, field)
                found = s.execute(select(models.User.id).where(col == values[field])).scalar_one_or_none()
                if found is not None and found != entity_id:
                    raise DuplicateKey(kind.name, field, values[field])
        elif kind is MARKET_STAT:
            row = s.get(models.MarketStat, entity_id) if entity_id else None
            key = {f: values.get(f, getattr(row, f, None)) for f in ("geo", "geo_type", "period")}
            found = s.execute(
                select(models.MarketStat.id).where(
                    models.MarketStat.geo == key["geo"],
                    models.MarketStat.geo_type == key["geo_type"],
                    models.MarketStat.period == key["period"],
                )
            ).scalar_one_or_none()
            if found is not None and found != entity_id:
                raise DuplicateKey(kind.name, "geo/geo_type/period", tuple(key.values()))

    # -- generic operations ------------------------------------------------

    def get(self, kind: Kind, entity_id: str):
        with self.session() as s:
            row = s.get(kind.model, entity_id)
            return kind.read.model_validate(row) if row is not None else None

    def create(self, kind: Kind, payload: Payload):
        data = validate_payload(kind.create, kind.name, payload)
        values = data.model_dump()
        entity_id = values.pop("id", None) or str(uuid.uuid4())
        if kind is USER:
            values["password"] = data.password.get_secret_value()
        try:
            with self.session() as s:
                if s.get(kind.model, entity_id) is not None:
                    raise DuplicateKey(kind.name, "id", entity_id)
                self._check_references(s, kind, values)
                self._check_unique(s, kind, values)
                now = self._timestamp()
                if not values.get("created_at"):
                    values["created_at"] = now
                if kind is PROJECT and not values.get("last_verified"):
                    values["last_verified"] = now
                row = kind.model(id=entity_id, **values)
                s.add(row)
                s.flush()
                s.refresh(row)
                out = kind.read.model_validate(row)
        except IntegrityError as e:
            logger.warning("create_rejected", entity=kind.name, error=str(e.orig))
            raise InvalidPayload(kind.name, "constraint violated") from e
        logger.debug("entity_created", entity=kind.name, id=entity_id)
        return out

    def update(self, kind: Kind, entity_id: str, partial: Payload):
        changes = validate_payload(kind.update, kind.name, partial).changes()
        try:
            with self.session() as s:
                row = s.get(kind.model, entity_id)
                if row is None:
                    return None
                self._check_references(s, kind, changes)
                self._check_unique(s, kind, changes, entity_id=entity_id)
                for field, value in changes.items():
                    setattr(row, field, value)
                s.flush()
                s.refresh(row)
                out = kind.read.model_validate(row)
        except IntegrityError as e:
            logger.warning("update_rejected", entity=kind.name, id=entity_id, error=str(e.orig))
            raise InvalidPayload(kind.name, "constraint violated") from e
        logger.debug("entity_updated", entity=kind.name, id=entity_id, fields=sorted(changes))
        return out

    def list_where(self, kind: Kind, **criteria) -> list:
        stmt = select(kind.model)
        for field, value in criteria.items():
            stmt = stmt.where(getattr(kind.model, field) == value)
        stmt = stmt.order_by(kind.model.created_at, kind.model.id)
        return self.fetch(stmt, kind.read)

    def counts(self) -> Dict[str, int]:
        with self.session() as s:
            return {k.name: s.execute(select(func.count()).select_from(k.model)).scalar_one() for k in KINDS}

    # -- users -------------------------------------------------------------

    def get_user(self, user_id: str) -> Optional[schemas.User]:
        return self.get(USER, user_id)

    def user_by_username(self, username: str) -> Optional[schemas.User]:
        found = self.list_where(USER, username=username)
        return found[0] if found else None

    def create_user(self, payload: Payload) -> schemas.User:
        return self.create(USER, payload)

    def update_user(self, user_id: str, partial: Payload) -> Optional[schemas.User]:
        return self.update(USER, user_id, partial)

    # -- builders ----------------------------------------------------------

    def get_builder(self, builder_id: str) -> Optional[schemas.Builder]:
        return self.get(BUILDER, builder_id)

    def builder_by_name(self, name: str) -> Optional[schemas.Builder]:
        found = self.list_where(BUILDER, name=name)
        return found[0] if found else None

    def create_builder(self, payload: Payload) -> schemas.Builder:
        return self.create(BUILDER, payload)

    def get_or_create_builder(self, name: str, factory: Callable[[], Payload]) -> Tuple[schemas.Builder, bool]:
        """Exact-name lookup; on a miss, store `factory()` while still holding the lock."""
        with self._lock:
            existing = self.builder_by_name(name)
            if existing is not None:
                return existing, False
            return self.create_builder(factory()), True

    def update_builder(self, builder_id: str, partial: Payload) -> Optional[schemas.Builder]:
        return self.update(BUILDER, builder_id, partial)

    def refresh_builder_stats(self, builder_id: str) -> Optional[schemas.Builder]:
        with self.session() as s:
            row = s.get(models.Builder, builder_id)
            if row is None:
                return None
            row.project_count = s.execute(
                select(func.count()).select_from(models.Project).where(models.Project.builder_id == builder_id)
            ).scalar_one()
            s.flush()
            s.refresh(row)
            return schemas.Builder.model_validate(row)

    # -- projects ----------------------------------------------------------

    def get_project(self, project_id: str) -> Optional[schemas.Project]:
        return self.get(PROJECT, project_id)

    def create_project(self, payload: Payload) -> schemas.Project:
        return self.create(PROJECT, payload)

    def update_project(self, project_id: str, partial: Payload) -> Optional[schemas.Project]:
        return self.update(PROJECT, project_id, partial)

    def projects_by_builder(self, builder_id: str) -> List[schemas.Project]:
        return self.list_where(PROJECT, builder_id=builder_id)

    # -- units -------------------------------------------------------------

    def get_unit(self, unit_id: str) -> Optional[schemas.Unit]:
        return self.get(UNIT, unit_id)

    def create_unit(self, payload: Payload) -> schemas.Unit:
        return self.create(UNIT, payload)

    def update_unit(self, unit_id: str, partial: Payload) -> Optional[schemas.Unit]:
        return self.update(UNIT, unit_id, partial)

    def units_by_project(self, project_id: str) -> List[schemas.Unit]:
        return self.list_where(UNIT, project_id=project_id)

    # -- offers ------------------------------------------------------------

    def get_offer(self, offer_id: str) -> Optional[schemas.Offer]:
        return self.get(OFFER, offer_id)

    def create_offer(self, payload: Payload) -> schemas.Offer:
        return self.create(OFFER, payload)

    def update_offer(self, offer_id: str, partial: Payload) -> Optional[schemas.Offer]:
        return self.update(OFFER, offer_id, partial)

    def offers_by_builder(self, builder_id: str) -> List[schemas.Offer]:
        return self.list_where(OFFER, builder_id=builder_id)

    def offers_by_project(self, project_id: str) -> List[schemas.Offer]:
        return self.list_where(OFFER, project_id=project_id)

    # -- market stats ------------------------------------------------------

    def get_market_stat(self, stat_id: str) -> Optional[schemas.MarketStat]:
        return self.get(MARKET_STAT, stat_id)

    def create_market_stat(self, payload: Payload) -> schemas.MarketStat:
        return self.create(MARKET_STAT, payload)

    def update_market_stat(self, stat_id: str, partial: Payload) -> Optional[schemas.MarketStat]:
        return self.update(MARKET_STAT, stat_id, partial)

    # -- legal documents ---------------------------------------------------

    def get_legal_doc(self, doc_id: str) -> Optional[schemas.LegalDoc]:
        return self.get(LEGAL_DOC, doc_id)

    def create_legal_doc(self, payload: Payload) -> schemas.LegalDoc:
        return self.create(LEGAL_DOC, payload)

    def update_legal_doc(self, doc_id: str, partial: Payload) -> Optional[schemas.LegalDoc]:
        return self.update(LEGAL_DOC, doc_id, partial)

    def legal_docs_by_project(self, project_id: str) -> List[schemas.LegalDoc]:
        return self.list_where(LEGAL_DOC, project_id=project_id)

    # -- leads -------------------------------------------------------------

    def get_lead(self, lead_id: str) -> Optional[schemas.Lead]:
        return self.get(LEAD, lead_id)

    def create_lead(self, payload: Payload) -> schemas.Lead:
        return self.create(LEAD, payload)

    def update_lead(self, lead_id: str, partial: Payload) -> Optional[schemas.Lead]:
        return self.update(LEAD, lead_id, partial)

    def leads_by_user(self, user_id: str) -> List[schemas.Lead]:
        return self.list_where(LEAD, user_id=user_id)

    def leads_by_builder(self, builder_id: str) -> List[schemas.Lead]:
        return self.list_where(LEAD, builder_id=builder_id)

    def leads(self, stage: Optional[str] = None) -> List[schemas.Lead]:
        return self.list_where(LEAD, stage=stage) if stage else self.list_where(LEAD)

    # -- AI chat history ---------------------------------------------------

    def get_chat(self, chat_id: str) -> Optional[schemas.AiChatHistory]:
        return self.get(AI_CHAT, chat_id)

    def create_chat(self, payload: Payload) -> schemas.AiChatHistory:
        return self.create(AI_CHAT, payload)

    def update_chat(self, chat_id: str, partial: Payload) -> Optional[schemas.AiChatHistory]:
        return self.update(AI_CHAT, chat_id, partial)

    def chat_history_by_session(self, session_id: str) -> List[schemas.AiChatHistory]:
        return self.list_where(AI_CHAT, session_id=session_id)
