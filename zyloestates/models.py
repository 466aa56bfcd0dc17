from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base


JSONType = JSON().with_variant(JSONB(), "postgresql")


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(32))
    preferences: Mapped[Optional[dict]] = mapped_column(JSONType)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class Builder(Base):
    __tablename__ = "builders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    verified: Mapped[bool] = mapped_column(Boolean, default=False)
    rera_ids: Mapped[List[str]] = mapped_column(JSONType, default=list)
    inventory_freshness_hours: Mapped[int] = mapped_column(Integer, default=24)
    sla_response_minutes: Mapped[int] = mapped_column(Integer, default=30)
    contact: Mapped[Optional[dict]] = mapped_column(JSONType)
    rating: Mapped[float] = mapped_column(Float, default=0.0)
    project_count: Mapped[int] = mapped_column(Integer, default=0)
    description: Mapped[Optional[str]] = mapped_column(Text)
    logo: Mapped[Optional[str]] = mapped_column(String(1024))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    builder_id: Mapped[str] = mapped_column(String(64), ForeignKey("builders.id"), index=True, nullable=False)
    rera_id: Mapped[Optional[str]] = mapped_column(String(255))
    city: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    locality: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    state: Mapped[Optional[str]] = mapped_column(String(255))
    pincode: Mapped[Optional[str]] = mapped_column(String(16))
    address: Mapped[Optional[str]] = mapped_column(String(1024))
    lat: Mapped[Optional[float]] = mapped_column(Float)
    lng: Mapped[Optional[float]] = mapped_column(Float)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    possession_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    possession_timeline: Mapped[Optional[str]] = mapped_column(String(128))
    amenities: Mapped[List[str]] = mapped_column(JSONType, default=list)
    connectivity: Mapped[Optional[dict]] = mapped_column(JSONType)
    price_min: Mapped[float] = mapped_column(Float, nullable=False)
    price_max: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), default="INR")
    media: Mapped[List[dict]] = mapped_column(JSONType, default=list)
    credibility_score: Mapped[int] = mapped_column(Integer, default=0)
    sources: Mapped[List[str]] = mapped_column(JSONType, default=list)
    last_verified: Mapped[Optional[datetime]] = mapped_column(DateTime)
    description: Mapped[Optional[str]] = mapped_column(Text)
    highlights: Mapped[List[str]] = mapped_column(JSONType, default=list)
    floor_plans: Mapped[List[dict]] = mapped_column(JSONType, default=list)
    unit_types: Mapped[List[str]] = mapped_column(JSONType, default=list)
    approved: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    @property
    def price_band(self) -> Dict[str, Any]:
        return {"min": self.price_min, "max": self.price_max, "currency": self.currency}

    @price_band.setter
    def price_band(self, band: Dict[str, Any]) -> None:
        self.price_min = band["min"]
        self.price_max = band["max"]
        self.currency = band.get("currency") or "INR"


class Unit(Base):
    __tablename__ = "units"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    project_id: Mapped[str] = mapped_column(String(64), ForeignKey("projects.id"), index=True, nullable=False)
    bhk: Mapped[int] = mapped_column(Integer, nullable=False)
    carpet: Mapped[float] = mapped_column(Float, nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    facing: Mapped[Optional[str]] = mapped_column(String(32))
    floor: Mapped[Optional[int]] = mapped_column(Integer)
    inventory_status: Mapped[str] = mapped_column(String(16), default="available")
    avm: Mapped[Optional[dict]] = mapped_column(JSONType)
    rent_yield_pct: Mapped[Optional[float]] = mapped_column(Float)
    roi: Mapped[Optional[dict]] = mapped_column(JSONType)
    unit_number: Mapped[Optional[str]] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class Offer(Base):
    __tablename__ = "offers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    builder_id: Mapped[str] = mapped_column(String(64), ForeignKey("builders.id"), index=True, nullable=False)
    project_id: Mapped[Optional[str]] = mapped_column(String(64), ForeignKey("projects.id"), index=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    details: Mapped[str] = mapped_column(Text, nullable=False)
    valid_till: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    visibility: Mapped[str] = mapped_column(String(16), default="public")
    terms: Mapped[Optional[str]] = mapped_column(Text)
    discount_pct: Mapped[Optional[float]] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class MarketStat(Base):
    __tablename__ = "market_stats"
    __table_args__ = (UniqueConstraint("geo", "geo_type", "period", name="uq_market_stats_geo_period"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    geo: Mapped[str] = mapped_column(String(255), nullable=False)
    geo_type: Mapped[str] = mapped_column(String(16), nullable=False)
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    median_price: Mapped[float] = mapped_column(Float, nullable=False)
    qoq_pct: Mapped[Optional[float]] = mapped_column(Float)
    yoy_pct: Mapped[Optional[float]] = mapped_column(Float)
    inventory_index: Mapped[Optional[float]] = mapped_column(Float)
    price_per_sqft: Mapped[Optional[float]] = mapped_column(Float)
    absorption_rate: Mapped[Optional[float]] = mapped_column(Float)
    new_launches: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class LegalDoc(Base):
    __tablename__ = "legal_docs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    project_id: Mapped[str] = mapped_column(String(64), ForeignKey("projects.id"), index=True, nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    file_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    ocr_text: Mapped[Optional[str]] = mapped_column(Text)
    risk_flags: Mapped[List[str]] = mapped_column(JSONType, default=list)
    summary: Mapped[Optional[str]] = mapped_column(Text)
    verified: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class Lead(Base):
    __tablename__ = "leads"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    project_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    builder_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    stage: Mapped[str] = mapped_column(String(16), default="new")
    preferences: Mapped[Optional[dict]] = mapped_column(JSONType)
    channel: Mapped[str] = mapped_column(String(16), default="web")
    notes: Mapped[Optional[str]] = mapped_column(Text)
    contact_info: Mapped[Optional[dict]] = mapped_column(JSONType)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class AiChatHistory(Base):
    __tablename__ = "ai_chat_history"
    __table_args__ = (Index("ix_ai_chat_history_session_created", "session_id", "created_at"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    session_id: Mapped[str] = mapped_column(String(255), nullable=False)
    user_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    query: Mapped[str] = mapped_column(Text, nullable=False)
    response: Mapped[str] = mapped_column(Text, nullable=False)
    context: Mapped[Optional[dict]] = mapped_column(JSONType)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
