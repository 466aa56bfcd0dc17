"""
Entity shapes that cross the store boundary.

Create models hold every default an entity gets at construction time; read models
add the server-assigned fields; update models are all-optional and are merged
shallowly (a nested object in an update replaces the stored one).
"""
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, FrozenSet, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator
from pydantic.alias_generators import to_camel


ProjectStatus = Literal["launched", "under_construction", "nearing_completion", "ready"]
InventoryStatus = Literal["available", "hold", "sold"]
OfferType = Literal["discount", "upgrade", "waiver", "token_cashback"]
Visibility = Literal["public", "private"]
GeoType = Literal["city", "locality", "pincode"]
LegalDocType = Literal["title", "noc", "layout", "agreement", "rera"]
LeadStage = Literal["new", "qualified", "visit", "negotiation", "booked"]
LeadChannel = Literal["web", "whatsapp", "phone"]
MediaType = Literal["image", "video", "tour"]


class Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    @field_validator("*", mode="after")
    @classmethod
    def _naive_utc(cls, value: Any) -> Any:
        # timestamps are stored as naive UTC
        if isinstance(value, datetime) and value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


class UpdateSchema(Schema):
    model_config = ConfigDict(extra="forbid")

    # Fields that may be omitted from an update but never set to null
    non_nullable: ClassVar[FrozenSet[str]] = frozenset()

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)

    @model_validator(mode="after")
    def _reject_nulls(self):
        nulls = sorted(f for f in self.model_fields_set if f in self.non_nullable and getattr(self, f) is None)
        if nulls:
            raise ValueError(f"fields cannot be null: {', '.join(nulls)}")
        return self


# ---------------------------------------------------------------------------
# Nested values
# ---------------------------------------------------------------------------

class BudgetRange(Schema):
    min: Optional[float] = Field(None, ge=0)
    max: Optional[float] = Field(None, ge=0)


class UserPreferences(Schema):
    budget: Optional[BudgetRange] = None
    bhk: Optional[List[int]] = None
    cities: Optional[List[str]] = None
    language: Optional[str] = None


class BuilderContact(Schema):
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None


class Connectivity(Schema):
    metro_km: Optional[float] = Field(None, ge=0)
    airport_km: Optional[float] = Field(None, ge=0)
    railway_km: Optional[float] = Field(None, ge=0)
    it_hub_km: Optional[float] = Field(None, ge=0)


class PriceBand(Schema):
    min: float = Field(..., ge=0)
    max: float = Field(..., ge=0)
    currency: str = "INR"

    @model_validator(mode="after")
    def _ordered(self):
        if self.min > self.max:
            raise ValueError(f"price band min {self.min} exceeds max {self.max}")
        return self


class MediaItem(Schema):
    url: str
    type: MediaType = "image"
    verified: bool = False
    score: float = Field(0, ge=0, le=100)
    caption: Optional[str] = None


class FloorPlan(Schema):
    bhk: int = Field(..., ge=0)
    area: float = Field(..., gt=0)
    price: float = Field(..., ge=0)
    image_url: Optional[str] = None


class Avm(Schema):
    fair_value: float = Field(..., ge=0)
    low: float = Field(..., ge=0)
    high: float = Field(..., ge=0)
    confidence: float = Field(..., ge=0, le=1)


class RoiScenarios(Schema):
    bull: float
    base: float
    bear: float


class Roi(Schema):
    appreciation: float
    yield_pct: float = Field(..., alias="yield")
    irr: float
    scenarios: RoiScenarios


class LeadPreferences(Schema):
    budget: Optional[float] = Field(None, ge=0)
    bhk: Optional[List[int]] = None
    urgency: Optional[str] = None
    purpose: Optional[Literal["investment", "enduse"]] = None


class ContactInfo(Schema):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class ChatContext(Schema):
    properties: Optional[List[str]] = None
    search_filters: Optional[Dict[str, Any]] = None
    language: Optional[str] = None


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UserCreate(Schema):
    id: Optional[str] = None
    username: str = Field(..., min_length=1)
    password: SecretStr
    email: str = Field(..., min_length=3)
    phone: Optional[str] = None
    preferences: Optional[UserPreferences] = None


class User(Schema):
    """Public view of a user; the password never leaves the store."""
    id: str
    username: str
    email: str
    phone: Optional[str] = None
    preferences: Optional[UserPreferences] = None
    created_at: datetime


class UserUpdate(UpdateSchema):
    preferences: Optional[UserPreferences] = None


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

class BuilderBase(Schema):
    name: str = Field(..., min_length=1)
    verified: bool = False
    rera_ids: List[str] = Field(default_factory=list)
    inventory_freshness_hours: int = Field(24, ge=0)
    sla_response_minutes: int = Field(30, ge=0)
    contact: Optional[BuilderContact] = None
    rating: float = Field(0.0, ge=0, le=5)
    project_count: int = Field(0, ge=0)
    description: Optional[str] = None
    logo: Optional[str] = None


class BuilderCreate(BuilderBase):
    id: Optional[str] = None


class Builder(BuilderBase):
    id: str
    created_at: datetime


class BuilderUpdate(UpdateSchema):
    non_nullable = frozenset({"name", "verified", "rera_ids", "inventory_freshness_hours",
                              "sla_response_minutes", "rating", "project_count"})

    name: Optional[str] = Field(None, min_length=1)
    verified: Optional[bool] = None
    rera_ids: Optional[List[str]] = None
    inventory_freshness_hours: Optional[int] = Field(None, ge=0)
    sla_response_minutes: Optional[int] = Field(None, ge=0)
    contact: Optional[BuilderContact] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    project_count: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    logo: Optional[str] = None


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

class ProjectBase(Schema):
    name: str = Field(..., min_length=1)
    builder_id: str
    rera_id: Optional[str] = None
    city: str
    locality: str
    state: Optional[str] = None
    pincode: Optional[str] = None
    address: Optional[str] = None
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    status: ProjectStatus
    possession_date: Optional[datetime] = None
    possession_timeline: Optional[str] = None
    amenities: List[str] = Field(default_factory=list)
    connectivity: Optional[Connectivity] = None
    price_band: PriceBand
    media: List[MediaItem] = Field(default_factory=list)
    credibility_score: int = Field(0, ge=0, le=100)
    sources: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    highlights: List[str] = Field(default_factory=list)
    floor_plans: List[FloorPlan] = Field(default_factory=list)
    unit_types: List[str] = Field(default_factory=list)
    approved: bool = False

    @field_validator("amenities", "highlights")
    @classmethod
    def _dedupe(cls, values: List[str]) -> List[str]:
        # ordered set: first occurrence wins
        return list(dict.fromkeys(values))


class ProjectCreate(ProjectBase):
    id: Optional[str] = None
    last_verified: Optional[datetime] = None
    created_at: Optional[datetime] = None


class Project(ProjectBase):
    id: str
    last_verified: Optional[datetime] = None
    created_at: datetime


class ProjectUpdate(UpdateSchema):
    non_nullable = frozenset({"name", "builder_id", "city", "locality", "status", "amenities", "price_band",
                              "media", "credibility_score", "sources", "highlights", "floor_plans",
                              "unit_types", "approved"})

    name: Optional[str] = Field(None, min_length=1)
    builder_id: Optional[str] = None
    rera_id: Optional[str] = None
    city: Optional[str] = None
    locality: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    address: Optional[str] = None
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    status: Optional[ProjectStatus] = None
    possession_date: Optional[datetime] = None
    possession_timeline: Optional[str] = None
    amenities: Optional[List[str]] = None
    connectivity: Optional[Connectivity] = None
    price_band: Optional[PriceBand] = None
    media: Optional[List[MediaItem]] = None
    credibility_score: Optional[int] = Field(None, ge=0, le=100)
    sources: Optional[List[str]] = None
    last_verified: Optional[datetime] = None
    description: Optional[str] = None
    highlights: Optional[List[str]] = None
    floor_plans: Optional[List[FloorPlan]] = None
    unit_types: Optional[List[str]] = None
    approved: Optional[bool] = None


# ---------------------------------------------------------------------------
# Units
# ---------------------------------------------------------------------------

class UnitBase(Schema):
    project_id: str
    bhk: int = Field(..., ge=0)
    carpet: float = Field(..., gt=0)
    price: float = Field(..., ge=0)
    facing: Optional[str] = None
    floor: Optional[int] = None
    inventory_status: InventoryStatus = "available"
    avm: Optional[Avm] = None
    rent_yield_pct: Optional[float] = Field(None, ge=0)
    roi: Optional[Roi] = None
    unit_number: Optional[str] = None


class UnitCreate(UnitBase):
    id: Optional[str] = None


class Unit(UnitBase):
    id: str
    created_at: datetime


class UnitUpdate(UpdateSchema):
    non_nullable = frozenset({"project_id", "bhk", "carpet", "price", "inventory_status"})

    project_id: Optional[str] = None
    bhk: Optional[int] = Field(None, ge=0)
    carpet: Optional[float] = Field(None, gt=0)
    price: Optional[float] = Field(None, ge=0)
    facing: Optional[str] = None
    floor: Optional[int] = None
    inventory_status: Optional[InventoryStatus] = None
    avm: Optional[Avm] = None
    rent_yield_pct: Optional[float] = Field(None, ge=0)
    roi: Optional[Roi] = None
    unit_number: Optional[str] = None


# ---------------------------------------------------------------------------
# Offers
# ---------------------------------------------------------------------------

class OfferBase(Schema):
    builder_id: str
    project_id: Optional[str] = None
    type: OfferType
    title: str = Field(..., min_length=1)
    details: str
    valid_till: datetime
    visibility: Visibility = "public"
    terms: Optional[str] = None
    discount_pct: Optional[float] = Field(None, ge=0, le=100)


class OfferCreate(OfferBase):
    id: Optional[str] = None


class Offer(OfferBase):
    id: str
    created_at: datetime


class OfferUpdate(UpdateSchema):
    non_nullable = frozenset({"builder_id", "type", "title", "details", "valid_till", "visibility"})

    builder_id: Optional[str] = None
    project_id: Optional[str] = None
    type: Optional[OfferType] = None
    title: Optional[str] = Field(None, min_length=1)
    details: Optional[str] = None
    valid_till: Optional[datetime] = None
    visibility: Optional[Visibility] = None
    terms: Optional[str] = None
    discount_pct: Optional[float] = Field(None, ge=0, le=100)


# ---------------------------------------------------------------------------
# Market stats
# ---------------------------------------------------------------------------

PERIOD_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class MarketStatBase(Schema):
    geo: str = Field(..., min_length=1)
    geo_type: GeoType
    period: str = Field(..., pattern=PERIOD_PATTERN)
    median_price: float = Field(..., ge=0)
    qoq_pct: Optional[float] = None
    yoy_pct: Optional[float] = None
    inventory_index: Optional[float] = None
    price_per_sqft: Optional[float] = Field(None, ge=0)
    absorption_rate: Optional[float] = None
    new_launches: Optional[int] = Field(None, ge=0)


class MarketStatCreate(MarketStatBase):
    id: Optional[str] = None


class MarketStat(MarketStatBase):
    id: str
    created_at: datetime


class MarketStatUpdate(UpdateSchema):
    non_nullable = frozenset({"geo", "geo_type", "period", "median_price"})

    geo: Optional[str] = Field(None, min_length=1)
    geo_type: Optional[GeoType] = None
    period: Optional[str] = Field(None, pattern=PERIOD_PATTERN)
    median_price: Optional[float] = Field(None, ge=0)
    qoq_pct: Optional[float] = None
    yoy_pct: Optional[float] = None
    inventory_index: Optional[float] = None
    price_per_sqft: Optional[float] = Field(None, ge=0)
    absorption_rate: Optional[float] = None
    new_launches: Optional[int] = Field(None, ge=0)


# ---------------------------------------------------------------------------
# Legal documents
# ---------------------------------------------------------------------------

class LegalDocBase(Schema):
    project_id: str
    type: LegalDocType
    file_url: str = Field(..., min_length=1)
    ocr_text: Optional[str] = None
    risk_flags: List[str] = Field(default_factory=list)
    summary: Optional[str] = None
    verified: bool = False


class LegalDocCreate(LegalDocBase):
    id: Optional[str] = None


class LegalDoc(LegalDocBase):
    id: str
    created_at: datetime


class LegalDocUpdate(UpdateSchema):
    non_nullable = frozenset({"project_id", "type", "file_url", "risk_flags", "verified"})

    project_id: Optional[str] = None
    type: Optional[LegalDocType] = None
    file_url: Optional[str] = Field(None, min_length=1)
    ocr_text: Optional[str] = None
    risk_flags: Optional[List[str]] = None
    summary: Optional[str] = None
    verified: Optional[bool] = None


# ---------------------------------------------------------------------------
# Leads
# ---------------------------------------------------------------------------

class LeadBase(Schema):
    user_id: Optional[str] = None
    project_id: Optional[str] = None
    builder_id: Optional[str] = None
    stage: LeadStage = "new"
    preferences: Optional[LeadPreferences] = None
    channel: LeadChannel = "web"
    notes: Optional[str] = None
    contact_info: Optional[ContactInfo] = None


class LeadCreate(LeadBase):
    id: Optional[str] = None


class Lead(LeadBase):
    id: str
    created_at: datetime


class LeadUpdate(UpdateSchema):
    non_nullable = frozenset({"stage", "channel"})

    user_id: Optional[str] = None
    project_id: Optional[str] = None
    builder_id: Optional[str] = None
    stage: Optional[LeadStage] = None
    preferences: Optional[LeadPreferences] = None
    channel: Optional[LeadChannel] = None
    notes: Optional[str] = None
    contact_info: Optional[ContactInfo] = None


# ---------------------------------------------------------------------------
# AI chat history
# ---------------------------------------------------------------------------

class AiChatHistoryCreate(Schema):
    id: Optional[str] = None
    session_id: str = Field(..., min_length=1)
    user_id: Optional[str] = None
    query: str
    response: str
    context: Optional[ChatContext] = None


class AiChatHistory(Schema):
    id: str
    session_id: str
    user_id: Optional[str] = None
    query: str
    response: str
    context: Optional[ChatContext] = None
    created_at: datetime


class AiChatHistoryUpdate(UpdateSchema):
    non_nullable = frozenset({"session_id", "query", "response"})

    session_id: Optional[str] = Field(None, min_length=1)
    user_id: Optional[str] = None
    query: Optional[str] = None
    response: Optional[str] = None
    context: Optional[ChatContext] = None


# ---------------------------------------------------------------------------
# Query inputs
# ---------------------------------------------------------------------------

class BudgetFilter(Schema):
    min: Optional[float] = Field(None, ge=0)
    max: Optional[float] = Field(None, ge=0)


class SearchFilters(Schema):
    city: Optional[str] = None
    locality: Optional[str] = None
    budget: Optional[BudgetFilter] = None
    status: Optional[List[ProjectStatus]] = None
    verified: Optional[bool] = None
    rera_approved: Optional[bool] = None
    credibility_min: Optional[int] = Field(None, ge=0, le=100)
