"""
Listings feed importer.

Pulls the MoneyTree Realty listings feed and maps each record onto a Project,
creating Builders on first sight (exact name match). Project ids are derived from
the feed id, so re-running an import skips listings already in the store.

The price band, status and credibility rules below are provisional heuristics
until a real pricing/verification source exists. Their constants live in Settings.
"""
import random
import re
import threading
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Set

import requests
import structlog

from .config import Settings, get_settings
from .errors import StoreError, UpstreamUnavailable
from .schemas import BuilderCreate, ProjectCreate
from .store import Store


logger = structlog.get_logger(__name__)

SOURCE_NAME = "MoneyTree Realty"
PROJECT_ID_PREFIX = "mt_"
BUILDER_ID_PREFIX = "mt_builder_"
CRORE = Decimal(10_000_000)
PRICE_ON_REQUEST = "On Request"
PRICE_PATTERN = re.compile(r"(?:rs\.?|₹|inr)\s*([\d.]+)\s*(?:cr|crore)\b", re.IGNORECASE)

CITY_STATES = {
    "Mumbai": "Maharashtra",
    "Pune": "Maharashtra",
    "Gurugram": "Haryana",
    "Gurgaon": "Haryana",
    "Delhi": "Delhi",
    "Noida": "Uttar Pradesh",
    "Bengaluru": "Karnataka",
    "Bangalore": "Karnataka",
    "Chennai": "Tamil Nadu",
    "Hyderabad": "Telangana",
}

HIGHLIGHT_KEYWORDS = (
    ("luxury", "Luxury Project"),
    ("rera", "RERA Approved"),
    ("premium", "Premium Location"),
    ("modern", "Modern Amenities"),
    ("family", "Family-Friendly"),
    ("new launch", "New Launch"),
    ("ready", "Ready to Move"),
)
MAX_HIGHLIGHTS = 4


def state_for_city(city: Optional[str]) -> str:
    return CITY_STATES.get((city or "").strip(), "Unknown")


def parse_price_band(price: Optional[str], settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Turn a feed price string into a synthetic band; not a valuation."""
    settings = settings or get_settings()
    text = (price or "").strip()
    if text == PRICE_ON_REQUEST:
        low, high = settings.price_on_request_band
        return {"min": low, "max": high, "currency": "INR"}
    match = PRICE_PATTERN.search(text)
    if match:
        try:
            value = Decimal(match.group(1)) * CRORE
        except InvalidOperation:
            value = None
        if value is not None:
            return {
                "min": int(value * Decimal(settings.price_spread_low)),
                "max": int(value * Decimal(settings.price_spread_high)),
                "currency": "INR",
            }
    low, high = settings.price_fallback_band
    return {"min": low, "max": high, "currency": "INR"}


def derive_status(possession: Optional[str], today: Optional[date] = None) -> str:
    text = possession or ""
    year = (today or date.today()).year
    checks = [
        (year, "nearing_completion"),
        (year + 1, "under_construction"),
        (year + 2, "launched"),
        (year + 3, "launched"),
    ]
    checks += [(year - back, "ready") for back in range(1, 11)]
    for candidate, status in checks:
        if str(candidate) in text:
            return status
    return "under_construction"


def rera_id_of(raw: Dict[str, Any]) -> Optional[str]:
    rera = raw.get("rera") or []
    first = rera[0] if isinstance(rera, list) and rera else None
    if not isinstance(first, str) or not first.strip() or first.strip() == "#":
        return None
    return first.strip()


def credibility_score(raw: Dict[str, Any]) -> int:
    score = 60
    if rera_id_of(raw):
        score += 20
    if len(raw.get("images") or []) >= 3:
        score += 10
    if raw.get("price") != PRICE_ON_REQUEST:
        score += 5
    if (raw.get("builder") or "").strip():
        score += 5
    return min(100, score)


def extract_highlights(keywords: Optional[str]) -> List[str]:
    low = (keywords or "").lower()
    found = [label for word, label in HIGHLIGHT_KEYWORDS if word in low]
    return found[:MAX_HIGHLIGHTS]


def _parse_timestamp(val: Any) -> Optional[datetime]:
    if not isinstance(val, str) or not val.strip():
        return None
    try:
        parsed = datetime.fromisoformat(val.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _location_part(location: Any, idx: int) -> str:
    if isinstance(location, list) and len(location) > idx and location[idx]:
        return str(location[idx]).strip()
    return ""


class ListingsImporter:
    def __init__(
        self,
        store: Store,
        settings: Optional[Settings] = None,
        http: Any = None,
        rng: Optional[random.Random] = None,
        today: Optional[date] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.http = http or requests
        # Placeholder generator for builder rating/verified until real data exists
        self.rng = rng or random.Random(self.settings.placeholder_seed)
        self.today = today

    # -- feed ----------------------------------------------------------------

    def _fetch(self, url: str) -> List[Dict[str, Any]]:
        try:
            resp = self.http.get(url, timeout=self.settings.listings_feed_timeout)
        except requests.RequestException as e:
            raise UpstreamUnavailable(url, str(e)) from e
        if not resp.ok:
            raise UpstreamUnavailable(url, f"HTTP {resp.status_code}", resp.status_code)
        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamUnavailable(url, "malformed JSON") from e
        if not isinstance(data, list):
            raise UpstreamUnavailable(url, "expected a JSON array")
        return [item for item in data if isinstance(item, dict)]

    def fetch_listings(self) -> List[Dict[str, Any]]:
        url = self.settings.listings_feed_url
        try:
            listings = self._fetch(url)
        except UpstreamUnavailable as e:
            logger.warning("listings_fetch_failed", url=url, reason=e.reason, status=e.status)
            return []
        logger.info("listings_fetched", url=url, count=len(listings))
        return listings

    # -- mapping -------------------------------------------------------------

    @staticmethod
    def project_id_for(raw: Dict[str, Any]) -> str:
        return f"{PROJECT_ID_PREFIX}{raw['id']}"

    def resolve_builder(self, name: Optional[str], city: Optional[str]) -> str:
        name = (name or "").strip() or "Unknown Builder"

        def synthesize() -> BuilderCreate:
            return BuilderCreate(
                id=f"{BUILDER_ID_PREFIX}{uuid.uuid4().hex}",
                name=name,
                verified=self.rng.random() > 0.3,
                rating=round(3.5 + self.rng.random() * 1.5, 1),
                description=f"Real estate developer with projects in {city or 'India'} ({state_for_city(city)})",
            )

        builder, created = self.store.get_or_create_builder(name, synthesize)
        if not created:
            return builder.id
        logger.info("builder_synthesized", builder_id=builder.id, name=name)
        return builder.id

    def map_listing(self, raw: Dict[str, Any], builder_id: str = "") -> ProjectCreate:
        location = raw.get("location") or []
        city = _location_part(location, 0) or "Unknown"
        builder = (raw.get("builder") or "").strip()
        type_detail = [str(t) for t in (raw.get("typeDetail") or []) if t]
        base_url = self.settings.listings_media_base_url
        name = str(raw["name"]).strip()
        media = [
            {"url": f"{base_url.rstrip('/')}/{str(img).lstrip('/')}", "type": "image", "caption": f"{name} - Gallery"}
            for img in (raw.get("images") or [])
            if img
        ]
        rera = raw.get("rera") if isinstance(raw.get("rera"), list) else []
        sources = [SOURCE_NAME] + [s for s in (raw.get("link"), rera[1] if len(rera) > 1 else None) if s and s != "#"]
        description = raw.get("shortDescription") or (
            f"Premium {' & '.join(type_detail) or 'residential'} project by {builder or 'the developer'}"
        )
        return ProjectCreate(
            id=self.project_id_for(raw),
            name=name,
            builder_id=builder_id,
            rera_id=rera_id_of(raw),
            city=city,
            locality=_location_part(location, 1),
            state=state_for_city(city),
            pincode=_location_part(location, 2) or None,
            address=_location_part(location, 3) or None,
            status=derive_status(raw.get("possession"), self.today),
            possession_timeline=str(raw.get("possession") or "").strip() or None,
            price_band=parse_price_band(raw.get("price"), self.settings),
            media=media,
            credibility_score=credibility_score(raw),
            sources=sources,
            description=description,
            highlights=extract_highlights(raw.get("keywords")),
            unit_types=type_detail,
            created_at=_parse_timestamp(raw.get("created_at")),
            approved=True,
        )

    # -- drivers -------------------------------------------------------------

    def _batch(self) -> List[Dict[str, Any]]:
        listings = self.fetch_listings()
        limit = self.settings.listings_import_limit
        return listings[:limit] if limit > 0 else listings

    def preview(self) -> List[Dict[str, Any]]:
        out = []
        for raw in self._batch():
            try:
                mapped = self.map_listing(raw)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("listing_skipped", listing_id=raw.get("id"), error=str(e))
                continue
            out.append({**mapped.model_dump(mode="json", by_alias=True), "builder": raw.get("builder")})
        return out

    def run(self) -> Dict[str, int]:
        batch = self._batch()
        imported, skipped, failed = 0, 0, 0
        touched: Set[str] = set()
        for raw in batch:
            try:
                if self.store.get_project(self.project_id_for(raw)) is not None:
                    skipped += 1
                    continue
                # map before touching builders so a bad record leaves nothing behind
                mapped = self.map_listing(raw)
                builder_id = self.resolve_builder(raw.get("builder"), mapped.city)
                self.store.create_project(mapped.model_copy(update={"builder_id": builder_id}))
                touched.add(builder_id)
                imported += 1
            except (KeyError, TypeError, ValueError, StoreError) as e:
                failed += 1
                logger.warning("listing_skipped", listing_id=raw.get("id"), error=str(e))
        for builder_id in touched:
            self.store.refresh_builder_stats(builder_id)
        report = {"fetched": len(batch), "imported": imported, "skipped_existing": skipped, "failed": failed}
        logger.info("listings_import_finished", **report)
        return report


def start_background_import(store: Store, settings: Optional[Settings] = None, **kwargs) -> threading.Thread:
    importer = ListingsImporter(store, settings, **kwargs)

    def _run():
        try:
            importer.run()
        except Exception:
            # warm-up only: a crash here must not take the process down
            logger.exception("listings_import_crashed")

    thread = threading.Thread(target=_run, name="listings-import", daemon=True)
    thread.start()
    return thread
