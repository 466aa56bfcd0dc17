"""
Demo catalog loaded at startup when SEED_SAMPLE_DATA is on.
"""
from datetime import datetime

import structlog

from .store import Store


logger = structlog.get_logger(__name__)


BUILDERS = [
    {
        "id": "builder-prestige",
        "name": "Prestige Group",
        "verified": True,
        "rera_ids": ["PRM/KA/RERA/1251/309"],
        "inventory_freshness_hours": 12,
        "sla_response_minutes": 15,
        "contact": {
            "phone": "+91 80 4055 9999",
            "email": "sales@prestigeconstructions.com",
            "website": "https://www.prestigeconstructions.com",
        },
        "rating": 4.8,
        "project_count": 125,
        "description": "Leading real estate developer in South India with 35+ years of experience",
    },
    {
        "id": "builder-dlf",
        "name": "DLF Limited",
        "verified": True,
        "rera_ids": ["RC/REP/HARERA/GGM/766/499"],
        "inventory_freshness_hours": 18,
        "sla_response_minutes": 20,
        "contact": {"phone": "+91 124 4513 000", "email": "customercare@dlf.in", "website": "https://www.dlf.in"},
        "rating": 4.6,
        "project_count": 200,
        "description": "India's largest real estate developer with pan-India presence",
    },
    {
        "id": "builder-godrej",
        "name": "Godrej Properties",
        "verified": True,
        "rera_ids": ["P51700000652"],
        "inventory_freshness_hours": 10,
        "sla_response_minutes": 12,
        "contact": {
            "phone": "+91 22 2518 8070",
            "email": "customercare@godrejproperties.com",
            "website": "https://www.godrejproperties.com",
        },
        "rating": 4.9,
        "project_count": 90,
        "description": "Trusted real estate brand with innovative and sustainable developments",
    },
    {
        "id": "builder-brigade",
        "name": "Brigade Group",
        "verified": True,
        "rera_ids": ["PRM/KA/RERA/1251/308"],
        "inventory_freshness_hours": 16,
        "sla_response_minutes": 18,
        "contact": {"phone": "+91 80 4179 4179", "email": "info@brigadegroup.com", "website": "https://www.brigadegroup.com"},
        "rating": 4.5,
        "project_count": 75,
        "description": "Bangalore-based real estate developer known for quality constructions",
    },
]

PROJECTS = [
    {
        "id": "project-prestige-lakeside",
        "name": "Prestige Lakeside Habitat",
        "builder_id": "builder-prestige",
        "rera_id": "PRM/KA/RERA/1251/309",
        "city": "Bangalore",
        "locality": "Whitefield",
        "state": "Karnataka",
        "lat": 12.9698,
        "lng": 77.75,
        "status": "under_construction",
        "possession_date": datetime(2025, 12, 31),
        "amenities": ["Swimming Pool", "Gym", "Club House", "Children's Play Area", "24/7 Security", "Power Backup"],
        "connectivity": {"metro_km": 5.2, "airport_km": 35, "railway_km": 8, "it_hub_km": 2.5},
        "price_band": {"min": 12_000_000, "max": 25_000_000, "currency": "INR"},
        "media": [
            {"url": "https://images.unsplash.com/photo-1545324418-cc1a3fa10c00", "type": "image", "verified": True,
             "score": 95},
        ],
        "credibility_score": 92,
        "sources": ["RERA Portal", "Builder Direct", "Municipal Records"],
        "description": "Premium residential development with lake views and world-class amenities",
        "highlights": ["Lake Facing", "RERA Approved", "Near IT Parks", "Metro Connectivity"],
        "floor_plans": [{"bhk": 2, "area": 1200, "price": 12_000_000}, {"bhk": 3, "area": 1800, "price": 18_000_000}],
        "approved": True,
    },
    {
        "id": "project-dlf-privana",
        "name": "DLF Privana South",
        "builder_id": "builder-dlf",
        "rera_id": "RC/REP/HARERA/GGM/766/499",
        "city": "Gurgaon",
        "locality": "Sector 77",
        "state": "Haryana",
        "lat": 28.3836,
        "lng": 77.0642,
        "status": "ready",
        "possession_date": datetime(2024, 6, 30),
        "amenities": ["Swimming Pool", "Spa", "Golf Course", "Concierge", "Valet Parking", "High-Speed Elevators"],
        "connectivity": {"metro_km": 3.5, "airport_km": 25, "railway_km": 12, "it_hub_km": 8},
        "price_band": {"min": 28_000_000, "max": 55_000_000, "currency": "INR"},
        "media": [
            {"url": "https://images.unsplash.com/photo-1545324418-cc1a3fa10c00", "type": "image", "verified": True,
             "score": 88},
        ],
        "credibility_score": 88,
        "sources": ["RERA Portal", "Builder Direct"],
        "description": "Ultra-luxury residential towers with premium amenities and prime location",
        "highlights": ["Ready to Move", "Golf Course Views", "Metro Connected", "Premium Location"],
        "floor_plans": [{"bhk": 3, "area": 1800, "price": 28_000_000}, {"bhk": 4, "area": 2500, "price": 45_000_000}],
        "approved": True,
    },
    {
        "id": "project-godrej-reserve",
        "name": "Godrej Reserve",
        "builder_id": "builder-godrej",
        "rera_id": "P51700000652",
        "city": "Mumbai",
        "locality": "Kandivali East",
        "state": "Maharashtra",
        "lat": 19.2056,
        "lng": 72.8681,
        "status": "under_construction",
        "possession_date": datetime(2026, 3, 31),
        "amenities": ["Forest Trail", "Organic Farming", "Yoga Deck", "Adventure Sports", "Amphitheatre", "Pet Park"],
        "connectivity": {"metro_km": 2.8, "airport_km": 18, "railway_km": 1.5, "it_hub_km": 15},
        "price_band": {"min": 35_000_000, "max": 80_000_000, "currency": "INR"},
        "media": [
            {"url": "https://images.unsplash.com/photo-1564013799919-ab600027ffc6", "type": "image", "verified": True,
             "score": 95},
        ],
        "credibility_score": 95,
        "sources": ["RERA Portal", "Builder Direct", "Municipal Records", "Environmental Clearance"],
        "description": "Luxury residences amidst 100 acres of lush greenery with sustainable living features",
        "highlights": ["100 Acres Green", "Sustainable Living", "Premium Amenities", "Metro Proximity"],
        "floor_plans": [{"bhk": 4, "area": 2200, "price": 35_000_000}, {"bhk": 5, "area": 3000, "price": 55_000_000}],
        "approved": True,
    },
]

UNITS = [
    {
        "id": "unit-1",
        "project_id": "project-prestige-lakeside",
        "bhk": 2,
        "carpet": 1200.0,
        "price": 12_000_000,
        "facing": "East",
        "floor": 5,
        "inventory_status": "available",
        "avm": {"fair_value": 12_500_000, "low": 11_800_000, "high": 13_200_000, "confidence": 0.85},
        "rent_yield_pct": 3.2,
        "roi": {"appreciation": 12.5, "yield": 3.2, "irr": 15.8, "scenarios": {"bull": 18.5, "base": 12.5, "bear": 8.2}},
        "unit_number": "T1-505",
    },
    {
        "id": "unit-2",
        "project_id": "project-dlf-privana",
        "bhk": 3,
        "carpet": 1800.0,
        "price": 28_000_000,
        "facing": "North",
        "floor": 12,
        "inventory_status": "available",
        "avm": {"fair_value": 29_200_000, "low": 27_500_000, "high": 31_000_000, "confidence": 0.78},
        "rent_yield_pct": 2.8,
        "roi": {"appreciation": 8.5, "yield": 2.8, "irr": 11.3, "scenarios": {"bull": 13.2, "base": 8.5, "bear": 5.8}},
        "unit_number": "A-1205",
    },
]

MARKET_STATS = [
    {
        "id": "market-bangalore-2024-08",
        "geo": "Bangalore",
        "geo_type": "city",
        "period": "2024-08",
        "median_price": 6850.0,
        "qoq_pct": 3.2,
        "yoy_pct": 12.5,
        "inventory_index": 125.5,
        "price_per_sqft": 6850.0,
        "absorption_rate": 15.8,
        "new_launches": 25,
    },
    {
        "id": "market-mumbai-2024-08",
        "geo": "Mumbai",
        "geo_type": "city",
        "period": "2024-08",
        "median_price": 15200.0,
        "qoq_pct": 2.8,
        "yoy_pct": 8.9,
        "inventory_index": 98.2,
        "price_per_sqft": 15200.0,
        "absorption_rate": 12.3,
        "new_launches": 18,
    },
]


def seed_sample_data(store: Store) -> bool:
    """Load the demo catalog once; returns False when it is already present."""
    if store.get_builder(BUILDERS[0]["id"]) is not None:
        return False
    for payload in BUILDERS:
        store.create_builder(payload)
    for payload in PROJECTS:
        store.create_project(payload)
    for payload in UNITS:
        store.create_unit(payload)
    for payload in MARKET_STATS:
        store.create_market_stat(payload)
    logger.info("sample_data_seeded", builders=len(BUILDERS), projects=len(PROJECTS), units=len(UNITS),
                market_stats=len(MARKET_STATS))
    return True
