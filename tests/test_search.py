import pytest

from zyloestates.errors import InvalidPayload
from zyloestates.tools.search import CatalogSearch


@pytest.fixture
def search(seeded_store, settings):
    return CatalogSearch(seeded_store, settings)


def _add_project(store, name, city="Pune", locality="Baner", **overrides):
    payload = {
        "name": name,
        "builder_id": "builder-brigade",
        "city": city,
        "locality": locality,
        "status": "launched",
        "price_band": {"min": 5_000_000, "max": 9_000_000},
        "credibility_score": 60,
    }
    payload.update(overrides)
    return store.create_project(payload)


def _ids(projects):
    return [p.id for p in projects]


def test_no_filters_ranks_by_credibility(search):
    assert _ids(search.projects()) == [
        "project-godrej-reserve",
        "project-prestige-lakeside",
        "project-dlf-privana",
    ]


def test_city_and_locality_match_case_insensitive_substrings(search):
    assert _ids(search.projects({"city": "bang"})) == ["project-prestige-lakeside"]
    assert _ids(search.projects({"locality": "KANDIVALI"})) == ["project-godrej-reserve"]


def test_budget_requires_band_inside_range(search):
    found = search.projects({"budget": {"min": 10_000_000, "max": 30_000_000}})
    assert _ids(found) == ["project-prestige-lakeside"]
    assert _ids(search.projects({"budget": {"max": 25_000_000}})) == ["project-prestige-lakeside"]


def test_status_filter(search):
    assert _ids(search.projects({"status": ["ready"]})) == ["project-dlf-privana"]
    assert len(search.projects({"status": []})) == 3
    with pytest.raises(InvalidPayload):
        search.projects({"status": ["sold"]})


def test_verified_rera_and_credibility_filters(search, seeded_store):
    _add_project(seeded_store, "Unregistered Towers", credibility_score=70)
    assert "Unregistered Towers" not in [p.name for p in search.projects({"verified": True})]
    assert "Unregistered Towers" not in [p.name for p in search.projects({"reraApproved": True})]
    assert _ids(search.projects({"credibilityMin": 90})) == ["project-godrej-reserve", "project-prestige-lakeside"]
    assert len(search.projects()) == 4


def test_search_combines_text_and_filters(search):
    assert _ids(search.search_properties("whitefield")) == ["project-prestige-lakeside"]
    assert _ids(search.search_properties("LAKE")) == ["project-prestige-lakeside"]
    assert search.search_properties("whitefield", {"city": "Mumbai"}) == []
    assert len(search.search_properties("")) == 3


def test_search_text_keeps_surrounding_spaces(search):
    assert _ids(search.search_properties("South")) == ["project-dlf-privana"]
    assert search.search_properties("South ") == []
    assert _ids(search.search_properties(" Privana ")) == ["project-dlf-privana"]
    assert len(search.search_properties("   ")) == 3


def test_search_treats_wildcards_literally(search):
    assert search.search_properties("%") == []
    assert search.search_properties("_") == []


def test_builders_ranked_by_rating(search):
    names = [b.name for b in search.builders(verified=True)]
    assert names[0] == "Godrej Properties"
    assert names[-1] == "Brigade Group"
    assert search.builders(verified=False) == []


def test_featured_projects_limit(search):
    assert _ids(search.featured_projects(2)) == ["project-godrej-reserve", "project-prestige-lakeside"]
    assert search.featured_projects(0) == []
    assert len(search.featured_projects()) == 3


def test_trending_localities_counts_within_city(search, seeded_store):
    for locality in ["Baner", "Hinjewadi", "Baner", "Wakad", "Hinjewadi", "Baner", "Kharadi"]:
        _add_project(seeded_store, f"{locality} Residency", locality=locality)
    assert search.trending_localities("Pune") == [
        {"locality": "Baner", "count": 3},
        {"locality": "Hinjewadi", "count": 2},
        {"locality": "Wakad", "count": 1},
        {"locality": "Kharadi", "count": 1},
    ]
    assert search.trending_localities("pune") == []
    assert search.trending_localities("Bangalore") == [{"locality": "Whitefield", "count": 1}]


def test_trending_localities_keeps_top_five(search, seeded_store):
    for i in range(7):
        _add_project(seeded_store, f"Tower {i}", city="Chennai", locality=f"Area {i}")
    top = search.trending_localities("Chennai")
    assert [t["locality"] for t in top] == [f"Area {i}" for i in range(5)]


def test_market_stats_sorted_by_period(search, seeded_store):
    seeded_store.create_market_stat({"geo": "Bangalore", "geo_type": "city", "period": "2024-05", "median_price": 6600})
    periods = [s.period for s in search.market_stats("Bangalore", "city")]
    assert periods == ["2024-05", "2024-08"]
    assert search.market_stats("Bangalore", "locality") == []


def test_admin_stats(search, seeded_store):
    _add_project(seeded_store, "Pending Towers", credibility_score=70)
    _add_project(seeded_store, "Shaky Towers", credibility_score=40)
    stats = search.admin_stats()
    assert stats["totalBuilders"] == 4
    assert stats["verifiedBuilders"] == 4
    assert stats["totalProjects"] == 5
    assert stats["activeProjects"] == 4
    assert stats["compliantProjects"] == 3
    assert stats["pendingReview"] == 2
    assert stats["nonCompliant"] == 1
    assert stats["totalLeads"] == 0


def test_builder_stats(search, seeded_store):
    seeded_store.create_lead({"builder_id": "builder-prestige", "stage": "visit"})
    seeded_store.create_lead({"builder_id": "builder-prestige", "stage": "booked"})
    stats = search.builder_stats("builder-prestige")
    assert stats["totalProjects"] == 1
    assert stats["activeProjects"] == 1
    assert stats["unitsAvailable"] == 1
    assert stats["unitsSold"] == 0
    assert stats["activeLeads"] == 1
    assert stats["leadsByStage"] == {"visit": 1, "booked": 1}
    assert stats["credibilityScore"] == 92
    assert stats["rating"] == 4.8
    assert search.builder_stats("builder-missing") is None
