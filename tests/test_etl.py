import random
import threading
import time
from datetime import date

import pytest
import requests

from zyloestates.etl import (
    ListingsImporter,
    credibility_score,
    derive_status,
    extract_highlights,
    parse_price_band,
    start_background_import,
    state_for_city,
)
from zyloestates.store import Store


TODAY = date(2025, 6, 1)


def _importer(store, settings, http, **kwargs):
    return ListingsImporter(store, settings, http=http, today=TODAY, **kwargs)


def test_parse_price_band_crore_amounts(settings):
    assert parse_price_band("Rs. 2.5 Cr", settings) == {"min": 22_500_000, "max": 32_500_000, "currency": "INR"}
    band = parse_price_band("₹1.2 Cr onwards", settings)
    assert (band["min"], band["max"]) == (10_800_000, 15_600_000)
    band = parse_price_band("rs 3 cr", settings)
    assert (band["min"], band["max"]) == (27_000_000, 39_000_000)


def test_parse_price_band_placeholders(settings):
    assert parse_price_band("On Request", settings)["min"] == 50_000_000
    assert parse_price_band("On Request", settings)["max"] == 200_000_000
    for price in ("Contact for price", "", None, "Rs. .. Cr"):
        band = parse_price_band(price, settings)
        assert (band["min"], band["max"]) == (30_000_000, 150_000_000)


@pytest.mark.parametrize("possession,expected", [
    ("Dec 2025", "nearing_completion"),
    ("March 2026", "under_construction"),
    ("2027", "launched"),
    ("Q4 2028", "launched"),
    ("Ready since 2019", "ready"),
    ("2015", "ready"),
    ("2014", "under_construction"),
    ("2040", "under_construction"),
    ("", "under_construction"),
    (None, "under_construction"),
])
def test_derive_status(possession, expected):
    assert derive_status(possession, TODAY) == expected


def test_credibility_score_bounds(make_listing):
    assert credibility_score(make_listing(builder="Acme", images=["1", "2", "3", "4"], price="Rs. 1 Cr")) == 100
    bare = make_listing(rera=["#", ""], images=[], price="On Request", builder="")
    assert credibility_score(bare) == 60
    assert credibility_score(make_listing(rera=[], images=["1", "2"])) == 70


def test_extract_highlights_caps_at_four():
    assert extract_highlights("Luxury premium family homes, RERA registered, ready to move") == [
        "Luxury Project",
        "RERA Approved",
        "Premium Location",
        "Family-Friendly",
    ]
    assert extract_highlights("New Launch with modern clubhouse") == ["Modern Amenities", "New Launch"]
    assert extract_highlights(None) == []


def test_state_lookup():
    assert state_for_city("Bangalore") == "Karnataka"
    assert state_for_city("Gurgaon") == "Haryana"
    assert state_for_city("Kochi") == "Unknown"


def test_fetch_listings_falls_back_to_empty(store, settings, fake_feed):
    failing = fake_feed(exc=requests.ConnectionError("connection refused"))
    assert _importer(store, settings, failing).fetch_listings() == []
    assert failing.calls == [(settings.listings_feed_url, settings.listings_feed_timeout)]
    assert _importer(store, settings, fake_feed(exc=requests.Timeout("slow"))).fetch_listings() == []
    assert _importer(store, settings, fake_feed([], status_code=502)).fetch_listings() == []
    assert _importer(store, settings, fake_feed(bad_json=True)).fetch_listings() == []
    assert _importer(store, settings, fake_feed({"error": "nope"})).fetch_listings() == []


def test_fetch_listings_drops_non_objects(store, settings, fake_feed, make_listing):
    feed = fake_feed([make_listing(), "junk", 3])
    assert len(_importer(store, settings, feed).fetch_listings()) == 1


def test_map_listing(store, settings, fake_feed, make_listing):
    importer = _importer(store, settings, fake_feed([]))
    project = importer.map_listing(make_listing(), builder_id="mt_builder_x")
    assert project.id == "mt_101"
    assert project.builder_id == "mt_builder_x"
    assert project.city == "Bangalore"
    assert project.locality == "Whitefield"
    assert project.state == "Karnataka"
    assert project.pincode == "560066"
    assert project.rera_id == "PRM/KA/RERA/1251/446/PR/210"
    assert project.status == "launched"
    assert (project.price_band.min, project.price_band.max) == (22_500_000, 32_500_000)
    assert project.credibility_score == 100
    assert [m.url for m in project.media] == [
        "https://feed.test/uploads/a.jpg",
        "https://feed.test/uploads/b.jpg",
        "https://feed.test/uploads/c.jpg",
    ]
    assert project.sources[0] == "MoneyTree Realty"
    assert "https://feed.test/property/101" in project.sources
    assert project.description == "Premium 2 BHK & 3 BHK project by Acme Developers"
    assert project.highlights == ["Luxury Project"]
    assert project.unit_types == ["2 BHK", "3 BHK"]
    assert project.created_at.year == 2024
    assert project.possession_timeline == "Dec 2027"
    assert project.approved is True


def test_map_listing_defaults_for_sparse_records(store, settings, fake_feed):
    importer = _importer(store, settings, fake_feed([]))
    project = importer.map_listing({"id": 7, "name": "Plain Plot"})
    assert project.city == "Unknown"
    assert project.state == "Unknown"
    assert project.rera_id is None
    assert project.description == "Premium residential project by the developer"
    assert project.media == []


def test_run_imports_and_dedupes_builders(store, settings, fake_feed, make_listing):
    feed = fake_feed([
        make_listing(1, "Skyline Heights"),
        make_listing(2, "Skyline Gardens"),
        make_listing(3, "Harbour View", builder="Bayside Homes", city="Mumbai"),
    ])
    report = _importer(store, settings, feed).run()
    assert report == {"fetched": 3, "imported": 3, "skipped_existing": 0, "failed": 0}
    acme = store.builder_by_name("Acme Developers")
    assert acme.id.startswith("mt_builder_")
    assert acme.project_count == 2
    assert 3.5 <= acme.rating <= 5.0
    assert store.counts()["builder"] == 2
    assert store.get_project("mt_3").state == "Maharashtra"


def test_run_is_idempotent(store, settings, fake_feed, make_listing):
    feed = fake_feed([make_listing(1), make_listing(2)])
    _importer(store, settings, feed).run()
    before = store.counts()
    report = _importer(store, settings, feed).run()
    assert report == {"fetched": 2, "imported": 0, "skipped_existing": 2, "failed": 0}
    assert store.counts() == before


def test_run_reuses_existing_builder(seeded_store, settings, fake_feed, make_listing):
    feed = fake_feed([make_listing(9, builder="Prestige Group")])
    _importer(seeded_store, settings, feed).run()
    assert seeded_store.get_project("mt_9").builder_id == "builder-prestige"
    assert seeded_store.counts()["builder"] == 4


def test_bad_records_are_counted_and_leave_nothing_behind(store, settings, fake_feed, make_listing):
    broken = make_listing(2, builder="Ghost Builders")
    del broken["name"]
    feed = fake_feed([make_listing(1), broken, {"name": "No id"}])
    report = _importer(store, settings, feed).run()
    assert report["imported"] == 1
    assert report["failed"] == 2
    assert store.builder_by_name("Ghost Builders") is None


def test_import_limit(store, settings, fake_feed, make_listing):
    limited = settings.model_copy(update={"listings_import_limit": 2})
    feed = fake_feed([make_listing(i) for i in range(5)])
    assert _importer(store, limited, feed).run()["imported"] == 2


def test_feed_outage_imports_nothing(store, settings, fake_feed):
    report = _importer(store, settings, fake_feed(exc=requests.ConnectionError("down"))).run()
    assert report == {"fetched": 0, "imported": 0, "skipped_existing": 0, "failed": 0}
    assert store.counts()["project"] == 0


def test_placeholder_values_are_seedable(settings, fake_feed, make_listing):
    ratings = []
    for _ in range(2):
        with Store("sqlite+pysqlite:///:memory:") as s:
            _importer(s, settings, fake_feed([make_listing()]), rng=random.Random(42)).run()
            b = s.builder_by_name("Acme Developers")
            ratings.append((b.rating, b.verified))
    assert ratings[0] == ratings[1]


def test_preview_does_not_write(store, settings, fake_feed, make_listing):
    preview = _importer(store, settings, fake_feed([make_listing(), {"id": 5}])).preview()
    assert len(preview) == 1
    assert preview[0]["id"] == "mt_101"
    assert preview[0]["priceBand"]["min"] == 22_500_000
    assert preview[0]["builder"] == "Acme Developers"
    assert store.counts()["project"] == 0
    assert store.counts()["builder"] == 0


def test_background_import(store, settings, fake_feed, make_listing):
    thread = start_background_import(store, settings, http=fake_feed([make_listing()]), today=TODAY)
    thread.join(timeout=10)
    assert not thread.is_alive()
    assert store.get_project("mt_101") is not None


def test_synthesized_builder_id_is_full_uuid(store, settings, fake_feed):
    builder_id = _importer(store, settings, fake_feed([])).resolve_builder("Acme Developers", "Pune")
    assert builder_id.startswith("mt_builder_")
    assert len(builder_id) == len("mt_builder_") + 32


def test_concurrent_importers_share_one_builder(store, settings, fake_feed, make_listing, monkeypatch):
    lookup = store.builder_by_name

    def slow_lookup(name):
        found = lookup(name)
        time.sleep(0.2)
        return found

    monkeypatch.setattr(store, "builder_by_name", slow_lookup)
    importers = [_importer(store, settings, fake_feed([make_listing(i)])) for i in (1, 2)]
    threads = [threading.Thread(target=imp.run) for imp in importers]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)
    assert store.counts()["builder"] == 1
    assert store.get_project("mt_1").builder_id == store.get_project("mt_2").builder_id
