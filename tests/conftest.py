import pytest

from zyloestates.config import Settings
from zyloestates.sample_data import seed_sample_data
from zyloestates.store import Store


class FakeResponse:
    def __init__(self, payload=None, status_code=200, bad_json=False):
        self._payload = payload
        self.status_code = status_code
        self._bad_json = bad_json

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._bad_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class FakeHTTP:
    """Stands in for the requests module: records calls and replays one response."""

    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        if self.exc is not None:
            raise self.exc
        return self.response


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite+pysqlite:///:memory:",
        seed_sample_data=False,
        import_on_startup=False,
        placeholder_seed=7,
        llm_provider="fake",
        listings_feed_url="https://feed.test/api/properties",
        listings_media_base_url="https://feed.test/",
        listings_import_limit=0,
    )


@pytest.fixture
def store():
    s = Store("sqlite+pysqlite:///:memory:").init()
    yield s
    s.close()


@pytest.fixture
def seeded_store(store):
    seed_sample_data(store)
    return store


@pytest.fixture
def fake_feed():
    def make(payload=None, status_code=200, exc=None, bad_json=False):
        return FakeHTTP(FakeResponse(payload, status_code, bad_json), exc)
    return make


@pytest.fixture
def make_listing():
    def make(listing_id=101, name="Skyline Heights", builder="Acme Developers", city="Bangalore", **overrides):
        raw = {
            "id": listing_id,
            "name": name,
            "link": f"https://feed.test/property/{listing_id}",
            "builder": builder,
            "location": [city, "Whitefield", "560066", "Plot 4, ITPL Main Road"],
            "images": ["uploads/a.jpg", "uploads/b.jpg", "uploads/c.jpg"],
            "price": "Rs. 2.5 Cr",
            "possession": "Dec 2027",
            "type": ["Residential"],
            "typeDetail": ["2 BHK", "3 BHK"],
            "rera": ["PRM/KA/RERA/1251/446/PR/210", "https://rera.karnataka.gov.in"],
            "shortDescription": "",
            "keywords": "luxury apartments near ITPL",
            "created_at": "2024-05-01T10:00:00Z",
            "updated_at": "2024-05-02T10:00:00Z",
        }
        raw.update(overrides)
        return raw
    return make
