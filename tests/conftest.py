import sys
import os
import pytest

# Project root: needed for TripData, trip_service, providers, etc.
_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _root not in sys.path:
    sys.path.insert(0, _root)

# main.py creates its engine at import; keep it in memory for the test run
os.environ["DATABASE_URL"] = "sqlite://"

from database import init_db, make_session_factory
from trip_service import TripRepository
from TripData import Block, BlockCategory, Day, Trip


@pytest.fixture
def repository():
    """Repository over a fresh in-memory SQLite database."""
    engine = init_db("sqlite://")
    return TripRepository(make_session_factory(engine))


@pytest.fixture
def trip():
    return Trip(
        id="osaka-1",
        title="Osaka weekend",
        destination="Osaka, Japan",
        start_date="2026-03-10",
        end_date="2026-03-12",
        user_id="user-1",
        days=[
            Day(
                id="osaka-1-d1",
                trip_id="osaka-1",
                date="2026-03-10",
                title="Minami",
                blocks=[
                    Block(id="b1", trip_id="osaka-1", day_id="osaka-1-d1",
                          start_time="10:00", end_time="11:30", title="Osaka Castle",
                          category=BlockCategory.MORNING, lat=34.6873, lng=135.5262),
                    Block(id="b2", trip_id="osaka-1", day_id="osaka-1-d1",
                          start_time="12:00", end_time="13:00", title="Kuromon Market",
                          category=BlockCategory.LUNCH),
                    Block(id="b3", trip_id="osaka-1", day_id="osaka-1-d1",
                          start_time="18:00", end_time="20:00", title="Dotonbori",
                          category=BlockCategory.DINNER, lat=34.6687, lng=135.5013),
                ],
            ),
            Day(id="osaka-1-d2", trip_id="osaka-1", date="2026-03-11"),
        ],
    )


@pytest.fixture
def credentials(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-gemini-key")
    monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "test-maps-key")


@pytest.fixture
def no_credentials(monkeypatch):
    for name in ("GEMINI_API_KEY", "GOOGLE_MAPS_API_KEY", "NEXT_PUBLIC_GOOGLE_MAPS_API_KEY"):
        monkeypatch.delenv(name, raising=False)
