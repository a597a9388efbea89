"""
Unit tests for trip_service.py

Tests cover:
- Round trips through the in-memory document store
- Sample-data fallback when the store is empty or failing
- Update merge and delete
"""
from dataclasses import replace
from unittest.mock import MagicMock

from mock_data import sample_trips
from trip_service import RepositoryResult, TripRepository, normalize_trip
from TripData import Trip


def _failing_repository():
    return TripRepository(MagicMock(side_effect=RuntimeError("database is down")))


# ---------------------------------------------------------------------------
# normalize_trip
# ---------------------------------------------------------------------------

class TestNormalizeTrip:
    def test_fills_timestamps_and_owner(self):
        trip = normalize_trip(Trip(id="t1", title="x"), "user-9")
        assert trip.created_at
        assert trip.updated_at
        assert trip.user_id == "user-9"

    def test_existing_owner_wins(self):
        trip = normalize_trip(Trip(id="t1", user_id="owner"), "someone-else")
        assert trip.user_id == "owner"

    def test_default_user_when_none_given(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_USER_ID", "anon")
        assert normalize_trip(Trip(id="t1")).user_id == "anon"


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

class TestFetchTrips:
    def test_empty_store_serves_samples(self, repository):
        result = repository.fetch_trips("user-1")
        assert result.degraded is True
        assert [t.id for t in result.data] == [t.id for t in sample_trips()]

    def test_failing_store_serves_samples(self):
        result = _failing_repository().fetch_trips("user-1")
        assert result.degraded is True
        assert len(result.data) == 3

    def test_only_own_trips_returned(self, repository):
        repository.create_trip(Trip(title="Mine"), "user-1")
        repository.create_trip(Trip(title="Theirs"), "user-2")
        result = repository.fetch_trips("user-1")
        assert result.degraded is False
        assert [t.title for t in result.data] == ["Mine"]


class TestFetchTripBySlug:
    def test_created_trip_found_by_generated_slug(self, repository, trip):
        created = repository.create_trip(trip, "user-1").data
        assert created.public_slug == created.id

        found = repository.fetch_trip_by_slug(created.public_slug)
        assert found.degraded is False
        assert found.data.title == "Osaka weekend"
        assert len(found.data.days) == 2
        assert found.data.days[0].blocks[0].title == "Osaka Castle"

    def test_custom_slug_and_id_both_resolve(self, repository):
        created = repository.create_trip(Trip(title="Kyoto", public_slug="kyoto-2026")).data
        assert repository.fetch_trip_by_slug("kyoto-2026").data.id == created.id
        assert repository.fetch_trip_by_slug(created.id).data.id == created.id

    def test_sample_slug_served_when_not_stored(self, repository):
        result = repository.fetch_trip_by_slug("taipei-foodie")
        assert result.degraded is True
        assert result.data.title == "Taipei food tour"

    def test_unknown_slug(self, repository):
        result = repository.fetch_trip_by_slug("no-such-trip")
        assert result.data is None

    def test_failing_store_falls_back_to_samples(self):
        result = _failing_repository().fetch_trip_by_slug("seoul-spring")
        assert result.degraded is True
        assert result.data.id == "seoul-spring"


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

class TestCreateTrip:
    def test_assigns_new_id_and_owner(self, repository, trip):
        result = repository.create_trip(trip, "user-1")
        assert result.degraded is False
        assert result.data.id != trip.id
        assert len(result.data.id) == 8
        assert result.data.user_id == "user-1"
        assert result.data.created_at

    def test_failure_keeps_trip_in_memory(self):
        result = _failing_repository().create_trip(Trip(title="Offline"), "user-1")
        assert isinstance(result, RepositoryResult)
        assert result.degraded is True
        assert result.data.id.startswith("trip-")
        assert result.data.title == "Offline"

    def test_failure_keeps_given_id(self):
        result = _failing_repository().create_trip(Trip(id="local-1", title="Offline"))
        assert result.data.id == "local-1"


class TestUpdateTrip:
    def test_update_is_persisted_and_stamped(self, repository, trip):
        created = repository.create_trip(trip, "user-1").data
        result = repository.update_trip(replace(created, title="Osaka long weekend"), "user-1")
        assert result.degraded is False
        assert result.data.updated_at >= created.updated_at

        stored = repository.fetch_trip_by_slug(created.id).data
        assert stored.title == "Osaka long weekend"
        assert stored.destination == "Osaka, Japan"

    def test_update_of_unknown_trip_inserts_it(self, repository):
        repository.update_trip(Trip(id="fresh-1", title="Upserted"), "user-1")
        assert repository.fetch_trip_by_slug("fresh-1").data.title == "Upserted"

    def test_failure_is_masked(self, trip):
        result = _failing_repository().update_trip(trip)
        assert result.degraded is True
        assert result.data.title == trip.title


class TestDeleteTrip:
    def test_deleted_trip_no_longer_resolves(self, repository, trip):
        created = repository.create_trip(trip, "user-1").data
        assert repository.delete_trip(created.id).degraded is False
        assert repository.fetch_trip_by_slug(created.id).data is None

    def test_failure_is_masked(self):
        result = _failing_repository().delete_trip("t1")
        assert result.degraded is True


class TestDeletedSampleTrips:
    def test_edited_then_deleted_sample_no_longer_resolves(self, repository):
        sample = repository.fetch_trip_by_slug("seoul-spring").data
        repository.update_trip(replace(sample, title="My Seoul"), "user-1")
        assert repository.fetch_trip_by_slug("seoul-spring").data.title == "My Seoul"

        repository.delete_trip("seoul-spring")
        result = repository.fetch_trip_by_slug("seoul-spring")
        assert result.data is None

    def test_deleted_sample_left_out_of_fallback_listing(self, repository):
        repository.delete_trip("jeju-summer")
        ids = [t.id for t in repository.fetch_trips("user-1").data]
        assert "jeju-summer" not in ids
        assert "seoul-spring" in ids

    def test_failed_delete_still_hides_sample(self):
        repository = _failing_repository()
        repository.delete_trip("tokyo-fall")
        assert repository.fetch_trip_by_slug("tokyo-fall").data is None

    def test_saving_again_revives_trip(self, repository):
        sample = repository.fetch_trip_by_slug("taipei-foodie").data
        repository.delete_trip("taipei-foodie")
        repository.update_trip(sample, "user-1")
        assert repository.fetch_trip_by_slug("taipei-foodie").data.id == "taipei-foodie"
