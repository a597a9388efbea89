"""
Trip repository - CRUD over the document store with a sample-data fallback.

Every call returns a ``RepositoryResult``.  ``degraded`` is True whenever
the value did not come from (or was not written to) the store, so callers
can tell live data from the sample/in-memory fallback.  Store failures are
logged here and never raised.
"""
from __future__ import annotations

import logging
import random
import string
import threading
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Generic, List, Optional, TypeVar

from config import default_user_id
from database import TripDocument, generate_id
from mock_data import find_sample, sample_trips
from TripData import Trip

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RepositoryResult(Generic[T]):
    data: T
    degraded: bool = False


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _fallback_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"trip-{int(time.time() * 1000)}-{suffix}"


def normalize_trip(trip: Trip, user_id: Optional[str] = None) -> Trip:
    """Fill timestamps and owner without touching anything else."""
    now = _now_iso()
    return replace(
        trip,
        created_at=trip.created_at or now,
        updated_at=trip.updated_at or now,
        user_id=trip.user_id or user_id or default_user_id(),
    )


class TripRepository:
    """Trip CRUD against a SQLAlchemy session factory."""

    def __init__(self, session_factory):
        self._session_factory = session_factory
        # ids and slugs of deleted trips; keeps sample fallbacks from reviving them
        self._deleted: set = set()
        self._deleted_lock = threading.Lock()

    def _is_deleted(self, slug: str) -> bool:
        with self._deleted_lock:
            return slug in self._deleted

    def _live_samples(self) -> List[Trip]:
        return [t for t in sample_trips() if not self._is_deleted(t.id)]

    # -- reads ---------------------------------------------------------------

    def fetch_trips(self, user_id: Optional[str] = None) -> RepositoryResult[List[Trip]]:
        try:
            with self._session_factory() as session:
                q = session.query(TripDocument)
                if user_id:
                    q = q.filter(TripDocument.user_id == user_id)
                rows = q.all()
                trips = [normalize_trip(Trip.from_document(row.data or {}, row.id)) for row in rows]
        except Exception as exc:
            logger.warning("fetch_trips failed, serving sample trips: %s", exc)
            return RepositoryResult(self._live_samples(), degraded=True)

        if not trips:
            logger.info("No stored trips for user %s, serving sample trips", user_id)
            return RepositoryResult(self._live_samples(), degraded=True)
        return RepositoryResult(trips)

    def fetch_trip_by_slug(self, slug: str) -> RepositoryResult[Optional[Trip]]:
        try:
            with self._session_factory() as session:
                row = (
                    session.query(TripDocument)
                    .filter(TripDocument.public_slug == slug)
                    .first()
                )
                if row is None:
                    row = session.get(TripDocument, slug)
                if row is not None:
                    return RepositoryResult(normalize_trip(Trip.from_document(row.data or {}, row.id)))
        except Exception as exc:
            logger.warning("fetch_trip_by_slug(%s) failed, trying sample trips: %s", slug, exc)

        sample = None if self._is_deleted(slug) else find_sample(slug)
        if sample is None or self._is_deleted(sample.id):
            return RepositoryResult(None, degraded=True)
        return RepositoryResult(normalize_trip(sample), degraded=True)

    # -- writes --------------------------------------------------------------

    def create_trip(self, trip: Trip, user_id: Optional[str] = None) -> RepositoryResult[Trip]:
        normalized = normalize_trip(trip, user_id)
        new_id = generate_id()
        created = replace(normalized, id=new_id, public_slug=normalized.public_slug or new_id)
        try:
            with self._session_factory() as session:
                session.add(TripDocument(
                    id=created.id,
                    user_id=created.user_id,
                    public_slug=created.public_slug,
                    data=created.to_document(),
                ))
                session.commit()
            return RepositoryResult(created)
        except Exception as exc:
            local_id = trip.id or _fallback_id()
            logger.warning("create_trip failed, keeping trip in memory as %s: %s", local_id, exc)
            return RepositoryResult(
                replace(normalized, id=local_id, public_slug=normalized.public_slug or local_id),
                degraded=True,
            )

    def update_trip(self, trip: Trip, user_id: Optional[str] = None) -> RepositoryResult[Trip]:
        stamped = normalize_trip(replace(trip, updated_at=_now_iso()), user_id)
        with self._deleted_lock:
            self._deleted.difference_update({stamped.id, stamped.share_slug})
        try:
            with self._session_factory() as session:
                doc = stamped.to_document()
                row = session.get(TripDocument, stamped.id)
                if row is None:
                    session.add(TripDocument(
                        id=stamped.id,
                        user_id=stamped.user_id,
                        public_slug=stamped.share_slug,
                        data=doc,
                    ))
                else:
                    merged: dict[str, Any] = dict(row.data or {})
                    merged.update(doc)
                    row.data = merged
                    row.user_id = stamped.user_id
                    row.public_slug = stamped.share_slug
                session.commit()
            return RepositoryResult(stamped)
        except Exception as exc:
            logger.warning("update_trip(%s) failed, change kept in memory only: %s", trip.id, exc)
            return RepositoryResult(stamped, degraded=True)

    def delete_trip(self, trip_id: str) -> RepositoryResult[None]:
        forgotten = {trip_id}
        sample = find_sample(trip_id)
        if sample is not None:
            forgotten.add(sample.share_slug)
        # Days and blocks are nested in the document, so one row delete removes them all.
        try:
            with self._session_factory() as session:
                row = session.get(TripDocument, trip_id)
                if row is not None and row.public_slug:
                    forgotten.add(row.public_slug)
                session.query(TripDocument).filter(TripDocument.id == trip_id).delete(
                    synchronize_session=False
                )
                session.commit()
            return RepositoryResult(None)
        except Exception as exc:
            logger.warning("delete_trip(%s) failed: %s", trip_id, exc)
            return RepositoryResult(None, degraded=True)
        finally:
            with self._deleted_lock:
                self._deleted.update(forgotten)
