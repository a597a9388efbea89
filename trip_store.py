"""
Trip state store - the in-memory trip list the editing surface works on.

State only changes through ``TripStore.dispatch``, which runs the pure
``trip_reducer`` and appends the action to an immutable log.  Every
repository-backed call follows: set loading → repository → dispatch
result → clear loading.  Nested edits (days, blocks, budget, AI merge)
compute a new trip, dispatch it, then persist it.

There is no conflict detection: two edits to the same trip race and the
last write to the store wins.
"""
from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, fields, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional, Tuple

from mock_data import sample_detail
from trip_service import TripRepository
from TripData import (
    AiPlanResult,
    Block,
    BlockCategory,
    BlockSource,
    Budget,
    Day,
    PlaceResult,
    Trip,
    ValidationStatus,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_TIME = "TBD"
PLACEHOLDER_MEMO = "Added place"


# ---------------------------------------------------------------------------
# State, actions, reducer
# ---------------------------------------------------------------------------

class ActionKind(str, Enum):
    SET_TRIPS = "setTrips"
    SET_LOADING = "setLoading"
    ADD_TRIP = "addTrip"
    UPDATE_TRIP = "updateTrip"
    DELETE_TRIP = "deleteTrip"
    SELECT_TRIP = "selectTrip"


@dataclass(frozen=True)
class Action:
    kind: ActionKind
    payload: Any = None


@dataclass(frozen=True)
class TripState:
    trips: Tuple[Trip, ...] = ()
    selected_trip_id: Optional[str] = None
    loading: bool = False


def trip_reducer(state: TripState, action: Action) -> TripState:
    kind, payload = action.kind, action.payload
    if kind == ActionKind.SET_TRIPS:
        return replace(state, trips=tuple(payload))
    if kind == ActionKind.SET_LOADING:
        return replace(state, loading=bool(payload))
    if kind == ActionKind.ADD_TRIP:
        return replace(state, trips=(payload,) + state.trips)
    if kind == ActionKind.UPDATE_TRIP:
        return replace(state, trips=tuple(payload if t.id == payload.id else t for t in state.trips))
    if kind == ActionKind.DELETE_TRIP:
        return replace(state, trips=tuple(t for t in state.trips if t.id != payload))
    if kind == ActionKind.SELECT_TRIP:
        return replace(state, selected_trip_id=payload)
    return state


# ---------------------------------------------------------------------------
# Drafts and merge
# ---------------------------------------------------------------------------

@dataclass
class BlockDraft:
    start_time: str
    end_time: str
    title: str
    memo: Optional[str] = None
    category: Optional[BlockCategory] = None


# Fields a block edit may touch; identity and ownership stay fixed.
_PATCHABLE_BLOCK_FIELDS = {f.name for f in fields(Block)} - {"id", "trip_id", "day_id"}


@dataclass(frozen=True)
class MergeOutcome:
    trip: Trip
    added_blocks: int

    @property
    def applied(self) -> bool:
        return self.added_blocks > 0


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def merge_ai_plan(trip: Trip, plan: AiPlanResult) -> MergeOutcome:
    """Fold the VALID blocks of an AI plan into *trip*.

    Days are matched by exact date string.  Plan days with no VALID block
    contribute nothing (no empty day is created).  With nothing to add the
    trip comes back unchanged.
    """
    days = list(trip.days)
    added = 0
    stamp = int(time.time() * 1000)

    for day_index, plan_day in enumerate(plan.days or []):
        if plan_day is None:
            continue
        valid = [
            b for b in plan_day.blocks or []
            if b is not None
            and b.validation_status == ValidationStatus.VALID and b.lat is not None and b.lng is not None
        ]
        if not valid:
            continue

        existing = next((i for i, d in enumerate(days) if d.date == plan_day.date), None)
        if existing is not None:
            base = days[existing]
        else:
            base = Day(
                id=f"day-{stamp}-{day_index}",
                trip_id=trip.id,
                date=plan_day.date,
                title=plan_day.title or "",
                summary=plan_day.day_summary or "",
            )

        new_blocks = [
            Block(
                id=f"ai-{stamp}-{day_index}-{block_index}",
                trip_id=trip.id,
                day_id=base.id,
                start_time=block.start_time or "",
                end_time=block.end_time or "",
                title=block.place_name or block.place_query_hint or "",
                memo=block.memo or block.place_query_hint,
                category=BlockCategory.parse(block.category),
                place_id=block.place_id,
                lat=block.lat,
                lng=block.lng,
                address=block.address,
                rating=block.rating,
                source=BlockSource.AI_VALIDATED,
                place_query_hint=block.place_query_hint,
            )
            for block_index, block in enumerate(valid)
        ]
        added += len(new_blocks)

        merged = replace(
            base,
            title=base.title or plan_day.title or "",
            summary=base.summary or plan_day.day_summary or "",
            blocks=[*base.blocks, *new_blocks],
        )
        if existing is not None:
            days[existing] = merged
        else:
            days.append(merged)

    if not added:
        return MergeOutcome(trip, 0)

    return MergeOutcome(
        replace(
            trip,
            title=trip.title or plan.trip_title or "",
            summary=trip.summary or plan.summary,
            days=days,
            updated_at=_now_iso(),
        ),
        added,
    )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class TripStore:
    """Explicit, injectable replacement for the global trip context."""

    def __init__(self, repository: TripRepository, user_id: Optional[str] = None,
                 initial_state: Optional[TripState] = None):
        self._repository = repository
        self.user_id = user_id
        self._state = initial_state or TripState()
        self._actions: Tuple[Action, ...] = ()
        self._lock = threading.Lock()
        # True when the last repository call fell back to sample/in-memory data
        self.degraded = False

    @property
    def state(self) -> TripState:
        return self._state

    @property
    def actions(self) -> Tuple[Action, ...]:
        return self._actions

    @property
    def trips(self) -> Tuple[Trip, ...]:
        return self._state.trips

    @property
    def loading(self) -> bool:
        return self._state.loading

    def dispatch(self, action: Action) -> TripState:
        with self._lock:
            self._state = trip_reducer(self._state, action)
            self._actions = self._actions + (action,)
            return self._state

    def get_trip(self, trip_id: str) -> Optional[Trip]:
        return next((t for t in self._state.trips if t.id == trip_id), None)

    @property
    def selected_trip(self) -> Trip:
        return self.get_trip(self._state.selected_trip_id or "") or sample_detail()

    def select_trip(self, trip_id: str) -> None:
        self.dispatch(Action(ActionKind.SELECT_TRIP, trip_id))

    def _set_loading(self, value: bool) -> None:
        self.dispatch(Action(ActionKind.SET_LOADING, value))

    # -- repository-backed ---------------------------------------------------

    def load_trips(self) -> Tuple[Trip, ...]:
        self._set_loading(True)
        try:
            result = self._repository.fetch_trips(self.user_id)
            self.degraded = result.degraded
            self.dispatch(Action(ActionKind.SET_TRIPS, result.data))
            if result.data:
                self.select_trip(result.data[0].id)
        finally:
            self._set_loading(False)
        return self.trips

    def add_trip(self, trip: Trip) -> Trip:
        self._set_loading(True)
        try:
            result = self._repository.create_trip(trip, self.user_id)
            self.degraded = result.degraded
            self.dispatch(Action(ActionKind.ADD_TRIP, result.data))
            self.select_trip(result.data.id)
        finally:
            self._set_loading(False)
        return result.data

    def update_trip(self, trip: Trip) -> Trip:
        self._set_loading(True)
        try:
            result = self._repository.update_trip(trip, self.user_id)
            self.degraded = result.degraded
            self.dispatch(Action(ActionKind.UPDATE_TRIP, result.data))
        finally:
            self._set_loading(False)
        return result.data

    def delete_trip(self, trip_id: str) -> None:
        self._set_loading(True)
        try:
            result = self._repository.delete_trip(trip_id)
            self.degraded = result.degraded
            self.dispatch(Action(ActionKind.DELETE_TRIP, trip_id))
        finally:
            self._set_loading(False)

    # -- nested edits: compute, dispatch, persist ----------------------------

    def _commit(self, trip: Trip) -> Trip:
        self.dispatch(Action(ActionKind.UPDATE_TRIP, trip))
        result = self._repository.update_trip(trip, self.user_id)
        self.degraded = result.degraded
        return trip

    def _replace_day(self, trip: Trip, day: Day) -> Trip:
        return replace(trip, days=[day if d.id == day.id else d for d in trip.days])

    def add_place_to_trip(self, trip_id: str, place: PlaceResult) -> Optional[Block]:
        """Append a searched place to the trip's first day (created if missing)."""
        trip = self.get_trip(trip_id)
        if trip is None:
            return None

        if trip.days:
            first_day = trip.days[0]
        else:
            first_day = Day(
                id=_new_id("day"),
                trip_id=trip.id,
                date=trip.start_date or date.today().isoformat(),
            )

        block = Block(
            id=_new_id("block"),
            trip_id=trip.id,
            day_id=first_day.id,
            start_time=PLACEHOLDER_TIME,
            end_time=PLACEHOLDER_TIME,
            title=place.name,
            memo=place.address or PLACEHOLDER_MEMO,
            place_id=place.place_id or None,
            lat=place.lat,
            lng=place.lng,
            address=place.address,
            rating=place.rating,
        )
        updated_day = replace(first_day, blocks=[*first_day.blocks, block])
        if trip.days:
            updated = replace(trip, days=[updated_day, *trip.days[1:]])
        else:
            updated = replace(trip, days=[updated_day])
        self._commit(updated)
        return block

    def update_budget(self, trip_id: str, budget: Budget) -> Optional[Trip]:
        trip = self.get_trip(trip_id)
        if trip is None:
            return None
        return self._commit(replace(trip, budget=budget))

    def add_day(self, trip_id: str, day_date: str, title: str = "", summary: str = "") -> Optional[Day]:
        """Append a day. Callers reject duplicate dates before getting here."""
        trip = self.get_trip(trip_id)
        if trip is None:
            return None
        day = Day(id=_new_id("day"), trip_id=trip.id, date=day_date, title=title, summary=summary)
        self._commit(replace(trip, days=[*trip.days, day]))
        return day

    def add_block_to_day(self, trip_id: str, day_id: str, draft: BlockDraft) -> Optional[Block]:
        trip = self.get_trip(trip_id)
        day = trip.find_day(day_id) if trip else None
        if day is None:
            return None
        block = Block(
            id=_new_id("block"),
            trip_id=trip.id,
            day_id=day.id,
            start_time=draft.start_time,
            end_time=draft.end_time,
            title=draft.title,
            memo=draft.memo,
            category=draft.category,
        )
        self._commit(self._replace_day(trip, replace(day, blocks=[*day.blocks, block])))
        return block

    def update_block(self, trip_id: str, day_id: str, block_id: str, patch: dict) -> Optional[Block]:
        """Patch-merge *patch* (snake_case Block fields) into one block."""
        trip = self.get_trip(trip_id)
        day = trip.find_day(day_id) if trip else None
        block = day.find_block(block_id) if day else None
        if block is None:
            return None
        changes = {k: v for k, v in patch.items() if k in _PATCHABLE_BLOCK_FIELDS}
        updated = replace(block, **changes)
        if updated.source == BlockSource.AI_VALIDATED and not updated.has_location:
            # A validated place without coordinates is just a user block now
            updated = replace(updated, source=BlockSource.USER)
        blocks = [updated if b.id == block_id else b for b in day.blocks]
        self._commit(self._replace_day(trip, replace(day, blocks=blocks)))
        return updated

    def delete_block(self, trip_id: str, day_id: str, block_id: str) -> bool:
        trip = self.get_trip(trip_id)
        day = trip.find_day(day_id) if trip else None
        if day is None:
            return False
        blocks = [b for b in day.blocks if b.id != block_id]
        self._commit(self._replace_day(trip, replace(day, blocks=blocks)))
        return len(blocks) != len(day.blocks)

    def apply_ai_plan(self, trip_id: str, plan: AiPlanResult) -> Optional[MergeOutcome]:
        """Merge validated AI blocks and persist; a no-op outcome when none were VALID."""
        trip = self.get_trip(trip_id)
        if trip is None:
            return None
        outcome = merge_ai_plan(trip, plan)
        if not outcome.applied:
            logger.info("AI plan for trip %s had no validated blocks to apply", trip_id)
            return outcome
        saved = self.update_trip(outcome.trip)
        return MergeOutcome(saved, outcome.added_blocks)
