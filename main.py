"""FastAPI Backend - Trip-Mate itinerary planner"""
import json
import logging
import threading
from collections import OrderedDict
from dataclasses import replace
from typing import Any, Dict, List, Optional

# config loads .env before anything reads the environment
from config import MissingCredentialsError, default_user_id, llm_model, store_cache_size

from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from database import init_db, make_session_factory
from providers.PlacesAgent import PlacesError, search_places
from providers.RouteAgent import DEFAULT_MODE, DirectionsError, get_day_directions, get_directions
from providers.planning_agent import PlanningError, generate_itinerary, parse_plan_request, require_credentials
from trip_service import TripRepository
from trip_store import BlockDraft, TripStore
from TripData import (
    DEFAULT_BUDGET,
    AiPlanResult,
    BlockCategory,
    Budget,
    PlaceResult,
    Trip,
    TripStatus,
    parse_calendar_date,
)

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

# Initialize database
engine = init_db()
repository = TripRepository(make_session_factory(engine))

# FastAPI app
app = FastAPI(
    title="Trip-Mate API",
    description="Day-by-day itinerary planning with AI drafts checked against Google Places",
    version=API_VERSION,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

# Most recently used last; the oldest store is dropped past store_cache_size()
_stores: "OrderedDict[str, TripStore]" = OrderedDict()
_stores_lock = threading.Lock()


def get_repository() -> TripRepository:
    return repository


def get_store(user_id: Optional[str] = None, repo: TripRepository = Depends(get_repository)) -> TripStore:
    """One store per user, loaded on first use and kept while recently used."""
    user_id = user_id or default_user_id()
    with _stores_lock:
        store = _stores.get(user_id)
        if store is None:
            store = TripStore(repo, user_id)
            _stores[user_id] = store
            created = True
        else:
            _stores.move_to_end(user_id)
            created = False
        while len(_stores) > store_cache_size():
            evicted, _ = _stores.popitem(last=False)
            logger.info("Dropped cached trip store for user %s", evicted)
    if created:
        store.load_trips()
    return store


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------

class CamelModel(BaseModel):
    # Accept the web client's camelCase as well as snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TripCreate(CamelModel):
    title: str
    start_date: str
    end_date: str
    destination: str = ""
    summary: Optional[str] = None
    notes: str = ""  # one note per line
    public_slug: Optional[str] = None


class TripUpdate(CamelModel):
    title: str
    destination: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    summary: Optional[str] = None
    status: Optional[TripStatus] = None
    notes: Optional[List[str]] = None
    highlights: Optional[List[str]] = None
    timezone: Optional[str] = None


class DayCreate(CamelModel):
    date: str
    title: str = ""
    summary: str = ""


class BlockCreate(CamelModel):
    title: str
    start_time: str
    end_time: str
    memo: Optional[str] = None
    category: Optional[BlockCategory] = None


class BlockPatch(CamelModel):
    title: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    memo: Optional[str] = None
    category: Optional[BlockCategory] = None
    place_id: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    address: Optional[str] = None
    rating: Optional[float] = None


class PlaceAdd(CamelModel):
    place_id: str = ""
    name: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    rating: Optional[float] = None
    address: Optional[str] = None


class BudgetIn(CamelModel):
    lodging_per_night: Optional[float] = None
    daily_food: Optional[float] = None
    transport: Optional[float] = None
    etc: Optional[float] = None


# Helper functions
def _trip_or_404(store: TripStore, trip_id: str) -> Trip:
    trip = store.get_trip(trip_id)
    if trip is None:
        raise HTTPException(status_code=404, detail="Trip not found")
    return trip


def _required(value: Optional[str], name: str) -> str:
    value = (value or "").strip()
    if not value:
        raise HTTPException(status_code=400, detail=f"{name} is required")
    return value


def _check_date(value: Optional[str], name: str) -> str:
    value = _required(value, name)
    if parse_calendar_date(value) is None:
        raise HTTPException(status_code=400, detail=f"{name} must be a YYYY-MM-DD date")
    return value


def _trip_body(store: TripStore, trip: Trip) -> dict:
    return {"trip": trip.to_dict(encode_json=True), "degraded": store.degraded}


# ---------------------------------------------------------------------------
# Provider endpoints
# ---------------------------------------------------------------------------

@app.post("/api/ai/plan")
async def ai_plan(request: Request):
    """Draft an itinerary with the LLM and check every place against Google Places."""
    try:
        require_credentials()
    except MissingCredentialsError as e:
        raise HTTPException(status_code=500, detail=str(e))

    raw = await request.body()
    try:
        body = json.loads(raw or b"")
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be valid JSON")

    try:
        plan_request = parse_plan_request(body)
        result = await run_in_threadpool(generate_itinerary, plan_request)
    except PlanningError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    except MissingCredentialsError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.exception("AI plan generation failed unexpectedly")
        raise HTTPException(status_code=500, detail=f"AI plan generation failed: {e}")

    return result.to_dict(encode_json=True)


@app.get("/api/places/search")
def places_search(
    query: Optional[str] = None,
    lat: Optional[str] = None,
    lng: Optional[str] = None,
    radius: Optional[str] = None,
    place_type: Optional[str] = Query(None, alias="type"),
    open_now: Optional[str] = Query(None, alias="openNow"),
    max_price: Optional[str] = Query(None, alias="maxPrice"),
):
    # Numbers are checked by the adapter so bad input is a 400, not a 422
    try:
        results = search_places(
            query=query,
            lat=lat,
            lng=lng,
            radius=radius,
            place_type=place_type,
            open_now=(open_now or "").lower() == "true",
            max_price=max_price,
        )
    except (PlacesError, MissingCredentialsError) as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return {"results": [r.to_dict(encode_json=True) for r in results]}


@app.get("/api/directions")
def directions(
    origin_lat: Optional[str] = Query(None, alias="originLat"),
    origin_lng: Optional[str] = Query(None, alias="originLng"),
    destination_lat: Optional[str] = Query(None, alias="destinationLat"),
    destination_lng: Optional[str] = Query(None, alias="destinationLng"),
    mode: str = DEFAULT_MODE,
):
    try:
        route = get_directions(origin_lat, origin_lng, destination_lat, destination_lng, mode)
    except (DirectionsError, MissingCredentialsError) as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return {"route": route.to_dict(encode_json=True)}


# ---------------------------------------------------------------------------
# Trips
# ---------------------------------------------------------------------------

@app.get("/trips")
def list_trips(store: TripStore = Depends(get_store)):
    return {
        "trips": [t.to_dict(encode_json=True) for t in store.trips],
        "selectedTripId": store.state.selected_trip_id,
        "degraded": store.degraded,
    }


@app.post("/trips")
def create_trip(body: TripCreate, store: TripStore = Depends(get_store)):
    trip = Trip(
        title=_required(body.title, "title"),
        destination=body.destination.strip(),
        start_date=_check_date(body.start_date, "startDate"),
        end_date=_check_date(body.end_date, "endDate"),
        summary=(body.summary or "").strip() or None,
        status=TripStatus.DRAFT,
        public_slug=(body.public_slug or "").strip() or None,
        notes=[line.strip() for line in body.notes.splitlines() if line.strip()],
    )
    created = store.add_trip(trip)
    return _trip_body(store, created)


@app.get("/trips/{trip_id}")
def get_trip(trip_id: str, store: TripStore = Depends(get_store)):
    return _trip_body(store, _trip_or_404(store, trip_id))


@app.put("/trips/{trip_id}")
def update_trip(trip_id: str, body: TripUpdate, store: TripStore = Depends(get_store)):
    trip = _trip_or_404(store, trip_id)
    changes: Dict[str, Any] = {
        "title": _required(body.title, "title"),
        "destination": _required(body.destination, "destination"),
        "summary": (body.summary or "").strip() or None,
    }
    if body.start_date is not None:
        changes["start_date"] = _check_date(body.start_date, "startDate")
    if body.end_date is not None:
        changes["end_date"] = _check_date(body.end_date, "endDate")
    for name in ("status", "notes", "highlights", "timezone"):
        value = getattr(body, name)
        if value is not None:
            changes[name] = value
    updated = store.update_trip(replace(trip, **changes))
    return _trip_body(store, updated)


@app.delete("/trips/{trip_id}")
def delete_trip(trip_id: str, store: TripStore = Depends(get_store)):
    _trip_or_404(store, trip_id)
    store.delete_trip(trip_id)
    return {"status": "deleted", "degraded": store.degraded}


@app.post("/trips/{trip_id}/select")
def select_trip(trip_id: str, store: TripStore = Depends(get_store)):
    _trip_or_404(store, trip_id)
    store.select_trip(trip_id)
    return {"selectedTripId": trip_id}


@app.get("/selected-trip")
def selected_trip(store: TripStore = Depends(get_store)):
    """Currently selected trip; the sample detail trip stands in when none is."""
    return _trip_body(store, store.selected_trip)


# ---------------------------------------------------------------------------
# Days & blocks
# ---------------------------------------------------------------------------

@app.post("/trips/{trip_id}/days")
def add_day(trip_id: str, body: DayCreate, store: TripStore = Depends(get_store)):
    trip = _trip_or_404(store, trip_id)
    day_date = _check_date(body.date, "date")
    if trip.find_day_by_date(day_date) is not None:
        raise HTTPException(status_code=409, detail=f"A day for {day_date} already exists")
    day = store.add_day(trip_id, day_date, body.title.strip(), body.summary.strip())
    return {"day": day.to_dict(encode_json=True), "degraded": store.degraded}


@app.post("/trips/{trip_id}/days/{day_id}/blocks")
def add_block(trip_id: str, day_id: str, body: BlockCreate, store: TripStore = Depends(get_store)):
    _trip_or_404(store, trip_id)
    draft = BlockDraft(
        start_time=_required(body.start_time, "startTime"),
        end_time=_required(body.end_time, "endTime"),
        title=_required(body.title, "title"),
        memo=(body.memo or "").strip() or None,
        category=body.category,
    )
    block = store.add_block_to_day(trip_id, day_id, draft)
    if block is None:
        raise HTTPException(status_code=404, detail="Day not found")
    return {"block": block.to_dict(encode_json=True), "degraded": store.degraded}


@app.put("/trips/{trip_id}/days/{day_id}/blocks/{block_id}")
def update_block(trip_id: str, day_id: str, block_id: str, body: BlockPatch,
                 store: TripStore = Depends(get_store)):
    _trip_or_404(store, trip_id)
    block = store.update_block(trip_id, day_id, block_id, body.model_dump(exclude_unset=True))
    if block is None:
        raise HTTPException(status_code=404, detail="Block not found")
    return {"block": block.to_dict(encode_json=True), "degraded": store.degraded}


@app.delete("/trips/{trip_id}/days/{day_id}/blocks/{block_id}")
def delete_block(trip_id: str, day_id: str, block_id: str, store: TripStore = Depends(get_store)):
    _trip_or_404(store, trip_id)
    if not store.delete_block(trip_id, day_id, block_id):
        raise HTTPException(status_code=404, detail="Block not found")
    return {"status": "deleted", "degraded": store.degraded}


@app.post("/trips/{trip_id}/places")
def add_place(trip_id: str, body: PlaceAdd, store: TripStore = Depends(get_store)):
    """Add a searched place to the trip's first day."""
    _trip_or_404(store, trip_id)
    place = PlaceResult(
        place_id=body.place_id,
        name=_required(body.name, "name"),
        lat=body.lat,
        lng=body.lng,
        rating=body.rating,
        address=body.address,
    )
    block = store.add_place_to_trip(trip_id, place)
    return {"block": block.to_dict(encode_json=True), "degraded": store.degraded}


@app.get("/trips/{trip_id}/days/{day_date}/directions")
def day_directions(trip_id: str, day_date: str, mode: str = DEFAULT_MODE,
                   store: TripStore = Depends(get_store)):
    """Route from the first to the last located block of one day."""
    trip = _trip_or_404(store, trip_id)
    day = trip.find_day_by_date(day_date)
    if day is None:
        raise HTTPException(status_code=404, detail="Day not found")
    try:
        route = get_day_directions(day, mode)
    except (DirectionsError, MissingCredentialsError) as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    if route is None:
        raise HTTPException(status_code=400, detail="At least two blocks with a location are needed for directions")
    return {"route": route.to_dict(encode_json=True)}


# ---------------------------------------------------------------------------
# Budget
# ---------------------------------------------------------------------------

@app.get("/trips/{trip_id}/budget")
def get_budget(trip_id: str, store: TripStore = Depends(get_store)):
    trip = _trip_or_404(store, trip_id)
    budget = trip.budget or DEFAULT_BUDGET
    return {
        "budget": budget.to_dict(encode_json=True),
        "summary": budget.summarize(trip.start_date, trip.end_date),
    }


@app.put("/trips/{trip_id}/budget")
def update_budget(trip_id: str, body: BudgetIn, store: TripStore = Depends(get_store)):
    trip = _trip_or_404(store, trip_id)
    budget = Budget(**body.model_dump())
    store.update_budget(trip_id, budget)
    return {
        "budget": budget.to_dict(encode_json=True),
        "summary": budget.summarize(trip.start_date, trip.end_date),
        "degraded": store.degraded,
    }


# ---------------------------------------------------------------------------
# AI plan merge
# ---------------------------------------------------------------------------

@app.post("/trips/{trip_id}/ai-plan/apply")
def apply_ai_plan(trip_id: str, body: Dict[str, Any] = Body(...), store: TripStore = Depends(get_store)):
    _trip_or_404(store, trip_id)
    try:
        plan = AiPlanResult.from_dict(body, infer_missing=True)
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid AI plan: {e}")

    outcome = store.apply_ai_plan(trip_id, plan)
    if not outcome.applied:
        return {"applied": 0, "message": "No validated places to apply.", "degraded": store.degraded}
    return {
        "applied": outcome.added_blocks,
        "trip": outcome.trip.to_dict(encode_json=True),
        "degraded": store.degraded,
    }


# ---------------------------------------------------------------------------
# Sharing
# ---------------------------------------------------------------------------

@app.get("/share/{slug}")
def shared_trip(slug: str, repo: TripRepository = Depends(get_repository)):
    result = repo.fetch_trip_by_slug(slug)
    if result.data is None:
        raise HTTPException(status_code=404, detail="Trip not found")
    return {"trip": result.data.to_dict(encode_json=True), "degraded": result.degraded}


# Health check
@app.get("/health")
def health_check():
    return {
        "status": "ok",
        "version": API_VERSION,
        "llm": llm_model(),
    }


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(app, host="0.0.0.0", port=8000)
