from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional

from dataclasses_json import LetterCase, dataclass_json


class TripStatus(str, Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"


class BlockCategory(str, Enum):
    MORNING = "MORNING"
    LUNCH = "LUNCH"
    AFTERNOON = "AFTERNOON"
    DINNER = "DINNER"
    NIGHT = "NIGHT"

    @classmethod
    def parse(cls, value) -> Optional["BlockCategory"]:
        """Known category for *value*, or None for anything else."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return None


class BlockSource(str, Enum):
    USER = "USER"
    AI_VALIDATED = "AI_VALIDATED"
    AI_DRAFT = "AI_DRAFT"


class ValidationStatus(str, Enum):
    VALID = "VALID"
    NOT_FOUND = "NOT_FOUND"
    ERROR = "ERROR"


def parse_calendar_date(value: Optional[str]) -> Optional[date]:
    """Parse 'YYYY-MM-DD' (also 'YYYY.MM.DD', whitespace tolerated)."""
    if not value:
        return None
    normalized = "".join(value.split()).replace(".", "-")
    parts = normalized.split("-")
    if len(parts) != 3:
        return None
    try:
        year, month, day = (int(p) for p in parts)
        return date(year, month, day)
    except ValueError:
        return None


def trip_day_count(start_date: Optional[str], end_date: Optional[str]) -> int:
    """Inclusive number of days between two dates; 1 when unknown."""
    start = parse_calendar_date(start_date)
    end = parse_calendar_date(end_date)
    if not start or not end:
        return 1
    return max(1, (end - start).days + 1)


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class Budget:
    lodging_per_night: Optional[float] = None
    daily_food: Optional[float] = None
    transport: Optional[float] = None
    etc: Optional[float] = None

    def summarize(self, start_date: Optional[str], end_date: Optional[str]) -> dict:
        """Totals for the trip: per-day items scale with the day count, the rest are flat."""
        days = trip_day_count(start_date, end_date)
        lodging = (self.lodging_per_night or 0) * days
        food = (self.daily_food or 0) * days
        transport = self.transport or 0
        etc = self.etc or 0
        return {
            "days": days,
            "lodging": lodging,
            "food": food,
            "transport": transport,
            "etc": etc,
            "sum": lodging + food + transport + etc,
        }


DEFAULT_BUDGET = Budget(lodging_per_night=150000, daily_food=50000, transport=10000, etc=30000)


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class Block:
    id: str
    trip_id: str
    day_id: str
    start_time: str
    end_time: str
    title: str
    memo: Optional[str] = None
    category: Optional[BlockCategory] = None
    place_id: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    address: Optional[str] = None
    rating: Optional[float] = None
    source: BlockSource = BlockSource.USER
    place_query_hint: Optional[str] = None

    @property
    def has_location(self) -> bool:
        return isinstance(self.lat, (int, float)) and isinstance(self.lng, (int, float))


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class Day:
    id: str
    trip_id: str
    date: str
    title: str = ""
    summary: str = ""
    budget_planned: Optional[float] = None
    blocks: List[Block] = field(default_factory=list)

    def find_block(self, block_id: str) -> Optional[Block]:
        return next((b for b in self.blocks if b.id == block_id), None)


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class Trip:
    id: str = ""
    title: str = ""
    destination: str = ""
    start_date: str = ""
    end_date: str = ""
    summary: Optional[str] = None
    status: TripStatus = TripStatus.DRAFT
    public_slug: Optional[str] = None
    user_id: Optional[str] = None
    days: List[Day] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    highlights: List[str] = field(default_factory=list)
    budget: Optional[Budget] = None
    budget_total: Optional[float] = None
    timezone: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def share_slug(self) -> str:
        """Slug used by share links; the id stands in when no slug was set."""
        return self.public_slug or self.id

    def find_day(self, day_id: str) -> Optional[Day]:
        return next((d for d in self.days if d.id == day_id), None)

    def find_day_by_date(self, day_date: str) -> Optional[Day]:
        return next((d for d in self.days if d.date == day_date), None)

    def to_document(self) -> dict:
        """JSON-ready camelCase document, days and blocks nested inline."""
        return self.to_dict(encode_json=True)

    @classmethod
    def from_document(cls, data: dict, trip_id: Optional[str] = None) -> "Trip":
        trip = cls.from_dict(data, infer_missing=True)
        if trip_id:
            trip.id = trip_id
        return trip


# ---------------------------------------------------------------------------
# AI drafting types (transient, never persisted directly)
# ---------------------------------------------------------------------------

@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class AiSuggestedBlock:
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    # Kept as the model wrote it; only known values survive the merge.
    category: Optional[str] = None
    place_name: Optional[str] = None
    place_query_hint: Optional[str] = None
    area: Optional[str] = None
    memo: Optional[str] = None

    @property
    def search_query(self) -> str:
        return str(self.place_query_hint or self.place_name or "").strip()


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class ValidatedBlock(AiSuggestedBlock):
    validation_status: ValidationStatus = ValidationStatus.NOT_FOUND
    place_id: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    rating: Optional[float] = None
    address: Optional[str] = None

    @classmethod
    def from_suggestion(cls, block: AiSuggestedBlock, status: ValidationStatus, **place) -> "ValidatedBlock":
        return cls(
            start_time=block.start_time,
            end_time=block.end_time,
            category=block.category,
            place_name=block.place_name,
            place_query_hint=block.place_query_hint,
            area=block.area,
            memo=block.memo,
            validation_status=status,
            **place,
        )


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class AiPlanDay:
    date: str
    title: Optional[str] = None
    day_summary: Optional[str] = None
    blocks: List[ValidatedBlock] = field(default_factory=list)


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class AiPlanResult:
    destination: str
    start_date: str
    end_date: str
    trip_title: Optional[str] = None
    summary: Optional[str] = None
    days: List[AiPlanDay] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Provider results
# ---------------------------------------------------------------------------

@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class PlaceResult:
    place_id: str
    name: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    rating: Optional[float] = None
    user_ratings_total: Optional[int] = None
    price_level: Optional[int] = None
    address: Optional[str] = None
    open_now: Optional[bool] = None
    types: Optional[List[str]] = None


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class RouteSummary:
    summary: str = ""
    distance: str = ""
    duration: str = ""
    warnings: List[str] = field(default_factory=list)
