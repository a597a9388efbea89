"""
AI itinerary drafting + Places validation.

One generation call drafts a day-by-day plan; every suggested place is then
looked up on Google Places before anything reaches the caller:

  1. Prompt          → fixed template, model supplies only placeName/placeQueryHint
  2. Generation      → 1 litellm call (Gemini, JSON response)
  3. Sanitation      → strip markdown code fences
  4. Parse           → JSON + "days" shape check
  5. Validation      → per day, all blocks looked up concurrently;
                       days processed one after another
  6. Assembly        → AI title/summary + echoed request + validated days

Coordinates, ratings and addresses always come from Places, never from the
model.  A failed lookup marks only that block as ERROR.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

import litellm
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from config import llm_model, require_gemini_key, require_maps_key
from fanout import scatter_gather
from TripData import AiPlanDay, AiPlanResult, AiSuggestedBlock, ValidatedBlock, ValidationStatus

from .PlacesAgent import text_search

logger = logging.getLogger(__name__)

# Silence litellm's own verbose logging
litellm.suppress_debug_info = True
# Drop params unsupported by the active model
litellm.drop_params = True


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class PlanningError(Exception):
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_detail(self) -> Any:
        return self.message


class PlanRequestError(PlanningError):
    status_code = 400


class GenerationError(PlanningError):
    """The generation provider call failed; its status and detail are relayed."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        if isinstance(status_code, int) and 400 <= status_code <= 599:
            self.status_code = status_code
        else:
            self.status_code = 502
        self.details = details

    def to_detail(self) -> Any:
        return {"error": self.message, "details": self.details}


class EmptyGenerationError(PlanningError):
    status_code = 502


class PlanParseError(PlanningError):
    status_code = 502

    def __init__(self, message: str, raw: str, cleaned: str):
        super().__init__(message)
        self.raw = raw
        self.cleaned = cleaned

    def to_detail(self) -> Any:
        return {"error": self.message, "raw": self.raw, "cleaned": self.cleaned}


class PlanShapeError(PlanningError):
    status_code = 502


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

class PlanRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    destination: str = ""
    start_date: str = ""
    end_date: str = ""
    travel_style: Optional[str] = None
    pace: Optional[str] = None
    budget_level: Optional[str] = None
    must_visit: List[str] = Field(default_factory=list)

    @field_validator("must_visit", mode="before")
    @classmethod
    def _split_must_visit(cls, value):
        # The form sends one place per line or comma-separated text
        if value is None:
            return []
        if isinstance(value, str):
            value = re.split(r",|\n", value)
        return [str(v).strip() for v in value if str(v).strip()]


def parse_plan_request(body: Any) -> PlanRequest:
    """Validate a decoded JSON body; raises PlanRequestError."""
    if not isinstance(body, dict):
        raise PlanRequestError("Request body must be a JSON object.")
    try:
        request = PlanRequest.model_validate(body)
    except ValidationError as exc:
        raise PlanRequestError(f"Invalid plan request: {exc.errors()[0].get('msg', 'invalid field')}") from exc
    if not (request.destination.strip() and request.start_date.strip() and request.end_date.strip()):
        raise PlanRequestError("destination, startDate and endDate are required.")
    return request


def require_credentials() -> tuple[str, str]:
    """(gemini_key, maps_key); raises MissingCredentialsError before any work."""
    return require_gemini_key(), require_maps_key()


# ---------------------------------------------------------------------------
# Steps 1-4: prompt, generation, sanitation, parse
# ---------------------------------------------------------------------------

def build_prompt(request: PlanRequest) -> str:
    must_visit = ", ".join(request.must_visit) or "none"
    return f"""You are a travel itinerary planning assistant. Follow these rules strictly.
- For each place, provide ONLY placeName and placeQueryHint. Do NOT include coordinates, addresses, ratings or opening hours.
- placeQueryHint must be a string that can be used directly with Google Places Text Search.
- Suggest 3 to 5 blocks per day, each with a start time, end time and category.
- Respond with JSON only, with no extra explanation.

User request:
Destination: {request.destination}
Travel dates: {request.start_date} ~ {request.end_date}
Travel style: {request.travel_style or "undecided"}
Pace: {request.pace or "BALANCED"}
Budget level: {request.budget_level or "MID"}
Must-visit places: {must_visit}

Response schema:
{{
  "tripTitle": "title",
  "summary": "summary",
  "days": [
    {{
      "date": "YYYY-MM-DD",
      "title": "title of the day",
      "daySummary": "short description",
      "blocks": [
        {{
          "startTime": "09:00",
          "endTime": "11:00",
          "category": "MORNING" | "LUNCH" | "AFTERNOON" | "DINNER" | "NIGHT",
          "placeName": "place name",
          "placeQueryHint": "Google Places search keywords",
          "area": "main neighbourhood/area",
          "memo": "memo"
        }}
      ]
    }}
  ]
}}
"""


def generate_plan_text(prompt: str, api_key: str) -> str:
    """Single generation call; returns every text fragment concatenated."""
    try:
        response = litellm.completion(
            model=llm_model(),
            messages=[{"role": "user", "content": prompt}],
            api_key=api_key,
            response_format={"type": "json_object"},
        )
    except Exception as exc:
        logger.error("Generation call failed: %s", exc)
        raise GenerationError(
            getattr(exc, "message", None) or str(exc) or "AI call failed",
            status_code=getattr(exc, "status_code", None),
            details=str(exc),
        ) from exc

    return "".join((choice.message.content or "") for choice in response.choices)


def clean_json_text(text: str) -> str:
    """Drop ```json / ``` fence markers the model adds despite instructions."""
    return re.sub(r"```json", "", text, flags=re.IGNORECASE).replace("```", "").strip()


def parse_plan(text: str) -> Dict[str, Any]:
    cleaned = clean_json_text(text)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.error("Could not parse generated plan: %s", exc)
        raise PlanParseError("Could not parse the AI response as JSON.", raw=text, cleaned=cleaned) from exc

    days = parsed.get("days") if isinstance(parsed, dict) else None
    if not isinstance(days, list) or not days:
        raise PlanShapeError("The AI-generated plan has no days.")
    if not all(isinstance(day, dict) for day in days):
        raise PlanShapeError("The AI-generated plan has malformed days.")
    return parsed


def _suggested_blocks(day: Dict[str, Any]) -> List[AiSuggestedBlock]:
    blocks = day.get("blocks") or []
    if not isinstance(blocks, list):
        return []
    return [
        AiSuggestedBlock.from_dict(b, infer_missing=True) if isinstance(b, dict) else AiSuggestedBlock()
        for b in blocks
    ]


# ---------------------------------------------------------------------------
# Step 5: validation
# ---------------------------------------------------------------------------

def validate_block(block: AiSuggestedBlock, api_key: str) -> ValidatedBlock:
    """Check one suggestion against Places. Never raises."""
    query = block.search_query
    if not query:
        return ValidatedBlock.from_suggestion(block, ValidationStatus.NOT_FOUND)

    try:
        results = text_search(query, api_key)
    except Exception as exc:
        logger.warning("Places validation failed for %r: %s", query, exc)
        return ValidatedBlock.from_suggestion(block, ValidationStatus.ERROR)

    if not results:
        return ValidatedBlock.from_suggestion(block, ValidationStatus.NOT_FOUND)

    # First result wins; no ranking or disambiguation
    first = results[0]
    location = (first.get("geometry") or {}).get("location") or {}
    lat, lng = location.get("lat"), location.get("lng")
    if lat is None or lng is None:
        return ValidatedBlock.from_suggestion(block, ValidationStatus.NOT_FOUND)

    return ValidatedBlock.from_suggestion(
        block,
        ValidationStatus.VALID,
        place_id=first.get("place_id"),
        lat=lat,
        lng=lng,
        rating=first.get("rating"),
        address=first.get("formatted_address"),
    )


def validate_day(blocks: List[AiSuggestedBlock], api_key: str) -> List[ValidatedBlock]:
    """Validate one day's blocks concurrently, results in input order."""
    return scatter_gather(
        blocks,
        lambda block: validate_block(block, api_key),
        on_error=lambda block, exc: ValidatedBlock.from_suggestion(block, ValidationStatus.ERROR),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def generate_itinerary(request: PlanRequest) -> AiPlanResult:
    """Run the full draft-and-validate pipeline for one request.

    Raises MissingCredentialsError or a PlanningError subclass; per-block
    lookup failures are reported in the blocks, not raised.
    """
    gemini_key, maps_key = require_credentials()

    text = generate_plan_text(build_prompt(request), gemini_key)
    if not text.strip():
        raise EmptyGenerationError("The AI response was empty. Please try again shortly.")

    parsed = parse_plan(text)

    days: List[AiPlanDay] = []
    for day in parsed["days"]:
        days.append(AiPlanDay(
            date=str(day.get("date") or ""),
            title=day.get("title"),
            day_summary=day.get("daySummary"),
            blocks=validate_day(_suggested_blocks(day), maps_key),
        ))

    return AiPlanResult(
        trip_title=parsed.get("tripTitle"),
        summary=parsed.get("summary"),
        destination=request.destination,
        start_date=request.start_date,
        end_date=request.end_date,
        days=days,
    )
