"""
Google Places Text Search integration.

``search_places`` backs the place search panel: it forwards the query
and/or location filter and normalizes every result to ``PlaceResult``.
``text_search`` is the bare one-query lookup the AI pipeline uses to
check that a suggested place exists.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

import requests

from config import http_timeout, places_language, require_maps_key
from TripData import PlaceResult

log = logging.getLogger(__name__)

_TEXT_SEARCH_URL = "https://maps.googleapis.com/maps/api/place/textsearch/json"


class PlacesError(Exception):
    status_code = 500


class PlacesRequestError(PlacesError):
    """Neither a query nor a full location was supplied."""

    status_code = 400


class PlacesProviderError(PlacesError):
    """Google answered, but reported an error (bad key, quota, ...)."""

    status_code = 502


class PlacesTransportError(PlacesError):
    status_code = 500


def _call_text_search(params: Dict[str, Any], api_key: str) -> Dict[str, Any]:
    params = {**params, "language": places_language(), "key": api_key}
    try:
        resp = requests.get(_TEXT_SEARCH_URL, params=params, timeout=http_timeout())
    except requests.RequestException as exc:
        raise PlacesTransportError(f"Google Places API call failed: {exc}") from exc
    if not resp.ok:
        raise PlacesTransportError(f"Google Places API call failed with HTTP {resp.status_code}")
    try:
        return resp.json()
    except ValueError as exc:
        raise PlacesTransportError("Google Places API returned a non-JSON body") from exc


def _normalize(item: Dict[str, Any]) -> PlaceResult:
    location = (item.get("geometry") or {}).get("location") or {}
    return PlaceResult(
        place_id=item.get("place_id", ""),
        name=item.get("name", ""),
        lat=location.get("lat"),
        lng=location.get("lng"),
        rating=item.get("rating"),
        user_ratings_total=item.get("user_ratings_total"),
        price_level=item.get("price_level"),
        address=item.get("formatted_address"),
        open_now=(item.get("opening_hours") or {}).get("open_now"),
        types=item.get("types"),
    )


def _present(value) -> bool:
    return value is not None and str(value).strip() != ""


def _number(value, name: str) -> float:
    try:
        number = float(str(value).strip())
    except ValueError:
        raise PlacesRequestError(f"{name} must be a number.") from None
    if not math.isfinite(number):
        raise PlacesRequestError(f"{name} must be a number.")
    return number


def _plain(number: float) -> str:
    return str(int(number)) if number.is_integer() else str(number)


def search_places(
    query: Optional[str] = None,
    lat=None,
    lng=None,
    radius=None,
    place_type: Optional[str] = None,
    open_now: bool = False,
    max_price=None,
) -> List[PlaceResult]:
    """Search Google Places by free text and/or centre point + radius.

    Raises:
        PlacesRequestError: no query and no complete (lat, lng, radius),
            or a coordinate, radius or price that is not a number.
            Checked before any network call.
        MissingCredentialsError: no maps key configured.
        PlacesProviderError: Google returned an ``error_message``.
        PlacesTransportError: the request itself failed.

    Returns an empty list when Google has no matches.
    """
    has_query = _present(query)
    has_location = _present(lat) and _present(lng) and _present(radius)
    if not has_query and not has_location:
        raise PlacesRequestError("A search query or a location (lat, lng, radius) is required.")

    params: Dict[str, Any] = {}
    if has_query:
        params["query"] = query.strip()
    if has_location:
        params["location"] = f"{_number(lat, 'lat')},{_number(lng, 'lng')}"
        params["radius"] = _plain(_number(radius, "radius"))
    if place_type:
        params["type"] = place_type
    if open_now:
        params["opennow"] = "true"
    if _present(max_price):
        params["maxprice"] = _plain(_number(max_price, "maxPrice"))

    api_key = require_maps_key()

    data = _call_text_search(params, api_key)
    if data.get("error_message"):
        log.error("Places search rejected by provider: %s", data["error_message"])
        raise PlacesProviderError(data["error_message"])

    return [_normalize(item) for item in data.get("results") or []]


def text_search(query: str, api_key: str) -> List[Dict[str, Any]]:
    """Raw results for a single free-text query; raises PlacesError on any failure."""
    data = _call_text_search({"query": query}, api_key)
    if data.get("error_message"):
        raise PlacesProviderError(data["error_message"])
    return data.get("results") or []
