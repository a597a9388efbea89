"""
Google Directions API integration.

Looks up a route between two coordinate pairs and keeps only what the
itinerary view shows: the first route's summary and warnings plus the
distance/duration text of its first leg.

Usage:
    from providers.RouteAgent import get_directions

    route = get_directions(37.57, 126.97, 37.55, 126.98, mode="walking")
    route.duration  # "25 mins"
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Optional, Tuple

import requests

from config import http_timeout, places_language, require_maps_key
from TripData import Day, RouteSummary

log = logging.getLogger(__name__)

_DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/json"

DEFAULT_MODE = "transit"

LatLng = Tuple[float, float]


class DirectionsError(Exception):
    status_code = 500


class DirectionsRequestError(DirectionsError):
    status_code = 400


def _missing(value) -> bool:
    return value is None or str(value).strip() == ""


def _coordinate(value) -> float:
    try:
        number = float(str(value).strip())
    except ValueError:
        raise DirectionsRequestError("Coordinates must be numbers.") from None
    if not math.isfinite(number):
        raise DirectionsRequestError("Coordinates must be numbers.")
    return number


def _first(items) -> Dict[str, Any]:
    return items[0] if items else {}


def get_directions(
    origin_lat,
    origin_lng,
    destination_lat,
    destination_lng,
    mode: Optional[str] = DEFAULT_MODE,
) -> RouteSummary:
    """Route between two points.

    Identical origin and destination are still sent to Google; whatever it
    answers for a zero-length route is returned as-is.
    """
    if any(_missing(v) for v in (origin_lat, origin_lng, destination_lat, destination_lng)):
        raise DirectionsRequestError("Origin and destination coordinates are required.")
    o_lat, o_lng, d_lat, d_lng = (
        _coordinate(v) for v in (origin_lat, origin_lng, destination_lat, destination_lng)
    )

    api_key = require_maps_key()
    params = {
        "origin": f"{o_lat},{o_lng}",
        "destination": f"{d_lat},{d_lng}",
        "mode": mode or DEFAULT_MODE,
        "language": places_language(),
        "key": api_key,
    }

    try:
        resp = requests.get(_DIRECTIONS_URL, params=params, timeout=http_timeout())
        if not resp.ok:
            raise DirectionsError(f"Google Directions API call failed with HTTP {resp.status_code}")
        data = resp.json()
    except (requests.RequestException, ValueError) as exc:
        log.error("Directions lookup failed: %s", exc)
        raise DirectionsError("Could not fetch route information.") from exc

    route = _first(data.get("routes"))
    leg = _first(route.get("legs"))
    return RouteSummary(
        summary=route.get("summary") or "",
        distance=(leg.get("distance") or {}).get("text") or "",
        duration=(leg.get("duration") or {}).get("text") or "",
        warnings=list(route.get("warnings") or []),
    )


def day_route_endpoints(day: Day) -> Optional[Tuple[LatLng, LatLng]]:
    """First and last located blocks of a day, or None with fewer than two."""
    located = [b for b in day.blocks if b.has_location]
    if len(located) < 2:
        return None
    first, last = located[0], located[-1]
    return (first.lat, first.lng), (last.lat, last.lng)


def get_day_directions(day: Day, mode: Optional[str] = DEFAULT_MODE) -> Optional[RouteSummary]:
    """Directions across one day's itinerary, or None when it can't be routed."""
    endpoints = day_route_endpoints(day)
    if endpoints is None:
        return None
    (o_lat, o_lng), (d_lat, d_lng) = endpoints
    return get_directions(o_lat, o_lng, d_lat, d_lng, mode)
