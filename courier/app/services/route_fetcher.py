"""
Route fetching via a third-party directions service.

Builds a waypoint list (driver position, then every remaining stop in
order), asks the routing service (Mapbox Directions / OSRM response shape)
for a driving path, and falls back to a straight dashed line through the
waypoints when the key is missing, the call fails, the response is
malformed or the circuit breaker is open. Never raises to the caller.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import httpx

from courier.app.core.config import settings
from courier.app.core.geo import LatLng, parse_point, path_length_km
from courier.app.core.reliability import CircuitBreaker, CircuitOpenError, routing_circuit_breaker
from courier.app.models.driver_session import DriverSession

logger = logging.getLogger("courier.routing")

SOURCE_ROUTING_SERVICE = "routing_service"
SOURCE_STRAIGHT_LINE = "straight_line"


class RouteResponseError(ValueError):
    """The routing service answered with something we cannot draw."""


@dataclass
class RouteResult:
    coordinates: List[LatLng]  # (lat, lng) pairs
    source: str
    distance_km: Optional[float] = None
    duration_min: Optional[float] = None

    @property
    def dashed(self) -> bool:
        return self.source == SOURCE_STRAIGHT_LINE


def straight_line(waypoints: Sequence[LatLng]) -> RouteResult:
    points = list(waypoints)
    return RouteResult(
        coordinates=points,
        source=SOURCE_STRAIGHT_LINE,
        distance_km=round(path_length_km(points), 2) if len(points) > 1 else 0.0,
    )


def parse_route_response(data: dict) -> RouteResult:
    """
    Extract the first route's geometry from a directions response.

    Expects ``routes[0].geometry.coordinates`` as [lng, lat] pairs (GeoJSON),
    with optional ``distance`` (m) and ``duration`` (s).
    """
    try:
        if data.get("code") not in (None, "Ok"):
            raise RouteResponseError(f"Routing service returned code {data.get('code')}")
        routes = data.get("routes") or []
        if not routes:
            raise RouteResponseError("Routing service returned no routes")
        route = routes[0]
        coordinates = [(float(lat), float(lng)) for lng, lat in route["geometry"]["coordinates"]]
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        if isinstance(e, RouteResponseError):
            raise
        raise RouteResponseError(f"Malformed routing response: {e}") from e

    if len(coordinates) < 2:
        raise RouteResponseError("Route geometry has fewer than two points")

    distance = route.get("distance")
    duration = route.get("duration")
    return RouteResult(
        coordinates=coordinates,
        source=SOURCE_ROUTING_SERVICE,
        distance_km=round(float(distance) / 1000.0, 2) if distance is not None else None,
        duration_min=round(float(duration) / 60.0, 1) if duration is not None else None,
    )


class RouteFetcher:
    """
    Client for the directions API.

    Pass ``client`` to reuse an httpx.AsyncClient (tests hand in one backed
    by httpx.MockTransport); otherwise a short-lived client is opened per call.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.base_url = (base_url or settings.routing_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.routing_api_key
        self.timeout = timeout or settings.routing_timeout_seconds
        self._client = client
        self.breaker = breaker or routing_circuit_breaker

    async def fetch_route(self, position: LatLng, pending_stops: Sequence) -> RouteResult:
        """Driving path from the driver's position through the remaining stops."""
        waypoints = [position] + [parse_point(stop.location) for stop in pending_stops]
        return await self.fetch_waypoints(waypoints)

    async def fetch_pair_route(self, pickup: LatLng, destination: LatLng) -> RouteResult:
        return await self.fetch_waypoints([pickup, destination])

    async def fetch_waypoints(self, waypoints: Sequence[LatLng]) -> RouteResult:
        waypoints = list(waypoints)
        if len(waypoints) < 2:
            return straight_line(waypoints)

        if not self.api_key:
            logger.info("No routing API key configured, drawing straight line")
            return straight_line(waypoints)

        try:
            return await self.breaker.call(self._request, waypoints)
        except CircuitOpenError:
            logger.info("Routing circuit open, drawing straight line")
        except (httpx.HTTPError, RouteResponseError) as e:
            logger.warning("Routing request failed, drawing straight line: %s", e)
        except ValueError as e:
            # Body was not JSON
            logger.warning("Routing response unreadable, drawing straight line: %s", e)
        return straight_line(waypoints)

    async def _request(self, waypoints: List[LatLng]) -> RouteResult:
        # Directions APIs take lng,lat pairs
        coords = ";".join(f"{lng},{lat}" for lat, lng in waypoints)
        url = f"{self.base_url}/{coords}"
        params = {"geometries": "geojson", "overview": "full", "access_token": self.api_key}

        if self._client is not None:
            response = await self._client.get(url, params=params, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, params=params)

        response.raise_for_status()
        return parse_route_response(response.json())


def begin_route_request(session: DriverSession) -> int:
    """Bump and return the session's route generation before fetching."""
    session.route_generation = (session.route_generation or 0) + 1
    return session.route_generation


def store_route(session: DriverSession, result: RouteResult, generation: int) -> bool:
    """
    Cache a fetched route on the session unless a newer request superseded it.

    Returns:
        True if stored, False if the result was stale and dropped
    """
    if generation != session.route_generation:
        logger.info(
            "Dropping stale route for driver %s (generation %s, current %s)",
            session.driver_id, generation, session.route_generation
        )
        return False
    session.route_geometry = [[lat, lng] for lat, lng in result.coordinates]
    session.route_source = result.source
    return True
