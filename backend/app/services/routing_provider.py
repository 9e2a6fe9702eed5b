"""
Routing provider client.

Road-network routes and map-matched (snapped) geometry from the Mapbox
Directions and Map Matching APIs. The engine depends only on the
RoutingProvider protocol so tests can substitute a fake.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, List

import httpx

from backend.app.core.reliability import CircuitBreaker, CircuitOpenError
from backend.app.domain.matching.geo import Coordinates


class RoutingProviderError(Exception):
    """Raised for any provider failure: transport, HTTP status or empty result."""


@dataclass(frozen=True)
class RouteResult:
    distance_meters: float
    duration_seconds: float
    encoded_polyline: str


@dataclass(frozen=True)
class MapMatchResult:
    distance_meters: float
    encoded_polyline: str
    confidence: float
    duration_seconds: Optional[float] = None


class RoutingProvider(Protocol):
    async def get_route(self, waypoints: Sequence[Coordinates], profile: Optional[str] = None) -> RouteResult:
        ...

    async def get_map_matched_route(self, points: Sequence[Coordinates], profile: Optional[str] = None) -> MapMatchResult:
        ...


def downsample(points: Sequence[Coordinates], max_points: int) -> List[Coordinates]:
    """
    Evenly thin a point sequence to at most max_points, keeping both ends.
    """
    points = list(points)
    if len(points) <= max_points:
        return points
    if max_points < 2:
        raise ValueError("max_points must be at least 2")
    step = (len(points) - 1) / (max_points - 1)
    return [points[round(i * step)] for i in range(max_points)]


class MapboxRoutingClient:
    """
    Mapbox implementation of RoutingProvider.

    Every request goes through a circuit breaker; nothing is retried here.
    """

    def __init__(
        self,
        access_token: Optional[str],
        base_url: str = "https://api.mapbox.com",
        profile: str = "driving-traffic",
        timeout: float = 20.0,
        polyline_precision: int = 6,
        max_match_points: int = 100,
        circuit_breaker: Optional[CircuitBreaker] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.profile = profile
        self.polyline_precision = polyline_precision
        self.max_match_points = max_match_points
        self.circuit_breaker = circuit_breaker or CircuitBreaker()
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(cls, settings) -> "MapboxRoutingClient":
        return cls(
            access_token=settings.mapbox_access_token,
            base_url=settings.mapbox_base_url,
            profile=settings.routing_profile,
            timeout=settings.routing_timeout_seconds,
            polyline_precision=settings.polyline_precision,
            max_match_points=settings.map_matching_max_points,
            circuit_breaker=CircuitBreaker(
                failure_threshold=settings.routing_circuit_failure_threshold,
                reset_timeout=settings.routing_circuit_reset_seconds,
            ),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def _geometries(self) -> str:
        return "polyline6" if self.polyline_precision == 6 else "polyline"

    async def get_route(self, waypoints: Sequence[Coordinates], profile: Optional[str] = None) -> RouteResult:
        """
        Route through the waypoints in the given order.

        Returns the first (recommended) route's distance, duration and geometry.
        """
        if len(waypoints) < 2:
            raise RoutingProviderError("At least two waypoints are required")

        url = f"{self.base_url}/directions/v5/mapbox/{profile or self.profile}/{_coordinate_path(waypoints)}"
        data = await self._get_json(url, {"geometries": self._geometries, "overview": "full"})

        routes = data.get("routes") or []
        if not routes:
            raise RoutingProviderError(f"No route found ({data.get('code', 'unknown')})")

        route = routes[0]
        try:
            return RouteResult(
                distance_meters=float(route["distance"]),
                duration_seconds=float(route["duration"]),
                encoded_polyline=route["geometry"],
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise RoutingProviderError(f"Malformed route in provider response: {exc}") from exc

    async def get_map_matched_route(self, points: Sequence[Coordinates], profile: Optional[str] = None) -> MapMatchResult:
        """
        Snap a traced path onto the road network.
        """
        sampled = downsample(points, self.max_match_points)
        if len(sampled) < 2:
            raise RoutingProviderError("At least two points are required for map matching")

        url = f"{self.base_url}/matching/v5/mapbox/{profile or self.profile}/{_coordinate_path(sampled)}"
        data = await self._get_json(url, {"geometries": self._geometries, "overview": "full", "tidy": "true"})

        matchings = data.get("matchings") or []
        if not matchings:
            raise RoutingProviderError(f"No map matching found ({data.get('code', 'unknown')})")

        matching = matchings[0]
        duration = matching.get("duration")
        try:
            return MapMatchResult(
                distance_meters=float(matching["distance"]),
                encoded_polyline=matching["geometry"],
                confidence=float(matching.get("confidence", 0.0)),
                duration_seconds=float(duration) if duration is not None else None,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise RoutingProviderError(f"Malformed matching in provider response: {exc}") from exc

    async def _get_json(self, url: str, params: dict) -> dict:
        if not self.access_token:
            raise RoutingProviderError("MAPBOX_ACCESS_TOKEN is not configured")

        async def _request() -> dict:
            response = await self._client.get(url, params={**params, "access_token": self.access_token})
            response.raise_for_status()
            return response.json()

        try:
            return await self.circuit_breaker.call(_request)
        except CircuitOpenError as exc:
            raise RoutingProviderError("Routing provider circuit is open") from exc
        except httpx.HTTPStatusError as exc:
            raise RoutingProviderError(f"Routing provider returned HTTP {exc.response.status_code}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise RoutingProviderError(f"Routing provider request failed: {exc}") from exc


def _coordinate_path(points: Sequence[Coordinates]) -> str:
    # Mapbox expects lng,lat pairs separated by semicolons
    return ";".join(f"{p.lng},{p.lat}" for p in points)
