"""
Route resolver tests.

Caching, in-flight deduplication, cross-worker lock and failures.
"""

import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from backend.app.core.exceptions import ResourceNotFoundError, RouteResolutionFailedError
from backend.app.domain.matching.route_resolver import RouteResolver
from backend.app.models.trip import Trip
from backend.app.services.route_lock import ROUTE_LOCK_PREFIX, RouteResolutionLock


@pytest.fixture
def resolver(session_factory, routing_provider):
    return RouteResolver(session_factory, routing_provider, profile="driving-traffic")


@pytest.mark.asyncio
async def test_resolve_persists_map_matched_route(resolver, make_trip, routing_provider, session_factory):
    trip = await make_trip(seats_offered=2)

    await resolver.resolve(trip.id)

    async with session_factory() as db:
        stored = await db.get(Trip, trip.id)
    assert stored.polyline
    assert stored.route_length_m > 0
    assert stored.route_duration_s > 0
    assert routing_provider.route_calls == [[trip.pickup, trip.drop_off]]
    # The directions path is what gets map-matched
    assert len(routing_provider.match_calls) == 1
    assert len(routing_provider.match_calls[0]) == 21


@pytest.mark.asyncio
async def test_trip_with_route_skips_provider(resolver, make_trip, routing_provider):
    trip = await make_trip(seats_offered=2)
    await resolver.ensure_route(trip)
    calls = len(routing_provider.route_calls)

    again = await resolver.ensure_route(trip)

    assert again is trip
    assert len(routing_provider.route_calls) == calls


@pytest.mark.asyncio
async def test_stored_route_is_reused_by_new_resolver(session_factory, routing_provider, make_trip):
    trip = await make_trip(seats_offered=2)
    await RouteResolver(session_factory, routing_provider).resolve(trip.id)

    resolved = await RouteResolver(session_factory, routing_provider).resolve(trip.id)

    assert resolved.has_route
    assert len(routing_provider.route_calls) == 1


@pytest.mark.asyncio
async def test_concurrent_requests_share_one_resolution(resolver, make_trip, routing_provider):
    trip = await make_trip(seats_offered=2)
    routing_provider.delay = 0.05

    first, second, third = await asyncio.gather(
        resolver.resolve(trip.id),
        resolver.resolve(trip.id),
        resolver.resolve(trip.id),
    )

    assert len(routing_provider.route_calls) == 1
    assert first.polyline == second.polyline == third.polyline


@pytest.mark.asyncio
async def test_provider_failure_raises_and_leaves_trip_unresolved(resolver, make_trip, routing_provider, session_factory):
    trip = await make_trip(seats_offered=2)
    routing_provider.fail_routes = True

    with pytest.raises(RouteResolutionFailedError):
        await resolver.resolve(trip.id)

    async with session_factory() as db:
        stored = await db.get(Trip, trip.id)
    assert stored.polyline is None
    assert stored.route_length_m is None


@pytest.mark.asyncio
async def test_failed_resolution_can_be_retried(resolver, make_trip, routing_provider):
    trip = await make_trip(seats_offered=2)
    routing_provider.fail_routes = True
    with pytest.raises(RouteResolutionFailedError):
        await resolver.resolve(trip.id)

    routing_provider.fail_routes = False
    resolved = await resolver.resolve(trip.id)

    assert resolved.has_route


@pytest.mark.asyncio
async def test_unknown_trip_raises_not_found(resolver):
    with pytest.raises(ResourceNotFoundError):
        await resolver.resolve("does-not-exist")


@pytest.mark.asyncio
async def test_lock_is_released_after_resolution(session_factory, routing_provider, make_trip, mock_redis):
    lock = RouteResolutionLock(mock_redis, ttl_seconds=2, poll_interval=0.01)
    resolver = RouteResolver(session_factory, routing_provider, route_lock=lock)
    trip = await make_trip(seats_offered=2)

    await resolver.resolve(trip.id)

    assert mock_redis.set_calls == 1
    assert await mock_redis.exists(f"{ROUTE_LOCK_PREFIX}{trip.id}") == 0


@pytest.mark.asyncio
async def test_stale_lock_is_waited_out(session_factory, routing_provider, make_trip, mock_redis):
    trip = await make_trip(seats_offered=2)
    key = f"{ROUTE_LOCK_PREFIX}{trip.id}"
    await mock_redis.set(key, "other-worker")
    lock = RouteResolutionLock(mock_redis, ttl_seconds=0.05, poll_interval=0.01)
    resolver = RouteResolver(session_factory, routing_provider, route_lock=lock)

    resolved = await resolver.resolve(trip.id)

    assert resolved.has_route
    # Never delete a lock we do not own
    assert await mock_redis.get(key) == "other-worker"


class BrokenRedis:
    async def set(self, *args, **kwargs):
        raise RedisConnectionError("Connection refused")

    async def get(self, key):
        raise RedisConnectionError("Connection refused")

    async def delete(self, key):
        raise RedisConnectionError("Connection refused")


@pytest.mark.asyncio
async def test_redis_outage_degrades_to_unlocked_resolution(session_factory, routing_provider, make_trip):
    lock = RouteResolutionLock(BrokenRedis(), ttl_seconds=1, poll_interval=0.01)
    resolver = RouteResolver(session_factory, routing_provider, route_lock=lock)
    trip = await make_trip(seats_offered=2)

    resolved = await resolver.resolve(trip.id)

    assert resolved.has_route
