"""
Tests for canonical episode trips: generation on first access, reuse afterwards,
and one row per (episode, user) even under concurrent first requests.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from reise.core.episodes import Episode, EpisodeTripResolver
from reise.core.errors import MalformedInput, PreconditionViolation, UpstreamFailure
from reise.db import crud
from reise.db.models import Trip, TripSourceType

EPISODE = Episode(id="ep1", name="Italia", external_url="https://open.spotify.com/episode/ep1")


def make_generator(payload):
    generator = AsyncMock()
    generator.generate.return_value = payload if isinstance(payload, str) else json.dumps(payload)
    return generator


async def episode_rows(session_factory, episode_id="ep1"):
    async with session_factory() as session:
        result = await session.execute(select(Trip).where(Trip.source_episode_id == episode_id))
        return list(result.scalars().all())


class GatedGenerator:
    """Holds every generate() call until ``expected`` calls are in flight"""

    def __init__(self, payload, expected=2):
        self.payload = json.dumps(payload)
        self.expected = expected
        self.calls = 0
        self.all_started = asyncio.Event()

    async def generate(self, source_url, user_description, user_profile=None):
        self.calls += 1
        if self.calls >= self.expected:
            self.all_started.set()
        await asyncio.wait_for(self.all_started.wait(), timeout=5)
        return self.payload


class FakeGeocoder:
    enabled = True

    def __init__(self):
        self.queries = []

    async def geocode(self, query):
        self.queries.append(query)
        return {"lat": 43.7696, "lng": 11.2558}


class TestEnsureTripForEpisode:

    @pytest.mark.asyncio
    async def test_second_call_reuses_trip_without_generating(self, session, session_factory, free_user, trip_payload):
        generator = make_generator(trip_payload)
        resolver = EpisodeTripResolver(session, generator)

        first = await resolver.ensure_trip_for_episode(EPISODE, free_user.id)
        second = await resolver.ensure_trip_for_episode(EPISODE, free_user.id)

        assert first == second
        assert generator.generate.await_count == 1
        rows = await episode_rows(session_factory)
        assert len(rows) == 1
        assert rows[0].id == first

    @pytest.mark.asyncio
    async def test_stored_trip_is_normalized(self, session, session_factory, free_user, trip_payload):
        resolver = EpisodeTripResolver(session, make_generator(trip_payload))
        await resolver.ensure_trip_for_episode(EPISODE, free_user.id)

        trip = (await episode_rows(session_factory))[0]
        assert trip.source_type == TripSourceType.GRENSELOS_EPISODE.value
        assert trip.user_id == free_user.id
        assert trip.title == "Italia på tvers"
        assert trip.episode_url == "https://open.spotify.com/episode/ep1"
        assert [s["name"] for s in trip.stops] == ["Roma", "Firenze"]
        assert len(trip.packing_list) == 4
        assert trip.hotels[0]["name"] == "Hotel Roma"
        assert trip.gallery == []

    @pytest.mark.asyncio
    async def test_generation_uses_episode_name(self, session, free_user, trip_payload):
        generator = make_generator(trip_payload)
        await EpisodeTripResolver(session, generator).ensure_trip_for_episode(EPISODE, free_user.id)

        kwargs = generator.generate.await_args.kwargs
        assert kwargs["source_url"] == "https://open.spotify.com/episode/ep1"
        assert kwargs["user_description"].endswith("Grenseløs-episoden: Italia")

    @pytest.mark.asyncio
    async def test_missing_coordinates_are_geocoded(self, session, session_factory, free_user):
        geocoder = FakeGeocoder()
        payload = {"trip": {"title": "Toscana", "stops": [{"name": "Firenze"}]}}
        resolver = EpisodeTripResolver(session, make_generator(payload), geocoder)

        await resolver.ensure_trip_for_episode(EPISODE, free_user.id)

        trip = (await episode_rows(session_factory))[0]
        assert trip.stops[0]["coordinates"] == {"lat": 43.7696, "lng": 11.2558}
        assert geocoder.queries == ["Firenze, Toscana"]

    @pytest.mark.asyncio
    async def test_upstream_failure_stores_nothing(self, session, session_factory, free_user):
        generator = AsyncMock()
        generator.generate.side_effect = UpstreamFailure("timeout", provider="openai")

        with pytest.raises(UpstreamFailure):
            await EpisodeTripResolver(session, generator).ensure_trip_for_episode(EPISODE, free_user.id)
        assert await episode_rows(session_factory) == []

    @pytest.mark.asyncio
    async def test_output_without_json_is_rejected(self, session, session_factory, free_user):
        generator = make_generator("Sorry, I can't help with that.")

        with pytest.raises(MalformedInput):
            await EpisodeTripResolver(session, generator).ensure_trip_for_episode(EPISODE, free_user.id)
        assert await episode_rows(session_factory) == []

    @pytest.mark.asyncio
    async def test_trip_without_stops_is_never_stored(self, session, session_factory, free_user, trip_payload):
        resolver = EpisodeTripResolver(session, make_generator({"trip": {"title": "Tom", "stops": []}}))

        with pytest.raises(PreconditionViolation):
            await resolver.ensure_trip_for_episode(EPISODE, free_user.id)
        assert await episode_rows(session_factory) == []

        # next request generates again
        resolver.generator = make_generator(trip_payload)
        trip_id = await resolver.ensure_trip_for_episode(EPISODE, free_user.id)
        assert [row.id for row in await episode_rows(session_factory)] == [trip_id]

    @pytest.mark.asyncio
    async def test_missing_ids(self, session, free_user, trip_payload):
        resolver = EpisodeTripResolver(session, make_generator(trip_payload))

        with pytest.raises(PreconditionViolation):
            await resolver.ensure_trip_for_episode(Episode(id=""), free_user.id)
        with pytest.raises(PreconditionViolation):
            await resolver.ensure_trip_for_episode(EPISODE, None)
        resolver.generator.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_one_trip_per_episode_and_user(self, session, session_factory, free_user, pro_user, trip_payload):
        resolver = EpisodeTripResolver(session, make_generator(trip_payload))

        a = await resolver.ensure_trip_for_episode(EPISODE, free_user.id)
        b = await resolver.ensure_trip_for_episode(EPISODE, pro_user.id)
        c = await resolver.ensure_trip_for_episode(Episode(id="ep2", name="Japan"), free_user.id)

        assert len({a, b, c}) == 3
        assert len(await episode_rows(session_factory, "ep1")) == 2
        assert len(await episode_rows(session_factory, "ep2")) == 1

    @pytest.mark.asyncio
    async def test_concurrent_first_requests_share_one_trip(self, session_factory, free_user, trip_payload):
        """Both requests generate, but only one row is written and both get its id"""
        generator = GatedGenerator(trip_payload)

        async with session_factory() as first_session, session_factory() as second_session:
            ids = await asyncio.gather(
                EpisodeTripResolver(first_session, generator).ensure_trip_for_episode(EPISODE, free_user.id),
                EpisodeTripResolver(second_session, generator).ensure_trip_for_episode(EPISODE, free_user.id),
            )

        assert generator.calls == 2
        assert ids[0] == ids[1]
        rows = await episode_rows(session_factory)
        assert [row.id for row in rows] == [ids[0]]


class TestGenerateEpisodeTrip:

    @pytest.mark.asyncio
    async def test_preview_is_not_stored(self, session, session_factory, trip_payload):
        generator = make_generator(trip_payload)
        resolver = EpisodeTripResolver(session, generator)

        trip = await resolver.generate_episode_trip(EPISODE, user_profile={"budget_per_day": 2000})

        assert trip["title"] == "Italia på tvers"
        assert generator.generate.await_args.kwargs["user_profile"] == {"budget_per_day": 2000}
        assert await episode_rows(session_factory) == []

    @pytest.mark.asyncio
    async def test_episode_fallbacks(self, session):
        episode = Episode(id="ep3", name="Island rundt", description="Fossefall og isbreer")
        resolver = EpisodeTripResolver(session, make_generator({"trip": {"stops": ["Reykjavik"]}}))

        trip = await resolver.generate_episode_trip(episode)

        assert trip["title"] == "Island rundt"
        assert trip["description"] == "Fossefall og isbreer"


class TestCanonicalLookup:

    @pytest.mark.asyncio
    async def test_copy_prefers_own_canonical(self, session, free_user, pro_user, trip_payload):
        resolver = EpisodeTripResolver(session, make_generator(trip_payload))
        other = await resolver.ensure_trip_for_episode(EPISODE, pro_user.id)

        found = await crud.find_canonical_for_copy(session, "ep1", free_user.id)
        assert found.id == other

        own = await resolver.ensure_trip_for_episode(EPISODE, free_user.id)
        found = await crud.find_canonical_for_copy(session, "ep1", free_user.id)
        assert found.id == own

    @pytest.mark.asyncio
    async def test_canonical_trips_are_not_listed(self, session, free_user, trip_payload):
        await EpisodeTripResolver(session, make_generator(trip_payload)).ensure_trip_for_episode(
            EPISODE, free_user.id
        )
        mine = await crud.create_trip(session, free_user.id, {"title": "Egen tur", "stops": [{"name": "Oslo"}]})

        listed = await crud.list_user_trips(session, free_user.id)
        assert [trip.id for trip in listed] == [mine.id]


def test_episode_from_dict():
    episode = Episode.from_dict({
        "id": " ep9 ",
        "name": "Peru",
        "external_urls": {"spotify": "https://open.spotify.com/episode/ep9"},
    })
    assert episode == Episode(id="ep9", name="Peru", external_url="https://open.spotify.com/episode/ep9")
