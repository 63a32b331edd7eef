import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from reise.api.schemas import EpisodeIn, EpisodeTripResponse, TripPreview
from reise.api.trips import TripService, limiter, performance_timer
from reise.core.cache import InMemoryTTLCache
from reise.core.episodes import Episode, EpisodeTripResolver
from reise.core.gallery import generic_gallery
from reise.core.generator import OpenAITripGenerator, TripGenerator
from reise.core.geocoding import MapboxGeocoder
from reise.core.security import get_current_user, get_entitlements
from reise.core.settings import Settings
from reise.core.trips.entitlements import Entitlements
from reise.db import crud
from reise.db.models import User
from reise.db.session import get_session

logger = logging.getLogger(__name__)

settings = Settings()
router = APIRouter(prefix="/episodes", tags=["episodes"])

_generator = OpenAITripGenerator(settings=settings)
_geocoder = MapboxGeocoder(
    token=settings.MAPBOX_TOKEN,
    cache=InMemoryTTLCache(default_ttl=settings.GEOCODE_CACHE_TTL),
    timeout=settings.GEOCODE_TIMEOUT,
)


def get_trip_generator() -> TripGenerator:
    return _generator


def get_geocoder() -> MapboxGeocoder:
    return _geocoder


def _episode(episode_id: str, body: EpisodeIn) -> Episode:
    episode_id = episode_id.strip()
    if not episode_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Episode mangler id")
    return Episode(
        id=episode_id,
        name=body.name.strip(),
        description=body.description,
        external_url=body.external_url,
    )


@router.post("/{episode_id}/trip", response_model=EpisodeTripResponse)
@limiter.limit(settings.RATE_LIMIT_GENERATE)
async def ensure_episode_trip(
    request: Request,
    episode_id: str,
    body: EpisodeIn,
    user: User = Depends(get_current_user),
    entitlements: Entitlements = Depends(get_entitlements),
    session: AsyncSession = Depends(get_session),
    generator: TripGenerator = Depends(get_trip_generator),
    geocoder: MapboxGeocoder = Depends(get_geocoder),
):
    """Return the canonical trip for an episode, generating it on first request"""
    episode = _episode(episode_id, body)
    async with performance_timer("ensure_episode_trip"):
        resolver = EpisodeTripResolver(session, generator, geocoder, settings)
        trip_id = await resolver.ensure_trip_for_episode(episode, user.id)

    trip = await crud.get_user_trip(session, trip_id, user.id)
    if trip is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reisen finnes ikke")
    return {"trip_id": trip_id, "trip": await TripService(session).view(trip, entitlements)}


@router.post("/{episode_id}/preview", response_model=TripPreview)
@limiter.limit(settings.RATE_LIMIT_GENERATE)
async def preview_episode_trip(
    request: Request,
    episode_id: str,
    body: EpisodeIn,
    user: User = Depends(get_current_user),
    entitlements: Entitlements = Depends(get_entitlements),
    session: AsyncSession = Depends(get_session),
    generator: TripGenerator = Depends(get_trip_generator),
    geocoder: MapboxGeocoder = Depends(get_geocoder),
):
    """Generate a trip for the episode using the caller's profile, without saving it"""
    episode = _episode(episode_id, body)
    async with performance_timer("preview_episode_trip"):
        resolver = EpisodeTripResolver(session, generator, geocoder, settings)
        trip = await resolver.generate_episode_trip(episode, user_profile=user.profile())

    trip["gallery"] = generic_gallery(seed=episode.id)
    return TripService(session).project(trip, entitlements)
