import time
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from reise.api.schemas import (
    ExperiencesResponse,
    HotelsResponse,
    PackingListResponse,
    TripCreate,
    TripListResponse,
    TripView,
)
from reise.core.errors import PreconditionViolation
from reise.core.gallery import generic_gallery
from reise.core.security import get_current_user, get_entitlements, require_pro
from reise.core.settings import Settings
from reise.core.trips.entitlements import Entitlements, project_for_viewer, with_resolved_urls
from reise.core.trips.merge import merge_with_canonical
from reise.core.trips.normalize import build_context_text, normalize_trip_structure
from reise.core.trips.packing import classify_packing
from reise.db import crud
from reise.db.models import Trip, TripSourceType, User
from reise.db.session import get_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/trips", tags=["trips"])

settings = Settings()
limiter = Limiter(key_func=get_remote_address, enabled=settings.ENABLE_RATE_LIMITING)


@asynccontextmanager
async def performance_timer(operation: str):
    """Context manager for timing operations"""
    start = time.time()
    try:
        yield
    finally:
        duration = time.time() - start
        logger.info(f"{operation} completed in {duration:.2f}s")


class TripService:
    """Builds user trips and the per-viewer trip views"""

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or Settings()

    async def resolved_content(self, trip: Trip) -> Dict[str, Any]:
        """Stored trip fields, completed from the canonical trip for episode copies"""
        content = trip.content()
        if trip.source_type == TripSourceType.USER_EPISODE_TRIP.value and trip.source_episode_id:
            canonical = await crud.find_canonical_for_copy(self.session, trip.source_episode_id, trip.user_id)
            if canonical is not None:
                content = merge_with_canonical(content, canonical.content())
        if not content.get("gallery"):
            content["gallery"] = generic_gallery(seed=str(trip.id))
        context = build_context_text(content["title"], content.get("description"), content.get("stops") or [])
        content["packing_list"] = classify_packing(content.get("packing_list"), context)
        return content

    def project(self, content: Dict[str, Any], entitlements: Entitlements) -> Dict[str, Any]:
        return project_for_viewer(
            content,
            entitlements,
            hotel_limit=self.settings.PREVIEW_HOTELS,
            experience_limit=self.settings.PREVIEW_EXPERIENCES,
            packing_limit=self.settings.PREVIEW_PACKING_ITEMS,
        )

    async def view(self, trip: Trip, entitlements: Entitlements) -> Dict[str, Any]:
        view = self.project(await self.resolved_content(trip), entitlements)
        view.update({
            "id": trip.id,
            "source_type": trip.source_type,
            "source_episode_id": trip.source_episode_id,
            "episode_url": trip.episode_url,
            "created_at": trip.created_at,
        })
        return view

    async def create_user_trip(self, user: User, payload: TripCreate) -> Trip:
        fields = payload.model_dump(exclude={"source_episode_id", "episode_url", "is_template"})
        episode_id = payload.source_episode_id
        episode_url = payload.episode_url
        source_type = TripSourceType.TEMPLATE.value if payload.is_template else None

        if episode_id:
            source_type = TripSourceType.USER_EPISODE_TRIP.value
            canonical = await crud.find_canonical_for_copy(self.session, episode_id, user.id)
            if canonical is not None:
                fields = merge_with_canonical(fields, canonical.content())
                episode_url = episode_url or canonical.episode_url
            else:
                logger.info(f"No canonical trip for episode {episode_id}, using client data only")

        normalized = normalize_trip_structure(
            fields,
            fallback_title=payload.title,
            user_profile=user.profile(),
            default_price=self.settings.DEFAULT_HOTEL_PRICE,
            currency=self.settings.DEFAULT_CURRENCY,
        )
        if not normalized["stops"]:
            if episode_id:
                raise PreconditionViolation(
                    "Episode-reise mangler stops. Prøv å åpne episoden på nytt før du lagrer."
                )
            raise PreconditionViolation("Reisen mangler stops.")

        record = {
            **normalized,
            "gallery": fields.get("gallery") or [],
            "source_type": source_type,
            "source_episode_id": episode_id,
            "episode_url": episode_url,
        }
        return await crud.create_trip(self.session, user.id, record)


async def _owned_trip(session: AsyncSession, trip_id: UUID, user: User) -> Trip:
    trip = await crud.get_user_trip(session, trip_id, user.id)
    if trip is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reisen finnes ikke")
    return trip


@router.get("", response_model=TripListResponse)
@limiter.limit(settings.RATE_LIMIT_READ)
async def list_trips(
    request: Request,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    user: User = Depends(get_current_user),
    entitlements: Entitlements = Depends(get_entitlements),
    session: AsyncSession = Depends(get_session),
):
    """List the caller's trips, projected for their entitlements"""
    async with performance_timer("list_trips"):
        service = TripService(session)
        trips = await crud.list_user_trips(session, user.id, skip=skip, limit=limit)
        views = [await service.view(trip, entitlements) for trip in trips]

    locked = not entitlements.is_pro
    return {
        "trips": views,
        "entitlements": {
            "isPro": entitlements.is_pro,
            "locked": {"hotels": locked, "experiences": locked, "packing_list": locked},
        },
    }


@router.post("", response_model=TripView, status_code=status.HTTP_201_CREATED)
async def create_trip(
    payload: TripCreate,
    user: User = Depends(get_current_user),
    entitlements: Entitlements = Depends(get_entitlements),
    session: AsyncSession = Depends(get_session),
):
    """Create a user trip; episode copies are completed from the canonical trip"""
    service = TripService(session)
    trip = await service.create_user_trip(user, payload)
    return await service.view(trip, entitlements)


@router.get("/{trip_id}", response_model=TripView)
async def get_trip(
    trip_id: UUID,
    user: User = Depends(get_current_user),
    entitlements: Entitlements = Depends(get_entitlements),
    session: AsyncSession = Depends(get_session),
):
    trip = await _owned_trip(session, trip_id, user)
    return await TripService(session).view(trip, entitlements)


@router.get("/{trip_id}/hotels", response_model=HotelsResponse)
async def get_trip_hotels(
    trip_id: UUID,
    user: User = Depends(get_current_user),
    _: Entitlements = Depends(require_pro),
    session: AsyncSession = Depends(get_session),
):
    trip = await _owned_trip(session, trip_id, user)
    content = await TripService(session).resolved_content(trip)
    return {"hotels": with_resolved_urls(content)["hotels"]}


@router.get("/{trip_id}/experiences", response_model=ExperiencesResponse)
async def get_trip_experiences(
    trip_id: UUID,
    user: User = Depends(get_current_user),
    _: Entitlements = Depends(require_pro),
    session: AsyncSession = Depends(get_session),
):
    trip = await _owned_trip(session, trip_id, user)
    content = await TripService(session).resolved_content(trip)
    return {"experiences": with_resolved_urls(content)["experiences"]}


@router.get("/{trip_id}/packing-list", response_model=PackingListResponse)
async def get_trip_packing_list(
    trip_id: UUID,
    user: User = Depends(get_current_user),
    _: Entitlements = Depends(require_pro),
    session: AsyncSession = Depends(get_session),
):
    trip = await _owned_trip(session, trip_id, user)
    content = await TripService(session).resolved_content(trip)
    return {"packing_list": content["packing_list"]}


@router.delete("/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_trip(
    trip_id: UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    trip = await _owned_trip(session, trip_id, user)
    if trip.is_canonical:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Systemreiser kan ikke slettes",
        )
    await crud.delete_trip(session, trip)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
