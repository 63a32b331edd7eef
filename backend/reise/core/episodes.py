"""
Canonical episode trips.

Each (episode, user) pair has exactly one persisted "system" trip
(``source_type = 'grenselos_episode'``). It is generated by the AI pipeline
on first access and reused afterwards; users' own copies of the episode trip
fall back to it for anything they did not supply.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from reise.core.errors import MalformedInput, PreconditionViolation
from reise.core.generator import TripGenerator, episode_description
from reise.core.geocoding import MapboxGeocoder, fill_missing_coordinates
from reise.core.settings import Settings
from reise.core.trips.extract import extract_json
from reise.core.trips.normalize import normalize_trip_structure
from reise.db import crud
from reise.db.models import TripSourceType

logger = logging.getLogger(__name__)

EPISODE_FALLBACK_TITLE = "Grenseløs-reise"


@dataclass(frozen=True)
class Episode:
    id: str
    name: str = ""
    description: Optional[str] = None
    external_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Episode":
        urls = data.get("external_urls") if isinstance(data.get("external_urls"), dict) else {}
        return cls(
            id=str(data.get("id") or "").strip(),
            name=(data.get("name") or "").strip(),
            description=data.get("description") or None,
            external_url=data.get("external_url") or urls.get("spotify") or None,
        )


class EpisodeTripResolver:
    """Finds or creates the canonical trip for an episode and user"""

    def __init__(
        self,
        session: AsyncSession,
        generator: TripGenerator,
        geocoder: Optional[MapboxGeocoder] = None,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.generator = generator
        self.geocoder = geocoder
        self.settings = settings or Settings()

    async def generate_episode_trip(
        self,
        episode: Episode,
        user_profile: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Generate and normalize a trip for an episode without persisting it.

        Raises UpstreamFailure if generation fails, MalformedInput if the
        output holds no JSON at all and PreconditionViolation if the result
        has no stops.
        """
        raw = await self.generator.generate(
            source_url=episode.external_url,
            user_description=episode_description(episode.name),
            user_profile=user_profile,
        )
        payload = extract_json(raw)
        if payload is None:
            raise MalformedInput(f"AI output for episode {episode.id} contained no JSON")

        trip = normalize_trip_structure(
            payload,
            fallback_title=episode.name or EPISODE_FALLBACK_TITLE,
            fallback_description=episode.description,
            user_profile=user_profile,
            default_price=self.settings.DEFAULT_HOTEL_PRICE,
            currency=self.settings.DEFAULT_CURRENCY,
        )
        filled = await fill_missing_coordinates(trip["stops"], self.geocoder, trip["title"])
        if filled:
            logger.info(f"Geocoded {filled} stop(s) for episode {episode.id}")

        if not trip["stops"]:
            raise PreconditionViolation(
                "Episode-reise mangler stops. Klarte ikke å lage en reiserute for episoden."
            )
        return trip

    async def ensure_trip_for_episode(self, episode: Episode, user_id: UUID) -> UUID:
        """Return the canonical trip id for (episode, user), generating it on first access.

        Repeated calls after the row exists do no generation and no writes.
        """
        if episode is None or not episode.id:
            raise PreconditionViolation("Episode mangler id")
        if not user_id:
            raise PreconditionViolation("Bruker mangler id")

        existing = await crud.get_canonical_trip_id(self.session, episode.id, user_id)
        if existing is not None:
            return existing
        # no read transaction held open across the slow generation call
        await self.session.commit()

        logger.info(f"No canonical trip for episode {episode.id}, generating")
        trip = await self.generate_episode_trip(episode)

        values = {
            "id": uuid.uuid4(),
            "user_id": user_id,
            "title": trip["title"],
            "description": trip["description"],
            "stops": trip["stops"],
            "packing_list": trip["packing_list"],
            "hotels": trip["hotels"],
            "experiences": trip["experiences"],
            "gallery": [],
            "source_type": TripSourceType.GRENSELOS_EPISODE.value,
            "source_episode_id": episode.id,
            "episode_url": episode.external_url,
        }
        inserted = await crud.insert_canonical_trip(self.session, values)
        if not inserted:
            logger.info(f"Lost insert race for episode {episode.id}, reusing existing canonical trip")

        trip_id = await crud.get_canonical_trip_id(self.session, episode.id, user_id)
        if trip_id is None:
            raise RuntimeError(f"Canonical trip for episode {episode.id} missing after insert")
        return trip_id
