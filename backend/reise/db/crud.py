"""
Async CRUD operations for users and trips
"""

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, insert, or_, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from reise.db.models import CANONICAL_SOURCE_WHERE, Trip, TripSourceType, User

logger = logging.getLogger(__name__)

LISTED_SOURCE_TYPES = (TripSourceType.USER_EPISODE_TRIP.value, TripSourceType.TEMPLATE.value)

# ===== USER CRUD OPERATIONS =====

async def create_user(
    session: AsyncSession,
    email: str,
    is_admin: bool = False,
    is_premium: bool = False,
    budget_per_day: Optional[float] = None,
) -> User:
    """Create a new user"""
    try:
        user = User(email=email, is_admin=is_admin, is_premium=is_premium, budget_per_day=budget_per_day)
        session.add(user)
        await session.commit()
        await session.refresh(user)
        logger.info(f"Created user: {user.id}")
        return user
    except Exception as e:
        await session.rollback()
        logger.error(f"Error creating user: {e}")
        raise

# ===== CANONICAL EPISODE TRIPS =====

def _canonical_query(episode_id: str, user_id: Optional[UUID] = None):
    query = select(Trip).where(
        Trip.source_type == TripSourceType.GRENSELOS_EPISODE.value,
        Trip.source_episode_id == episode_id,
    )
    if user_id is not None:
        query = query.where(Trip.user_id == user_id)
    # oldest row is canonical
    return query.order_by(Trip.created_at.asc(), Trip.id.asc()).limit(1)

async def get_canonical_trip(
    session: AsyncSession,
    episode_id: str,
    user_id: Optional[UUID] = None,
) -> Optional[Trip]:
    """Canonical system trip for an episode, scoped to one user when given"""
    result = await session.execute(_canonical_query(episode_id, user_id))
    return result.scalars().first()

async def get_canonical_trip_id(session: AsyncSession, episode_id: str, user_id: UUID) -> Optional[UUID]:
    result = await session.execute(
        _canonical_query(episode_id, user_id).with_only_columns(Trip.id)
    )
    return result.scalars().first()

async def find_canonical_for_copy(session: AsyncSession, episode_id: str, user_id: UUID) -> Optional[Trip]:
    """The user's own canonical trip for the episode, else the oldest one from any user"""
    trip = await get_canonical_trip(session, episode_id, user_id)
    if trip is None:
        trip = await get_canonical_trip(session, episode_id)
    return trip

async def insert_canonical_trip(session: AsyncSession, values: Dict[str, Any]) -> bool:
    """Insert a canonical trip unless one already exists for (user_id, source_episode_id).

    Returns True when this call inserted the row. Conflicts are resolved by the
    partial unique index, so concurrent first requests cannot both insert.
    """
    table = Trip.__table__
    dialect = session.get_bind().dialect.name
    conflict_args = {
        "index_elements": ["user_id", "source_episode_id"],
        "index_where": text(CANONICAL_SOURCE_WHERE),
    }
    if dialect == "postgresql":
        stmt = pg_insert(table).values(**values).on_conflict_do_nothing(**conflict_args)
    elif dialect == "sqlite":
        stmt = sqlite_insert(table).values(**values).on_conflict_do_nothing(**conflict_args)
    else:
        stmt = insert(table).values(**values)

    try:
        result = await session.execute(stmt)
        await session.commit()
    except IntegrityError:
        await session.rollback()
        logger.info(f"Canonical trip for episode {values.get('source_episode_id')} already exists")
        return False
    except Exception as e:
        await session.rollback()
        logger.error(f"Error inserting canonical trip: {e}")
        raise

    inserted = bool(result.rowcount)
    if inserted:
        logger.info(f"Inserted canonical trip {values.get('id')} for episode {values.get('source_episode_id')}")
    return inserted

# ===== TRIP CRUD OPERATIONS =====

async def create_trip(session: AsyncSession, user_id: UUID, fields: Dict[str, Any]) -> Trip:
    """Create a trip from normalized fields"""
    try:
        trip = Trip(user_id=user_id, **fields)
        session.add(trip)
        await session.commit()
        await session.refresh(trip)
        logger.info(f"Created trip {trip.id} for user {user_id}")
        return trip
    except Exception as e:
        await session.rollback()
        logger.error(f"Error creating trip: {e}")
        raise

async def get_user_trip(session: AsyncSession, trip_id: UUID, user_id: UUID) -> Optional[Trip]:
    """Get a trip owned by the user"""
    result = await session.execute(
        select(Trip).where(Trip.id == trip_id, Trip.user_id == user_id)
    )
    return result.scalars().first()

async def list_user_trips(
    session: AsyncSession,
    user_id: UUID,
    skip: int = 0,
    limit: int = 50,
) -> List[Trip]:
    """User-visible trips, newest first (canonical system trips are not listed)"""
    try:
        result = await session.execute(
            select(Trip)
            .where(
                Trip.user_id == user_id,
                or_(Trip.source_type.is_(None), Trip.source_type.in_(LISTED_SOURCE_TYPES)),
            )
            .order_by(Trip.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())
    except Exception as e:
        logger.error(f"Error listing trips for user {user_id}: {e}")
        raise

async def delete_trip(session: AsyncSession, trip: Trip) -> None:
    try:
        await session.delete(trip)
        await session.commit()
        logger.info(f"Deleted trip {trip.id}")
    except Exception as e:
        await session.rollback()
        logger.error(f"Error deleting trip {trip.id}: {e}")
        raise
