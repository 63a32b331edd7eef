import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID as PyUUID

from sqlmodel import SQLModel, Field
from sqlalchemy import JSON, CheckConstraint, Column, DateTime, Index, text
from sqlalchemy.dialects.postgresql import JSONB
from pydantic import computed_field

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

CANONICAL_SOURCE_WHERE = "source_type = 'grenselos_episode'"


class TripSourceType(str, Enum):
    GRENSELOS_EPISODE = "grenselos_episode"
    USER_EPISODE_TRIP = "user_episode_trip"
    TEMPLATE = "template"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    __tablename__ = "users"

    __table_args__ = (
        Index('idx_users_email', 'email'),
        CheckConstraint('length(email) > 0', name='check_email_not_empty'),
    )

    id: PyUUID = Field(default_factory=uuid.uuid4, primary_key=True)
    email: str = Field(nullable=False, max_length=255, unique=True)
    is_admin: bool = Field(default=False, nullable=False)
    is_premium: bool = Field(default=False, nullable=False)
    budget_per_day: Optional[float] = Field(default=None, ge=0)
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow),
    )

    @computed_field
    @property
    def is_pro(self) -> bool:
        return bool(self.is_admin or self.is_premium)

    def profile(self) -> Dict[str, Any]:
        """Profile fields passed to AI generation"""
        return {"budget_per_day": self.budget_per_day} if self.budget_per_day else {}


class Trip(SQLModel, table=True):
    __tablename__ = "trips"

    __table_args__ = (
        Index('idx_trips_user_id', 'user_id'),
        Index('idx_trips_source_episode', 'source_episode_id'),
        # one canonical system trip per (user, episode)
        Index(
            'uq_trips_canonical_episode',
            'user_id',
            'source_episode_id',
            unique=True,
            postgresql_where=text(CANONICAL_SOURCE_WHERE),
            sqlite_where=text(CANONICAL_SOURCE_WHERE),
        ),
        CheckConstraint('length(title) > 0', name='check_trip_title_not_empty'),
        CheckConstraint(
            "source_type IS NULL OR source_type IN ('grenselos_episode', 'user_episode_trip', 'template')",
            name='check_trip_source_type',
        ),
    )

    id: PyUUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: PyUUID = Field(foreign_key="users.id", nullable=False)
    title: str = Field(nullable=False, max_length=300)
    description: Optional[str] = Field(default=None)

    stops: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSONType, nullable=False))
    packing_list: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSONType, nullable=False))
    hotels: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSONType, nullable=False))
    experiences: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSONType, nullable=False))
    gallery: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSONType, nullable=False))

    source_type: Optional[str] = Field(default=None, max_length=40)
    source_episode_id: Optional[str] = Field(default=None, max_length=200)
    episode_url: Optional[str] = Field(default=None)

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow),
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow),
    )

    @property
    def is_canonical(self) -> bool:
        return self.source_type == TripSourceType.GRENSELOS_EPISODE.value

    def content(self) -> Dict[str, Any]:
        """Trip fields as a plain dict for normalization, merging and projection"""
        return {
            "title": self.title,
            "description": self.description,
            "stops": list(self.stops or []),
            "packing_list": list(self.packing_list or []),
            "hotels": list(self.hotels or []),
            "experiences": list(self.experiences or []),
            "gallery": list(self.gallery or []),
        }
