from typing import Any, Dict, List, Optional
from uuid import UUID
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TripCreate(BaseModel):
    title: str = Field(..., max_length=300)
    description: Optional[str] = Field(None, max_length=5000)
    stops: List[Dict[str, Any]] = Field(default_factory=list)
    packing_list: Any = None
    hotels: List[Dict[str, Any]] = Field(default_factory=list)
    experiences: List[Dict[str, Any]] = Field(default_factory=list)
    gallery: List[Dict[str, Any]] = Field(default_factory=list)
    source_episode_id: Optional[str] = Field(None, max_length=200)
    episode_url: Optional[str] = None
    is_template: bool = False

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        v = " ".join(v.split())
        if not v:
            raise ValueError('Tittel er påkrevd')
        return v

    @field_validator('source_episode_id')
    @classmethod
    def validate_episode_id(cls, v):
        if v is None:
            return v
        return v.strip() or None


class EpisodeIn(BaseModel):
    name: str = Field("", max_length=500)
    description: Optional[str] = None
    external_url: Optional[str] = None


class Coordinates(BaseModel):
    lat: float
    lng: float


class StopRead(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    order: int
    name: str
    description: str = ""
    location: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    countryCode: Optional[str] = None
    codes: Optional[Dict[str, Any]] = None


class PackingCategoryRead(BaseModel):
    category: str
    items: List[str]


class LockedSections(BaseModel):
    hotels: bool
    experiences: bool
    packing_list: bool


class EntitlementsRead(BaseModel):
    isPro: bool
    locked: LockedSections


class TripCounts(BaseModel):
    hotels: int
    experiences: int
    packing_list: int


class TripView(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None
    stops: List[StopRead]
    packing_list: List[PackingCategoryRead]
    # full records for pro viewers, {name, location[, description]} previews otherwise
    hotels: List[Dict[str, Any]]
    experiences: List[Dict[str, Any]]
    gallery: List[Dict[str, Any]] = Field(default_factory=list)
    source_type: Optional[str] = None
    source_episode_id: Optional[str] = None
    episode_url: Optional[str] = None
    created_at: Optional[datetime] = None
    counts: TripCounts
    entitlements: EntitlementsRead


class TripListResponse(BaseModel):
    trips: List[TripView]
    entitlements: EntitlementsRead


class EpisodeTripResponse(BaseModel):
    trip_id: UUID
    trip: TripView


class TripPreview(BaseModel):
    """Generated but unsaved trip"""
    title: str
    description: Optional[str] = None
    stops: List[StopRead]
    packing_list: List[PackingCategoryRead]
    hotels: List[Dict[str, Any]]
    experiences: List[Dict[str, Any]]
    gallery: List[Dict[str, Any]] = Field(default_factory=list)
    counts: TripCounts
    entitlements: EntitlementsRead


class HotelsResponse(BaseModel):
    hotels: List[Dict[str, Any]]


class ExperiencesResponse(BaseModel):
    experiences: List[Dict[str, Any]]


class PackingListResponse(BaseModel):
    packing_list: List[PackingCategoryRead]
