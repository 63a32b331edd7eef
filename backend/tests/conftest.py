"""
Shared fixtures: a throwaway SQLite database per test and a couple of users.
"""

import copy
import os

# must be set before reise modules build their Settings
os.environ["LOG_FILE"] = ""
os.environ["ENABLE_RATE_LIMITING"] = "false"
os.environ["OPENAI_API_KEY"] = ""
os.environ["MAPBOX_TOKEN"] = ""
os.environ["JWT_SECRET"] = "test-secret"

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from reise.db import crud
from reise.db import models  # noqa: F401

TRIP_PAYLOAD = {
    "trip": {
        "title": "Italia på tvers",
        "description": "Fra Roma til Firenze",
        "stops": [
            {
                "name": "Roma",
                "day": 1,
                "lat": 41.9,
                "lng": 12.5,
                "hotels": [{"name": "Hotel Roma", "url": "not-a-url", "price_per_night": 1400}],
                "experiences": [{"name": "Colosseum", "url": "https://www.coopculture.it/colosseo"}],
            },
            {"name": "Firenze", "day": 2, "coordinates": {"lat": 43.77, "lng": 11.25}},
        ],
        "packing_list": "Pass, Sjampo, Lader, badetøy",
    }
}


@pytest.fixture
def trip_payload():
    return copy.deepcopy(TRIP_PAYLOAD)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'reise-test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def free_user(session):
    return await crud.create_user(session, email="gratis@example.com")


@pytest_asyncio.fixture
async def pro_user(session):
    return await crud.create_user(session, email="pro@example.com", is_premium=True, budget_per_day=2000)
