"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator

os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from rumori.config import Settings
from rumori.container import Services, build_services
from tests.fakes import FakeSupabase, sign_in_as


@pytest.fixture
def fake() -> FakeSupabase:
    """Fresh in-memory backend for each test."""
    return FakeSupabase()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://test.supabase.co",
        supabase_key="test-anon-key",
        retry_base_delay=0,
    )


@pytest.fixture
def services(fake: FakeSupabase, settings: Settings) -> Services:
    return build_services(settings, client=fake)


@pytest_asyncio.fixture
async def user_id(services: Services, fake: FakeSupabase) -> str:
    """Id of the signed-in user 'alice'."""
    return await sign_in_as(services, fake)


@pytest_asyncio.fixture
async def client(services: Services) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to an app wired to the fake backend."""
    from rumori.api.main import create_app

    app = create_app(services)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
