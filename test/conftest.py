"""
Pytest configuration and shared fixtures.
"""
from __future__ import annotations

from collections.abc import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from contacts_api.config import ProviderType, Settings, get_settings
from contacts_api.contacts.service import ContactService
from contacts_api.mailchimp.factory import get_provider
from contacts_api.mailchimp.mock import InMemoryMailingListProvider
from contacts_api.main import app as fastapi_app

LIST_ID = "test-list"

CSV_HEADER = (
    "First name,Last/Organization/Group/Household name,Email Addresses\\Email address,"
    "Phones\\Number,Addresses\\Address line 1,Addresses\\Address line 2,Addresses\\City,"
    "Addresses\\State abbreviation,Addresses\\ZIP,Addresses\\Country abbreviation"
)


def csv_bytes(*rows: str) -> bytes:
    """Build an import CSV from data rows, header included."""
    return "\n".join((CSV_HEADER, *rows)).encode("utf-8")


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        app_env="dev",
        debug=True,
        provider_type=ProviderType.MOCK,
        mailchimp_api_key="test-key-us1",
        mailchimp_server="us1",
        mailchimp_list_id=LIST_ID,
        batch_poll_interval_seconds=0.01,
        batch_poll_timeout_seconds=0.05,
        replace_wait_for_delete=True,
    )


@pytest.fixture
def provider() -> InMemoryMailingListProvider:
    return InMemoryMailingListProvider()


@pytest.fixture
def contact_service(
    provider: InMemoryMailingListProvider,
    test_settings: Settings,
) -> ContactService:
    return ContactService(provider=provider, settings=test_settings)


@pytest.fixture
def app(
    provider: InMemoryMailingListProvider,
    test_settings: Settings,
) -> Generator[FastAPI, None, None]:
    """The application with provider and settings dependencies overridden."""
    fastapi_app.dependency_overrides[get_provider] = lambda: provider
    fastapi_app.dependency_overrides[get_settings] = lambda: test_settings
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
