"""Router test fixtures with mocked email and price providers."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from skillset_service.app import create_app
from skillset_service.config import clear_settings_cache
from skillset_service.core.exceptions import ServiceError
from skillset_service.core.lifespan import lifespan
from skillset_service.core.state import get_app_state, reset_app_state
from tests.helpers import ADMIN_USERNAME, register_user, write_config, write_seed_file

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path


# ---------------------------------------------------------------------------
# App + client fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
async def app(tmp_path: Path) -> AsyncIterator[Any]:
    """Create a test app with temp database, seeded tasks, and mocked integrations."""
    config_path = write_config(tmp_path, seed_path=write_seed_file(tmp_path))

    old_config = os.environ.get("CONFIG_PATH")
    os.environ["CONFIG_PATH"] = str(config_path)

    clear_settings_cache()
    reset_app_state()

    test_app = create_app()
    async with lifespan(test_app):
        state = get_app_state()

        # Mock email provider, delivery succeeds by default
        mock_email = AsyncMock()
        mock_email.send_contact_email = AsyncMock(return_value={"id": "em_test"})
        state.email_client = mock_email

        # Mock price source, a known price by default
        mock_price = AsyncMock()
        mock_price.get_price = AsyncMock(return_value=0.0123)
        state.price_client = mock_price

        yield test_app

    reset_app_state()
    clear_settings_cache()
    if old_config is None:
        os.environ.pop("CONFIG_PATH", None)
    else:
        os.environ["CONFIG_PATH"] = old_config


@pytest.fixture
async def client(app: Any) -> AsyncIterator[AsyncClient]:
    """Create an async HTTP client for the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# ---------------------------------------------------------------------------
# Session fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
async def alice(client: AsyncClient) -> tuple[dict[str, Any], dict[str, str]]:
    """A registered regular user: (user body, auth headers)."""
    return await register_user(client, "alice")


@pytest.fixture
async def bob(client: AsyncClient) -> tuple[dict[str, Any], dict[str, str]]:
    """A second regular user."""
    return await register_user(client, "bob")


@pytest.fixture
async def admin(client: AsyncClient) -> tuple[dict[str, Any], dict[str, str]]:
    """A user listed in auth.admin_usernames."""
    return await register_user(client, ADMIN_USERNAME)


# ---------------------------------------------------------------------------
# Mock override fixtures (use these to replace default mock behavior)
# ---------------------------------------------------------------------------
@pytest.fixture
def mock_price_unavailable(app: Any) -> None:  # noqa: ARG001
    """Configure the price mock to report an unknown price."""
    state = get_app_state()
    state.price_client.get_price = AsyncMock(return_value=None)


@pytest.fixture
def mock_email_unavailable(app: Any) -> None:  # noqa: ARG001
    """Configure the email mock to simulate an unreachable provider."""
    state = get_app_state()
    state.email_client.send_contact_email = AsyncMock(
        side_effect=ServiceError(
            "EMAIL_SERVICE_UNAVAILABLE",
            "Failed to send message. Please try again later.",
            502,
            {},
        )
    )


@pytest.fixture
def mock_email_rejected(app: Any) -> None:  # noqa: ARG001
    """Configure the email mock to simulate a provider rejection."""
    state = get_app_state()
    state.email_client.send_contact_email = AsyncMock(
        side_effect=ServiceError("EMAIL_DELIVERY_FAILED", "Invalid `to` field", 500, {})
    )


# ---------------------------------------------------------------------------
# Upload lifecycle helper functions
# ---------------------------------------------------------------------------
async def start_task(client: AsyncClient, headers: dict[str, str], task_id: str = "1") -> Any:
    """Create an upload via POST /api/uploads and return the response."""
    return await client.post("/api/uploads", json={"taskId": task_id}, headers=headers)


async def start_task_id(client: AsyncClient, headers: dict[str, str], task_id: str = "1") -> str:
    """Create an upload and return its id."""
    response = await start_task(client, headers, task_id)
    assert response.status_code == 200, response.text
    return str(response.json()["upload"]["id"])


async def get_balance(client: AsyncClient, headers: dict[str, str]) -> int:
    """Current balance via GET /api/auth/me."""
    response = await client.get("/api/auth/me", headers=headers)
    assert response.status_code == 200, response.text
    return int(response.json()["balance"])
