"""
Unit tests for the conversation endpoints.
"""

from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import AsyncClient

from product_house.core.exceptions import UpstreamServiceError

BASE = "/api/v1/conversations"
BOB = {"X-User-Id": "user_bob", "X-User-Name": "Bob"}


@pytest_asyncio.fixture
async def conversation(async_client: AsyncClient, auth_headers: dict[str, str]) -> dict[str, Any]:
    response = await async_client.post(BASE, json={"title": "Roadmap tool"}, headers=auth_headers)
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
async def test_create_conversation(conversation: dict[str, Any]) -> None:
    assert conversation["id"].startswith("conv_")
    assert conversation["title"] == "Roadmap tool"
    assert conversation["user_id"] == "user_alice"
    assert conversation["messages"] == []


@pytest.mark.asyncio
async def test_create_requires_identity(async_client: AsyncClient) -> None:
    response = await async_client.post(BASE, json={})

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "AUTHORIZATION_FAILED"


@pytest.mark.asyncio
async def test_messages_round_trip(
    async_client: AsyncClient,
    auth_headers: dict[str, str],
    conversation: dict[str, Any],
) -> None:
    url = f"{BASE}/{conversation['id']}/messages"
    await async_client.post(url, json={"content": "I want a roadmap tool"}, headers=auth_headers)
    await async_client.post(url, json={"content": "Who is it for?", "role": "assistant"}, headers=auth_headers)

    messages = (await async_client.get(url)).json()
    fetched = (await async_client.get(f"{BASE}/{conversation['id']}")).json()

    assert [(m["role"], m["content"]) for m in messages] == [
        ("user", "I want a roadmap tool"),
        ("assistant", "Who is it for?"),
    ]
    assert [m["id"] for m in fetched["messages"]] == [m["id"] for m in messages]


@pytest.mark.asyncio
async def test_unknown_role_is_rejected(
    async_client: AsyncClient,
    auth_headers: dict[str, str],
    conversation: dict[str, Any],
) -> None:
    response = await async_client.post(
        f"{BASE}/{conversation['id']}/messages",
        json={"content": "be terse", "role": "system"},
        headers=auth_headers,
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_reply(
    async_client: AsyncClient,
    auth_headers: dict[str, str],
    conversation: dict[str, Any],
) -> None:
    response = await async_client.post(
        f"{BASE}/{conversation['id']}/reply",
        json={"content": "I want a roadmap tool"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["role"] == "assistant"
    messages = (await async_client.get(f"{BASE}/{conversation['id']}/messages")).json()
    assert [m["role"] for m in messages] == ["user", "assistant"]


@pytest.mark.asyncio
async def test_reply_upstream_failure(
    async_client: AsyncClient,
    auth_headers: dict[str, str],
    completion_client: AsyncMock,
    conversation: dict[str, Any],
) -> None:
    completion_client.complete.side_effect = UpstreamServiceError("overloaded", provider_status=529)

    response = await async_client.post(
        f"{BASE}/{conversation['id']}/reply",
        json={"content": "Hello"},
        headers=auth_headers,
    )

    assert response.status_code == 502
    assert response.json()["error"]["details"]["provider_status"] == 529
    assert (await async_client.get(f"{BASE}/{conversation['id']}/messages")).json() == []


@pytest.mark.asyncio
async def test_list_conversations(
    async_client: AsyncClient,
    auth_headers: dict[str, str],
    conversation: dict[str, Any],
) -> None:
    await async_client.post(BASE, json={"title": "Bob's"}, headers=BOB)

    response = await async_client.get(BASE, headers=auth_headers)

    assert response.status_code == 200
    assert [c["id"] for c in response.json()] == [conversation["id"]]


@pytest.mark.asyncio
async def test_rename(
    async_client: AsyncClient,
    auth_headers: dict[str, str],
    conversation: dict[str, Any],
) -> None:
    denied = await async_client.patch(f"{BASE}/{conversation['id']}", json={"title": "Mine"}, headers=BOB)
    renamed = await async_client.patch(
        f"{BASE}/{conversation['id']}",
        json={"title": "Planning"},
        headers=auth_headers,
    )

    assert denied.status_code == 403
    assert renamed.status_code == 200
    assert renamed.json()["title"] == "Planning"


@pytest.mark.asyncio
async def test_get_missing_conversation(async_client: AsyncClient) -> None:
    response = await async_client.get(f"{BASE}/conv_missing")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "CONVERSATION_NOT_FOUND"


@pytest.mark.asyncio
async def test_delete_conversation(
    async_client: AsyncClient,
    auth_headers: dict[str, str],
    conversation: dict[str, Any],
) -> None:
    first = await async_client.delete(f"{BASE}/{conversation['id']}", headers=auth_headers)
    second = await async_client.delete(f"{BASE}/{conversation['id']}", headers=auth_headers)

    assert first.json() == {"conversation_id": conversation["id"], "deleted": True}
    assert second.json()["deleted"] is False
    assert (await async_client.get(f"{BASE}/{conversation['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_generate_from_stored_conversation(
    async_client: AsyncClient,
    auth_headers: dict[str, str],
    completion_client: AsyncMock,
    conversation: dict[str, Any],
) -> None:
    await async_client.post(
        f"{BASE}/{conversation['id']}/messages",
        json={"content": "I want a roadmap tool"},
        headers=auth_headers,
    )

    response = await async_client.post(
        "/api/v1/masterplans/generate",
        json={"conversation_id": conversation["id"]},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["conversation_id"] == conversation["id"]
    sent = completion_client.generate_masterplan.await_args.args[0]
    assert [m.content for m in sent] == ["I want a roadmap tool"]
