"""
Tests for the /waitlist HTTP routes.
"""

import pytest
from httpx import AsyncClient

from waitlist_api.core.config import get_settings

BASE = "/api/v1/waitlist"


def _as(user_id: int) -> dict:
    return {"X-User-Id": str(user_id)}


async def _join(client: AsyncClient, user_id: int, tournament_id: int):
    return await client.post(
        f"{BASE}/",
        json={"event_type": "tournament", "event_id": tournament_id},
        headers=_as(user_id),
    )


@pytest.mark.asyncio
async def test_join_waitlist(client: AsyncClient, users, tournament_id):
    response = await _join(client, users[0], tournament_id)

    assert response.status_code == 201
    data = response.json()
    assert data["message"] == "Successfully added to waitlist"
    assert data["position"] == 1
    assert data["registration_id"] > 0


@pytest.mark.asyncio
async def test_join_requires_caller(client: AsyncClient, tournament_id):
    response = await client.post(f"{BASE}/", json={"event_type": "tournament", "event_id": tournament_id})
    assert response.status_code == 401

    response = await client.post(
        f"{BASE}/",
        json={"event_type": "tournament", "event_id": tournament_id},
        headers=_as(9999),
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "User not found"


@pytest.mark.asyncio
async def test_join_unknown_tournament(client: AsyncClient, users):
    response = await _join(client, users[0], 9999)

    assert response.status_code == 404
    assert response.json()["detail"] == "Tournament not found"


@pytest.mark.asyncio
async def test_join_twice_conflicts(client: AsyncClient, users, tournament_id):
    assert (await _join(client, users[0], tournament_id)).status_code == 201

    response = await _join(client, users[0], tournament_id)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_join_invalid_event_type(client: AsyncClient, users, tournament_id):
    response = await client.post(
        f"{BASE}/",
        json={"event_type": "clinic", "event_id": tournament_id},
        headers=_as(users[0]),
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_position(client: AsyncClient, users, tournament_id):
    params = {"event_type": "tournament", "event_id": tournament_id}

    response = await client.get(f"{BASE}/position", params=params, headers=_as(users[0]))
    assert response.status_code == 200
    assert response.json() == {
        "on_waitlist": False,
        "message": "You are not on the waitlist for this event",
        "position": None,
        "total_waitlisted": None,
        "estimated_wait_days": None,
        "status": None,
        "spot_offered_at": None,
        "spot_expires_at": None,
    }

    await _join(client, users[0], tournament_id)
    response = await client.get(f"{BASE}/position", params=params, headers=_as(users[0]))
    data = response.json()
    assert data["on_waitlist"] is True
    assert data["position"] == 1
    assert data["estimated_wait_days"] == 3


@pytest.mark.asyncio
async def test_leave(client: AsyncClient, users, tournament_id):
    params = {"event_type": "tournament", "event_id": tournament_id}
    await _join(client, users[0], tournament_id)

    response = await client.delete(f"{BASE}/", params=params, headers=_as(users[0]))
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "You have left the waitlist"}

    response = await client.delete(f"{BASE}/", params=params, headers=_as(users[0]))
    assert response.status_code == 400
    assert response.json()["detail"] == "You are not on the waitlist for this event"


@pytest.mark.asyncio
async def test_process_and_accept(client: AsyncClient, users, organizer_id, tournament_id):
    body = {"event_type": "tournament", "event_id": tournament_id}
    await _join(client, users[0], tournament_id)

    response = await client.post(f"{BASE}/process", json=body, headers=_as(organizer_id))
    assert response.status_code == 200
    data = response.json()
    assert data["processed"] is True
    assert data["message"] == "Spot offered to next person in line"
    assert data["user_id"] == users[0]

    response = await client.post(f"{BASE}/accept", json=body, headers=_as(users[0]))
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Spot accepted successfully"}

    response = await client.post(f"{BASE}/process", json=body, headers=_as(organizer_id))
    assert response.json() == {
        "message": "No one on the waitlist to offer a spot to",
        "processed": False,
        "user_id": None,
        "registration_id": None,
    }


@pytest.mark.asyncio
async def test_decline_via_api(client: AsyncClient, users, organizer_id, tournament_id):
    body = {"event_type": "tournament", "event_id": tournament_id}
    await _join(client, users[0], tournament_id)
    await _join(client, users[1], tournament_id)
    await client.post(f"{BASE}/process", json=body, headers=_as(organizer_id))

    response = await client.post(f"{BASE}/decline", json=body, headers=_as(users[0]))
    assert response.status_code == 200
    assert response.json()["message"] == "Spot declined. The next person in line will be notified."

    position = await client.get(
        f"{BASE}/position",
        params={"event_type": "tournament", "event_id": tournament_id},
        headers=_as(users[1]),
    )
    assert position.json()["status"] == "spot_offered"
    assert position.json()["spot_expires_at"] is not None


@pytest.mark.asyncio
async def test_accept_without_offer_is_bad_request(client: AsyncClient, users, tournament_id):
    body = {"event_type": "tournament", "event_id": tournament_id}

    response = await client.post(f"{BASE}/accept", json=body, headers=_as(users[0]))

    assert response.status_code == 400
    assert response.json()["detail"] == "No spot offer found"


@pytest.mark.asyncio
async def test_accept_league_is_bad_request(client: AsyncClient, users, league_id, season_id):
    body = {"event_type": "league", "event_id": league_id}

    response = await client.post(f"{BASE}/accept", json=body, headers=_as(users[0]))

    assert response.status_code == 400
    assert response.json()["detail"] == "Accept spot is only available for tournaments"


@pytest.mark.asyncio
async def test_process_requires_organizer(client: AsyncClient, users, tournament_id):
    body = {"event_type": "tournament", "event_id": tournament_id}

    response = await client.post(f"{BASE}/process", json=body, headers=_as(users[0]))
    assert response.status_code == 403

    response = await client.post(
        f"{BASE}/process",
        json={"event_type": "tournament", "event_id": 9999},
        headers=_as(users[0]),
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_entries_for_organizer(client: AsyncClient, users, organizer_id, league_id, season_id):
    await client.post(f"{BASE}/", json={"event_type": "league", "event_id": league_id}, headers=_as(users[0]))
    await client.post(f"{BASE}/", json={"event_type": "league", "event_id": league_id}, headers=_as(users[1]))
    params = {"event_type": "league", "event_id": league_id}

    response = await client.get(f"{BASE}/entries", params=params, headers=_as(organizer_id))
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [e["user"]["id"] for e in data["entries"]] == [users[0], users[1]]
    assert [e["position"] for e in data["entries"]] == [1, 2]

    response = await client.get(f"{BASE}/entries", params=params, headers=_as(users[0]))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_status_is_public(client: AsyncClient, users, tournament_id):
    await _join(client, users[0], tournament_id)

    response = await client.get(f"{BASE}/status", params={"event_type": "tournament", "event_id": tournament_id})

    assert response.status_code == 200
    assert response.json() == {
        "is_full": True,
        "current_count": 16,
        "max_count": 16,
        "waitlist_enabled": True,
        "waitlist_count": 1,
        "cached": False,
    }


@pytest.mark.asyncio
async def test_sweep_requires_internal_token(client: AsyncClient):
    response = await client.post(f"{BASE}/sweep")
    assert response.status_code == 403

    response = await client.post(f"{BASE}/sweep", headers={"X-Internal-Token": "wrong"})
    assert response.status_code == 403

    response = await client.post(
        f"{BASE}/sweep",
        headers={"X-Internal-Token": get_settings().INTERNAL_API_TOKEN},
    )
    assert response.status_code == 200
    assert response.json() == {"expired": 0}


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["cache"] == {"status": "disabled"}
