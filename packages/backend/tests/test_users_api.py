"""User API tests — CRUD, soft delete, cache calls, and published events."""

import pytest

from userpulse.events import PublishError, PublishErrorKind, UserCreated, UserCreationFailed


async def _create(client, name="Al", email="al@example.com"):
    r = await client.post("/api/v1/users", json={"name": name, "email": email})
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_create_user_publishes_user_created(client, publisher, mock_cache):
    user = await _create(client)

    assert user["name"] == "Al"
    assert user["email"] == "al@example.com"
    assert user["deleted"] is False
    publisher.publish.assert_awaited_once_with(UserCreated(name="Al", email="al@example.com"))
    mock_cache.put.assert_awaited_once()
    assert mock_cache.put.await_args.args[0] == "al@example.com"


@pytest.mark.asyncio
async def test_duplicate_email_publishes_failure(client, publisher):
    await _create(client)
    publisher.publish.reset_mock()

    r = await client.post("/api/v1/users", json={"name": "Other", "email": "al@example.com"})

    assert r.status_code == 409
    assert r.json()["detail"] == "Email already registered"
    publisher.publish.assert_awaited_once_with(
        UserCreationFailed(attempted_email="al@example.com", reason="Email already registered")
    )


@pytest.mark.asyncio
async def test_publish_failure_does_not_fail_the_write(client, publisher):
    publisher.publish.side_effect = PublishError(
        PublishErrorKind.BROKER_UNAVAILABLE, "connection refused"
    )

    await _create(client)

    r = await client.get("/api/v1/users")
    assert [u["email"] for u in r.json()] == ["al@example.com"]


@pytest.mark.asyncio
async def test_invalid_email_is_rejected(client, publisher):
    r = await client.post("/api/v1/users", json={"name": "Al", "email": "not-an-email"})
    assert r.status_code == 422
    publisher.publish.assert_not_called()


@pytest.mark.asyncio
async def test_soft_delete_hides_user(client, mock_cache):
    al = await _create(client)
    bo = await _create(client, name="Bo", email="bo@example.com")

    r = await client.delete(f"/api/v1/users/{al['id']}")
    assert r.status_code == 200
    assert r.json()["deleted"] is True
    mock_cache.evict.assert_awaited_once_with("al@example.com")

    live = (await client.get("/api/v1/users")).json()
    deleted = (await client.get("/api/v1/users/deleted")).json()
    assert [u["id"] for u in live] == [bo["id"]]
    assert [u["id"] for u in deleted] == [al["id"]]


@pytest.mark.asyncio
async def test_deleted_email_stays_reserved(client):
    al = await _create(client)
    await client.delete(f"/api/v1/users/{al['id']}")

    r = await client.post("/api/v1/users", json={"name": "Al2", "email": "al@example.com"})
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_get_by_email_goes_through_cache(client, mock_cache):
    al = await _create(client)

    r = await client.get("/api/v1/users/by-email", params={"email": "al@example.com"})

    assert r.status_code == 200
    assert r.json()["id"] == al["id"]
    mock_cache.get_or_compute.assert_awaited_once()
    assert mock_cache.get_or_compute.await_args.args[0] == "al@example.com"


@pytest.mark.asyncio
async def test_get_by_email_served_from_cache(client, mock_cache):
    cached = {
        "id": 42,
        "name": "Cached",
        "email": "cached@example.com",
        "deleted": False,
        "created_at": "2026-01-01T00:00:00Z",
        "updated_at": "2026-01-01T00:00:00Z",
    }
    mock_cache.get_or_compute.side_effect = None
    mock_cache.get_or_compute.return_value = cached

    r = await client.get("/api/v1/users/by-email", params={"email": "cached@example.com"})

    assert r.status_code == 200
    assert r.json()["name"] == "Cached"


@pytest.mark.asyncio
async def test_get_by_email_missing_or_deleted_is_404(client):
    r = await client.get("/api/v1/users/by-email", params={"email": "ghost@example.com"})
    assert r.status_code == 404

    al = await _create(client)
    await client.delete(f"/api/v1/users/{al['id']}")
    r = await client.get("/api/v1/users/by-email", params={"email": "al@example.com"})
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_update_user_evicts_old_and_new_email(client, mock_cache):
    al = await _create(client)

    r = await client.patch(
        f"/api/v1/users/{al['id']}",
        json={"name": "Alan", "email": "alan@example.com"},
    )

    assert r.status_code == 200
    assert r.json()["name"] == "Alan"
    assert r.json()["email"] == "alan@example.com"
    evicted = set(mock_cache.evict.await_args.args)
    assert evicted == {"al@example.com", "alan@example.com"}


@pytest.mark.asyncio
async def test_update_name_only_keeps_email(client):
    al = await _create(client)

    r = await client.patch(f"/api/v1/users/{al['id']}", json={"name": "Alan"})

    assert r.status_code == 200
    assert r.json()["email"] == "al@example.com"


@pytest.mark.asyncio
async def test_update_to_taken_email_is_409(client):
    al = await _create(client)
    await _create(client, name="Bo", email="bo@example.com")

    r = await client.patch(f"/api/v1/users/{al['id']}", json={"email": "bo@example.com"})
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_unknown_user_is_404(client):
    assert (await client.patch("/api/v1/users/999", json={"name": "X"})).status_code == 404
    assert (await client.delete("/api/v1/users/999")).status_code == 404
