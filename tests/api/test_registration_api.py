"""API tests for registration, availability and stats."""

import pytest


async def register(client, nickname, **overrides):
    body = {
        "name": nickname.title(),
        "email": f"{nickname}@example.com",
        "nickname": nickname,
    }
    body.update(overrides)
    return await client.post("/api/v1/registrations", json=body)


class TestRegistrationAPI:

    @pytest.mark.asyncio
    async def test_register_success(self, client, reward_tiers):
        response = await register(client, "alice", phone="010-1234-5678")

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["user"]["email"] == "alice@example.com"
        assert len(data["referralCode"]) == 8
        assert data["user"]["referralCode"] == data["referralCode"]
        assert data["error"] is None
        assert "X-Request-ID" in response.headers

    @pytest.mark.asyncio
    async def test_register_with_referral(self, client, reward_tiers):
        alice = (await register(client, "alice")).json()

        response = await register(client, "bob", referredByCode=alice["referralCode"].lower())
        assert response.status_code == 201

        network = await client.get(f"/api/v1/referrals/{alice['user']['id']}/network")
        assert network.status_code == 200
        nodes = network.json()["nodes"]
        assert [node["nickname"] for node in nodes] == ["bob"]
        assert network.json()["stats"] == {
            "directInvites": 1,
            "indirectInvites": 0,
            "totalSize": 2,
        }

    @pytest.mark.asyncio
    async def test_duplicate_email_conflict(self, client, reward_tiers):
        await register(client, "alice")
        response = await register(
            client, "alice2", email="ALICE@example.com", language="en"
        )

        assert response.status_code == 409
        data = response.json()
        assert data["success"] is False
        assert data["error"]["code"] == "EMAIL_ALREADY_EXISTS"
        assert data["error"]["message"] == "This email is already registered."

    @pytest.mark.asyncio
    async def test_validation_failure(self, client):
        response = await register(client, "x", email="nope")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert set(error["fields"]) == {"email", "nickname"}

    @pytest.mark.asyncio
    async def test_unknown_referral_code(self, client, reward_tiers):
        response = await register(client, "alice", referredByCode="ZZZZ9999")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "REFERRAL_CODE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_missing_body_field(self, client):
        response = await client.post("/api/v1/registrations", json={"name": "Alice"})
        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "VALIDATION_ERROR"
        assert "email" in data["error"]["details"]["fields"]
        assert data["traceId"]


class TestAvailabilityAPI:

    @pytest.mark.asyncio
    async def test_availability(self, client, reward_tiers):
        await register(client, "alice")

        response = await client.get(
            "/api/v1/registrations/availability",
            params={"email": "Alice@example.com", "nickname": "bob"},
        )
        assert response.status_code == 200
        assert response.json() == {"emailAvailable": False, "nicknameAvailable": True}

    @pytest.mark.asyncio
    async def test_single_field(self, client):
        response = await client.get(
            "/api/v1/registrations/availability", params={"nickname": "bob"}
        )
        assert response.json() == {"emailAvailable": None, "nicknameAvailable": True}

    @pytest.mark.asyncio
    async def test_nothing_to_check(self, client):
        response = await client.get("/api/v1/registrations/availability")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestStatsAPI:

    @pytest.mark.asyncio
    async def test_stats_follow_registrations(self, client, reward_tiers):
        empty = await client.get("/api/v1/stats")
        assert empty.json()["totalRegistrations"] == 0

        await register(client, "alice")
        await register(client, "bob")

        data = (await client.get("/api/v1/stats")).json()
        assert data["totalRegistrations"] == 2
        assert data["registrationsToday"] == 2
        assert data["lastUpdated"] is not None
