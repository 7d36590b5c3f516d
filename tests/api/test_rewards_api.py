"""API tests for referral lookups, reward tiers and claims."""

import pytest


async def register(client, nickname, **overrides):
    body = {
        "name": nickname.title(),
        "email": f"{nickname}@example.com",
        "nickname": nickname,
    }
    body.update(overrides)
    response = await client.post("/api/v1/registrations", json=body)
    assert response.status_code == 201, response.text
    return response.json()


class TestReferralAPI:

    @pytest.mark.asyncio
    async def test_lookup_by_code(self, client, reward_tiers):
        alice = await register(client, "alice")

        response = await client.get(f"/api/v1/referrals/code/{alice['referralCode'].lower()}")
        assert response.status_code == 200
        assert response.json() == {"nickname": "alice", "referralCode": alice["referralCode"]}

    @pytest.mark.asyncio
    async def test_lookup_unknown_code(self, client):
        response = await client.get("/api/v1/referrals/code/ZZZZ9999")
        assert response.status_code == 404
        data = response.json()
        assert data["error"]["code"] == "REFERRAL_CODE_NOT_FOUND"
        assert data["traceId"]

    @pytest.mark.asyncio
    async def test_network_unknown_user(self, client):
        missing = await client.get("/api/v1/referrals/nobody/network")
        assert missing.status_code == 404

        empty = await client.get("/api/v1/referrals/nobody/network", params={"missingOk": "true"})
        assert empty.status_code == 200
        assert empty.json()["nodes"] == []
        assert empty.json()["rootExists"] is False


class TestRewardsAPI:

    @pytest.mark.asyncio
    async def test_tiers_localized(self, client, reward_tiers):
        response = await client.get("/api/v1/rewards/tiers", params={"lang": "en"})
        assert response.status_code == 200
        tiers = response.json()["tiers"]
        assert [tier["tierName"] for tier in tiers] == [
            "bronze", "silver", "gold", "platinum", "legendary",
        ]
        assert tiers[0]["title"] == "Bronze Follower"
        assert tiers[0]["minReferrals"] == 1
        assert tiers[-1]["maxReferrals"] is None

    @pytest.mark.asyncio
    async def test_tiers_accept_language_header(self, client, reward_tiers):
        response = await client.get(
            "/api/v1/rewards/tiers", headers={"Accept-Language": "ja-JP,ja;q=0.9"}
        )
        assert response.json()["tiers"][0]["title"] == "ブロンズの従者"

    @pytest.mark.asyncio
    async def test_reward_info_and_claim(self, client, reward_tiers):
        alice = await register(client, "alice")
        alice_id = alice["user"]["id"]

        before = (await client.get(f"/api/v1/rewards/{alice_id}")).json()
        assert before["currentTier"] is None
        assert before["nextTier"]["tierName"] == "bronze"
        assert before["referralsToNext"] == 1

        await register(client, "bob", referredByCode=alice["referralCode"])

        info = (await client.get(f"/api/v1/rewards/{alice_id}")).json()
        assert info["referralCount"] == 1
        assert info["currentTier"]["tierName"] == "bronze"
        assert info["referralsToNext"] == 2
        assert {item["name"] for item in info["unlockedRewards"]} == {"Gold", "Diamond"}
        assert [claim["isClaimed"] for claim in info["claims"]] == [False]

        bronze_id = info["currentTier"]["id"]
        claim = await client.post(f"/api/v1/rewards/{alice_id}/claim", json={"tierId": bronze_id})
        assert claim.status_code == 200
        assert claim.json()["alreadyClaimed"] is False
        assert claim.json()["isClaimed"] is True

        again = await client.post(f"/api/v1/rewards/{alice_id}/claim", json={"tierId": bronze_id})
        assert again.status_code == 200
        assert again.json()["alreadyClaimed"] is True

    @pytest.mark.asyncio
    async def test_claim_locked_tier(self, client, reward_tiers):
        alice = await register(client, "alice")
        tiers = (await client.get("/api/v1/rewards/tiers")).json()["tiers"]

        response = await client.post(
            f"/api/v1/rewards/{alice['user']['id']}/claim",
            json={"tierId": tiers[0]["id"]},
        )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "REWARD_NOT_UNLOCKED"

    @pytest.mark.asyncio
    async def test_reward_info_unknown_user(self, client, reward_tiers):
        response = await client.get("/api/v1/rewards/nobody")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "USER_NOT_FOUND"
