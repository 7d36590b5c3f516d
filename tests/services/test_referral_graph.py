"""Tests for the two-level referral graph."""

import pytest
from sqlalchemy import select

from prereg.models import Referral, User
from prereg.services.referral import ReferralService
from prereg.utils.errors import AlreadyReferredError, SelfReferralError, UserNotFoundError


async def _make_users(session, *nicknames):
    users = [
        User(
            name=nickname.title(),
            email=f"{nickname}@example.com",
            nickname=nickname,
            referral_code=f"{nickname.upper():0<8}"[:8],
        )
        for nickname in nicknames
    ]
    session.add_all(users)
    await session.commit()
    return users


async def _edges(session):
    result = await session.execute(
        select(Referral.referrer_id, Referral.referee_id, Referral.level).order_by(
            Referral.level, Referral.created_at
        )
    )
    return [tuple(row) for row in result.all()]


class TestRecordEdge:

    @pytest.mark.asyncio
    async def test_direct_edge_only_for_root_referrer(self, db_session):
        root, alice = await _make_users(db_session, "root", "alice")
        service = ReferralService(db_session)

        edges = await service.record_edge(root.id, alice.id)
        await db_session.commit()

        assert [(e.referrer_id, e.referee_id, e.level) for e in edges] == [(root.id, alice.id, 1)]
        assert await service.get_referral_count(root.id) == 1

    @pytest.mark.asyncio
    async def test_grandparent_edge(self, db_session):
        root, alice, bob = await _make_users(db_session, "root", "alice", "bob")
        service = ReferralService(db_session)

        await service.record_edge(root.id, alice.id)
        await service.record_edge(alice.id, bob.id)
        await db_session.commit()

        assert await _edges(db_session) == [
            (root.id, alice.id, 1),
            (alice.id, bob.id, 1),
            (root.id, bob.id, 2),
        ]
        # Only direct edges count toward the cache
        assert await service.get_referral_count(root.id) == 1
        assert await service.get_referral_count(alice.id) == 1
        assert await service.get_referral_count(bob.id) == 0

    @pytest.mark.asyncio
    async def test_nothing_beyond_two_levels(self, db_session):
        root, alice, bob, carol = await _make_users(db_session, "root", "alice", "bob", "carol")
        service = ReferralService(db_session)

        await service.record_edge(root.id, alice.id)
        await service.record_edge(alice.id, bob.id)
        await service.record_edge(bob.id, carol.id)
        await db_session.commit()

        carol_edges = [e for e in await _edges(db_session) if e[1] == carol.id]
        assert carol_edges == [(bob.id, carol.id, 1), (alice.id, carol.id, 2)]

    @pytest.mark.asyncio
    async def test_self_referral_rejected(self, db_session):
        (alice,) = await _make_users(db_session, "alice")
        with pytest.raises(SelfReferralError):
            await ReferralService(db_session).record_edge(alice.id, alice.id)
        assert await _edges(db_session) == []

    @pytest.mark.asyncio
    async def test_second_referrer_rejected(self, db_session):
        root, alice, bob = await _make_users(db_session, "root", "alice", "bob")
        service = ReferralService(db_session)
        await service.record_edge(root.id, bob.id)
        await db_session.commit()

        with pytest.raises(AlreadyReferredError):
            await service.record_edge(alice.id, bob.id)
        assert await service.get_referral_count(alice.id) == 0

    @pytest.mark.asyncio
    async def test_unknown_referrer(self, db_session):
        (alice,) = await _make_users(db_session, "alice")
        with pytest.raises(UserNotFoundError):
            await ReferralService(db_session).record_edge("missing-user", alice.id)

    @pytest.mark.asyncio
    async def test_recount_rebuilds_cache(self, db_session):
        root, alice, bob = await _make_users(db_session, "root", "alice", "bob")
        service = ReferralService(db_session)
        await service.record_edge(root.id, alice.id)
        await service.record_edge(root.id, bob.id)
        await db_session.commit()

        root_row = await db_session.get(User, root.id)
        root_row.referral_count_cache = 99
        await db_session.commit()

        assert await service.recount_referrals(root.id) == 2
        assert await service.get_referral_count(root.id) == 2


class TestGetNetwork:

    @pytest.mark.asyncio
    async def test_two_level_tree(self, db_session):
        root, alice, bob, carol = await _make_users(db_session, "root", "alice", "bob", "carol")
        service = ReferralService(db_session)
        await service.record_edge(root.id, alice.id)
        await service.record_edge(root.id, carol.id)
        await service.record_edge(alice.id, bob.id)
        await db_session.commit()

        network = await service.get_network(root.id)

        assert [node.user_id for node in network.nodes] == [alice.id, carol.id]
        alice_node = network.nodes[0]
        assert alice_node.level == 1
        assert alice_node.nickname == "alice"
        assert [child.user_id for child in alice_node.children] == [bob.id]
        assert alice_node.children[0].level == 2
        assert network.nodes[1].children == []

        assert network.stats.direct_invites == 2
        assert network.stats.indirect_invites == 1
        assert network.stats.total_size == 4

    @pytest.mark.asyncio
    async def test_lonely_user(self, db_session):
        (alice,) = await _make_users(db_session, "alice")
        network = await ReferralService(db_session).get_network(alice.id)
        assert network.nodes == []
        assert network.root_exists is True
        assert network.stats.total_size == 1

    @pytest.mark.asyncio
    async def test_unknown_root(self, db_session):
        network = await ReferralService(db_session).get_network("nobody")

        assert network.root_user_id == "nobody"
        assert network.root_exists is False
        assert network.nodes == []
        assert network.stats.direct_invites == 0
