"""Referral graph store.

Edges are append-only and modeled at exactly two levels. When B joins with
A's code, B gets a level-1 edge from A, and a level-2 edge from A's own
direct referrer if A has one. Nothing is tracked beyond the second hop.

``record_edge`` only flushes: the caller owns the transaction, so the edges
and the ``referral_count_cache`` increment commit or roll back together.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from prereg.middleware.prometheus import record_referral_edge
from prereg.models.referral import Referral, ReferralLevel
from prereg.models.user import User
from prereg.utils.errors import (
    AlreadyReferredError,
    SelfReferralError,
    UserNotFoundError,
)

logger = logging.getLogger(__name__)


@dataclass
class NetworkNode:
    """One invitee in a user's network."""

    level: int
    user_id: str
    nickname: str
    referral_code: str
    created_at: datetime
    children: list["NetworkNode"] = field(default_factory=list)


@dataclass
class NetworkStats:
    direct_invites: int = 0
    indirect_invites: int = 0
    total_size: int = 1


@dataclass
class ReferralNetwork:
    """A root user's two-level network.

    ``nodes`` holds the direct invitees in invite order, each carrying its
    own direct invitees as ``children``.
    ``root_exists`` is False when the root user is unknown; the network is
    then empty, same as for a user who has not invited anyone yet.
    """

    root_user_id: str
    root_exists: bool = True
    nodes: list[NetworkNode] = field(default_factory=list)
    stats: NetworkStats = field(default_factory=NetworkStats)

    @classmethod
    def empty(cls, root_user_id: str) -> "ReferralNetwork":
        return cls(root_user_id=root_user_id, root_exists=False)


class ReferralService:
    """추천 관계 그래프 서비스"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_direct_referrer_id(self, user_id: str) -> str | None:
        """Referrer on the user's level-1 edge, if any."""
        result = await self.db.execute(
            select(Referral.referrer_id).where(
                Referral.referee_id == user_id,
                Referral.level == ReferralLevel.DIRECT.value,
            )
        )
        return result.scalar_one_or_none()

    async def record_edge(self, referrer_id: str, referee_id: str) -> list[Referral]:
        """Record a referral and its derived grandparent edge.

        Creates the level-1 edge, the level-2 edge from the referrer's own
        referrer (if any) and increments the referrer's
        ``referral_count_cache``. Flushes but does not commit.

        Args:
            referrer_id: User whose code was used
            referee_id: Newly registered user

        Returns:
            The created edges, level 1 first

        Raises:
            SelfReferralError: referrer and referee are the same user
            AlreadyReferredError: referee already has a direct referrer
            UserNotFoundError: referrer does not exist
        """
        if referrer_id == referee_id:
            raise SelfReferralError(referee_id)

        if await self.get_direct_referrer_id(referee_id) is not None:
            raise AlreadyReferredError(referee_id)

        exists = await self.db.execute(select(User.id).where(User.id == referrer_id))
        if exists.scalar_one_or_none() is None:
            raise UserNotFoundError(referrer_id)

        edges = [
            Referral(
                referrer_id=referrer_id,
                referee_id=referee_id,
                level=ReferralLevel.DIRECT.value,
            )
        ]

        grandparent_id = await self.get_direct_referrer_id(referrer_id)
        if grandparent_id is not None and grandparent_id != referee_id:
            edges.append(
                Referral(
                    referrer_id=grandparent_id,
                    referee_id=referee_id,
                    level=ReferralLevel.INDIRECT.value,
                )
            )
        elif grandparent_id == referee_id:
            # Referee is its referrer's referrer; a level-2 edge would be a loop
            logger.warning(
                "Skipping level-2 edge for %s: would point at itself via %s",
                referee_id, referrer_id,
            )

        self.db.add_all(edges)

        await self.db.execute(
            update(User)
            .where(User.id == referrer_id)
            .values(referral_count_cache=User.referral_count_cache + 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()

        for edge in edges:
            record_referral_edge(edge.level)
        logger.info(
            "Referral edge recorded: %s -> %s (grandparent=%s)",
            referrer_id, referee_id, grandparent_id,
        )
        return edges

    async def get_referral_count(self, user_id: str) -> int:
        """Current ``referral_count_cache`` read straight from the row."""
        result = await self.db.execute(
            select(User.referral_count_cache).where(User.id == user_id)
        )
        count = result.scalar_one_or_none()
        if count is None:
            raise UserNotFoundError(user_id)
        return count

    async def recount_referrals(self, user_id: str) -> int:
        """Rebuild ``referral_count_cache`` from the level-1 edges.

        Returns:
            The recomputed count
        """
        result = await self.db.execute(
            select(func.count(Referral.id)).where(
                Referral.referrer_id == user_id,
                Referral.level == ReferralLevel.DIRECT.value,
            )
        )
        count = result.scalar_one()
        updated = await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(referral_count_cache=count)
            .execution_options(synchronize_session=False)
        )
        if updated.rowcount == 0:
            raise UserNotFoundError(user_id)
        await self.db.flush()
        return count

    async def get_network(self, root_user_id: str) -> ReferralNetwork:
        """Two-level network rooted at ``root_user_id``.

        Children are ordered oldest invite first. An unknown root yields an
        empty network with ``root_exists=False``.
        """
        exists = await self.db.execute(select(User.id).where(User.id == root_user_id))
        if exists.scalar_one_or_none() is None:
            return ReferralNetwork.empty(root_user_id)

        direct_result = await self.db.execute(
            select(
                Referral.referee_id,
                Referral.created_at,
                User.nickname,
                User.referral_code,
            )
            .join(User, User.id == Referral.referee_id)
            .where(
                Referral.referrer_id == root_user_id,
                Referral.level == ReferralLevel.DIRECT.value,
            )
            .order_by(Referral.created_at, Referral.id)
        )
        nodes: list[NetworkNode] = []
        by_user: dict[str, NetworkNode] = {}
        for row in direct_result:
            node = NetworkNode(
                level=ReferralLevel.DIRECT.value,
                user_id=row.referee_id,
                nickname=row.nickname,
                referral_code=row.referral_code,
                created_at=row.created_at,
            )
            nodes.append(node)
            by_user[node.user_id] = node

        # The parent of a level-2 referee is the referrer on its level-1 edge
        parent_edge = aliased(Referral)
        indirect_result = await self.db.execute(
            select(
                Referral.referee_id,
                Referral.created_at,
                User.nickname,
                User.referral_code,
                parent_edge.referrer_id.label("parent_id"),
            )
            .join(User, User.id == Referral.referee_id)
            .join(
                parent_edge,
                (parent_edge.referee_id == Referral.referee_id)
                & (parent_edge.level == ReferralLevel.DIRECT.value),
            )
            .where(
                Referral.referrer_id == root_user_id,
                Referral.level == ReferralLevel.INDIRECT.value,
            )
            .order_by(Referral.created_at, Referral.id)
        )
        indirect_count = 0
        for row in indirect_result:
            parent = by_user.get(row.parent_id)
            if parent is None:
                logger.warning(
                    "Orphan level-2 edge under %s: %s has parent %s outside the network",
                    root_user_id, row.referee_id, row.parent_id,
                )
                continue
            parent.children.append(
                NetworkNode(
                    level=ReferralLevel.INDIRECT.value,
                    user_id=row.referee_id,
                    nickname=row.nickname,
                    referral_code=row.referral_code,
                    created_at=row.created_at,
                )
            )
            indirect_count += 1

        direct_count = len(nodes)
        return ReferralNetwork(
            root_user_id=root_user_id,
            nodes=nodes,
            stats=NetworkStats(
                direct_invites=direct_count,
                indirect_invites=indirect_count,
                total_size=1 + direct_count + indirect_count,
            ),
        )
