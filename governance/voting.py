"""Stake-weighted approval vote.

Every member counts ``1 + k * stake / total_stake``, so one account one vote
remains the floor and ``k`` controls how much the stake tilts the result. The
maximum achievable weight is the sum over all members, i.e. ``len(members) + k``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from connectors.hive_engine import HiveEngineClient
from core.models import BalanceRecord, Validator

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class VoteResult:
    total_staked: Decimal
    total_possible_weighted: Decimal
    weighted_in_favor: Decimal
    approval_pct: Decimal


def member_weight(stake: Decimal, total_staked: Decimal, k: Decimal) -> Decimal:
    return 1 + k * (stake / total_staked)


def compute_vote_result(
    records: Sequence[BalanceRecord],
    selected: Iterable[str],
    k: float,
) -> Optional[VoteResult]:
    """Weighted approval of ``selected`` among the members in ``records``.

    Returns ``None`` when nobody voted in favour or nothing is staked. Names
    that are not members are ignored; a name selected twice counts once.
    """

    in_favor = list(dict.fromkeys(selected))
    if not in_favor:
        return None
    stakes = {record.account: Decimal(record.stake) for record in records}
    total = sum(stakes.values(), Decimal(0))
    if total <= 0:
        LOGGER.warning("Total staked is %s, no weighted result", total)
        return None

    factor = Decimal(str(k))
    possible = sum((member_weight(stake, total, factor) for stake in stakes.values()), Decimal(0))
    favor = Decimal(0)
    for account in in_favor:
        if account not in stakes:
            LOGGER.warning("Ignoring vote from non-member %s", account)
            continue
        favor += member_weight(stakes[account], total, factor)

    return VoteResult(
        total_staked=total,
        total_possible_weighted=possible,
        weighted_in_favor=favor,
        approval_pct=favor / possible * 100,
    )


async def fetch_vote_result(
    client: HiveEngineClient,
    members: Sequence[str],
    selected: Iterable[str],
    k: float,
    validate: Optional[Validator] = None,
) -> Optional[VoteResult]:
    records = await client.fetch_batch_balances(members, validate=validate)
    return compute_vote_result(records, selected, k)


__all__ = ["VoteResult", "compute_vote_result", "fetch_vote_result", "member_weight"]
