"""Stake distribution across association members."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence, Tuple

from connectors.hive_engine import HiveEngineClient
from core.models import BalanceRecord, Validator


@dataclass(frozen=True, slots=True)
class StakeShare:
    account: str
    stake: Decimal
    percentage: Decimal


@dataclass(frozen=True, slots=True)
class StakeDistribution:
    shares: Tuple[StakeShare, ...]
    total_stake: Decimal


def compute_distribution(records: Sequence[BalanceRecord]) -> StakeDistribution:
    """Per-member share of the total stake, in member order (0% when nothing is staked)."""

    stakes = [(record.account, Decimal(record.stake)) for record in records]
    total = sum((stake for _, stake in stakes), Decimal(0))
    shares = tuple(
        StakeShare(
            account=account,
            stake=stake,
            percentage=(stake / total * 100) if total > 0 else Decimal(0),
        )
        for account, stake in stakes
    )
    return StakeDistribution(shares=shares, total_stake=total)


async def fetch_stake_distribution(
    client: HiveEngineClient,
    members: Sequence[str],
    validate: Optional[Validator] = None,
) -> StakeDistribution:
    records = await client.fetch_batch_balances(members, validate=validate)
    return compute_distribution(records)


__all__ = ["StakeDistribution", "StakeShare", "compute_distribution", "fetch_stake_distribution"]
