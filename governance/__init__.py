"""Convenience imports for the governance metrics."""

from .reserve_ratio import ReserveReport, ReserveStatus, compute_reserve_ratio, fetch_reserve_report
from .stake_distribution import StakeDistribution, StakeShare, compute_distribution, fetch_stake_distribution
from .voting import VoteResult, compute_vote_result, fetch_vote_result

__all__ = [
    "ReserveReport",
    "ReserveStatus",
    "StakeDistribution",
    "StakeShare",
    "VoteResult",
    "compute_distribution",
    "compute_reserve_ratio",
    "compute_vote_result",
    "fetch_reserve_report",
    "fetch_stake_distribution",
    "fetch_vote_result",
]
