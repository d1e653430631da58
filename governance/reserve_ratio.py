"""Reserve ratio health metric.

The association's HBD treasury, converted to EUR and then to OCLT, is compared
with the OCLT held by the public (circulating supply minus the ITO account's
liquid and staked balance).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from connectors.ecb_api import get_usd_per_eur
from connectors.hive_api import get_hbd_balance
from connectors.hive_engine import HiveEngineClient
from connectors.transport import RetryingTransport
from core.config_models import AppConfig, GovernanceConfig
from core.models import BalanceRecord, TokenInfoRecord

LOGGER = logging.getLogger(__name__)


class ReserveStatus(str, Enum):
    HEALTHY = "healthy"
    CAUTION = "caution"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True, slots=True)
class ReserveReport:
    reserves_oclt: Decimal
    public_circulation: Decimal
    ratio_pct: Decimal
    status: ReserveStatus


def classify(ratio_pct: Decimal, governance: GovernanceConfig) -> ReserveStatus:
    if ratio_pct < Decimal(str(governance.hard_limit)):
        return ReserveStatus.CRITICAL
    if ratio_pct < Decimal(str(governance.medium_limit)):
        return ReserveStatus.WARNING
    if ratio_pct < Decimal(str(governance.soft_limit)):
        return ReserveStatus.CAUTION
    return ReserveStatus.HEALTHY


def compute_reserve_ratio(
    hbd: Decimal,
    usd_per_eur: Decimal,
    token_info: TokenInfoRecord,
    ito_balance: BalanceRecord,
    governance: GovernanceConfig,
) -> ReserveReport:
    """Compute the ratio; a non-positive public circulation yields a 0% ratio."""

    if usd_per_eur <= 0:
        raise ValueError("usd_per_eur must be positive")
    reserves_eur = hbd / usd_per_eur
    reserves_oclt = reserves_eur * Decimal(str(governance.oclt_per_eur))
    ito_total = Decimal(ito_balance.balance) + Decimal(ito_balance.stake)
    public_circulation = Decimal(token_info.circulating_supply) - ito_total

    if public_circulation > 0:
        ratio = reserves_oclt / public_circulation * 100
    else:
        LOGGER.warning("Public circulation is %s, cannot compute ratio", public_circulation)
        ratio = Decimal(0)

    return ReserveReport(
        reserves_oclt=reserves_oclt,
        public_circulation=public_circulation,
        ratio_pct=ratio,
        status=classify(ratio, governance),
    )


async def fetch_reserve_report(
    client: HiveEngineClient,
    transport: RetryingTransport,
    config: AppConfig,
) -> ReserveReport:
    """Fetch the four inputs concurrently and compute the report."""

    governance = config.governance
    results = await asyncio.gather(
        get_hbd_balance(transport, governance.treasury_account, url=config.hive_api_url),
        get_usd_per_eur(transport, url=config.ecb_url),
        client.fetch_token_info(),
        client.fetch_single_balance(governance.ito_account),
        return_exceptions=True,
    )
    # All four lookups have settled before any failure is raised.
    for result in results:
        if isinstance(result, BaseException):
            raise result
    hbd, usd_per_eur, token_info, ito_balance = results
    LOGGER.info(
        "Reserve inputs: hbd=%s usd_per_eur=%s circulating=%s ito=%s+%s",
        hbd,
        usd_per_eur,
        token_info.circulating_supply,
        ito_balance.balance,
        ito_balance.stake,
    )
    return compute_reserve_ratio(hbd, usd_per_eur, token_info, ito_balance, governance)


__all__ = [
    "ReserveReport",
    "ReserveStatus",
    "classify",
    "compute_reserve_ratio",
    "fetch_reserve_report",
]
