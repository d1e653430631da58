"""ECB reference rate lookup (USD per EUR)."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from connectors.transport import RetryingTransport
from core.config_models import ECB_USD_PER_EUR_URL
from core.errors import ParseError

LOGGER = logging.getLogger(__name__)

ECB_SERIES_KEY = "0:0:0:0:0"


async def get_usd_per_eur(transport: RetryingTransport, url: str = ECB_USD_PER_EUR_URL) -> Decimal:
    """Return the latest daily USD/EUR reference rate published by the ECB."""

    response = await transport.get(url, params={"lastNObservations": 1, "format": "jsondata"})
    try:
        data = response.json()
        value = data["dataSets"][0]["series"][ECB_SERIES_KEY]["observations"]["0"][0]
        rate = Decimal(str(value))
    except (ValueError, KeyError, IndexError, TypeError, InvalidOperation) as exc:
        raise ParseError(f"unexpected ECB payload: {exc}") from exc
    if rate <= 0:
        raise ParseError(f"non-positive ECB rate: {rate}")
    LOGGER.debug("ECB USD per EUR: %s", rate)
    return rate


__all__ = ["get_usd_per_eur"]
