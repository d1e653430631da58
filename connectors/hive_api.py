"""Hive account lookup for the treasury's HBD holdings.

Balances come back either as legacy asset strings (``"12.345 HBD"``) or as
NAI objects (``{"amount": "12345", "precision": 3, "nai": "@@000000013"}``);
both are accepted.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

from connectors.transport import RetryingTransport
from core.config_models import HIVE_API_URL
from core.errors import ParseError

LOGGER = logging.getLogger(__name__)


def parse_hbd_amount(raw: Any) -> Decimal:
    if raw is None or raw == "":
        return Decimal(0)
    try:
        if isinstance(raw, str):
            return Decimal(raw.split(" ")[0])
        if isinstance(raw, dict):
            amount = Decimal(str(raw["amount"]))
            precision = raw.get("precision")
            if precision is not None and "nai" in raw:
                return amount.scaleb(-int(precision))
            return amount
        if isinstance(raw, (int, float)):
            return Decimal(str(raw))
    except (KeyError, ValueError, InvalidOperation) as exc:
        raise ParseError(f"unreadable HBD amount {raw!r}") from exc
    raise ParseError(f"unreadable HBD amount {raw!r}")


async def get_hbd_balance(transport: RetryingTransport, account: str, url: str = HIVE_API_URL) -> Decimal:
    """Liquid plus savings HBD for ``account``; zero when the account is unknown."""

    payload = {
        "jsonrpc": "2.0",
        "method": "condenser_api.get_accounts",
        "params": [[account]],
        "id": 1,
    }
    response = await transport.send(url, payload)
    try:
        body = response.json()
    except ValueError as exc:
        raise ParseError(f"invalid JSON from {url}: {exc}") from exc
    if not isinstance(body, dict):
        raise ParseError(f"expected JSON-RPC object, got {type(body).__name__}")
    if body.get("error"):
        raise ParseError(f"rpc error: {body['error']}")

    accounts = body.get("result") or []
    if not isinstance(accounts, list):
        raise ParseError(f"expected account list, got {type(accounts).__name__}")
    if not accounts:
        LOGGER.warning("Hive account %s not found, treating HBD balance as zero", account)
        return Decimal(0)

    acct = accounts[0]
    if not isinstance(acct, dict):
        raise ParseError(f"expected account object, got {type(acct).__name__}")
    liquid = parse_hbd_amount(acct.get("hbd_balance"))
    savings = parse_hbd_amount(acct.get("savings_hbd_balance"))
    return liquid + savings


__all__ = ["get_hbd_balance", "parse_hbd_amount"]
