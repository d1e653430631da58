"""Per-endpoint request building and response parsing for Hive Engine mirrors.

Two dialects are supported:

``standard``
    One JSON-RPC ``find`` call per logical query. Batch lookups use the
    ``$in`` operator on the ``balances`` table and ``result`` may be a single
    object or an array.

``engine_compat``
    No ``$in`` operator and balances live in the ``stakes`` table. Batch
    lookups are sent as arrays of individual JSON-RPC calls, one array per
    chunk, each call keyed by a local id that is used to match responses back
    to accounts. A ``result`` of ``null`` means the account holds nothing.

Raw rows returned by :func:`parse_response` are plain dicts; callers turn
them into records with :func:`normalize` and never look at them otherwise.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Sequence

from core.errors import EmptyResultError, ParseError
from core.models import (
    BalanceRecord,
    BatchBalances,
    Dialect,
    Endpoint,
    FetchPolicy,
    LogicalQuery,
    Record,
    SingleBalance,
    TokenInfo,
    TokenInfoRecord,
    chunked,
)

LOGGER = logging.getLogger(__name__)

CONTRACT = "tokens"
TOKEN_TABLE = "tokens"
BALANCE_TABLES: Dict[Dialect, str] = {
    Dialect.STANDARD: "balances",
    Dialect.ENGINE_COMPAT: "stakes",
}

RawRow = Dict[str, Any]
Payload = Any


def _rpc_call(table: str, query: Dict[str, Any], limit: int, request_id: int = 1) -> Dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "method": "find",
        "params": {
            "contract": CONTRACT,
            "table": table,
            "query": query,
            "limit": limit,
        },
        "id": request_id,
    }


def _build_single_call(endpoint: Endpoint, query: LogicalQuery, policy: FetchPolicy) -> Dict[str, Any]:
    if isinstance(query, TokenInfo):
        return _rpc_call(TOKEN_TABLE, {"symbol": query.symbol}, 1)
    table = BALANCE_TABLES[endpoint.dialect]
    if isinstance(query, SingleBalance):
        return _rpc_call(table, {"account": query.account, "symbol": query.symbol}, 1)
    if isinstance(query, BatchBalances):
        return _rpc_call(
            table,
            {"symbol": query.symbol, "account": {"$in": list(query.accounts)}},
            policy.batch_limit,
        )
    raise TypeError(f"unsupported query: {query!r}")


def _build_standard(endpoint: Endpoint, query: LogicalQuery, policy: FetchPolicy) -> List[Payload]:
    return [_build_single_call(endpoint, query, policy)]


def _build_engine_compat(endpoint: Endpoint, query: LogicalQuery, policy: FetchPolicy) -> List[Payload]:
    if not isinstance(query, BatchBalances):
        return [_build_single_call(endpoint, query, policy)]
    table = BALANCE_TABLES[endpoint.dialect]
    payloads: List[Payload] = []
    for chunk in chunked(query.accounts, policy.chunk_size):
        payloads.append(
            [
                {
                    "jsonrpc": "2.0",
                    "id": index,
                    "method": "find",
                    "params": {
                        "contract": CONTRACT,
                        "table": table,
                        "query": {"symbol": query.symbol, "account": account},
                    },
                }
                for index, account in enumerate(chunk)
            ]
        )
    return payloads


_BUILDERS: Dict[Dialect, Callable[[Endpoint, LogicalQuery, FetchPolicy], List[Payload]]] = {
    Dialect.STANDARD: _build_standard,
    Dialect.ENGINE_COMPAT: _build_engine_compat,
}


def build_request(endpoint: Endpoint, query: LogicalQuery, policy: FetchPolicy) -> List[Payload]:
    """Return the wire payloads for ``query``; one transport call per payload."""

    return _BUILDERS[endpoint.dialect](endpoint, query, policy)


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error)


def _as_rows(result: Any) -> List[RawRow]:
    if result is None:
        return []
    rows = result if isinstance(result, list) else [result]
    for row in rows:
        if not isinstance(row, dict):
            raise ParseError(f"expected object rows, got {type(row).__name__}")
    return rows


def _parse_standard(query: LogicalQuery, request: Payload, body: Any) -> List[RawRow]:
    if not isinstance(body, dict):
        raise ParseError(f"expected JSON-RPC object, got {type(body).__name__}")
    if body.get("error"):
        raise ParseError(f"rpc error: {_error_message(body['error'])}")
    rows = _as_rows(body.get("result"))
    if not rows and not isinstance(query, BatchBalances):
        raise EmptyResultError("empty result array")
    return rows


def _parse_engine_chunk(request: Payload, body: Any) -> List[RawRow]:
    if not isinstance(body, list):
        raise ParseError(f"expected array response for batch chunk, got {type(body).__name__}")
    accounts_by_id = {call["id"]: call["params"]["query"]["account"] for call in request}

    for item in body:
        if isinstance(item, dict) and item.get("error"):
            raise ParseError(f"batch chunk error: {_error_message(item['error'])}")

    rows: List[RawRow] = []
    seen = set()
    for item in body:
        if not isinstance(item, dict):
            raise ParseError(f"expected JSON-RPC object in chunk, got {type(item).__name__}")
        request_id = item.get("id")
        if request_id not in accounts_by_id:
            raise ParseError(f"unexpected response id {request_id!r}")
        seen.add(request_id)
        account = accounts_by_id[request_id]
        for row in _as_rows(item.get("result")):
            rows.append({**row, "account": row.get("account") or account})

    missing = sorted(set(accounts_by_id) - seen)
    if missing:
        raise ParseError(f"chunk response missing ids {missing}")
    return rows


def _parse_engine_compat(query: LogicalQuery, request: Payload, body: Any) -> List[RawRow]:
    if isinstance(query, BatchBalances):
        return _parse_engine_chunk(request, body)
    return _parse_standard(query, request, body)


_PARSERS: Dict[Dialect, Callable[[LogicalQuery, Payload, Any], List[RawRow]]] = {
    Dialect.STANDARD: _parse_standard,
    Dialect.ENGINE_COMPAT: _parse_engine_compat,
}


def parse_response(endpoint: Endpoint, query: LogicalQuery, request: Payload, body: Any) -> List[RawRow]:
    """Parse a decoded response body for the payload ``request`` it answers."""

    return _PARSERS[endpoint.dialect](query, request, body)


def _amount(value: Any) -> str:
    if value is None or value == "":
        return "0"
    return str(value)


def _balance_record(row: RawRow, account: str) -> BalanceRecord:
    pending = row.get("pendingUnstake")
    return BalanceRecord(
        account=account,
        balance=_amount(row.get("balance")),
        stake=_amount(row.get("stake")),
        pending_unstake=str(pending) if pending not in (None, "") else None,
    )


def normalize(query: LogicalQuery, rows: Sequence[RawRow]) -> List[Record]:
    """Turn raw rows into :class:`BalanceRecord` or :class:`TokenInfoRecord`."""

    if isinstance(query, TokenInfo):
        return [
            TokenInfoRecord(
                total_supply=_amount(row.get("supply")),
                circulating_supply=_amount(row.get("circulatingSupply")),
            )
            for row in rows
        ]
    if isinstance(query, SingleBalance):
        return [_balance_record(row, str(row.get("account") or query.account)) for row in rows]

    records: List[Record] = []
    for row in rows:
        account = row.get("account")
        if not account:
            LOGGER.debug("Dropping batch row without account field")
            continue
        records.append(_balance_record(row, str(account)))
    return records


__all__ = [
    "BALANCE_TABLES",
    "CONTRACT",
    "TOKEN_TABLE",
    "build_request",
    "normalize",
    "parse_response",
]
