"""Hive Engine balance and token lookups with ordered mirror fallback.

:class:`HiveEngineClient` tries the registry's endpoints in order for each
logical query and returns the first result that parses and validates.
Transport, parsing and validation failures only disqualify the endpoint being
tried; :class:`~core.errors.AllEndpointsExhaustedError` is raised once every
endpoint has failed.

Batch lookups never surface that error. When no endpoint can answer the batch,
the client degrades to one single-account lookup per unique account and fills
in a zero record for any account that still cannot be fetched.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from connectors.dialects import build_request, normalize, parse_response
from connectors.transport import RetryingTransport
from core.config_models import AppConfig, DEFAULT_SYMBOL, FetchSettings
from core.errors import (
    AllEndpointsExhaustedError,
    FetchError,
    ParseError,
    PartialBatchError,
    ValidationFailed,
)
from core.models import (
    BalanceRecord,
    BatchBalances,
    Dialect,
    Endpoint,
    FetchOutcome,
    FetchPolicy,
    LogicalQuery,
    Record,
    SingleBalance,
    TokenInfo,
    TokenInfoRecord,
    Validator,
    describe_query,
)
from core.registry import EndpointRegistry

LOGGER = logging.getLogger(__name__)


def positive_supply(records: Sequence[Record]) -> bool:
    """Token info is only trusted when the first row reports a positive supply."""

    first = records[0] if records else None
    return isinstance(first, TokenInfoRecord) and Decimal(first.total_supply) > 0


def positive_total_stake(records: Sequence[Record]) -> bool:
    return sum((Decimal(r.stake) for r in records if isinstance(r, BalanceRecord)), Decimal(0)) > 0


class HiveEngineClient:
    """Resilient balance/token client over a set of interchangeable mirrors."""

    name = "hive-engine"

    def __init__(
        self,
        registry: EndpointRegistry,
        transport: RetryingTransport,
        settings: Optional[FetchSettings] = None,
        symbol: str = DEFAULT_SYMBOL,
    ) -> None:
        self._registry = registry
        self._transport = transport
        self._settings = settings or FetchSettings()
        self._symbol = symbol

    @classmethod
    def from_config(
        cls, config: AppConfig, transport: Optional[RetryingTransport] = None
    ) -> "HiveEngineClient":
        return cls(
            registry=EndpointRegistry.from_entries(config.endpoints),
            transport=transport or RetryingTransport(config.transport),
            settings=config.fetch,
            symbol=config.symbol,
        )

    @property
    def registry(self) -> EndpointRegistry:
        return self._registry

    def policy(self, validate: Optional[Validator] = None) -> FetchPolicy:
        return FetchPolicy(
            validate=validate,
            chunk_size=self._settings.chunk_size,
            batch_limit=self._settings.batch_limit,
            accept_partial_chunks=self._settings.accept_partial_chunks,
        )

    async def _post(self, endpoint: Endpoint, payload: Any) -> Any:
        response = await self._transport.send(endpoint.url, payload)
        try:
            return response.json()
        except ValueError as exc:
            raise ParseError(f"invalid JSON from {endpoint.url}: {exc}") from exc

    async def _fetch_once(self, endpoint: Endpoint, query: LogicalQuery, policy: FetchPolicy) -> List[Dict[str, Any]]:
        (payload,) = build_request(endpoint, query, policy)
        body = await self._post(endpoint, payload)
        return parse_response(endpoint, query, payload, body)

    async def _fetch_chunked(self, endpoint: Endpoint, query: BatchBalances, policy: FetchPolicy) -> List[Dict[str, Any]]:
        payloads = build_request(endpoint, query, policy)
        LOGGER.debug(
            "Sending %d chunks of up to %d accounts to %s",
            len(payloads),
            policy.chunk_size,
            endpoint.url,
        )
        rows: List[Dict[str, Any]] = []
        failed = 0
        for index, payload in enumerate(payloads, start=1):
            try:
                body = await self._post(endpoint, payload)
                rows.extend(parse_response(endpoint, query, payload, body))
            except FetchError as exc:
                failed += 1
                LOGGER.warning(
                    "Chunk %d/%d on %s failed: %s. Skipping chunk",
                    index,
                    len(payloads),
                    endpoint.url,
                    exc,
                )
        if not rows or (failed and not policy.accept_partial_chunks):
            raise PartialBatchError(failed, len(payloads), len(rows))
        return rows

    async def _attempt(self, endpoint: Endpoint, query: LogicalQuery, policy: FetchPolicy) -> List[Record]:
        if isinstance(query, BatchBalances) and endpoint.dialect is Dialect.ENGINE_COMPAT:
            rows = await self._fetch_chunked(endpoint, query, policy)
        else:
            rows = await self._fetch_once(endpoint, query, policy)
        records = normalize(query, rows)
        if policy.validate is not None:
            try:
                valid = policy.validate(records)
            except (ArithmeticError, ValueError) as exc:
                raise ValidationFailed(f"validator could not evaluate records: {exc}") from exc
            if not valid:
                raise ValidationFailed(f"{len(records)} records rejected by validator")
        return records

    async def execute(self, query: LogicalQuery, policy: Optional[FetchPolicy] = None) -> FetchOutcome:
        """Run ``query`` against each endpoint in order until one succeeds."""

        policy = policy or self.policy()
        causes: List[Tuple[Endpoint, Exception]] = []
        for endpoint in self._registry:
            LOGGER.debug("Trying %s on %s", describe_query(query), endpoint.url)
            try:
                records = await self._attempt(endpoint, query, policy)
            except FetchError as exc:
                LOGGER.warning("Endpoint %s failed for %s: %s", endpoint.url, describe_query(query), exc)
                causes.append((endpoint, exc))
                continue
            LOGGER.info(
                "Valid %s from %s (%d items)",
                describe_query(query),
                endpoint.url,
                len(records),
            )
            return FetchOutcome(records=tuple(records), source_endpoint=endpoint)
        raise AllEndpointsExhaustedError(causes)

    async def fetch_single_balance(self, account: str, symbol: Optional[str] = None) -> BalanceRecord:
        outcome = await self.execute(SingleBalance(account=account, symbol=symbol or self._symbol))
        record = outcome.records[0] if outcome.records else None
        if not isinstance(record, BalanceRecord):
            return BalanceRecord.zero(account)
        return record

    async def fetch_token_info(
        self, symbol: Optional[str] = None, validate: Optional[Validator] = positive_supply
    ) -> TokenInfoRecord:
        outcome = await self.execute(TokenInfo(symbol=symbol or self._symbol), self.policy(validate))
        record = outcome.records[0]
        if not isinstance(record, TokenInfoRecord):
            raise ParseError(f"unexpected record type {type(record).__name__}")
        return record

    async def _single_or_zero(self, account: str, symbol: str) -> BalanceRecord:
        try:
            return await self.fetch_single_balance(account, symbol)
        except FetchError as exc:
            LOGGER.warning("All endpoints failed for %s, using zero balance: %s", account, exc)
            return BalanceRecord.zero(account)

    async def _degrade(self, query: BatchBalances) -> Dict[str, BalanceRecord]:
        results = await asyncio.gather(
            *(self._single_or_zero(account, query.symbol) for account in query.accounts)
        )
        return dict(zip(query.accounts, results))

    async def fetch_batch_balances(
        self,
        accounts: Iterable[str],
        symbol: Optional[str] = None,
        validate: Optional[Validator] = None,
    ) -> List[BalanceRecord]:
        """Fetch balances for ``accounts``, aligned to the input order.

        Duplicated accounts get the same record; accounts without data get a
        zero record instead of being dropped.
        """

        requested = list(accounts)
        if not requested:
            return []
        query = BatchBalances(accounts=tuple(requested), symbol=symbol or self._symbol)
        LOGGER.info("Fetching balances for %d accounts", len(query.accounts))

        by_account: Dict[str, BalanceRecord] = {}
        try:
            outcome = await self.execute(query, self.policy(validate))
        except AllEndpointsExhaustedError as exc:
            LOGGER.warning("Batch query failed on all endpoints: %s. Falling back to individual queries.", exc)
            by_account = await self._degrade(query)
        else:
            for record in outcome.records:
                if isinstance(record, BalanceRecord):
                    by_account.setdefault(record.account, record)

        return [by_account.get(account) or BalanceRecord.zero(account) for account in requested]

    async def aclose(self) -> None:
        await self._transport.aclose()

    async def __aenter__(self) -> "HiveEngineClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


__all__ = ["HiveEngineClient", "positive_supply", "positive_total_stake"]
