import asyncio
import sys
from decimal import Decimal
from pathlib import Path

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from connectors.hive_engine import HiveEngineClient
from connectors.transport import RetryingTransport
from core.config_models import TransportSettings
from core.models import BalanceRecord, Endpoint
from core.registry import EndpointRegistry
from governance.voting import compute_vote_result, fetch_vote_result

MEMBERS = [
    BalanceRecord(account="alice", stake="30"),
    BalanceRecord(account="bob", stake="10"),
    BalanceRecord(account="carol"),
]


async def _no_sleep(delay: float) -> None:
    return None


def test_weighted_approval():
    result = compute_vote_result(MEMBERS, ["alice"], k=2)

    assert result is not None
    assert result.total_staked == Decimal(40)
    # 3 members contribute 1 each, plus k spread over the stake shares
    assert result.total_possible_weighted == Decimal(5)
    assert result.weighted_in_favor == Decimal("2.5")
    assert result.approval_pct == Decimal(50)


def test_zero_k_is_one_member_one_vote():
    result = compute_vote_result(MEMBERS, ["bob", "carol"], k=0)

    assert result.total_possible_weighted == Decimal(3)
    assert result.weighted_in_favor == Decimal(2)


def test_unknown_and_repeated_names_are_ignored():
    result = compute_vote_result(MEMBERS, ["bob", "mallory", "bob"], k=2)

    assert result.weighted_in_favor == Decimal("1.5")
    assert result.approval_pct == Decimal(30)


def test_nothing_staked_gives_no_result():
    records = [BalanceRecord.zero("alice"), BalanceRecord.zero("bob")]

    assert compute_vote_result(records, ["alice"], k=2) is None


def test_empty_selection_gives_no_result():
    assert compute_vote_result(MEMBERS, [], k=2) is None


def test_fetch_vote_result_uses_batch_balances():
    def handler(request: httpx.Request) -> httpx.Response:
        rows = [
            {"account": "alice", "balance": "0", "stake": "30"},
            {"account": "bob", "balance": "0", "stake": "10"},
        ]
        return httpx.Response(200, json={"result": rows})

    transport = RetryingTransport(
        TransportSettings(max_retries=0, base_delay_s=0.0),
        client_factory=lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep=_no_sleep,
    )
    client = HiveEngineClient(EndpointRegistry([Endpoint(base_url="https://a.example")]), transport)

    result = asyncio.run(fetch_vote_result(client, ["alice", "bob"], ["bob"], k=4))

    assert result.total_possible_weighted == Decimal(6)
    assert result.weighted_in_favor == Decimal(2)
    assert result.approval_pct == pytest.approx(Decimal(100) / 3)
