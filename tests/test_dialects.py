import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from connectors.dialects import build_request, normalize, parse_response
from core.errors import EmptyResultError, ParseError
from core.models import (
    BalanceRecord,
    BatchBalances,
    Dialect,
    Endpoint,
    FetchPolicy,
    SingleBalance,
    TokenInfo,
    TokenInfoRecord,
)

STANDARD = Endpoint(base_url="https://api.example", path="/rpc")
ENGINE = Endpoint(base_url="https://engine.example", dialect=Dialect.ENGINE_COMPAT)
POLICY = FetchPolicy()


def test_standard_single_balance_payload():
    (payload,) = build_request(STANDARD, SingleBalance("alice", "OCLT"), POLICY)

    assert payload == {
        "jsonrpc": "2.0",
        "method": "find",
        "params": {
            "contract": "tokens",
            "table": "balances",
            "query": {"account": "alice", "symbol": "OCLT"},
            "limit": 1,
        },
        "id": 1,
    }


def test_standard_batch_uses_in_operator_on_unique_accounts():
    query = BatchBalances(accounts=("alice", "bob", "alice"), symbol="OCLT")
    (payload,) = build_request(STANDARD, query, POLICY)

    assert payload["params"]["query"] == {"symbol": "OCLT", "account": {"$in": ["alice", "bob"]}}
    assert payload["params"]["limit"] == 1000


def test_token_info_targets_tokens_table():
    for endpoint in (STANDARD, ENGINE):
        (payload,) = build_request(endpoint, TokenInfo("OCLT"), POLICY)
        assert payload["params"]["table"] == "tokens"
        assert payload["params"]["query"] == {"symbol": "OCLT"}


def test_engine_compat_single_uses_stakes_table():
    (payload,) = build_request(ENGINE, SingleBalance("alice", "OCLT"), POLICY)

    assert isinstance(payload, dict)
    assert payload["params"]["table"] == "stakes"


def test_engine_compat_batch_is_chunked():
    accounts = tuple(f"user{i}" for i in range(25))
    payloads = build_request(ENGINE, BatchBalances(accounts=accounts, symbol="OCLT"), POLICY)

    assert [len(chunk) for chunk in payloads] == [10, 10, 5]
    first = payloads[0][0]
    assert first["id"] == 0
    assert first["params"]["table"] == "stakes"
    assert first["params"]["query"] == {"symbol": "OCLT", "account": "user0"}
    assert "$in" not in str(payloads)
    assert [call["id"] for call in payloads[2]] == [0, 1, 2, 3, 4]
    assert payloads[2][0]["params"]["query"]["account"] == "user20"


def test_custom_chunk_size():
    accounts = tuple(f"user{i}" for i in range(7))
    payloads = build_request(ENGINE, BatchBalances(accounts, "OCLT"), FetchPolicy(chunk_size=3))

    assert [len(chunk) for chunk in payloads] == [3, 3, 1]


def test_standard_parse_wraps_single_object():
    query = SingleBalance("alice", "OCLT")
    body = {"result": {"account": "alice", "balance": "1.000", "stake": "2.000"}}

    rows = parse_response(STANDARD, query, {}, body)

    assert rows == [{"account": "alice", "balance": "1.000", "stake": "2.000"}]


def test_standard_empty_result_fails_only_for_non_batch():
    with pytest.raises(EmptyResultError):
        parse_response(STANDARD, SingleBalance("alice", "OCLT"), {}, {"result": []})
    with pytest.raises(EmptyResultError):
        parse_response(STANDARD, TokenInfo("OCLT"), {}, {"result": None})

    batch = BatchBalances(("alice",), "OCLT")
    assert parse_response(STANDARD, batch, {}, {"result": []}) == []


def test_standard_rejects_error_and_bad_shapes():
    query = SingleBalance("alice", "OCLT")
    with pytest.raises(ParseError):
        parse_response(STANDARD, query, {}, {"error": {"code": -32600, "message": "bad"}})
    with pytest.raises(ParseError):
        parse_response(STANDARD, query, {}, [{"result": []}])
    with pytest.raises(ParseError):
        parse_response(STANDARD, query, {}, {"result": ["not-an-object"]})


def _chunk(accounts):
    query = BatchBalances(tuple(accounts), "OCLT")
    (request,) = build_request(ENGINE, query, POLICY)
    return query, request


def test_engine_chunk_correlates_ids_and_skips_null_results():
    query, request = _chunk(["alice", "bob", "carol"])
    body = [
        {"jsonrpc": "2.0", "id": 2, "result": {"balance": "3.000", "stake": "1.000"}},
        {"jsonrpc": "2.0", "id": 0, "result": {"account": "alice", "balance": "1.000", "stake": "4.000"}},
        {"jsonrpc": "2.0", "id": 1, "result": None},
    ]

    rows = parse_response(ENGINE, query, request, body)

    assert {row["account"] for row in rows} == {"alice", "carol"}
    carol = next(row for row in rows if row["account"] == "carol")
    assert carol["stake"] == "1.000"


def test_engine_chunk_error_fails_whole_chunk():
    query, request = _chunk(["alice", "bob"])
    body = [
        {"jsonrpc": "2.0", "id": 0, "result": {"account": "alice", "stake": "1"}},
        {"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "Maximum batch length exceeded"}},
    ]

    with pytest.raises(ParseError, match="Maximum batch length exceeded"):
        parse_response(ENGINE, query, request, body)


def test_engine_chunk_requires_array_and_all_ids():
    query, request = _chunk(["alice", "bob"])

    with pytest.raises(ParseError, match="array"):
        parse_response(ENGINE, query, request, {"result": []})
    with pytest.raises(ParseError, match="missing ids"):
        parse_response(ENGINE, query, request, [{"id": 0, "result": None}])
    with pytest.raises(ParseError, match="unexpected response id"):
        parse_response(ENGINE, query, request, [{"id": 0, "result": None}, {"id": 7, "result": None}])


def test_normalize_defaults_missing_amounts():
    rows = [{"account": "alice", "balance": "", "pendingUnstake": "0.500"}]

    (record,) = normalize(SingleBalance("alice", "OCLT"), rows)

    assert record == BalanceRecord(account="alice", balance="0", stake="0", pending_unstake="0.500")


def test_normalize_single_falls_back_to_query_account():
    (record,) = normalize(SingleBalance("alice", "OCLT"), [{"balance": "10.000", "stake": "5.000"}])

    assert record.account == "alice"
    assert record.pending_unstake is None


def test_normalize_batch_drops_rows_without_account():
    rows = [{"balance": "1"}, {"account": "bob", "stake": "2"}]

    records = normalize(BatchBalances(("alice", "bob"), "OCLT"), rows)

    assert records == [BalanceRecord(account="bob", balance="0", stake="2")]


def test_normalize_token_info():
    rows = [{"symbol": "OCLT", "supply": "1000.000", "circulatingSupply": "750.000"}]

    (record,) = normalize(TokenInfo("OCLT"), rows)

    assert record == TokenInfoRecord(total_supply="1000.000", circulating_supply="750.000")
