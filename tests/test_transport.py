import asyncio
import json
import logging
import sys
from pathlib import Path

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from connectors.transport import RetryingTransport, backoff_delay
from core.config_models import TransportSettings
from core.errors import TransportError

URL = "https://rpc.example/rpc"


class _RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _transport(handler, sleep, max_retries: int = 2, base_delay_s: float = 0.1) -> RetryingTransport:
    return RetryingTransport(
        TransportSettings(max_retries=max_retries, base_delay_s=base_delay_s),
        client_factory=lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep=sleep,
    )


def _status_sequence(statuses):
    calls: list[httpx.Request] = []
    remaining = list(statuses)

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        status = remaining.pop(0)
        return httpx.Response(status, json={"result": []})

    return handler, calls


def test_backoff_doubles_per_attempt():
    assert backoff_delay(0.1, 0) == pytest.approx(0.1)
    assert backoff_delay(0.1, 1) == pytest.approx(0.2)
    assert backoff_delay(0.1, 2) == pytest.approx(0.4)


def test_retries_503_then_succeeds():
    handler, calls = _status_sequence([503, 503, 200])
    sleep = _RecordingSleep()
    transport = _transport(handler, sleep)

    async def _run():
        try:
            return await transport.send(URL, {"method": "find"})
        finally:
            await transport.aclose()

    response = asyncio.run(_run())

    assert response.status_code == 200
    assert len(calls) == 3
    assert sleep.delays == [pytest.approx(0.1), pytest.approx(0.2)]
    assert json.loads(calls[0].content) == {"method": "find"}
    assert calls[0].method == "POST"


def test_rate_limit_is_retried():
    handler, calls = _status_sequence([429, 200])
    sleep = _RecordingSleep()
    transport = _transport(handler, sleep)

    response = asyncio.run(transport.send(URL, {}))

    assert response.status_code == 200
    assert len(calls) == 2
    assert sleep.delays == [pytest.approx(0.1)]


def test_other_error_status_is_terminal():
    handler, calls = _status_sequence([404, 200])
    sleep = _RecordingSleep()
    transport = _transport(handler, sleep)

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(transport.send(URL, {}))

    assert excinfo.value.status_code == 404
    assert len(calls) == 1
    assert sleep.delays == []


def test_exhausted_retries_raise_with_last_cause():
    handler, calls = _status_sequence([503, 503, 503])
    sleep = _RecordingSleep()
    transport = _transport(handler, sleep)

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(transport.send(URL, {}))

    assert len(calls) == 3
    assert excinfo.value.status_code == 503
    assert "HTTP 503" in excinfo.value.last_cause
    assert len(sleep.delays) == 2


def test_connection_errors_are_retried():
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        if len(attempts) < 2:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"ok": True})

    sleep = _RecordingSleep()
    transport = _transport(handler, sleep, max_retries=3, base_delay_s=0.05)

    response = asyncio.run(transport.send(URL, {}))

    assert response.json() == {"ok": True}
    assert len(attempts) == 2
    assert sleep.delays == [pytest.approx(0.05)]


def test_timeouts_surface_as_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    sleep = _RecordingSleep()
    transport = _transport(handler, sleep, max_retries=1)

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(transport.send(URL, {}))

    assert "ReadTimeout" in excinfo.value.last_cause
    assert excinfo.value.status_code is None


def test_each_retry_logs_a_warning(caplog: pytest.LogCaptureFixture):
    handler, _ = _status_sequence([503, 429, 200])
    transport = _transport(handler, _RecordingSleep())

    with caplog.at_level(logging.WARNING, logger="connectors.transport"):
        asyncio.run(transport.send(URL, {}))

    retries = [r for r in caplog.records if "Retrying" in r.getMessage()]
    assert len(retries) == 2
    assert URL in retries[0].getMessage()


def test_get_passes_query_params():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={})

    transport = _transport(handler, _RecordingSleep())
    asyncio.run(transport.get(URL, params={"format": "jsondata"}))

    assert seen[0].method == "GET"
    assert seen[0].url.params["format"] == "jsondata"


def test_undecodable_body_is_terminal():
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"not gzip at all")

    sleep = _RecordingSleep()
    transport = _transport(handler, sleep)

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(transport.send(URL, {}))

    assert "DecodingError" in excinfo.value.last_cause
    assert len(calls) == 1
    assert sleep.delays == []
