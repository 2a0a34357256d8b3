from __future__ import annotations

import json
from typing import Any

import pytest
import requests

from carbon_deploy.config import RPCConfig
from carbon_deploy.rpc_client import PhantasmaRPCClient, RPCError, RPCTransportError, TransactionRecord


class FakeResponse:
    def __init__(self, body: Any = None, status_code: int = 200, text: str | None = None) -> None:
        self._body = body
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(body)
        self.url = "http://node/rpc"

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("no json")
        return self._body

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    def __init__(self, response: Any) -> None:
        self.response = response
        self.requests: list[dict] = []

    def post(self, url, data=None, headers=None, timeout=None):
        self.requests.append({"url": url, "payload": json.loads(data), "timeout": timeout})
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def _client(response: Any) -> tuple[PhantasmaRPCClient, FakeSession]:
    client = PhantasmaRPCClient(RPCConfig(url="http://node/rpc", timeout=3))
    session = FakeSession(response)
    client._session = session  # type: ignore[assignment]
    return client, session


def test_get_transaction_builds_request_and_record() -> None:
    client, session = _client(
        FakeResponse({"jsonrpc": "2.0", "result": {"hash": "abc", "state": "Halt", "result": "01"}})
    )

    record = client.get_transaction("abc")

    assert isinstance(record, TransactionRecord)
    assert record.is_halted
    assert record.result == "01"
    sent = session.requests[0]
    assert sent["url"] == "http://node/rpc"
    assert sent["timeout"] == 3
    assert sent["payload"]["method"] == "getTransaction"
    assert sent["payload"]["params"] == ["abc"]


def test_listing_params() -> None:
    client, session = _client(FakeResponse({"result": {"result": [], "cursor": ""}}))
    client.get_token_series("ART", 5, 20, "c1")
    client.get_token_nfts(5, 2, 10, "", True)
    assert session.requests[0]["payload"]["params"] == ["ART", "5", 20, "c1"]
    assert session.requests[1]["payload"]["params"] == ["5", 2, 10, "", True]


def test_rpc_error_is_raised() -> None:
    client, _ = _client(FakeResponse({"error": {"code": -32000, "message": "tx not found"}}))
    with pytest.raises(RPCError, match="RPC error -32000: tx not found") as excinfo:
        client.call("getTransaction", ["abc"])
    assert excinfo.value.code == -32000


def test_connection_failure_is_transport_error() -> None:
    client, _ = _client(requests.ConnectionError("refused"))
    with pytest.raises(RPCTransportError, match="RPC connection failed"):
        client.call("getTokens", [])


def test_http_error_keeps_status_code() -> None:
    client, _ = _client(FakeResponse({"error": "bad gateway"}, status_code=502))
    with pytest.raises(RPCTransportError) as excinfo:
        client.call("getTokens", [])
    assert excinfo.value.status_code == 502


def test_malformed_json_is_transport_error() -> None:
    client, _ = _client(FakeResponse(None, text="<html>"))
    with pytest.raises(RPCTransportError, match="malformed JSON"):
        client.call("getTokens", [])


def test_record_rejects_non_mapping_payload() -> None:
    with pytest.raises(RPCTransportError):
        TransactionRecord.from_payload("Halt")
