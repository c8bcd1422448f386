"""Tests for the ledger RPC client against a mock transport."""

import asyncio
import json
import random

import httpx
import pytest

from autotx.errors import RemoteRejection, TransportError
from autotx.keys import derive_key_pair
from autotx.ledger import LedgerClient, LedgerResponse, error_text, parse_plaintext_hash
from autotx.models import Accepted, AccountState, StagedTransaction
from autotx.transaction import TransactionBuilder

from conftest import RECIPIENT, SEED_B64, SENDER


def client_for(handler) -> LedgerClient:
    return LedgerClient("http://ledger.test", transport=httpx.MockTransport(handler))


def responder(status: int, **kwargs):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, **kwargs)
    return handler


def signed_tx():
    builder = TransactionBuilder(rng=random.Random(1), clock=lambda: 1_700_000_000.0)
    return builder.build(SENDER, derive_key_pair(SEED_B64), RECIPIENT, 0.1, 1)


async def call(client: LedgerClient, method: str, *args):
    async with client:
        return await getattr(client, method)(*args)


class TestParsing:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("OK tx accepted abc123", "abc123"),
            ("ok abc123\n", "abc123"),
            ("OK", None),
            ("error: bad nonce", None),
            ("", None),
        ],
    )
    def test_plaintext_hash(self, text: str, expected: str | None) -> None:
        assert parse_plaintext_hash(text) == expected

    def test_error_text_prefers_error_field(self) -> None:
        assert error_text(LedgerResponse(400, {"error": "bad nonce"}, "")) == "bad nonce"

    def test_error_text_falls_back_to_json_then_text(self) -> None:
        assert error_text(LedgerResponse(400, {"code": 7}, "")) == '{"code":7}'
        assert error_text(LedgerResponse(502, None, "  Bad Gateway \n")) == "Bad Gateway"
        assert error_text(LedgerResponse(500, None, "", "Internal Server Error")) == "Internal Server Error"
        assert error_text(LedgerResponse(500, None, "")) == "Unknown error"


class TestGetBalance:
    def test_json_body(self) -> None:
        client = client_for(responder(200, json={"balance": "12.5", "nonce": 4}))
        state = asyncio.run(call(client, "get_balance", SENDER))
        assert state == AccountState(balance=12.5, nonce=4)

    def test_unknown_account_is_empty(self) -> None:
        client = client_for(responder(404, json={"error": "not found"}))
        state = asyncio.run(call(client, "get_balance", SENDER))
        assert state == AccountState(balance=0.0, nonce=0, found=False)

    def test_plaintext_body(self) -> None:
        client = client_for(responder(200, text="12.5 3"))
        state = asyncio.run(call(client, "get_balance", SENDER))
        assert (state.balance, state.nonce) == (12.5, 3)

    def test_server_error_raises_rejection(self) -> None:
        client = client_for(responder(500, json={"error": "db down"}))
        with pytest.raises(RemoteRejection) as exc_info:
            asyncio.run(call(client, "get_balance", SENDER))
        assert exc_info.value.status == 500
        assert exc_info.value.error == "db down"

    def test_malformed_body_raises_rejection(self) -> None:
        client = client_for(responder(200, json={"balance": "lots", "nonce": 1}))
        with pytest.raises(RemoteRejection, match="malformed"):
            asyncio.run(call(client, "get_balance", SENDER))

    def test_requests_address_path(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.method, request.url.path))
            return httpx.Response(200, json={"balance": 0, "nonce": 0})

        asyncio.run(call(client_for(handler), "get_balance", SENDER))
        assert seen == [("GET", f"/balance/{SENDER}")]


class TestGetStaged:
    def test_parses_staged_transactions(self) -> None:
        body = {
            "staged_transactions": [
                {"from": SENDER, "nonce": 6, "amount": "1"},
                {"from": RECIPIENT, "nonce": "9"},
                "garbage",
            ]
        }
        client = client_for(responder(200, json=body))
        staged = asyncio.run(call(client, "get_staged"))
        assert staged == [StagedTransaction(SENDER, 6), StagedTransaction(RECIPIENT, 9)]

    def test_empty_or_missing_list(self) -> None:
        assert asyncio.run(call(client_for(responder(200, json={})), "get_staged")) == []
        assert asyncio.run(call(client_for(responder(200, json={"staged_transactions": None})), "get_staged")) == []

    def test_non_success_is_treated_as_empty(self) -> None:
        client = client_for(responder(503, text="unavailable"))
        assert asyncio.run(call(client, "get_staged")) == []


class TestSubmit:
    def test_accepted_json(self) -> None:
        client = client_for(responder(200, json={"status": "accepted", "tx_hash": "deadbeef"}))
        outcome = asyncio.run(call(client, "submit", signed_tx()))
        assert isinstance(outcome, Accepted)
        assert outcome.tx_hash == "deadbeef"

    def test_accepted_plaintext(self) -> None:
        client = client_for(responder(200, text="OK tx accepted abc123"))
        outcome = asyncio.run(call(client, "submit", signed_tx()))
        assert outcome == Accepted(tx_hash="abc123", status=200)

    def test_rejection_is_returned_not_raised(self) -> None:
        client = client_for(responder(400, json={"error": "insufficient funds"}))
        outcome = asyncio.run(call(client, "submit", signed_tx()))
        assert isinstance(outcome, RemoteRejection)
        assert outcome.error == "insufficient funds"
        assert outcome.status == 400

    def test_success_status_without_hash_is_rejection(self) -> None:
        client = client_for(responder(200, json={"status": "queued"}))
        outcome = asyncio.run(call(client, "submit", signed_tx()))
        assert isinstance(outcome, RemoteRejection)
        assert outcome.error == '{"status":"queued"}'

    def test_posts_wire_body(self) -> None:
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append((request.method, request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"status": "accepted", "tx_hash": "h"})

        signed = signed_tx()
        asyncio.run(call(client_for(handler), "submit", signed))
        method, path, body = bodies[0]
        assert (method, path) == ("POST", "/send-tx")
        assert body == signed.to_wire()
        assert body["to_"] == RECIPIENT
        assert body["ou"] == "1"


class TestTransport:
    def test_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError) as exc_info:
            asyncio.run(call(client_for(handler), "get_balance", SENDER))
        assert exc_info.value.method == "GET"
        assert "connection refused" in exc_info.value.reason

    def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(TransportError, match="timeout"):
            asyncio.run(call(client_for(handler), "submit", signed_tx()))

    def test_sends_identifying_headers(self) -> None:
        headers = []

        def handler(request: httpx.Request) -> httpx.Response:
            headers.append(request.headers)
            return httpx.Response(200, json={"balance": 1, "nonce": 1})

        client = LedgerClient("http://ledger.test/", user_agent="tester/2.0", transport=httpx.MockTransport(handler))
        asyncio.run(call(client, "get_balance", SENDER))
        assert headers[0]["user-agent"] == "tester/2.0"
        assert headers[0]["accept"] == "application/json"
        assert client.base_url == "http://ledger.test"
