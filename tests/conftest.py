"""Shared fixtures: a scriptable in-process ledger and deterministic wallets."""

import base64
import json
from collections import deque

import httpx
import pytest

from autotx.ledger import LedgerClient
from autotx.models import Wallet

SEED = bytes(range(32))
SEED_B64 = base64.b64encode(SEED).decode()

SENDER = "oct" + "A" * 44
SENDER_2 = "oct" + "B" * 44
RECIPIENT = "oct" + "C" * 44
RECIPIENT_2 = "oct" + "D" * 44


class FakeLedger:
    """Answers /balance, /staging and /send-tx from in-memory state.

    Unknown accounts get 404; `balance_errors` forces an error reply per
    address. Submit responses are popped from `replies` (status, body);
    with none queued the transaction is staged and an accepted JSON reply
    with a counter hash comes back.
    """

    def __init__(self) -> None:
        self.accounts: dict[str, dict] = {}
        self.staged: list[dict] = []
        self.replies: deque[tuple[int, object]] = deque()
        self.sent: list[dict] = []
        self.fail_paths: set[str] = set()
        self.balance_errors: dict[str, tuple[int, dict]] = {}
        self.calls: list[tuple[str, str]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((request.method, path))
        if any(path.startswith(p) for p in self.fail_paths):
            raise httpx.ConnectError("connection refused", request=request)

        if request.method == "GET" and path.startswith("/balance/"):
            address = path.rsplit("/", 1)[-1]
            if address in self.balance_errors:
                status, body = self.balance_errors[address]
                return httpx.Response(status, json=body)
            if address not in self.accounts:
                return httpx.Response(404, json={"error": "not found"})
            return httpx.Response(200, json=self.accounts[address])

        if request.method == "GET" and path == "/staging":
            return httpx.Response(200, json={"staged_transactions": self.staged})

        if request.method == "POST" and path == "/send-tx":
            self.sent.append(json.loads(request.content))
            if self.replies:
                status, body = self.replies.popleft()
                if isinstance(body, str):
                    return httpx.Response(status, text=body)
                return httpx.Response(status, json=body)
            tx = self.sent[-1]
            self.staged.append({"from": tx["from"], "nonce": tx["nonce"], "amount": tx["amount"]})
            return httpx.Response(200, json={"status": "accepted", "tx_hash": f"hash{len(self.sent)}"})

        return httpx.Response(404, text="Not Found")

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def client(ledger: FakeLedger) -> LedgerClient:
    return LedgerClient("http://ledger.test", transport=ledger.transport())


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def wallet() -> Wallet:
    return Wallet(name="Wallet1", address=SENDER, private_key=SEED_B64)
