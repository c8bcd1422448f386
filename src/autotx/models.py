"""Data structures passed between the loaders, the pipeline and the reporters."""

import math
import time
from dataclasses import dataclass, field
from typing import Any

import autotx.constants as C
from autotx.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class Wallet:
    name: str
    address: str
    private_key: str = field(repr=False)

    @property
    def short(self) -> str:
        return f"{self.address[:10]}...{self.address[-10:]}"


@dataclass(frozen=True, slots=True)
class KeyPair:
    secret_key: bytes = field(repr=False)  # 64 bytes: seed || public key
    public_key: bytes


@dataclass(frozen=True, slots=True)
class AccountState:
    """Confirmed account state as reported by GET /balance/{address}."""

    balance: float
    nonce: int
    found: bool = True

    @classmethod
    def from_balance_result(cls, result: dict) -> "AccountState":
        return cls(
            balance=float(result.get("balance") or 0),
            nonce=int(result.get("nonce") or 0),
        )

    @classmethod
    def from_balance_text(cls, text: str) -> "AccountState":
        """Parse the older "<balance> <nonce>" plaintext body."""
        parts = text.strip().split()
        if len(parts) < 2:
            raise ValueError(f"unrecognised balance body: {text!r}")
        return cls(balance=float(parts[0]), nonce=int(parts[1]))


@dataclass(frozen=True, slots=True)
class StagedTransaction:
    sender: str
    nonce: int

    @classmethod
    def from_staged_result(cls, result: dict) -> "StagedTransaction":
        return cls(sender=result.get("from", ""), nonce=int(result.get("nonce") or 0))


@dataclass(frozen=True, slots=True)
class Transaction:
    """The signed part of a transfer. Field order here is the wire order."""

    sender: str
    recipient: str
    amount: str  # micro-units
    nonce: int
    fee_tier: str
    timestamp: float

    def signing_fields(self) -> list[tuple[str, Any]]:
        return [
            ("from", self.sender),
            ("to_", self.recipient),
            ("amount", self.amount),
            ("nonce", self.nonce),
            ("ou", self.fee_tier),
            ("timestamp", self.timestamp),
        ]


@dataclass(frozen=True, slots=True)
class SignedTransaction:
    transaction: Transaction
    message: bytes
    signature: str  # base64
    public_key: str  # base64

    def to_wire(self) -> dict[str, Any]:
        body = dict(self.transaction.signing_fields())
        body["signature"] = self.signature
        body["public_key"] = self.public_key
        return body


@dataclass(frozen=True, slots=True)
class Accepted:
    tx_hash: str
    status: int = 200


@dataclass(frozen=True, slots=True)
class RunConfig:
    mode: C.AmountMode = C.AmountMode.FIXED
    amount: float = 0.1
    min_amount: float = 0.01
    max_amount: float = 0.1
    transactions_per_wallet: int = 1
    max_concurrent_wallets: int = 1

    def validate(self) -> "RunConfig":
        if self.transactions_per_wallet < 1:
            raise ConfigurationError("transactions_per_wallet must be at least 1")
        if self.max_concurrent_wallets < 1:
            raise ConfigurationError("max_concurrent_wallets must be at least 1")
        if self.mode == C.AmountMode.RANDOM:
            if self.min_amount <= 0:
                raise ConfigurationError("Minimum amount must be positive")
            if self.min_amount >= self.max_amount:
                raise ConfigurationError("Minimum amount must be less than maximum amount")
            low, high = self.micro_range()
            if low >= high:
                raise ConfigurationError("Amount range must span at least one micro-unit (0.000001)")
        elif self.amount <= 0:
            raise ConfigurationError("Amount must be positive")
        return self

    def micro_range(self) -> tuple[int, int]:
        """Random-mode bounds in micro-units, [low, high)."""
        # round() drops float noise such as 0.07 * 1e6 = 70000.00000000001
        low = math.ceil(round(self.min_amount * C.MICRO_UNITS, 3))
        high = math.ceil(round(self.max_amount * C.MICRO_UNITS, 3))
        return low, high

    def describe_amount(self) -> str:
        if self.mode == C.AmountMode.RANDOM:
            return f"Random {self.min_amount}-{self.max_amount}"
        return f"{self.amount}"


@dataclass(slots=True)
class SubmissionResult:
    success: bool
    wallet: str
    recipient: str
    amount: float
    nonce: int | None = None
    tx_hash: str | None = None
    error: str | None = None
    state: C.TxState = C.TxState.PENDING

    @property
    def link(self) -> str | None:
        if not self.tx_hash:
            return None
        return f"{C.EXPLORER_URL}/tx/{self.tx_hash}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "wallet": self.wallet,
            "recipient": self.recipient,
            "amount": self.amount,
            "nonce": self.nonce,
            "hash": self.tx_hash,
            "error": self.error,
            "state": self.state.name,
            "link": self.link,
        }


@dataclass(slots=True)
class RunState:
    """Counters threaded through one run."""

    total: int
    attempted: int = 0
    succeeded: int = 0
    results: list[SubmissionResult] = field(default_factory=list)
    started_at: float = field(default_factory=time.monotonic)

    def record(self, result: SubmissionResult) -> None:
        self.attempted += 1
        if result.success:
            self.succeeded += 1
        self.results.append(result)

    @property
    def remaining(self) -> int:
        return self.total - self.attempted

    def summary(self) -> "RunSummary":
        return RunSummary(
            attempted=self.attempted,
            succeeded=self.succeeded,
            duration=time.monotonic() - self.started_at,
            results=list(self.results),
        )

    def snapshot(self) -> dict[str, int]:
        return {"total": self.total, "attempted": self.attempted, "succeeded": self.succeeded}


@dataclass(frozen=True, slots=True)
class RunSummary:
    attempted: int
    succeeded: int
    duration: float = 0.0
    results: list[SubmissionResult] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return self.attempted - self.succeeded

    @property
    def success_rate(self) -> float:
        return self.succeeded / self.attempted if self.attempted else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "success_rate": round(self.success_rate, 4),
            "duration_seconds": round(self.duration, 3),
            "results": [r.to_dict() for r in self.results],
        }


@dataclass(frozen=True, slots=True)
class WalletInfo:
    name: str
    address: str
    balance: float
    nonce: int
    key_chars: int
    key_bytes: int | None
    key_error: str | None = None
    found: bool | None = None  # None when the ledger couldn't be read

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "found": self.found,
            "balance": self.balance,
            "nonce": self.nonce,
            "key_chars": self.key_chars,
            "key_bytes": self.key_bytes,
            "key_error": self.key_error,
        }
