from typing import Final
from enum import StrEnum

RPC_URL: Final = "https://octra.network"
EXPLORER_URL: Final = "https://octrascan.io"
USER_AGENT: Final = "Pempek-Lahat-Auto-TX/1.0"

# 1 OCT = 1_000_000 micro-OCT. Amounts go over the wire as integer strings.
MICRO_UNITS: Final = 1_000_000

# Fee tiers the verifier expects in the "ou" field, chosen by amount in OCT.
FEE_TIER_THRESHOLD: Final = 1000
FEE_TIER_LOW: Final = "1"
FEE_TIER_HIGH: Final = "3"
FEE_DISPLAY: Final = {FEE_TIER_LOW: "0.001", FEE_TIER_HIGH: "0.003"}

# Same-second transactions get up to 10ms of jitter on the timestamp.
TIMESTAMP_JITTER: Final = 0.01

SEED_SIZE: Final = 32
SECRET_KEY_SIZE: Final = 64
SIGNATURE_SIZE: Final = 64

ADDRESS_PREFIX: Final = "oct"
ADDRESS_BODY_LENGTH: Final = 44
ADDRESS_PATTERN: Final = r"^oct[1-9A-HJ-NP-Za-km-z]{44}$"

MAX_WALLETS: Final = 10
RPC_TIMEOUT: Final = 10.0
TX_DELAY: Final = 3.0
WALLET_DELAY: Final = 5.0


class AmountMode(StrEnum):
    FIXED  = "fixed"
    RANDOM = "random"


class TxState(StrEnum):
    PENDING    = "PENDING"
    SIGNED     = "SIGNED"
    SUBMITTED  = "SUBMITTED"
    ACCEPTED   = "ACCEPTED"
    REJECTED   = "REJECTED"
    FAILED_NET = "FAILED_NET"


TERMINAL_STATES: Final = frozenset({TxState.ACCEPTED, TxState.REJECTED, TxState.FAILED_NET})

__all__ = [
    "ADDRESS_BODY_LENGTH",
    "ADDRESS_PATTERN",
    "ADDRESS_PREFIX",
    "EXPLORER_URL",
    "FEE_DISPLAY",
    "FEE_TIER_HIGH",
    "FEE_TIER_LOW",
    "FEE_TIER_THRESHOLD",
    "MAX_WALLETS",
    "MICRO_UNITS",
    "RPC_TIMEOUT",
    "RPC_URL",
    "SECRET_KEY_SIZE",
    "SEED_SIZE",
    "SIGNATURE_SIZE",
    "TERMINAL_STATES",
    "TIMESTAMP_JITTER",
    "TX_DELAY",
    "USER_AGENT",
    "WALLET_DELAY",

    ######
    "AmountMode",
    "TxState",
]
