"""Canonical transaction construction and signing.

The verifier re-serialises the signed fields and checks the Ed25519 signature
against those exact bytes, so the encoder below must emit the fields in wire
order with no whitespace. JSON numbers are written the way a JavaScript
verifier writes them: integral floats carry no trailing ".0".
"""

import base64
import json
import logging
import math
import random
import time
from collections.abc import Callable
from typing import Any

from nacl.bindings import crypto_sign
from nacl.exceptions import CryptoError

import autotx.constants as C
from autotx.errors import SerializationError
from autotx.models import KeyPair, SignedTransaction, Transaction

log = logging.getLogger("autotx.txn")


def to_micro_units(amount: float) -> int:
    return math.floor(amount * C.MICRO_UNITS)


def fee_tier(amount: float) -> str:
    return C.FEE_TIER_LOW if amount < C.FEE_TIER_THRESHOLD else C.FEE_TIER_HIGH


def _encode_value(value: Any) -> str:
    if isinstance(value, bool) or value is None:
        return json.dumps(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise SerializationError(f"cannot encode non-finite number {value!r}")
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (int, str)):
        return json.dumps(value, ensure_ascii=False)
    raise SerializationError(f"cannot encode {type(value).__name__} in a transaction")


def canonical_message(fields: list[tuple[str, Any]]) -> bytes:
    body = ",".join(f"{_encode_value(k)}:{_encode_value(v)}" for k, v in fields)
    return ("{" + body + "}").encode("utf-8")


def sign_detached(message: bytes, secret_key: bytes) -> bytes:
    if len(secret_key) != C.SECRET_KEY_SIZE:
        raise SerializationError(f"secret key must be {C.SECRET_KEY_SIZE} bytes, got {len(secret_key)}")
    # crypto_sign returns signature || message; only the signature is kept.
    return crypto_sign(message, secret_key)[: C.SIGNATURE_SIZE]


class TransactionBuilder:
    def __init__(self, *, rng: random.Random | None = None, clock: Callable[[], float] = time.time):
        self.rng = rng or random.Random()
        self.clock = clock

    def timestamp(self) -> float:
        return self.clock() + self.rng.random() * C.TIMESTAMP_JITTER

    def build(self, from_address: str, key_pair: KeyPair, to_address: str, amount: float, nonce: int) -> SignedTransaction:
        try:
            if not (isinstance(amount, (int, float)) and math.isfinite(amount) and amount > 0):
                raise SerializationError(f"amount must be a positive number, got {amount!r}")
            micro = to_micro_units(amount)
            if micro <= 0:
                raise SerializationError(f"amount {amount} is below one micro-unit")

            tx = Transaction(
                sender=from_address,
                recipient=to_address,
                amount=str(micro),
                nonce=int(nonce),
                fee_tier=fee_tier(amount),
                timestamp=self.timestamp(),
            )
            message = canonical_message(tx.signing_fields())
            signature = sign_detached(message, key_pair.secret_key)
        except SerializationError:
            raise
        except (CryptoError, TypeError, ValueError) as e:
            log.error("Transaction creation error: %s", e)
            raise SerializationError(f"could not build transaction: {e}") from e

        signed = SignedTransaction(
            transaction=tx,
            message=message,
            signature=base64.b64encode(signature).decode(),
            public_key=base64.b64encode(key_pair.public_key).decode(),
        )
        log.debug("%s... | Message: %s...", from_address[:10], message[:100].decode("utf-8", "replace"))
        log.debug("%s... | Signature: %s...", from_address[:10], signed.signature[:20])
        return signed
