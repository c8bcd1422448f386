import base64
import binascii
import logging

from nacl.bindings import crypto_sign_seed_keypair

import autotx.constants as C
from autotx.errors import InvalidKeyFormat
from autotx.models import KeyPair

log = logging.getLogger("autotx.keys")


def _decode(material: str) -> bytes:
    try:
        return base64.b64decode(material, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise InvalidKeyFormat(f"private key is not valid base64: {e}") from e


def derive_key_pair(material: str) -> KeyPair:
    """Turn base64 key material into an Ed25519 key pair.

    32 bytes are a seed and get expanded; 64 bytes are taken as an already
    expanded secret key whose last 32 bytes are the public key.
    """
    raw = _decode(material)
    if len(raw) == C.SEED_SIZE:
        public_key, secret_key = crypto_sign_seed_keypair(raw)
        return KeyPair(secret_key=secret_key, public_key=public_key)
    if len(raw) == C.SECRET_KEY_SIZE:
        return KeyPair(secret_key=raw, public_key=raw[C.SEED_SIZE:])
    log.debug("Rejecting key material: %s chars, %s bytes", len(material), len(raw))
    raise InvalidKeyFormat(f"invalid key size: {len(raw)} bytes, expected {C.SEED_SIZE} or {C.SECRET_KEY_SIZE}")


def describe_key_material(material: str) -> tuple[int, int | None, str | None]:
    """(chars, bytes, error) for display; never raises."""
    try:
        return len(material), len(_decode(material)), None
    except InvalidKeyFormat as e:
        return len(material), None, str(e)
