"""Error taxonomy.

Per-send errors (InvalidKeyFormat, SerializationError, TransportError,
RemoteRejection, NonceQueryDegraded) end one transaction attempt and are
recorded as a failed result. ConfigurationError stops a run before any
network call is made.
"""

from typing import Any


class AutoTxError(Exception):
    pass


class ConfigurationError(AutoTxError):
    pass


class InvalidKeyFormat(AutoTxError):
    pass


class SerializationError(AutoTxError):
    pass


class TransportError(AutoTxError):
    """Network failure or timeout talking to the ledger."""

    def __init__(self, method: str, path: str, reason: str):
        self.method = method
        self.path = path
        self.reason = reason
        super().__init__(f"{method} {path} failed: {reason}")


class RemoteRejection(AutoTxError):
    """The ledger answered, but not with success."""

    def __init__(self, error: str, status: int | None = None, payload: Any = None):
        self.error = error
        self.status = status
        self.payload = payload
        super().__init__(error)


class NonceQueryDegraded(AutoTxError):
    def __init__(self, address: str, cause: BaseException):
        self.address = address
        self.cause = cause
        super().__init__(f"nonce query for {address} failed: {cause}")
