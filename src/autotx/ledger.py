import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

import autotx.constants as C
from autotx.errors import RemoteRejection, TransportError
from autotx.models import Accepted, AccountState, SignedTransaction, StagedTransaction

log = logging.getLogger("autotx.ledger")


@dataclass(frozen=True, slots=True)
class LedgerResponse:
    status: int
    data: Any
    text: str
    reason: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def parse_plaintext_hash(text: str) -> str | None:
    """Hash from an "OK ... <hash>" body, or None if the body isn't one."""
    if not text or not text.strip().lower().startswith("ok"):
        return None
    parts = text.split()
    return parts[-1] if len(parts) > 1 else None


def error_text(resp: LedgerResponse) -> str:
    data = resp.data
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    if data is not None:
        return json.dumps(data, separators=(",", ":"))
    return resp.text.strip() or resp.reason or "Unknown error"


class LedgerClient:
    """Request/response access to the ledger RPC.

    Every HTTP status comes back as a LedgerResponse; only network failures
    and timeouts raise (TransportError). Nothing about ledger state is cached.
    """

    def __init__(
        self,
        base_url: str = C.RPC_URL,
        *,
        timeout: float = C.RPC_TIMEOUT,
        user_agent: str = C.USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Accept": "application/json", "User-Agent": user_agent},
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: dict, *, transport: httpx.AsyncBaseTransport | None = None) -> "LedgerClient":
        ledger = config["ledger"]
        return cls(
            ledger["rpc_url"],
            timeout=float(ledger["timeout"]),
            user_agent=ledger["user_agent"],
            transport=transport,
        )

    async def __aenter__(self) -> "LedgerClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def request(self, method: str, path: str, payload: dict | None = None) -> LedgerResponse:
        log.debug("%s %s", method, path)
        try:
            if method == "POST" and payload is not None:
                resp = await self._http.request(method, path, json=payload)
            else:
                resp = await self._http.request(method, path)
        except httpx.TimeoutException as e:
            raise TransportError(method, path, f"timeout ({e.__class__.__name__})") from e
        except httpx.HTTPError as e:
            raise TransportError(method, path, str(e) or e.__class__.__name__) from e

        try:
            data = resp.json() if resp.content else None
        except ValueError:
            data = None
        return LedgerResponse(status=resp.status_code, data=data, text=resp.text, reason=resp.reason_phrase)

    async def get_balance(self, address: str) -> AccountState:
        r = await self.request("GET", f"/balance/{address}")
        if r.status == 404:
            return AccountState(balance=0.0, nonce=0, found=False)
        if r.ok and isinstance(r.data, dict):
            try:
                return AccountState.from_balance_result(r.data)
            except (TypeError, ValueError) as e:
                raise RemoteRejection(f"malformed balance response: {e}", r.status, r.data) from e
        if r.ok and r.text.strip():
            try:
                return AccountState.from_balance_text(r.text)
            except ValueError:
                log.debug("Unparseable balance body for %s: %r", address, r.text[:100])
        raise RemoteRejection(error_text(r) if not r.ok else "unrecognised balance response", r.status, r.data)

    async def get_staged(self) -> list[StagedTransaction]:
        r = await self.request("GET", "/staging")
        if not r.ok or not isinstance(r.data, dict):
            log.warning("Staging query returned %s, treating as empty", r.status)
            return []
        staged = r.data.get("staged_transactions") or []
        try:
            return [StagedTransaction.from_staged_result(tx) for tx in staged if isinstance(tx, dict)]
        except (TypeError, ValueError) as e:
            raise RemoteRejection(f"malformed staging response: {e}", r.status, r.data) from e

    async def submit(self, signed: SignedTransaction) -> Accepted | RemoteRejection:
        r = await self.request("POST", "/send-tx", signed.to_wire())
        if r.ok:
            if isinstance(r.data, dict) and r.data.get("status") == "accepted" and r.data.get("tx_hash"):
                return Accepted(tx_hash=r.data["tx_hash"], status=r.status)
            tx_hash = parse_plaintext_hash(r.text) if r.data is None else None
            if tx_hash:
                return Accepted(tx_hash=tx_hash, status=r.status)
        return RemoteRejection(error_text(r), r.status, r.data)
