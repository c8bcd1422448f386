import asyncio
import logging

from autotx.errors import AutoTxError, NonceQueryDegraded, RemoteRejection
from autotx.ledger import LedgerClient
from autotx.models import AccountState

log = logging.getLogger("autotx.nonce")


class NonceSequencer:
    """Derives the next nonce for an account from the ledger on every call.

    Staged (not yet confirmed) transactions count, since a previous run or
    another process may have sends in flight for the same account. A balance
    query the ledger answers with an error counts as confirmed nonce 0, so the
    staged nonces still apply. When the ledger can't be reached at all the
    base nonce falls back to 0 and a warning is logged; with strict=True the
    NonceQueryDegraded is raised instead.
    """

    def __init__(self, client: LedgerClient, *, strict: bool = False):
        self.client = client
        self.strict = strict

    async def _confirmed(self, address: str) -> AccountState | None:
        try:
            return await self.client.get_balance(address)
        except RemoteRejection as e:
            log.warning("Balance query for %s rejected, using staged nonces only: %s", address[:10], e)
            return None

    async def _query(self, address: str) -> tuple[AccountState | None, int]:
        degraded: NonceQueryDegraded | None = None
        try:
            async with asyncio.TaskGroup() as tg:
                confirmed = tg.create_task(self._confirmed(address))
                staged = tg.create_task(self.client.get_staged())
        except* AutoTxError as eg:
            degraded = NonceQueryDegraded(address, eg.exceptions[0])
        if degraded is not None:
            raise degraded

        account = confirmed.result()
        nonce = account.nonce if account else 0
        ours = [tx.nonce for tx in staged.result() if tx.sender == address]
        return account, max(nonce, max(ours, default=0))

    async def account_state(self, address: str) -> tuple[AccountState | None, int]:
        """(confirmed state or None if unreadable, base nonce) from one round of reads."""
        try:
            return await self._query(address)
        except NonceQueryDegraded as e:
            if self.strict:
                raise
            log.warning("Error getting nonce for %s, falling back to 0: %s", address[:10], e.cause)
            return None, 0

    async def current_nonce(self, address: str) -> int:
        _, nonce = await self.account_state(address)
        return nonce

    async def next_nonce(self, address: str) -> int:
        return await self.current_nonce(address) + 1
