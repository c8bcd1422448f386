import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Sequence

import autotx.constants as C
from autotx.errors import (
    AutoTxError,
    ConfigurationError,
    InvalidKeyFormat,
    NonceQueryDegraded,
    SerializationError,
    TransportError,
)
from autotx.keys import derive_key_pair, describe_key_material
from autotx.ledger import LedgerClient
from autotx.models import Accepted, RunConfig, RunState, RunSummary, SubmissionResult, Wallet, WalletInfo
from autotx.nonce import NonceSequencer
from autotx.transaction import TransactionBuilder

log = logging.getLogger("autotx.orchestrator")

Sleep = Callable[[float], Awaitable[None]]


class SubmissionOrchestrator:
    """Drives wallets x transactions through nonce -> build -> sign -> submit.

    Each account has at most one transaction in flight: a send is awaited to
    completion before the next one for the same account starts, so nonces
    derived from the ledger can't race. Failed sends are recorded, never
    retried, and the run moves on.
    """

    def __init__(
        self,
        client: LedgerClient,
        sequencer: NonceSequencer | None = None,
        builder: TransactionBuilder | None = None,
        *,
        rng: random.Random | None = None,
        sleep: Sleep = asyncio.sleep,
        tx_delay: float = C.TX_DELAY,
        wallet_delay: float = C.WALLET_DELAY,
    ):
        self.client = client
        self.rng = rng or random.Random()
        self.sequencer = sequencer or NonceSequencer(client)
        self.builder = builder or TransactionBuilder(rng=self.rng)
        self.sleep = sleep
        self.tx_delay = tx_delay
        self.wallet_delay = wallet_delay

    @classmethod
    def from_config(
        cls,
        config: dict,
        client: LedgerClient,
        *,
        rng: random.Random | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> "SubmissionOrchestrator":
        pacing = config["pacing"]
        return cls(
            client,
            NonceSequencer(client, strict=bool(config["nonce"]["strict"])),
            rng=rng,
            sleep=sleep,
            tx_delay=float(pacing["tx_delay"]),
            wallet_delay=float(pacing["wallet_delay"]),
        )

    def resolve_amount(self, config: RunConfig) -> float:
        if config.mode == C.AmountMode.RANDOM:
            # Drawn in whole micro-units so six decimals never round up to max_amount.
            low, high = config.micro_range()
            return self.rng.randrange(low, high) / C.MICRO_UNITS
        return config.amount

    def pick_recipient(self, recipients: Sequence[str]) -> str:
        return self.rng.choice(recipients)

    async def send(self, wallet: Wallet, recipient: str, amount: float) -> SubmissionResult:
        result = SubmissionResult(success=False, wallet=wallet.name, recipient=recipient, amount=amount)
        try:
            key_pair = derive_key_pair(wallet.private_key)
            result.nonce = await self.sequencer.next_nonce(wallet.address)
            signed = self.builder.build(wallet.address, key_pair, recipient, amount, result.nonce)
            result.state = C.TxState.SIGNED
            tier = signed.transaction.fee_tier
            log.info("%s | Nonce: %s, Amount: %s OCT", wallet.name, result.nonce, amount)
            log.info("%s | Fee: %s OCT", wallet.name, C.FEE_DISPLAY[tier])

            result.state = C.TxState.SUBMITTED
            outcome = await self.client.submit(signed)
        except (InvalidKeyFormat, SerializationError, NonceQueryDegraded) as e:
            result.state = C.TxState.REJECTED
            result.error = str(e)
            return result
        except TransportError as e:
            result.state = C.TxState.FAILED_NET
            result.error = str(e)
            return result

        if isinstance(outcome, Accepted):
            result.success = True
            result.tx_hash = outcome.tx_hash
            result.state = C.TxState.ACCEPTED
        else:
            result.state = C.TxState.REJECTED
            result.error = outcome.error
        return result

    async def _log_balance(self, wallet: Wallet) -> None:
        try:
            account = await self.client.get_balance(wallet.address)
        except AutoTxError as e:
            log.warning("%s | Error getting balance: %s", wallet.name, e)
            return
        log.info("%s | Balance: %.6f OCT", wallet.name, account.balance)

    async def _run_wallet(
        self,
        wallet: Wallet,
        recipients: Sequence[str],
        config: RunConfig,
        state: RunState,
        *,
        pause_after_last: bool,
    ) -> None:
        log.info("Processing %s: %s", wallet.name, wallet.address)
        await self._log_balance(wallet)

        count = config.transactions_per_wallet
        for i in range(count):
            recipient = self.pick_recipient(recipients)
            amount = self.resolve_amount(config)
            log.info("%s | Sending %.6f OCT to %s... (tx %s/%s)", wallet.name, amount, recipient[:10], i + 1, count)

            result = await self.send(wallet, recipient, amount)
            state.record(result)

            if result.success:
                log.info("%s | TX %s/%s OK Hash: %s", wallet.name, i + 1, count, result.tx_hash)
                log.info("%s | Explorer: %s", wallet.name, result.link)
            else:
                log.error("%s | TX %s/%s %s Error: %s", wallet.name, i + 1, count, result.state, result.error)
            log.info("Progress: %s/%s", state.attempted, state.total)

            if i < count - 1 or pause_after_last:
                log.debug("Waiting %ss before next transaction...", self.tx_delay)
                await self.sleep(self.tx_delay)

    async def run(
        self,
        wallets: Sequence[Wallet],
        recipients: Sequence[str],
        config: RunConfig,
        state: RunState | None = None,
    ) -> RunSummary:
        if not wallets:
            raise ConfigurationError("No wallets configured")
        if not recipients:
            raise ConfigurationError("No recipients configured")
        config.validate()

        state = state or RunState(total=len(wallets) * config.transactions_per_wallet)
        log.info("Starting transactions for %s wallets...", len(wallets))
        log.info(
            "Configuration: %s tx per wallet to %s recipients (randomized)",
            config.transactions_per_wallet,
            len(recipients),
        )
        log.info("Amount: %s OCT", config.describe_amount())
        log.info("RPC Endpoint: %s", self.client.base_url)

        if config.max_concurrent_wallets == 1:
            for idx, wallet in enumerate(wallets):
                last = idx == len(wallets) - 1
                await self._run_wallet(wallet, recipients, config, state, pause_after_last=not last)
                if not last:
                    log.info("Waiting %ss before processing next wallet...", self.wallet_delay)
                    await self.sleep(self.wallet_delay)
        else:
            # Nonces are per account, so distinct wallets may run side by side.
            gate = asyncio.Semaphore(config.max_concurrent_wallets)

            async def worker(wallet: Wallet) -> None:
                async with gate:
                    await self._run_wallet(wallet, recipients, config, state, pause_after_last=False)

            async with asyncio.TaskGroup() as tg:
                for wallet in wallets:
                    tg.create_task(worker(wallet), name=f"wallet:{wallet.name}")

        summary = state.summary()
        log.info("All transactions completed!")
        log.info(
            "Success Rate: %s/%s (%.1f%%) in %.1fs",
            summary.succeeded,
            summary.attempted,
            summary.success_rate * 100,
            summary.duration,
        )
        return summary

    async def describe_wallets(self, wallets: Sequence[Wallet]) -> list[WalletInfo]:
        out = []
        for wallet in wallets:
            try:
                account, nonce = await self.sequencer.account_state(wallet.address)
            except NonceQueryDegraded as e:
                log.warning("%s | %s", wallet.name, e)
                account, nonce = None, 0
            chars, size, error = describe_key_material(wallet.private_key)
            if error:
                log.error("%s | Private key decode error: %s", wallet.name, error)
            out.append(
                WalletInfo(
                    name=wallet.name,
                    address=wallet.address,
                    balance=account.balance if account else 0.0,
                    nonce=nonce,
                    key_chars=chars,
                    key_bytes=size,
                    key_error=error,
                    found=account.found if account else None,
                )
            )
        return out
