import logging
import os
import re
import tomllib
from collections.abc import Mapping
from pathlib import Path

import autotx.constants as C
from autotx.errors import ConfigurationError, InvalidKeyFormat
from autotx.keys import derive_key_pair
from autotx.models import RunConfig, Wallet

log = logging.getLogger("autotx.config")

pkg_root = Path(__file__).parent
config_file = Path(os.getenv("AUTOTX_CONFIG", pkg_root / "config.toml"))

_address_re = re.compile(C.ADDRESS_PATTERN)


def load_config(path: Path | str | None = None) -> dict:
    cfg = tomllib.loads(Path(path or config_file).read_text())
    ledger = cfg.setdefault("ledger", {})
    ledger["rpc_url"] = os.getenv("RPC_URL", ledger.get("rpc_url", C.RPC_URL))
    ledger.setdefault("timeout", C.RPC_TIMEOUT)
    ledger.setdefault("user_agent", C.USER_AGENT)
    pacing = cfg.setdefault("pacing", {})
    pacing.setdefault("tx_delay", C.TX_DELAY)
    pacing.setdefault("wallet_delay", C.WALLET_DELAY)
    cfg.setdefault("run", {})
    cfg.setdefault("nonce", {}).setdefault("strict", False)
    wallets = cfg.setdefault("wallets", {})
    wallets.setdefault("max_wallets", C.MAX_WALLETS)
    wallets.setdefault("check_keys", True)
    cfg.setdefault("server", {})
    return cfg


cfg = load_config()


def is_valid_address(address: str) -> bool:
    return bool(_address_re.fullmatch(address or ""))


def load_wallets(env: Mapping[str, str] | None = None, *, max_wallets: int | None = None, check_keys: bool | None = None) -> list[Wallet]:
    """Wallets from OCTRA_PRIVATE_KEY_<i> / OCTRA_ADDRESS_<i>, i = 1..max_wallets.

    Slots missing either value are skipped silently; entries with a malformed
    address (or key, when check_keys is on) are skipped with a warning.
    """
    env = os.environ if env is None else env
    max_wallets = max_wallets or cfg["wallets"]["max_wallets"]
    check_keys = cfg["wallets"]["check_keys"] if check_keys is None else check_keys

    wallets = []
    for i in range(1, max_wallets + 1):
        private_key = env.get(f"OCTRA_PRIVATE_KEY_{i}")
        address = env.get(f"OCTRA_ADDRESS_{i}")
        if not private_key or not address:
            continue
        if not is_valid_address(address):
            log.warning("Invalid address format for Wallet%s: %s", i, address)
            continue
        if check_keys:
            try:
                derive_key_pair(private_key)
            except InvalidKeyFormat as e:
                log.warning("Invalid private key for Wallet%s: %s", i, e)
                continue
        wallets.append(Wallet(name=f"Wallet{i}", address=address, private_key=private_key))
    return wallets


def load_recipients(env: Mapping[str, str] | None = None, *, max_recipients: int | None = None) -> list[str]:
    env = os.environ if env is None else env
    max_recipients = max_recipients or cfg["wallets"]["max_wallets"]

    recipients = []
    for i in range(1, max_recipients + 1):
        recipient = env.get(f"RECIPIENT_{i}")
        if not recipient:
            continue
        if is_valid_address(recipient):
            recipients.append(recipient)
        else:
            log.warning("Invalid recipient address format: %s", recipient)
    return recipients


def require_usable(wallets: list[Wallet], recipients: list[str]) -> None:
    if not wallets:
        raise ConfigurationError(
            "No wallets found in environment variables! "
            "Configure OCTRA_PRIVATE_KEY_1, OCTRA_ADDRESS_1, etc."
        )
    if not recipients:
        raise ConfigurationError(
            "No recipients found in environment variables! Configure RECIPIENT_1, RECIPIENT_2, etc."
        )


def run_config(overrides: Mapping | None = None) -> RunConfig:
    """Default run parameters from [run], with any non-None overrides applied."""
    values = dict(cfg["run"])
    values.update({k: v for k, v in (overrides or {}).items() if v is not None})
    try:
        return RunConfig(
            mode=C.AmountMode(values.get("mode", C.AmountMode.FIXED)),
            amount=float(values.get("amount", 0.1)),
            min_amount=float(values.get("min_amount", 0.01)),
            max_amount=float(values.get("max_amount", 0.1)),
            transactions_per_wallet=int(values.get("transactions_per_wallet", 1)),
            max_concurrent_wallets=int(values.get("max_concurrent_wallets", 1)),
        ).validate()
    except ValueError as e:
        raise ConfigurationError(f"invalid run parameters: {e}") from e
