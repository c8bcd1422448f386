import argparse
import asyncio
import logging
import random
import sys

import autotx.constants as C
from autotx import config as conf
from autotx.errors import ConfigurationError
from autotx.ledger import LedgerClient
from autotx.logging_config import setup_logging
from autotx.orchestrator import SubmissionOrchestrator

log = logging.getLogger("autotx.cli")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="autotx", description="Send transactions from configured Octra wallets.")
    parser.add_argument("--log-level", help="Override LOG_LEVEL.")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Send transactions from every wallet.")
    run.add_argument("--mode", choices=[m.value for m in C.AmountMode], help="Fixed or random amounts.")
    run.add_argument("--amount", type=float, help="Amount per transaction (OCT), fixed mode.")
    run.add_argument("--min", dest="min_amount", type=float, help="Minimum amount (OCT), random mode.")
    run.add_argument("--max", dest="max_amount", type=float, help="Maximum amount (OCT), random mode.")
    run.add_argument("-n", "--count", dest="transactions_per_wallet", type=int, help="Transactions per wallet.")
    run.add_argument("-p", "--parallel", dest="max_concurrent_wallets", type=int,
                     help="Wallets processed at the same time (default 1).")
    run.add_argument("--seed", type=int, help="Seed for recipient/amount selection.")

    sub.add_parser("wallets", help="Show balance, nonce and key info per wallet.")

    serve = sub.add_parser("serve", help="Run the HTTP control service.")
    serve.add_argument("--host", help="Bind address.")
    serve.add_argument("--port", type=int, help="Bind port.")
    return parser.parse_args(argv)


def overrides(a) -> dict:
    o: dict = {}
    for key in ("mode", "amount", "min_amount", "max_amount", "transactions_per_wallet", "max_concurrent_wallets"):
        value = getattr(a, key, None)
        if value is not None:
            o[key] = value
    return o


async def run_command(a) -> int:
    wallets = conf.load_wallets()
    recipients = conf.load_recipients()
    conf.require_usable(wallets, recipients)
    run_config = conf.run_config(overrides(a))

    log.info("Found %s wallet(s) and %s recipient(s)", len(wallets), len(recipients))
    for w in wallets:
        log.info("%s: %s", w.name, w.short)

    async with LedgerClient.from_config(conf.cfg) as client:
        orchestrator = SubmissionOrchestrator.from_config(conf.cfg, client, rng=random.Random(a.seed))
        summary = await orchestrator.run(wallets, recipients, run_config)
    return 0 if summary.succeeded == summary.attempted else 2


async def wallets_command(a) -> int:
    wallets = conf.load_wallets()
    if not wallets:
        raise ConfigurationError("No wallets found in environment variables!")
    async with LedgerClient.from_config(conf.cfg) as client:
        orchestrator = SubmissionOrchestrator.from_config(conf.cfg, client)
        for info in await orchestrator.describe_wallets(wallets):
            print(f"{info.name}:")
            print(f"  Address: {info.address}" + (" (not on ledger yet)" if info.found is False else ""))
            print(f"  Balance: {info.balance:.6f} OCT")
            print(f"  Nonce:   {info.nonce}")
            print(f"  PK Info: {info.key_chars} chars, {info.key_bytes if info.key_bytes is not None else '?'} bytes")
    return 0


def serve_command(a) -> int:
    import uvicorn

    server = conf.cfg["server"]
    uvicorn.run(
        "autotx.app:app",
        host=a.host or server.get("host", "0.0.0.0"),
        port=a.port or int(server.get("port", 8000)),
        lifespan="on",
    )
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)
    try:
        if args.command == "serve":
            return serve_command(args)
        command = run_command if args.command == "run" else wallets_command
        return asyncio.run(command(args))
    except ConfigurationError as e:
        log.error("%s", e)
        return 1
    except KeyboardInterrupt:
        log.info("Interrupted")
        return 130
    except Exception as e:
        log.exception("Application error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
