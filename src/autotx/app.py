import asyncio
import logging
from contextlib import asynccontextmanager
from collections.abc import Mapping

import httpx
from fastapi import APIRouter, FastAPI, HTTPException, Request
from pydantic import BaseModel, PositiveFloat, PositiveInt

import autotx.constants as C
from autotx import config as conf
from autotx.errors import ConfigurationError
from autotx.ledger import LedgerClient
from autotx.logging_config import setup_logging
from autotx.models import RunState, RunSummary
from autotx.orchestrator import Sleep, SubmissionOrchestrator

log = logging.getLogger("autotx.app")


class RunReq(BaseModel):
    mode: C.AmountMode | None = None
    amount: PositiveFloat | None = None
    min_amount: PositiveFloat | None = None
    max_amount: PositiveFloat | None = None
    transactions_per_wallet: PositiveInt | None = None
    max_concurrent_wallets: PositiveInt | None = None


class RunTracker:
    """The one run this service may have going at a time."""

    def __init__(self) -> None:
        self.task: asyncio.Task | None = None
        self.state: RunState | None = None
        self.summary: RunSummary | None = None
        self.error: str | None = None

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    def _finished(self, task: asyncio.Task) -> None:
        if task.cancelled():
            self.error = "cancelled"
            return
        exc = task.exception()
        if exc is not None:
            log.error("Run failed", exc_info=exc)
            self.error = f"{exc.__class__.__name__}: {exc}"
            return
        self.summary = task.result()

    def start(self, coro_factory, state: RunState) -> None:
        self.state, self.summary, self.error = state, None, None
        self.task = asyncio.create_task(coro_factory(), name="run")
        self.task.add_done_callback(self._finished)

    def status(self) -> dict:
        return {
            "running": self.running,
            "progress": self.state.snapshot() if self.state else None,
            "summary": self.summary.to_dict() if self.summary else None,
            "error": self.error,
        }


def create_app(
    *,
    env: Mapping[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    sleep: Sleep = asyncio.sleep,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Nothing touches the network until wallets and recipients check out.
        wallets = conf.load_wallets(env)
        recipients = conf.load_recipients(env)
        conf.require_usable(wallets, recipients)
        log.info("Found %s wallet(s) and %s recipient(s)", len(wallets), len(recipients))

        client = LedgerClient.from_config(conf.cfg, transport=transport)
        app.state.wallets = wallets
        app.state.recipients = recipients
        app.state.orchestrator = SubmissionOrchestrator.from_config(conf.cfg, client, sleep=sleep)
        app.state.tracker = RunTracker()
        try:
            yield
        finally:
            log.info("Shutting down...")
            tracker: RunTracker = app.state.tracker
            if tracker.running:
                log.warning("Run still in progress at shutdown; it will be abandoned")
                tracker.task.cancel()
            await client.aclose()

    app = FastAPI(
        title="Octra Auto-TX",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Wallets", "description": "Configured wallets and recipients"},
            {"name": "Run", "description": "Start and watch a transaction run"},
        ],
    )

    r_wallets = APIRouter(tags=["Wallets"])
    r_run = APIRouter(prefix="/run", tags=["Run"])

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @r_wallets.get("/wallets")
    async def wallets_info(request: Request):
        orchestrator: SubmissionOrchestrator = request.app.state.orchestrator
        info = await orchestrator.describe_wallets(request.app.state.wallets)
        return [i.to_dict() for i in info]

    @r_wallets.get("/recipients")
    def recipients(request: Request):
        return request.app.state.recipients

    @r_run.post("", status_code=202)
    async def start_run(req: RunReq, request: Request):
        tracker: RunTracker = request.app.state.tracker
        if tracker.running:
            raise HTTPException(status_code=409, detail="A run is already in progress")
        try:
            run_config = conf.run_config(req.model_dump())
        except ConfigurationError as e:
            raise HTTPException(status_code=400, detail=str(e))

        orchestrator: SubmissionOrchestrator = request.app.state.orchestrator
        wallets, recipients = request.app.state.wallets, request.app.state.recipients
        state = RunState(total=len(wallets) * run_config.transactions_per_wallet)
        log.info("Starting %s amount run", run_config.mode)
        tracker.start(lambda: orchestrator.run(wallets, recipients, run_config, state), state)
        return {"status": "started", "total": state.total}

    @r_run.get("/status")
    def run_status(request: Request):
        return request.app.state.tracker.status()

    app.include_router(r_wallets)
    app.include_router(r_run)
    return app


setup_logging()
app = create_app()
