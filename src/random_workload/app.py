import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import timedelta

import httpx
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from random_workload.cli import build_run
from random_workload.config import settings as get_settings
from random_workload.logging_config import setup_logging
from random_workload.script import Operations

setup_logging()
log = logging.getLogger("random_workload.app")

TIMEOUT = 3.0


async def _probe_rippled(url: str, max_retries: int = 30, retry_delay: float = 2.0) -> None:
    """Probe the node's RPC endpoint until it answers server_info."""
    payload = {"method": "server_info", "params": [{}]}

    for attempt in range(1, max_retries + 1):
        try:
            async with httpx.AsyncClient(timeout=TIMEOUT) as http:
                r = await http.post(url, json=payload)
                r.raise_for_status()
                log.info(f"RPC endpoint responding (attempt {attempt}/{max_retries})")
                return
        except httpx.HTTPError as e:
            if attempt < max_retries:
                log.info(f"RPC not ready yet (attempt {attempt}/{max_retries}): {e.__class__.__name__} - retrying in {retry_delay}s...")
                await asyncio.sleep(retry_delay)
            else:
                log.error(f"RPC failed after {max_retries} attempts")
                raise


def _load_or_generate(path, duration: float) -> Operations:
    if path.is_file():
        log.info("Replaying script %s", path)
        return Operations.load(path)
    ops = Operations.generate(timedelta(seconds=duration))
    ops.save(path)
    log.info("Generated %s operations, saved to %s", len(ops), path)
    return ops


def _run_done(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    if exc := task.exception():
        log.error("Run aborted: %s", exc)
    else:
        log.info("Run complete")


@asynccontextmanager
async def lifespan(app: FastAPI):
    s = get_settings()
    async with asyncio.timeout(s.timeout.startup):
        log.info("Probing RPC endpoint %s...", s.rpc_url)
        await _probe_rippled(s.rpc_url)

    ops = _load_or_generate(s.script.path, s.script.duration)
    app.state.run = build_run(s, ops)
    app.state.run_task = asyncio.create_task(app.state.run.run(), name="run")
    app.state.run_task.add_done_callback(_run_done)
    try:
        yield
    finally:
        log.info("Shutting down...")
        app.state.run_task.cancel()
        await asyncio.gather(app.state.run_task, return_exceptions=True)
    log.info("Shutdown complete")


app = FastAPI(
    title="Random Workload",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "State", "description": "Run progress and queued receipts"},
    ],
)


class Summary(BaseModel):
    operations: int
    account: str
    pending: int
    submit_operations_done: bool
    submitted: int
    confirmed: int
    cleared: int
    recoveries: int


class PendingEffect(BaseModel):
    tx_hash: str
    to: str
    amount: int
    age: float


def _current_run():
    run = getattr(app.state, "run", None)
    if run is None:
        raise HTTPException(status_code=503, detail="No run started")
    return run


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/state/summary", response_model=Summary, tags=["State"])
def state_summary():
    return _current_run().snapshot()


@app.get("/state/pending", response_model=list[PendingEffect], tags=["State"])
def state_pending():
    return _current_run().snapshot_pending()
