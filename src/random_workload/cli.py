import argparse
import asyncio
import logging
import sys
from datetime import timedelta
from pathlib import Path

from random_workload import randoms
from random_workload.chain import SequencedClient, Signer
from random_workload.config import Settings, settings as get_settings
from random_workload.logging_config import setup_logging
from random_workload.run import Run
from random_workload.script import Operations

log = logging.getLogger("random_workload.cli")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="random-workload")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate a random script and save it.")
    gen.add_argument("-d", "--duration", type=float, help="Seconds of cumulative Wait to target.")
    gen.add_argument("-o", "--out", type=Path, help="Where to write the script.")
    gen.add_argument("--seed", help="Seed for the random source.")

    run = sub.add_parser("run", help="Submit a script and track every transfer until it lands.")
    run.add_argument("-s", "--script", type=Path, help="Replay a saved script instead of generating one.")
    run.add_argument("-d", "--duration", type=float, help="Seconds of cumulative Wait to target.")
    run.add_argument("--save", type=Path, help="Save the generated script here before running.")
    run.add_argument("--seed", help="Seed for the random source.")

    serve = sub.add_parser("serve", help="Start the HTTP control plane.")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    return parser.parse_args(argv)


def overrides(a) -> dict:
    o: dict = {}
    script = {}
    if getattr(a, "duration", None) is not None:
        script["duration"] = a.duration
    if getattr(a, "out", None) is not None:
        script["path"] = a.out
    if script:
        o["script"] = script
    return o


def build_run(s: Settings, operations: Operations) -> Run:
    signer = Signer.from_seed(
        s.rpc_url, s.funding_account.seed, s.funding_account.algorithm, rpc_timeout=s.timeout.rpc
    )
    return Run(
        operations,
        signer,
        client_factory=lambda sg: SequencedClient(sg, fee_drops=s.transfer.fee_drops),
        receipt_timeout=s.timeout.receipt,
        idle_backoff=s.timeout.idle_backoff,
        pending_backoff=s.timeout.pending_backoff,
    )


def cmd_generate(a, s: Settings) -> int:
    ops = Operations.generate(timedelta(seconds=s.script.duration))
    ops.save(s.script.path)
    log.info("Wrote %s operations (%s waiting) to %s", len(ops), ops.total_wait(), s.script.path)
    return 0


async def _run(s: Settings, operations: Operations) -> None:
    run = build_run(s, operations)
    log.info("Running %s operations from %s", len(operations), run.signer.address)
    await run.run()
    log.info("Run finished: %s", run.snapshot())


def cmd_run(a, s: Settings) -> int:
    if a.script is not None:
        ops = Operations.load(a.script)
        log.info("Loaded %s operations from %s", len(ops), a.script)
    else:
        ops = Operations.generate(timedelta(seconds=s.script.duration))
        if a.save is not None:
            ops.save(a.save)
            log.info("Saved script to %s", a.save)
    failed = False
    try:
        asyncio.run(_run(s, ops))
    except* Exception as eg:
        for exc in eg.exceptions:
            log.error("Run aborted: %s: %s", type(exc).__name__, exc)
        failed = True
    return 1 if failed else 0


def cmd_serve(a, s: Settings) -> int:
    import uvicorn

    uvicorn.run("random_workload.app:app", host=a.host, port=a.port, lifespan="on")
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging()
    if getattr(args, "seed", None) is not None:
        randoms.seed(args.seed)
    s = get_settings(**overrides(args))
    match args.command:
        case "generate":
            return cmd_generate(args, s)
        case "run":
            return cmd_run(args, s)
        case "serve":
            return cmd_serve(args, s)
    return 2


if __name__ == "__main__":
    sys.exit(main())
