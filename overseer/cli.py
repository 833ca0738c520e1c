"""CLI entry point: worker, router, enqueue and examples sub-commands."""

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Sequence
from pathlib import Path

from pydantic import ValidationError

from overseer.config import ConfigError, Settings, load_settings
from overseer.parser import JobParser, ParseError
from overseer.probes.registry import ProbeRegistry, UnknownProbeError, load_probe_registry
from overseer.queue import JOBS_QUEUE, RESULTS_QUEUE, QueueError, RedisQueue
from overseer.router import Destination, DestinationSyntaxError, Router, parse_destination
from overseer.worker import Worker

log = logging.getLogger("overseer")


def install_stop_handlers(stop: asyncio.Event) -> None:
    """Set stop on SIGINT or SIGTERM."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)


async def run_worker(settings: Settings, registry: ProbeRegistry) -> int:
    """Run the worker until interrupted and return exit code."""
    async with RedisQueue.from_config(settings.redis_config()) as queue:
        try:
            await queue.ping()
        except QueueError as exc:
            log.error("%s", exc)
            return 1

        worker = Worker(
            queue=queue,
            registry=registry,
            parser=JobParser(registry=registry),
            resolver=settings.resolver(),
            options=settings.execution_options(),
            retry=settings.retry_policy(),
        )
        stop = asyncio.Event()
        install_stop_handlers(stop)
        await worker.run(stop)

    return 0


def parse_destinations(specs: Sequence[str]) -> Sequence[Destination]:
    """Parse every --dest-queue value.

    Raises:
        DestinationSyntaxError: On the first invalid value

    """
    return [parse_destination(spec) for spec in specs]


async def run_router(
    settings: Settings, destination_specs: Sequence[str], source_queue: str
) -> int:
    """Run the router until interrupted and return exit code."""
    try:
        destinations = parse_destinations(destination_specs)
    except DestinationSyntaxError as exc:
        log.error("%s", exc)
        return 1

    async with RedisQueue.from_config(settings.redis_config()) as queue:
        try:
            await queue.ping()
        except QueueError as exc:
            log.error("%s", exc)
            return 1

        router = Router(queue=queue, destinations=destinations, source_queue=source_queue)
        stop = asyncio.Event()
        install_stop_handlers(stop)
        await router.run(stop)

    return 0


async def run_enqueue(
    settings: Settings, registry: ProbeRegistry, paths: Sequence[Path]
) -> int:
    """Parse check files and push each valid test onto the jobs queue.

    Returns 1 if any line failed to parse or any file was unreadable,
    after the valid lines have been queued.
    """
    parser = JobParser(registry=registry)
    lines: list[str] = []
    failed = False

    for path in paths:
        try:
            content = path.read_text()
        except OSError as exc:
            log.error("Failed to read %s: %s", path, exc)
            failed = True
            continue

        for number, parsed in parser.parse_lines(content.splitlines()):
            if isinstance(parsed, ParseError):
                log.error("%s:%d: %s", path, number, parsed)
                failed = True
                continue
            lines.append(parsed.input)

    async with RedisQueue.from_config(settings.redis_config()) as queue:
        try:
            for line in lines:
                await queue.push(JOBS_QUEUE, line.encode())
        except QueueError as exc:
            log.error("%s", exc)
            return 1

    log.info("Queued %d test(s) on %s", len(lines), JOBS_QUEUE)
    return 1 if failed else 0


def print_examples(registry: ProbeRegistry, name: str | None = None) -> int:
    """Print the usage example of one probe, or of all of them."""
    names = [name] if name else list(registry)
    for probe_name in names:
        try:
            probe = registry.create(probe_name)
        except UnknownProbeError as exc:
            log.error("%s", exc)
            return 1
        print(probe.example())
    return 0


def build_parser(defaults: Settings) -> argparse.ArgumentParser:
    """Build the argument parser, using defaults for every option."""
    parser = argparse.ArgumentParser(
        prog="overseer", description="Distributed active monitoring"
    )
    parser.add_argument(
        "--verbose",
        action=argparse.BooleanOptionalAction,
        default=defaults.verbose,
        help="Show more output",
    )
    parser.add_argument(
        "--redis-host",
        default=defaults.redis_host,
        help="Address of the redis queue (host:port)",
    )
    parser.add_argument(
        "--redis-db",
        type=int,
        default=defaults.redis_db,
        help="Database number for redis",
    )
    parser.add_argument(
        "--redis-pass",
        dest="redis_password",
        default=defaults.redis_password.get_secret_value(),
        help="Password for the redis queue",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    worker = commands.add_parser(
        "worker", help="Fetch jobs from the central queue and execute them"
    )
    worker.add_argument(
        "-4",
        "--ipv4",
        action=argparse.BooleanOptionalAction,
        default=defaults.ipv4,
        help="Run tests against IPv4 addresses",
    )
    worker.add_argument(
        "-6",
        "--ipv6",
        action=argparse.BooleanOptionalAction,
        default=defaults.ipv6,
        help="Run tests against IPv6 addresses",
    )
    worker.add_argument(
        "--timeout",
        type=float,
        default=defaults.timeout,
        help="Timeout for each test, in seconds",
    )
    worker.add_argument(
        "--retry",
        action=argparse.BooleanOptionalAction,
        default=defaults.retry,
        help="Retry failing tests before reporting a failure",
    )
    worker.add_argument(
        "--retry-count",
        type=int,
        default=defaults.retry_count,
        help="Attempts per test before regarding it as a failure",
    )
    worker.add_argument(
        "--retry-delay",
        type=float,
        default=defaults.retry_delay,
        help="Seconds to sleep between failing attempts",
    )

    router = commands.add_parser(
        "router", help="Forward results to destination queues, optionally filtered"
    )
    router.add_argument(
        "--dest-queue",
        dest="destinations",
        action="append",
        default=[],
        help="Destination queue, e.g. overseer.results.email[result=failed]",
    )
    router.add_argument(
        "--source-queue",
        default=RESULTS_QUEUE,
        help="Queue to read results from",
    )

    enqueue = commands.add_parser("enqueue", help="Queue the tests found in files")
    enqueue.add_argument("paths", type=Path, nargs="+", help="Files of checks")

    examples = commands.add_parser("examples", help="Show probe usage examples")
    examples.add_argument("probe", nargs="?", help="Probe name (default: all)")

    return parser


def settings_from_args(defaults: Settings, args: argparse.Namespace) -> Settings:
    """Overlay parsed command-line values on the loaded settings."""
    overrides = {
        name: value
        for name, value in vars(args).items()
        if name in Settings.model_fields
    }
    return Settings.model_validate(defaults.model_dump() | overrides)


def main() -> None:
    """CLI entry point."""
    try:
        defaults = load_settings()
        config_error = None
    except ConfigError as exc:
        defaults = Settings()
        config_error = exc

    parser = build_parser(defaults)
    args = parser.parse_args()
    try:
        settings = settings_from_args(defaults, args)
    except ValidationError as exc:
        parser.error(str(exc))

    logging.basicConfig(
        level=logging.DEBUG if settings.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    if config_error is not None:
        log.warning("%s", config_error)

    registry = load_probe_registry()

    match args.command:
        case "worker":
            exit_code = asyncio.run(run_worker(settings, registry))
        case "router":
            exit_code = asyncio.run(
                run_router(settings, args.destinations, args.source_queue)
            )
        case "enqueue":
            exit_code = asyncio.run(run_enqueue(settings, registry, args.paths))
        case _:
            exit_code = print_examples(registry, args.probe)

    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
