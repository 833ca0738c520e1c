"""Worker executing tests pulled from the jobs queue."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

from overseer.models.options import ExecutionOptions, RetryPolicy
from overseer.models.result import ResultMessage
from overseer.models.test import Test, redact_url_credentials
from overseer.parser import JobParser, ParseError
from overseer.probes.base import Probe
from overseer.probes.registry import ProbeRegistry, UnknownProbeError
from overseer.queue import JOBS_QUEUE, RESULTS_QUEUE, JobQueue, QueueError
from overseer.resolver import ResolutionError, Resolver

log = logging.getLogger(__name__)


def describe_error(exc: BaseException) -> str:
    """Message published for a failed attempt."""
    return str(exc) or type(exc).__name__


@dataclass(frozen=True, kw_only=True)
class Worker:
    """Dequeues tests, runs them per effective target and publishes results.

    Jobs are handled one at a time. Each target of a job is attempted up to
    ``retry.max_attempts`` times with a fixed delay in between, and exactly
    one result is published per target with the final outcome.
    """

    queue: JobQueue
    registry: ProbeRegistry
    parser: JobParser
    resolver: Resolver = field(default_factory=Resolver)
    options: ExecutionOptions = field(default_factory=ExecutionOptions)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    jobs_queue: str = JOBS_QUEUE
    results_queue: str = RESULTS_QUEUE
    poll_interval: float = 1.0
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    async def run(self, stop: asyncio.Event) -> None:
        """Process jobs until stop is set, finishing the job in flight."""
        log.info("Waiting for jobs on %s", self.jobs_queue)

        while not stop.is_set():
            try:
                payload = await self.queue.pop(self.jobs_queue, self.poll_interval)
            except QueueError as exc:
                log.error("Failed to fetch job: %s", exc)
                await self.sleep(self.poll_interval)
                continue

            if payload is not None:
                await self.process(payload)

        log.info("Worker stopped")

    async def process(self, payload: bytes) -> Sequence[ResultMessage]:
        """Parse one raw job and run it; malformed jobs are dropped."""
        line = payload.decode("utf-8", errors="replace")
        try:
            test = self.parser.parse_line(line)
        except ParseError as exc:
            log.warning("Error parsing job from queue: %r - %s", line, exc)
            return []

        return await self.run_test(test)

    async def run_test(self, test: Test) -> Sequence[ResultMessage]:
        """Run a test against each of its effective targets.

        Returns:
            The result messages built, one per effective target, or a single
            failure when the target could not be resolved

        """
        try:
            probe = self.registry.create(test.type)
        except UnknownProbeError as exc:
            log.error("Dropping job %r: %s", test.sanitize(), exc)
            return []

        if not probe.should_resolve_hostname():
            targets: Sequence[str] = [test.target]
        else:
            try:
                targets = await self.resolver.resolve(test.target)
            except ResolutionError as exc:
                log.warning(
                    "Failed to resolve %s for %s test: %s",
                    redact_url_credentials(test.target),
                    test.type,
                    exc,
                )
                return [await self.notify(test.for_target(test.target), str(exc))]

            if not targets:
                log.warning(
                    "No address of an enabled family for %s (%s test)",
                    redact_url_credentials(test.target),
                    test.type,
                )

        results: list[ResultMessage] = []
        for target in targets:
            log.debug(
                "Running '%s' test against %s (%s)",
                test.type,
                redact_url_credentials(test.target),
                redact_url_credentials(target),
            )
            error = await self.attempt(probe, test, target)
            results.append(await self.notify(test.for_target(target), error))
        return results

    async def attempt(self, probe: Probe, test: Test, target: str) -> str | None:
        """Run the probe until it passes or attempts run out.

        Returns:
            None if an attempt passed, else the last attempt's error

        """
        max_attempts = self.retry.max_attempts
        error: str | None = None

        for attempt in range(1, max_attempts + 1):
            try:
                await probe.run_test(test, target, self.options)
            except Exception as exc:
                error = describe_error(exc)
                log.debug("[%d/%d] Test failed: %s", attempt, max_attempts, error)
            else:
                log.debug("[%d/%d] Test passed", attempt, max_attempts)
                return None

            if attempt < max_attempts:
                log.debug("Sleeping for %.1fs before retrying", self.retry.delay)
                await self.sleep(self.retry.delay)

        return error

    async def notify(self, test: Test, error: str | None) -> ResultMessage:
        """Publish the outcome for a per-target test; failures are only logged."""
        message = ResultMessage.from_test(test, error)
        try:
            await self.queue.push(self.results_queue, message.to_payload())
        except QueueError as exc:
            log.error("Result addition failed: %s", exc)
        return message
