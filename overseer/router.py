"""Router fanning results out to destination queues selected by filters."""

import asyncio
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType

from pydantic import ValidationError

from overseer.models.result import ResultMessage
from overseer.queue import RESULTS_QUEUE, JobQueue, QueueError

log = logging.getLogger(__name__)

DESTINATION_PATTERN = re.compile(r"^(?P<queue>[^\[\]]+)(?:\[(?P<filters>[^\[\]]*)\])?$")

FILTER_FIELDS = frozenset(ResultMessage.model_fields)


class DestinationSyntaxError(ValueError):
    """Raised for a destination that is not ``queue[field=value,...]``."""


@dataclass(frozen=True, kw_only=True)
class Destination:
    """A destination queue and the field values a result must carry."""

    queue: str
    filters: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "filters", MappingProxyType(dict(self.filters)))

    def matches(self, message: ResultMessage) -> bool:
        """True if every filter equals the message field; absent fields never match."""
        return all(
            message.field_value(name) == value for name, value in self.filters.items()
        )


def parse_destination(spec: str) -> Destination:
    """Parse ``queue`` or ``queue[field=value,field=value]``.

    Raises:
        DestinationSyntaxError: On malformed brackets, pairs or unknown fields

    """
    match = DESTINATION_PATTERN.match(spec.strip())
    if match is None or not match["queue"].strip():
        raise DestinationSyntaxError(f"Invalid destination queue '{spec}'")

    filters: dict[str, str] = {}
    for pair in (match["filters"] or "").split(","):
        if not pair.strip():
            continue
        name, sep, value = pair.partition("=")
        name = name.strip()
        if not sep or not name:
            raise DestinationSyntaxError(
                f"Invalid filter '{pair}' in '{spec}', expected field=value"
            )
        if name not in FILTER_FIELDS:
            raise DestinationSyntaxError(
                f"Unknown filter field '{name}' in '{spec}'. "
                f"Available fields: {sorted(FILTER_FIELDS)}"
            )
        filters[name] = value

    return Destination(queue=match["queue"].strip(), filters=filters)


@dataclass(frozen=True, kw_only=True)
class Router:
    """Forwards each result, unmodified, to every matching destination."""

    queue: JobQueue
    destinations: Sequence[Destination]
    source_queue: str = RESULTS_QUEUE
    poll_interval: float = 1.0

    async def run(self, stop: asyncio.Event) -> None:
        """Route results until stop is set, finishing the message in flight."""
        log.info(
            "Routing %s to %s",
            self.source_queue,
            ", ".join(d.queue for d in self.destinations) or "no destinations",
        )

        while not stop.is_set():
            try:
                payload = await self.queue.pop(self.source_queue, self.poll_interval)
            except QueueError as exc:
                log.error("Failed to fetch result: %s", exc)
                await asyncio.sleep(self.poll_interval)
                continue

            if payload is not None:
                await self.route(payload)

        log.info("Router stopped")

    async def route(self, payload: bytes) -> Sequence[str]:
        """Forward one raw result.

        Returns:
            Names of the destination queues the payload was pushed to

        """
        try:
            message = ResultMessage.from_payload(payload)
        except ValidationError as exc:
            log.warning("Dropping malformed result %r: %s", payload, exc)
            return []

        forwarded: list[str] = []
        for destination in self.destinations:
            if not destination.matches(message):
                continue
            try:
                await self.queue.push(destination.queue, payload)
            except QueueError as exc:
                log.error("Failed to forward result to %s: %s", destination.queue, exc)
                continue
            forwarded.append(destination.queue)

        log.debug("Result for %s (%s) forwarded to %s", message.target, message.type, forwarded)
        return forwarded
