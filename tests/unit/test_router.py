"""Tests for destination parsing and result routing."""

import asyncio
import logging

import pytest

from overseer.queue import RESULTS_QUEUE, RedisQueue
from overseer.router import (
    Destination,
    DestinationSyntaxError,
    Router,
    parse_destination,
)
from overseer.testing.factories import ResultMessageFactory
from overseer.testing.queue import failing_pushes, queued, seed


class TestParseDestination:
    """Tests for parse_destination."""

    def test_bare_queue_has_no_filters(self) -> None:
        """A destination without brackets receives everything."""
        destination = parse_destination("all-results")

        assert destination.queue == "all-results"
        assert dict(destination.filters) == {}

    def test_parses_filters(self) -> None:
        """Parses comma separated field=value pairs."""
        destination = parse_destination("alerts[result=failed,type=ssh]")

        assert destination.queue == "alerts"
        assert dict(destination.filters) == {"result": "failed", "type": "ssh"}

    def test_tolerates_whitespace_and_empty_brackets(self) -> None:
        """Strips blanks around the queue and field names and ignores empty pairs."""
        assert dict(parse_destination(" q[ result =failed, ] ").filters) == {
            "result": "failed"
        }
        assert dict(parse_destination("q[]").filters) == {}

    def test_values_are_kept_verbatim(self) -> None:
        """Keeps blanks around a value, which must then equal the field exactly."""
        destination = parse_destination("alerts[target= 10.0.0.1]")

        assert dict(destination.filters) == {"target": " 10.0.0.1"}
        assert not destination.matches(ResultMessageFactory.build(target="10.0.0.1"))
        assert destination.matches(ResultMessageFactory.build(target=" 10.0.0.1"))

    @pytest.mark.parametrize(
        ("value", "message"),
        [
            ("", "Invalid destination queue"),
            ("[result=failed]", "Invalid destination queue"),
            ("alerts[result=failed", "Invalid destination queue"),
            ("alerts[result=failed]x", "Invalid destination queue"),
            ("alerts[result]", "Invalid filter"),
            ("alerts[=failed]", "Invalid filter"),
            ("alerts[colour=red]", "Unknown filter field 'colour'"),
        ],
    )
    def test_rejects_malformed_destinations(self, value: str, message: str) -> None:
        """Raises DestinationSyntaxError, which is a ValueError."""
        with pytest.raises(DestinationSyntaxError, match=message):
            parse_destination(value)
        assert issubclass(DestinationSyntaxError, ValueError)


class TestMatches:
    """Tests for Destination.matches."""

    def test_all_filters_must_match(self) -> None:
        """Matches only when every filter equals the result field."""
        destination = Destination(
            queue="alerts", filters={"result": "failed", "type": "ssh"}
        )

        assert destination.matches(
            ResultMessageFactory.build(result="failed", type="ssh", error="x")
        )
        assert not destination.matches(
            ResultMessageFactory.build(result="passed", type="ssh")
        )
        assert not destination.matches(
            ResultMessageFactory.build(result="failed", type="https", error="x")
        )

    def test_no_filters_matches_everything(self) -> None:
        """An unfiltered destination matches every result."""
        assert Destination(queue="all").matches(ResultMessageFactory.build())

    def test_absent_field_never_matches(self) -> None:
        """A filter on a field the result lacks does not match."""
        destination = Destination(queue="q", filters={"error": ""})

        assert not destination.matches(ResultMessageFactory.build())

    def test_filters_are_read_only(self) -> None:
        """Filters cannot be changed after construction."""
        destination = Destination(queue="q", filters={"type": "ssh"})

        with pytest.raises(TypeError):
            destination.filters["type"] = "tcp"  # type: ignore[index]


@pytest.fixture
def router(queue: RedisQueue) -> Router:
    """Create router with a catch-all and a failures-only destination."""
    return Router(
        queue=queue,
        destinations=[
            parse_destination("everything"),
            parse_destination("failures[result=failed]"),
        ],
        poll_interval=0.01,
    )


class TestRoute:
    """Tests for Router.route."""

    async def test_forwards_payload_unmodified(
        self, router: Router, queue: RedisQueue
    ) -> None:
        """Pushes the exact received bytes to each matching queue."""
        payload = (
            b'{"input":"x must run ssh","type":"ssh","target":"10.0.0.1",'
            b'"result":"failed","error":"refused","time":"1700000000","extra":1}'
        )

        forwarded = await router.route(payload)

        assert forwarded == ["everything", "failures"]
        assert await queued(queue.client, "everything") == [payload]
        assert await queued(queue.client, "failures") == [payload]

    async def test_skips_non_matching_destinations(
        self, router: Router, queue: RedisQueue
    ) -> None:
        """Pushes a passed result to the catch-all only."""
        payload = ResultMessageFactory.build().to_payload()

        assert await router.route(payload) == ["everything"]
        assert await queued(queue.client, "failures") == []

    async def test_no_match_forwards_nowhere(self, queue: RedisQueue) -> None:
        """Drops a result no destination wants."""
        router = Router(queue=queue, destinations=[parse_destination("q[type=tcp]")])

        assert await router.route(ResultMessageFactory.build().to_payload()) == []
        assert await queued(queue.client, "q") == []

    async def test_drops_malformed_payload(
        self,
        router: Router,
        queue: RedisQueue,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Logs and drops payloads that are not result messages."""
        with caplog.at_level(logging.WARNING):
            assert await router.route(b"{not json") == []

        assert await queued(queue.client, "everything") == []
        assert "Dropping malformed result" in caplog.text

    async def test_push_failure_does_not_stop_other_destinations(
        self,
        router: Router,
        queue: RedisQueue,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Logs a failed push and keeps forwarding."""
        payload = ResultMessageFactory.build(result="failed", error="boom").to_payload()

        with (
            failing_pushes(queue.client, "everything"),
            caplog.at_level(logging.ERROR),
        ):
            forwarded = await router.route(payload)

        assert forwarded == ["failures"]
        assert await queued(queue.client, "failures") == [payload]
        assert "Failed to forward result to everything" in caplog.text


class TestRun:
    """Tests for the router loop."""

    async def test_routes_until_stopped(self, router: Router, queue: RedisQueue) -> None:
        """Drains the source queue and returns once stop is set."""
        await seed(
            queue.client,
            RESULTS_QUEUE,
            ResultMessageFactory.build().to_payload(),
            ResultMessageFactory.build(result="failed", error="x").to_payload(),
        )
        stop = asyncio.Event()
        task = asyncio.create_task(router.run(stop))

        async with asyncio.timeout(2):
            while await queued(queue.client, RESULTS_QUEUE):
                await asyncio.sleep(0.01)
        stop.set()
        await asyncio.wait_for(task, timeout=2)

        assert len(await queued(queue.client, "everything")) == 2
        assert len(await queued(queue.client, "failures")) == 1

    async def test_reads_custom_source_queue(self, queue: RedisQueue) -> None:
        """Pops from the configured source queue."""
        router = Router(
            queue=queue,
            destinations=[parse_destination("out")],
            source_queue="custom",
            poll_interval=0.01,
        )
        await seed(queue.client, "custom", ResultMessageFactory.build().to_payload())
        stop = asyncio.Event()
        task = asyncio.create_task(router.run(stop))

        async with asyncio.timeout(2):
            while not await queued(queue.client, "out"):
                await asyncio.sleep(0.01)
        stop.set()
        await asyncio.wait_for(task, timeout=2)

        assert await queued(queue.client, "custom") == []
