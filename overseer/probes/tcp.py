"""TCP port probe."""

import asyncio
import contextlib
from collections.abc import Mapping
from dataclasses import dataclass

from overseer.models.options import ExecutionOptions
from overseer.models.test import Test
from overseer.probes.base import Probe


async def close_quietly(writer: asyncio.StreamWriter) -> None:
    """Close a connection, ignoring errors raised while tearing it down."""
    writer.close()
    with contextlib.suppress(OSError):
        await writer.wait_closed()


@dataclass(frozen=True, kw_only=True)
class TcpProbe(Probe):
    """Passes when a TCP connection to the given port is accepted."""

    def arguments(self) -> Mapping[str, str]:
        return {"port": r"^[0-9]+$"}

    def required_arguments(self) -> frozenset[str]:
        return frozenset({"port"})

    def example(self) -> str:
        return """
TCP Tester
----------
 The TCP tester checks that a connection to the given port can be opened.

 This test is invoked via input like so:

    host.example.com must run tcp with port 5432
"""

    async def run_test(self, test: Test, target: str, options: ExecutionOptions) -> None:
        port = self.int_argument(test, "port")
        async with asyncio.timeout(options.timeout):
            _, writer = await asyncio.open_connection(target, port)
        await close_quietly(writer)
