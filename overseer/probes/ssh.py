"""SSH probe: checks that the server greets with an SSH banner."""

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass

from overseer.models.options import ExecutionOptions
from overseer.models.test import Test
from overseer.probes.base import Probe, ProbeError
from overseer.probes.tcp import close_quietly

DEFAULT_PORT = 22


@dataclass(frozen=True, kw_only=True)
class SshProbe(Probe):
    """Passes when the server's first line starts with ``SSH-``."""

    def arguments(self) -> Mapping[str, str]:
        return {"port": r"^[0-9]+$"}

    def example(self) -> str:
        return """
SSH Tester
----------
 The SSH tester connects to a host and reads the server's banner.

 This test is invoked via input like so:

    host.example.com must run ssh [with port 2222]
"""

    async def run_test(self, test: Test, target: str, options: ExecutionOptions) -> None:
        port = self.int_argument(test, "port", DEFAULT_PORT)
        async with asyncio.timeout(options.timeout):
            reader, writer = await asyncio.open_connection(target, port)
            try:
                banner = await reader.readline()
            finally:
                await close_quietly(writer)

        if not banner.startswith(b"SSH-"):
            raise ProbeError(f"Banner doesn't look like an SSH server: {banner[:80]!r}")
