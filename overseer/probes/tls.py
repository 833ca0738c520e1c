"""TLS certificate expiry probe, registered as ``ssl``."""

import asyncio
import ssl
import time
from collections.abc import Mapping
from dataclasses import dataclass

from overseer.models.options import ExecutionOptions
from overseer.models.test import Test
from overseer.probes.base import Probe, ProbeError
from overseer.probes.tcp import close_quietly
from overseer.resolver import extract_host

DEFAULT_PORT = 443
DEFAULT_DAYS = 14
SECONDS_PER_DAY = 24 * 60 * 60


def check_expiry(host: str, not_after: str, days: int, now: float) -> None:
    """Fail if a certificate's notAfter falls within the next ``days`` days."""
    remaining = (ssl.cert_time_to_seconds(not_after) - now) / SECONDS_PER_DAY
    if remaining < 0:
        raise ProbeError(f"SSL certificate for {host} expired on {not_after}")
    if remaining < days:
        raise ProbeError(
            f"SSL certificate for {host} expires in {int(remaining)} days ({not_after})"
        )


@dataclass(frozen=True, kw_only=True)
class SslProbe(Probe):
    """Checks the certificate chain verifies and is not about to expire."""

    def arguments(self) -> Mapping[str, str]:
        return {"port": r"^[0-9]+$", "days": r"^[0-9]+$"}

    def example(self) -> str:
        return """
SSL Tester
----------
 The SSL tester connects over TLS, verifies the certificate against the
 hostname and fails if it expires within the given number of days
 (default 14).

 This test is invoked via input like so:

    https://www.example.com must run ssl [with days 30] [with port 8443]
"""

    async def run_test(self, test: Test, target: str, options: ExecutionOptions) -> None:
        host = extract_host(test.target)
        port = self.int_argument(test, "port", DEFAULT_PORT)
        days = self.int_argument(test, "days", DEFAULT_DAYS)
        context = ssl.create_default_context()

        async with asyncio.timeout(options.timeout):
            _, writer = await asyncio.open_connection(
                target, port, ssl=context, server_hostname=host
            )
            try:
                certificate = writer.get_extra_info("peercert")
            finally:
                await close_quietly(writer)

        if not certificate or "notAfter" not in certificate:
            raise ProbeError(f"No certificate presented by {host}")
        check_expiry(host, certificate["notAfter"], days, time.time())
