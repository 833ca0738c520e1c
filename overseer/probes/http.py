"""HTTP and HTTPS probe, registered as both ``http`` and ``https``."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import aiohttp
from yarl import URL

from overseer.models.options import ExecutionOptions
from overseer.models.test import Test
from overseer.probes.base import Probe, ProbeError

log = logging.getLogger(__name__)

DEFAULT_STATUS = "200"


def request_url(test: Test) -> URL:
    """The URL to fetch; bare hostnames get the test type as their scheme."""
    if "://" in test.target:
        return URL(test.target)
    scheme = test.type if test.type in {"http", "https"} else "http"
    return URL(f"{scheme}://{test.target}/")


def host_header(url: URL) -> str:
    """Host header value for url, kept when the request goes to an address."""
    host = url.raw_host or ""
    if ":" in host:
        host = f"[{host}]"
    if url.explicit_port is not None:
        host = f"{host}:{url.explicit_port}"
    return host


@dataclass(frozen=True, kw_only=True)
class HttpProbe(Probe):
    """Fetches the target URL from one resolved address.

    The request is sent to the resolved address while keeping the original
    Host header and TLS server name, so every address of a multi-homed site
    is checked individually.
    """

    def arguments(self) -> Mapping[str, str]:
        return {
            "content": r".*",
            "insecure": r"^(true|false)$",
            "method": r"^(GET|HEAD|POST)$",
            "password": r".*",
            "status": r"^([0-9]{3}|any)$",
            "username": r".*",
        }

    def example(self) -> str:
        return """
HTTP Tester
-----------
 The HTTP tester fetches a URL and checks the status code, 200 by
 default. Redirects are not followed.

 This test is invoked via input like so:

    https://example.com/ must run https
    https://example.com/health must run https with status 204
    https://example.com/ must run https with content 'Welcome'
    https://example.com/private must run https with username 'me' with password 'secret'
    https://self-signed.example.com/ must run https with insecure true
"""

    async def run_test(self, test: Test, target: str, options: ExecutionOptions) -> None:
        url = request_url(test)
        expected = test.arguments.get("status", DEFAULT_STATUS)
        content = test.arguments.get("content")
        method = test.arguments.get("method", "GET")

        auth = None
        if "username" in test.arguments:
            auth = aiohttp.BasicAuth(
                test.arguments["username"], test.arguments.get("password", "")
            )
            url = url.with_user(None)

        request_kwargs: dict[str, Any] = {
            "headers": {"Host": host_header(url)},
            "allow_redirects": False,
            "auth": auth,
        }
        if url.scheme == "https":
            request_kwargs["server_hostname"] = url.raw_host
            request_kwargs["ssl"] = test.arguments.get("insecure") != "true"

        timeout = aiohttp.ClientTimeout(total=options.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.request(
                method, url.with_host(target), **request_kwargs
            ) as response:
                status = response.status
                body = await response.text() if content is not None else ""

        if options.verbose:
            log.debug("%s %s via %s returned %d", method, url, target, status)

        if expected != "any" and status != int(expected):
            raise ProbeError(f"Status code was {status} not {expected}")
        if content is not None and content not in body:
            raise ProbeError(f"Body didn't contain '{content}'")
