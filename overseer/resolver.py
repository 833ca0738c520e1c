"""Resolution of test targets into the addresses a probe should run against."""

import asyncio
import logging
import socket
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from ipaddress import IPv4Address, IPv6Address, ip_address
from typing import TypeAlias
from urllib.parse import urlsplit

log = logging.getLogger(__name__)

IPAddress: TypeAlias = IPv4Address | IPv6Address


class ResolutionError(Exception):
    """Raised when a target cannot be turned into any address."""


def extract_host(target: str) -> str:
    """Return the host of a URI target, or the target itself."""
    if "://" not in target:
        return target

    try:
        host = urlsplit(target).hostname
    except ValueError as exc:
        raise ResolutionError(f"Failed to parse target {target}: {exc}") from exc

    if not host:
        raise ResolutionError(f"Failed to parse target {target}: no host")
    return host


@dataclass(frozen=True, kw_only=True)
class Resolver:
    """Forward DNS lookup filtered by the enabled address families."""

    ipv4: bool = True
    ipv6: bool = True

    async def resolve(self, target: str) -> Sequence[str]:
        """Resolve target to the addresses to probe, in lookup order.

        Raises:
            ResolutionError: If the target has no host or the lookup fails

        """
        host = extract_host(target)
        addresses = await self.lookup(host)
        targets = [str(address) for address in self.filter(addresses)]
        log.debug("Resolved %s to %s", host, ", ".join(targets) or "nothing")
        return targets

    async def lookup(self, host: str) -> Sequence[IPAddress]:
        """Look up every address of host, without duplicates."""
        loop = asyncio.get_running_loop()
        try:
            infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
        except (OSError, UnicodeError) as exc:
            raise ResolutionError(f"Failed to resolve name {host}") from exc

        addresses: list[IPAddress] = []
        for *_, sockaddr in infos:
            address = normalize(ip_address(sockaddr[0]))
            if address not in addresses:
                addresses.append(address)

        if not addresses:
            raise ResolutionError(f"Failed to resolve name {host}")
        return addresses

    def filter(self, addresses: Iterable[IPAddress]) -> Iterable[IPAddress]:
        """Keep only addresses of the enabled families."""
        for address in addresses:
            if address.version == 4 and self.ipv4:
                yield address
            elif address.version == 6 and self.ipv6:
                yield address


def normalize(address: IPAddress) -> IPAddress:
    """Classify IPv4-mapped IPv6 addresses as the IPv4 address they carry."""
    if isinstance(address, IPv6Address) and address.ipv4_mapped is not None:
        return address.ipv4_mapped
    return address
