"""Registry of probes, loaded from entry points."""

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from importlib.metadata import entry_points
from types import MappingProxyType
from typing import TypeAlias

from overseer.probes.base import Probe

ENTRY_POINT_GROUP = "overseer.probes"

ProbeFactory: TypeAlias = Callable[[], Probe]


class UnknownProbeError(Exception):
    """Raised when no probe is registered for a test type."""


@dataclass(frozen=True)
class ProbeRegistry:
    """Immutable mapping from test type to probe factory.

    Built once at startup and handed to the worker, the parser and the CLI.
    Every lookup returns a fresh probe instance.
    """

    factories: Mapping[str, ProbeFactory]

    def __post_init__(self) -> None:
        object.__setattr__(self, "factories", MappingProxyType(dict(self.factories)))

    def __contains__(self, name: object) -> bool:
        return name in self.factories

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.factories))

    def create(self, name: str) -> Probe:
        """Create a probe for a test type.

        Raises:
            UnknownProbeError: If no probe is registered under name

        """
        try:
            factory = self.factories[name]
        except KeyError:
            raise UnknownProbeError(
                f"Probe '{name}' not found. Available probes: {sorted(self.factories)}"
            ) from None
        return factory()


def load_probe_registry() -> ProbeRegistry:
    """Build the registry from the probes registered in pyproject.toml."""
    return ProbeRegistry(
        {entry.name: entry.load() for entry in entry_points(group=ENTRY_POINT_GROUP)}
    )
