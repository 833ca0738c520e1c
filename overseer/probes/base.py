"""Abstract base class for protocol probes."""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass

from overseer.models.options import ExecutionOptions
from overseer.models.test import Test


class ProbeError(Exception):
    """Raised by a probe when the checked service is not healthy."""


@dataclass(frozen=True, kw_only=True)
class Probe(ABC):
    """Abstract base for one supported test type.

    Instances hold no state between invocations. Retrying is the worker's
    job, so ``run_test`` makes exactly one attempt and must give up once
    ``options.timeout`` seconds have passed.
    """

    @abstractmethod
    def arguments(self) -> Mapping[str, str]:
        """Map each accepted argument name to the regex its value must match."""

    def required_arguments(self) -> frozenset[str]:
        """Names of the arguments every test of this type must carry."""
        return frozenset()

    def should_resolve_hostname(self) -> bool:
        """Whether the target is a hostname to resolve and probe per address.

        Probes whose target is not a network name (for example a
        ``namespace/service`` identifier) return False and are run once
        against the raw target.
        """
        return True

    @abstractmethod
    def example(self) -> str:
        """Return sample usage for self-documentation."""

    @abstractmethod
    async def run_test(self, test: Test, target: str, options: ExecutionOptions) -> None:
        """Run a single check against target.

        Args:
            test: The parsed test, for its original target and arguments
            target: Resolved address, or the raw target when resolution is skipped
            options: Process-wide execution options

        Raises:
            Exception: Any exception means the check failed; its message
                becomes the published error.

        """

    def int_argument(self, test: Test, name: str, default: int | None = None) -> int:
        """Read an integer argument, falling back to default when absent."""
        value = test.arguments.get(name)
        if value is None:
            if default is None:
                raise ProbeError(f"missing required argument '{name}'")
            return default
        try:
            return int(value)
        except ValueError as exc:
            raise ProbeError(f"invalid value for {name}: '{value}'") from exc
