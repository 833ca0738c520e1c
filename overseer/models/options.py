"""Process-wide execution settings handed to the worker and its probes."""

from dataclasses import dataclass


@dataclass(frozen=True, kw_only=True)
class ExecutionOptions:
    """Options passed by value into every probe invocation.

    Probes must give up on network I/O after ``timeout`` seconds; the worker
    does not impose a deadline of its own.
    """

    verbose: bool = False
    timeout: float = 10.0


@dataclass(frozen=True, kw_only=True)
class RetryPolicy:
    """Bounded, fixed-delay retry of failing probe attempts."""

    enabled: bool = True
    count: int = 5
    delay: float = 5.0

    @property
    def max_attempts(self) -> int:
        if not self.enabled:
            return 1
        return max(self.count, 1)
