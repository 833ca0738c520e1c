"""Models for test results published on the results queue."""

import time
from typing import Literal

from pydantic import ConfigDict, Field

from overseer.models.base import Message
from overseer.models.test import Test, redact_url_credentials


def unix_now() -> str:
    """Current unix time in whole seconds, as carried on the wire."""
    return str(int(time.time()))


class ResultMessage(Message):
    """Outcome of one test against one effective target.

    Field names and the ``passed``/``failed`` values are the wire contract
    consumed by the router and by every notifier downstream of it.
    """

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    input: str
    type: str
    target: str
    result: Literal["passed", "failed"]
    error: str | None = None
    time: str = Field(default_factory=unix_now)

    @classmethod
    def from_test(cls, test: Test, error: str | None = None) -> "ResultMessage":
        """Build the message for a per-target copy of a test."""
        return cls(
            input=test.sanitize(),
            type=test.type,
            target=redact_url_credentials(test.target),
            result="failed" if error is not None else "passed",
            error=error,
        )

    def field_value(self, name: str) -> str | None:
        """Return a wire field by name, or None when it is absent."""
        value = getattr(self, name, None)
        return None if value is None else str(value)
