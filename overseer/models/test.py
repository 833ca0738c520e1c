"""Model for a single monitoring test, as produced by the job parser."""

import re
from collections.abc import Mapping

from pydantic import Field

from overseer.models.base import Model

CENSORED = "CENSORED"

CREDENTIAL_ARGUMENT = re.compile(r"pass(word)?|secret|token|api-?key|auth", re.IGNORECASE)

URL_PASSWORD = re.compile(
    r"(?P<prefix>[a-z][a-z0-9+.-]*://[^:/@\s]*:)(?P<password>[^@/\s]+)@",
    re.IGNORECASE,
)


def redact_url_credentials(text: str) -> str:
    """Replace the password of every ``scheme://user:password@`` in text."""
    return URL_PASSWORD.sub(lambda match: f"{match['prefix']}{CENSORED}@", text)


class Test(Model):
    """One check: run probe ``type`` against ``target``."""

    __test__ = False

    type: str = Field(..., description="Probe name, e.g. 'https' or 'k8s-svc'")
    target: str = Field(..., description="Hostname, URI or opaque identifier")
    input: str = Field(..., description="Original line, may contain secrets")
    arguments: Mapping[str, str] = Field(
        default_factory=dict, description="Optional named probe parameters"
    )

    def sanitize(self) -> str:
        """Return the input line with credential-shaped values redacted.

        Secrets are replaced in a single pass that also matches ``CENSORED``
        itself, longest alternative first, so sanitizing an already
        sanitized line changes nothing.
        """
        secrets = {
            value
            for name, value in self.arguments.items()
            if value and CREDENTIAL_ARGUMENT.search(name)
        }
        text = self.input
        if secrets:
            alternatives = sorted(secrets | {CENSORED}, key=len, reverse=True)
            pattern = re.compile("|".join(map(re.escape, alternatives)))
            text = pattern.sub(CENSORED, text)
        return redact_url_credentials(text)

    def for_target(self, target: str) -> "Test":
        """Copy of this test aimed at one effective target, input sanitized."""
        return self.model_copy(update={"target": target, "input": self.sanitize()})
