"""Parser for job lines of the form ``<target> must run <type> [with <name> <value>]*``."""

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from overseer.models.test import Test
from overseer.probes.registry import ProbeRegistry, UnknownProbeError

LINE_PATTERN = re.compile(r"^\s*(?P<target>\S+)\s+must\s+run\s+(?P<type>\S+)(?P<rest>.*)$")

ARGUMENT_PATTERN = re.compile(
    r"""\s+with\s+(?P<name>[A-Za-z0-9_-]+)\s+"""
    r"""(?:'(?P<single>[^']*)'|"(?P<double>[^"]*)"|(?P<bare>[^'"\s]\S*))"""
)


class ParseError(Exception):
    """Raised when a line is not a valid test."""


def is_comment(line: str) -> bool:
    """Check if a line carries no test (blank or starting with '#')."""
    stripped = line.strip()
    return not stripped or stripped.startswith("#")


@dataclass(frozen=True, kw_only=True)
class JobParser:
    """Turns a line of text into a validated Test, never a partial one."""

    registry: ProbeRegistry

    def parse_line(self, line: str) -> Test:
        """Parse and validate one line.

        Raises:
            ParseError: If the syntax is wrong, the type is unknown, or an
                argument is undeclared, missing or fails its probe's regex

        """
        line = line.strip()
        if is_comment(line):
            raise ParseError("empty line or comment")

        match = LINE_PATTERN.match(line)
        if match is None:
            raise ParseError(f"expected '<target> must run <type>', got '{line}'")

        test_type = match["type"]
        try:
            probe = self.registry.create(test_type)
        except UnknownProbeError as exc:
            raise ParseError(str(exc)) from exc

        arguments = self.parse_arguments(match["rest"])
        declared = probe.arguments()
        for name, value in arguments.items():
            if name not in declared:
                raise ParseError(f"Unsupported argument '{name}' for {test_type} test")
            if not re.search(declared[name], value):
                raise ParseError(
                    f"Argument '{name}' for {test_type} test did not match "
                    f"{declared[name]}: '{value}'"
                )
        if missing := sorted(probe.required_arguments() - arguments.keys()):
            names = ", ".join(f"'{name}'" for name in missing)
            raise ParseError(f"Missing required argument {names} for {test_type} test")

        return Test(type=test_type, target=match["target"], input=line, arguments=arguments)

    def parse_lines(
        self, lines: Iterable[str]
    ) -> Iterator[tuple[int, Test | ParseError]]:
        """Parse every test line, skipping blank lines and comments.

        Yields:
            The 1-based line number with its Test, or with the ParseError
            of a line that did not parse

        """
        for number, line in enumerate(lines, start=1):
            if is_comment(line):
                continue
            try:
                yield number, self.parse_line(line)
            except ParseError as exc:
                yield number, exc

    def parse_arguments(self, rest: str) -> dict[str, str]:
        arguments: dict[str, str] = {}
        position = 0
        while match := ARGUMENT_PATTERN.match(rest, position):
            value = next(v for v in match.group("single", "double", "bare") if v is not None)
            arguments[match["name"]] = value
            position = match.end()

        if trailing := rest[position:].strip():
            raise ParseError(f"Unexpected text: '{trailing}'")
        return arguments
