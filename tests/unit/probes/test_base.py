"""Tests for Probe base class helpers."""

import pytest

from overseer.probes.base import ProbeError
from overseer.probes.ssh import SshProbe
from overseer.probes.tcp import TcpProbe
from overseer.testing.factories import TestFactory


class TestIntArgument:
    """Tests for int_argument."""

    def test_reads_value(self) -> None:
        """Parses a present argument."""
        test = TestFactory.build(arguments={"port": "2222"})

        assert TcpProbe().int_argument(test, "port", 22) == 2222

    def test_uses_default(self) -> None:
        """Falls back to the default when absent."""
        test = TestFactory.build(arguments={})

        assert TcpProbe().int_argument(test, "port", 22) == 22

    def test_raises_when_required_and_missing(self) -> None:
        """Raises ProbeError when there is no default."""
        test = TestFactory.build(arguments={})

        with pytest.raises(ProbeError, match="missing required argument 'port'"):
            TcpProbe().int_argument(test, "port")

    def test_raises_for_non_integer(self) -> None:
        """Raises ProbeError for values that are not integers."""
        test = TestFactory.build(arguments={"port": "ssh"})

        with pytest.raises(ProbeError, match="invalid value for port"):
            TcpProbe().int_argument(test, "port")


def test_resolves_hostname_by_default() -> None:
    """Network probes resolve their target unless they opt out."""
    assert TcpProbe().should_resolve_hostname() is True


def test_required_arguments() -> None:
    """Only tcp insists on an argument; the others have defaults."""
    assert TcpProbe().required_arguments() == frozenset({"port"})
    assert SshProbe().required_arguments() == frozenset()
