"""Tests for the result wire message."""

import json

import pytest
from pydantic import ValidationError

from overseer.models.result import ResultMessage
from overseer.models.test import Test
from overseer.testing.factories import ResultMessageFactory


@pytest.fixture
def probed() -> Test:
    """Create a per-target test copy."""
    return Test(
        type="ssh",
        target="10.0.0.1",
        input="host.example.com must run ssh",
        arguments={},
    )


def test_from_test_passed(probed: Test) -> None:
    """Builds a passed result without an error field."""
    message = ResultMessage.from_test(probed)

    assert message.result == "passed"
    assert message.error is None
    assert message.target == "10.0.0.1"
    assert message.type == "ssh"
    assert message.time.isdigit()


def test_from_test_failed(probed: Test) -> None:
    """Builds a failed result carrying the error text."""
    message = ResultMessage.from_test(probed, "connection refused")

    assert message.result == "failed"
    assert message.error == "connection refused"


def test_payload_has_exactly_the_wire_fields(probed: Test) -> None:
    """Serializes to a JSON object with the documented keys only."""
    passed = json.loads(ResultMessage.from_test(probed).to_payload())
    failed = json.loads(ResultMessage.from_test(probed, "boom").to_payload())

    assert set(passed) == {"input", "type", "target", "result", "time"}
    assert set(failed) == {"input", "type", "target", "result", "error", "time"}
    assert failed["result"] == "failed"


def test_from_payload_accepts_numeric_time() -> None:
    """Accepts a time sent as a JSON number."""
    payload = json.dumps(
        {
            "input": "x must run ssh",
            "type": "ssh",
            "target": "10.0.0.1",
            "result": "passed",
            "time": 1700000000,
        }
    )

    assert ResultMessage.from_payload(payload).time == "1700000000"


def test_from_payload_rejects_unknown_result() -> None:
    """Rejects result values outside passed/failed."""
    message = ResultMessageFactory.build()
    data = json.loads(message.to_payload())
    data["result"] = "flapping"

    with pytest.raises(ValidationError):
        ResultMessage.from_payload(json.dumps(data))


def test_from_payload_rejects_invalid_json() -> None:
    """Raises ValidationError on non-JSON payloads."""
    with pytest.raises(ValidationError):
        ResultMessage.from_payload(b"not json")


def test_field_value() -> None:
    """Looks up wire fields by name, None when absent."""
    message = ResultMessageFactory.build(target="10.0.0.1")

    assert message.field_value("target") == "10.0.0.1"
    assert message.field_value("error") is None
    assert message.field_value("nonexistent") is None
