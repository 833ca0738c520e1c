"""Base models shared by tests, results and configuration."""

from typing import Self

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """Base model with standard configuration."""

    model_config = ConfigDict(frozen=True)


class Message(Model):
    """A model carried as a JSON payload on a queue."""

    def to_payload(self) -> bytes:
        """Serialize to the JSON wire form, omitting unset optional fields."""
        return self.model_dump_json(exclude_none=True).encode()

    @classmethod
    def from_payload(cls, payload: bytes | str) -> Self:
        """Validate a JSON payload popped from a queue."""
        return cls.model_validate_json(payload)
