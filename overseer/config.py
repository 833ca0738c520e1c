"""Configuration for the worker, the router and the producers."""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, model_validator

from overseer.models.options import ExecutionOptions, RetryPolicy
from overseer.resolver import Resolver

CONFIG_ENV_VAR = "OVERSEER"

NANOSECONDS_PER_SECOND = 1_000_000_000
NANOSECOND_DURATION_KEYS = ("RetryDelay", "Timeout")


class ConfigError(Exception):
    """Raised when the configuration file cannot be read or validated."""


class RedisConfig(BaseModel):
    """Connection parameters for the Redis queue server."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: SecretStr = SecretStr("")

    @classmethod
    def from_address(
        cls, address: str, *, db: int = 0, password: SecretStr = SecretStr("")
    ) -> "RedisConfig":
        """Build from a ``host:port`` address; the port is optional."""
        host, sep, port = address.rpartition(":")
        if not sep or not port.isdigit():
            return cls(host=address, db=db, password=password)
        return cls(host=host.strip("[]"), port=int(port), db=db, password=password)


class Settings(BaseModel):
    """Resolved options, from the configuration file and command line.

    The file may use the snake_case names or the CamelCase keys of older
    deployments (``IPv4``, ``RetryCount``, ``RedisHost``, ...). Durations
    are in seconds, except under the CamelCase keys where they are integer
    nanoseconds.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ipv4: bool = Field(True, alias="IPv4")
    ipv6: bool = Field(True, alias="IPv6")
    retry: bool = Field(True, alias="Retry")
    retry_count: int = Field(5, alias="RetryCount", ge=1)
    retry_delay: float = Field(5.0, alias="RetryDelay", ge=0)
    timeout: float = Field(10.0, alias="Timeout", gt=0)
    verbose: bool = Field(False, alias="Verbose")
    redis_host: str = Field("localhost:6379", alias="RedisHost")
    redis_db: int = Field(0, alias="RedisDB", ge=0)
    redis_password: SecretStr = Field(SecretStr(""), alias="RedisPassword")

    @model_validator(mode="before")
    @classmethod
    def durations_from_nanoseconds(cls, data: Any) -> Any:
        """Convert ``RetryDelay``/``Timeout`` from integer nanoseconds to seconds.

        Older configuration files store durations as nanosecond counts under
        the CamelCase keys. The snake_case keys are in seconds.
        """
        if not isinstance(data, dict):
            return data
        converted = dict(data)
        for key in NANOSECOND_DURATION_KEYS:
            value = converted.get(key)
            if isinstance(value, int | float) and not isinstance(value, bool):
                converted[key] = value / NANOSECONDS_PER_SECOND
        return converted

    def redis_config(self) -> RedisConfig:
        return RedisConfig.from_address(
            self.redis_host, db=self.redis_db, password=self.redis_password
        )

    def execution_options(self) -> ExecutionOptions:
        return ExecutionOptions(verbose=self.verbose, timeout=self.timeout)

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            enabled=self.retry, count=self.retry_count, delay=self.retry_delay
        )

    def resolver(self) -> Resolver:
        return Resolver(ipv4=self.ipv4, ipv6=self.ipv6)


def load_settings(environ: Mapping[str, str] = os.environ) -> Settings:
    """Load settings from the JSON file named by $OVERSEER, if any.

    Raises:
        ConfigError: If the file is unreadable or holds invalid values

    """
    path = environ.get(CONFIG_ENV_VAR)
    if not path:
        return Settings()

    try:
        content = Path(path).read_text()
    except OSError as exc:
        raise ConfigError(f"Failed to read configuration-file {path}: {exc}") from exc

    try:
        return Settings.model_validate_json(content)
    except ValidationError as exc:
        raise ConfigError(f"Error loading {path}: {exc}") from exc
