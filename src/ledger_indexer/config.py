"""IndexerConfig: runtime settings read from the process environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .adapters.sui import FULLNODE_URLS
from .exceptions import ConfigurationError
from .retry import RetryPolicy

# Field name -> environment variable, for error messages.
_ENV_NAMES: dict[str, str] = {
    "database_url": "DATABASE_URL",
    "package_id": "PACKAGE_ID",
    "network": "SUI_NETWORK",
    "rpc_url": "SUI_RPC_URL",
    "poll_interval_seconds": "POLL_INTERVAL",
    "page_size": "QUERY_LIMIT",
    "retry_max_retries": "RETRY_MAX_RETRIES",
    "retry_initial_delay_seconds": "RETRY_INITIAL_DELAY_MS",
    "retry_max_delay_seconds": "RETRY_MAX_DELAY_MS",
    "log_level": "LOG_LEVEL",
    "log_format": "LOG_FORMAT",
    "metrics_port": "METRICS_PORT",
}

_MS_FIELDS = {
    "poll_interval_seconds",
    "retry_initial_delay_seconds",
    "retry_max_delay_seconds",
}


def normalize_database_url(url: str) -> str:
    """Select the async driver for plain PostgreSQL URLs."""
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix) :]
    return url


class IndexerConfig(BaseModel):
    """Validated indexer settings.

    Durations are stored in seconds; the environment gives them in
    milliseconds.
    """

    model_config = ConfigDict(frozen=True)

    database_url: str = Field(min_length=1)
    package_id: str = Field(min_length=1)
    network: Literal["mainnet", "testnet", "devnet", "localnet"] = "testnet"
    rpc_url: str | None = None
    poll_interval_seconds: float = Field(default=5.0, gt=0)
    page_size: int = Field(default=50, ge=1, le=1000)
    retry_max_retries: int = Field(default=5, ge=0)
    retry_initial_delay_seconds: float = Field(default=1.0, ge=0)
    retry_max_delay_seconds: float = Field(default=10.0, ge=0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    metrics_port: int | None = Field(default=None, ge=1, le=65535)

    @model_validator(mode="after")
    def _check_retry_delays(self) -> IndexerConfig:
        if self.retry_initial_delay_seconds > self.retry_max_delay_seconds:
            raise ValueError(
                "retry_initial_delay_seconds must be <= retry_max_delay_seconds"
            )
        return self

    @property
    def resolved_rpc_url(self) -> str:
        return self.rpc_url or FULLNODE_URLS[self.network]

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.retry_max_retries,
            initial_delay=self.retry_initial_delay_seconds,
            max_delay=self.retry_max_delay_seconds,
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> IndexerConfig:
        """Build the configuration from environment variables.

        Raises:
            ConfigurationError: Naming the offending variable(s).
        """
        env = os.environ if environ is None else environ
        raw: dict[str, object] = {}
        for field_name, env_name in _ENV_NAMES.items():
            value = env.get(env_name)
            if value is None or value.strip() == "":
                continue
            value = value.strip()
            if field_name in _MS_FIELDS:
                try:
                    raw[field_name] = float(value) / 1000
                except ValueError as e:
                    raise ConfigurationError(
                        f"{env_name} must be a number of milliseconds, got {value!r}"
                    ) from e
            elif field_name == "log_level":
                raw[field_name] = value.upper()
            elif field_name in ("log_format", "network"):
                raw[field_name] = value.lower()
            else:
                raw[field_name] = value
        if "database_url" in raw:
            raw["database_url"] = normalize_database_url(str(raw["database_url"]))

        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            problems = []
            for error in e.errors():
                loc = error["loc"][0] if error["loc"] else None
                name = _ENV_NAMES.get(str(loc), "configuration")
                problems.append(f"{name}: {error['msg']}")
            raise ConfigurationError(
                "Invalid configuration: " + "; ".join(problems)
            ) from e
