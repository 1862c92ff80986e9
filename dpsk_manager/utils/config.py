"""
Controller connection settings
Command line values layered over RUCKUS_* environment variables
"""

import os
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import UsageError

DEFAULT_SERVER = "https://unleashed.ruckuswireless.com"
DEFAULT_USERNAME = "dpsk"
DEFAULT_TIMEOUT = 30.0

ENV_SERVER = "RUCKUS_SERVER"
ENV_USERNAME = "RUCKUS_USERNAME"
ENV_PASSWORD = "RUCKUS_PASSWORD"
ENV_CACERT = "RUCKUS_CACERT"
ENV_TIMEOUT = "RUCKUS_TIMEOUT"


class ControllerConfig(BaseModel):
    """Where and how to log in to the controller."""
    server: str = Field(default=DEFAULT_SERVER, description="Controller base URL")
    username: str = Field(default=DEFAULT_USERNAME, description="Administrator username")
    password: str = Field(description="Administrator password")
    cacert: Optional[Path] = Field(default=None, description="Custom CA certificate (PEM)")
    verify: bool = Field(default=True, description="Verify the controller's TLS certificate")
    timeout: float = Field(default=DEFAULT_TIMEOUT, description="Per-request timeout in seconds")

    @field_validator("server")
    @classmethod
    def _normalize_server(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("server is required")
        if not value.lower().startswith(("http://", "https://")):
            value = "https://" + value
        return value.rstrip("/")

    @field_validator("password")
    @classmethod
    def _require_password(cls, value: str) -> str:
        if not value:
            raise ValueError("password is required")
        return value

    @field_validator("cacert")
    @classmethod
    def _cacert_exists(cls, value: Optional[Path]) -> Optional[Path]:
        if value is not None and not value.is_file():
            raise ValueError(f"CA certificate not found: {value}")
        return value

    @field_validator("timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout must be positive")
        return value

    @property
    def tls_verify(self) -> Union[bool, str]:
        """Value for the requests 'verify' argument."""
        if not self.verify:
            return False
        if self.cacert is not None:
            return str(self.cacert)
        return True


def load_config(
    server: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    cacert: Optional[str] = None,
    insecure: bool = False,
    timeout: Optional[float] = None,
) -> ControllerConfig:
    """
    Build the controller config from explicit values and the environment.

    Explicit (non-None) values win over environment variables, which win
    over the defaults.

    Raises:
        UsageError: a value is missing or invalid
    """
    values = {
        "server": server or os.getenv(ENV_SERVER) or DEFAULT_SERVER,
        "username": username or os.getenv(ENV_USERNAME) or DEFAULT_USERNAME,
        "password": password or os.getenv(ENV_PASSWORD) or "",
        "verify": not insecure,
    }

    cacert = cacert or os.getenv(ENV_CACERT)
    if cacert:
        values["cacert"] = Path(cacert).expanduser()

    if timeout is None and os.getenv(ENV_TIMEOUT):
        timeout = os.getenv(ENV_TIMEOUT)
    if timeout is not None:
        values["timeout"] = timeout

    try:
        return ControllerConfig(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise UsageError(f"invalid configuration: {problems}") from None
