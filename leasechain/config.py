"""Configuration dataclasses for leasechain.

Each dataclass can be built directly in code or from ``LEASECHAIN_*``
environment variables via ``from_env()``.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .exceptions import ValidationError

ENV_PREFIX = "LEASECHAIN_"


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from None


@dataclass
class StoreConfig:
    """Where the lockable records live.

    Attributes:
        table_name: DynamoDB table name (default: "Inventory")
        region: AWS region (default: "us-east-1")
        endpoint_url: Endpoint override, e.g. DynamoDB Local (default: None)
        timeout: Request timeout in seconds (default: 30.0)
    """

    table_name: str = "Inventory"
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None
    timeout: float = 30.0

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "StoreConfig":
        env = os.environ if env is None else env
        timeout = env.get(ENV_PREFIX + "TIMEOUT")
        return cls(
            table_name=env.get(ENV_PREFIX + "TABLE", cls.table_name),
            region=env.get(ENV_PREFIX + "REGION") or env.get("AWS_REGION") or cls.region,
            endpoint_url=env.get(ENV_PREFIX + "ENDPOINT_URL") or None,
            timeout=float(timeout) if timeout else cls.timeout,
        )


@dataclass
class LockConfig:
    """Lease and retry behaviour.

    Attributes:
        lease_duration: Lease length in seconds (default: 30)
        max_retries: Acquisition attempts before giving up (default: 10)
        jitter_ceiling_ms: Upper bound of the uniform backoff (default: 100)
    """

    lease_duration: int = 30
    max_retries: int = 10
    jitter_ceiling_ms: int = 100

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "LockConfig":
        env = os.environ if env is None else env
        return cls(
            lease_duration=_env_int(env, "LEASE_DURATION", cls.lease_duration),
            max_retries=_env_int(env, "MAX_RETRIES", cls.max_retries),
            jitter_ceiling_ms=_env_int(env, "JITTER_CEILING_MS", cls.jitter_ceiling_ms),
        )


@dataclass
class ChainConfig:
    """Hash chain extension settings.

    Attributes:
        item_id: Key of the hash chain record (default: "HASH-CHAIN-1")
        work_factor: SHA-256 rounds per generated hash (default: 50000)
        lock: Lease and retry settings
    """

    item_id: str = "HASH-CHAIN-1"
    work_factor: int = 50000
    lock: LockConfig = field(default_factory=LockConfig)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ChainConfig":
        env = os.environ if env is None else env
        return cls(
            item_id=env.get(ENV_PREFIX + "ITEM_ID", cls.item_id),
            work_factor=_env_int(env, "WORK_FACTOR", cls.work_factor),
            lock=LockConfig.from_env(env),
        )
