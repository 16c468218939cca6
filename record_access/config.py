"""Settings for the record access service.

Values come from, highest priority first:
1. Constructor arguments
2. RECORD_ACCESS_* environment variables (nested with "__", e.g.
   RECORD_ACCESS_STELLAR__CONTRACT_ID)
3. A .env file in the working directory
4. Defaults below
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class OpenFgaConfig(BaseModel):
    """Local grant store (OpenFGA)."""

    api_url: str = Field(default="http://localhost:8080", description="OpenFGA API URL")
    store_id: str = Field(default="", description="OpenFGA store ID")
    authorization_model_id: Optional[str] = Field(default=None, description="Pinned model ID")
    client_id: Optional[str] = Field(default=None, description="OAuth client ID")
    client_secret: Optional[SecretStr] = Field(default=None, description="OAuth client secret")
    api_token_issuer: Optional[str] = Field(default=None, description="OAuth token issuer")
    api_audience: Optional[str] = Field(default=None, description="OAuth audience")
    relation: str = Field(default="viewer", description="Relation that grants read access")


class StellarConfig(BaseModel):
    """On-chain verification (Soroban access contract)."""

    soroban_rpc_url: str = Field(default="https://soroban-testnet.stellar.org")
    contract_id: str = Field(default="", description="Access-control contract ID")
    timeout_seconds: float = Field(default=10.0, gt=0)


class IpfsConfig(BaseModel):
    """Content-addressed blob store (IPFS gateway)."""

    gateway_url: str = Field(default="https://ipfs.io")
    timeout_seconds: float = Field(default=10.0, gt=0)


class CacheConfig(BaseModel):
    """Access decision cache."""

    access_ttl_ms: int = Field(default=60_000, gt=0, description="Decision TTL in milliseconds")
    max_entries: Optional[int] = Field(default=None, gt=0, description="Bound on cached decisions")


class AuditConfig(BaseModel):
    """Audit trail."""

    sink: Literal["memory", "log"] = Field(default="log")
    include_storage_pointer: bool = Field(
        default=True,
        description="Include the record CID in RECORD_ACCESSED audit details",
    )
    write_timeout_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Bound on one audit write; a stalled write is logged and dropped",
    )


class ObservabilityConfig(BaseModel):
    log_level: LogLevel = "INFO"
    log_format: Literal["json", "console"] = "json"
    redact_pii: bool = True


class Settings(BaseSettings):
    """Root configuration for the record access service."""

    model_config = SettingsConfigDict(
        env_prefix="RECORD_ACCESS_",
        env_nested_delimiter="__",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    openfga: OpenFgaConfig = Field(default_factory=OpenFgaConfig)
    stellar: StellarConfig = Field(default_factory=StellarConfig)
    ipfs: IpfsConfig = Field(default_factory=IpfsConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, loaded once."""
    return Settings()
