"""Service settings for the crypto compliance engine.

Settings use the CRYPTO_COMPLIANCE_ environment prefix and cover:
- Which policy answers lookups for unknown identifiers
- Where custom policy documents are loaded from at startup
- How the rule engine resolves several matching rules
- Logging output
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the crypto compliance engine.

    Environment variable prefix: CRYPTO_COMPLIANCE_
    """

    service_name: str = "crypto-compliance-engine"

    # -------------------------------------------------------------------------
    # Policy registry
    # -------------------------------------------------------------------------

    default_policy: str = Field(
        default="quantum_safe",
        description="Policy identifier used when a lookup names an unknown policy. "
        "Must be one of the built-in identifiers or a policy loaded from policy_dir.",
    )
    policy_dir: Path | None = Field(
        default=None,
        description="Directory of *.toml / *.yaml policy documents registered at startup. "
        "Invalid documents are logged and skipped.",
    )

    # -------------------------------------------------------------------------
    # Rule engine
    # -------------------------------------------------------------------------

    resolution_strategy: Literal["specificity", "worst_match"] = Field(
        default="specificity",
        description="How custom policies pick a level when several rules match an asset: "
        "'specificity' keeps the most specific rule (worst level on ties), "
        "'worst_match' keeps the worst of the default level and every matching rule.",
    )

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------

    log_level: str = Field(default="INFO", description="Root log level.")
    log_json: bool = Field(default=False, description="Emit JSON log lines.")

    model_config = SettingsConfigDict(env_prefix="CRYPTO_COMPLIANCE_")


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings instance.

    Returns:
        The Settings instance (cached after the first call).
    """
    return Settings()
