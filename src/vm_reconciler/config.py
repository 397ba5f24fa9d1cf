"""Configuration management for the VM reconciler."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="VMR_",
        case_sensitive=False,
    )

    # Executor behaviour
    boot_failure_probability: float = Field(
        default=0.3, ge=0.0, le=1.0, description="Probability that a VM boot fails"
    )
    random_seed: int | None = Field(
        default=None, description="Seed for boot outcomes (unseeded when unset)"
    )

    # Loop settings
    tick_interval_seconds: float = Field(
        default=1.0, gt=0.0, description="Sleep between reconciliation passes"
    )
    max_ticks: int | None = Field(
        default=None, ge=1, description="Stop after this many ticks (run forever when unset)"
    )
    auto_register: bool = Field(
        default=True, description="Create a Requested record for desired VMs with no actual state"
    )
    verify_accounting: bool = Field(
        default=True, description="Audit host usage against VM reservations after each tick"
    )

    # Inventory
    inventory_path: Path | None = Field(
        default=None, description="YAML inventory of hosts and VMs (built-in default when unset)"
    )

    log_level: str = Field(default="INFO", description="Minimum log level")


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
