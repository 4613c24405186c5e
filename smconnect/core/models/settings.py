"""
Settings — connector configuration loaded from smconnect.yml.

Every field has a default, so a missing file is a valid configuration.
Path overrides are optional; unset paths are computed by
``smconnect.core.config.paths`` from the environment.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class PathOverrides(BaseModel):
    """Explicit file locations (override the computed defaults)."""

    ssh_config_path: str | None = None
    known_hosts_path: str | None = None
    server_record_path: str | None = None
    connection_script_path: str | None = None
    profile_mapping_path: str | None = None
    state_path: str | None = None
    ledger_path: str | None = None


class Settings(BaseModel):
    """Root connector configuration."""

    model_config = ConfigDict(extra="forbid")

    ssh_host_alias: str = "sagemaker"
    space_arn: str | None = None
    remote_user: str = "sagemaker-user"

    host_variant: Literal["auto", "primary", "alternate"] = "auto"
    editor: Literal["auto", "cursor", "code"] = "auto"

    # seconds
    settle_delay: float = Field(default=1.0, ge=0, le=10)
    start_wait: float = Field(default=5.0, ge=0, le=30)
    port_probe_timeout: float = Field(default=2.0, gt=0, le=30)
    probe_timeout: int = Field(default=15, gt=0)

    paths: PathOverrides = Field(default_factory=PathOverrides)
