from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bespoke.core.logger import LEVELS


class BespokeConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    github_api_url: str = Field(default="https://api.github.com", min_length=8)
    raw_base_url: str = Field(default="https://raw.githubusercontent.com", min_length=8)
    archive_base_url: str = Field(default="https://github.com", min_length=8)
    http_timeout_seconds: float = Field(default=20.0, gt=0)
    branches_per_page: int = Field(default=100, ge=1, le=100)
    max_branch_pages: int = Field(default=10, ge=1)
    github_token: Optional[str] = None
    enable_on_install: bool = True
    vault_max_backups: int = Field(default=10, ge=0)
    log_level: str = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def _known_level(cls, v):  # noqa: ANN001
        key = str(v or "").strip().upper()
        if key not in LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LEVELS)}")
        return key
