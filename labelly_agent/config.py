from __future__ import annotations

import os

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 LabellyAgent/1.0"
)


class Settings(BaseModel):
    """Tunable limits for one diagnosis. Defaults are safe for production."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    fetch_timeout_s: float = Field(12.0, gt=0, le=60, description="Deadline for one fetch, redirects included.")
    max_redirects: int = Field(5, ge=0, le=10)
    max_html_bytes: int = Field(1_200_000, ge=1024, description="Raw body ceiling; larger bodies are rejected.")
    allowed_ports: frozenset[int] = Field(default_factory=lambda: frozenset({80, 443}))
    max_policy_pages: int = Field(3, ge=0, le=8, description="Supplementary pages fetched after the main page.")
    high_threshold: int = Field(70, ge=0, le=100)
    mid_threshold: int = Field(40, ge=0, le=100)
    user_agent: str = Field(_DEFAULT_USER_AGENT, min_length=1)
    accept_language: str = Field("ja,en-US;q=0.9,en;q=0.8", min_length=1)

    @field_validator("allowed_ports", mode="before")
    @classmethod
    def _parse_ports(cls, v):
        if isinstance(v, str):
            return frozenset(int(p) for p in v.split(",") if p.strip())
        return v

    @model_validator(mode="after")
    def _check_thresholds(self) -> Settings:
        if self.mid_threshold > self.high_threshold:
            raise ValueError("mid_threshold must not exceed high_threshold")
        return self

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from ``LABELLY_*`` environment variables."""
        mapping = {
            "fetch_timeout_s": "LABELLY_FETCH_TIMEOUT_S",
            "max_redirects": "LABELLY_MAX_REDIRECTS",
            "max_html_bytes": "LABELLY_MAX_HTML_BYTES",
            "allowed_ports": "LABELLY_ALLOWED_PORTS",
            "max_policy_pages": "LABELLY_MAX_POLICY_PAGES",
            "high_threshold": "LABELLY_HIGH_THRESHOLD",
            "mid_threshold": "LABELLY_MID_THRESHOLD",
            "user_agent": "LABELLY_USER_AGENT",
        }
        values: dict[str, str] = {}
        for field, env in mapping.items():
            raw = os.getenv(env, "").strip()
            if raw:
                values[field] = raw
        return cls(**values)
