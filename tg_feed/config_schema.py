from __future__ import annotations

import re
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


def _validate_env_var_name(value: str) -> str:
    name = (value or "").strip()
    if not _ENV_NAME_RE.fullmatch(name):
        raise ValueError("must be a valid environment variable name")
    return name


PositiveInt = Annotated[int, Field(ge=1)]
NonNegativeInt = Annotated[int, Field(ge=0)]
NonNegativeFloat = Annotated[float, Field(ge=0.0)]


class BrowserConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    headless: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    viewport_width: PositiveInt = 1280
    viewport_height: PositiveInt = 720
    timeout_ms: PositiveInt = 30000
    wait_for_selector_ms: PositiveInt = 5000
    executable_path: str | None = None


class CrawlConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    settle_seconds: NonNegativeFloat = 1.0
    initial_settle_seconds: NonNegativeFloat = 2.0
    max_iterations: PositiveInt = 50
    stall_limit: PositiveInt = 3
    position_warmup: NonNegativeInt = 5
    default_max_posts: NonNegativeInt = 100  # 0 means unbounded
    unbounded_cap_threshold: PositiveInt = 10000
    progress_every: PositiveInt = 50

    @model_validator(mode="after")
    def _default_cap_below_threshold(self) -> "CrawlConfig":
        if self.default_max_posts >= self.unbounded_cap_threshold:
            raise ValueError("default_max_posts must be < unbounded_cap_threshold")
        return self


class ResourcesConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    memory_limit_mb: float = Field(1500.0, gt=0.0)
    sample_every: PositiveInt = 10


class AuthConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    storage_state_env: str = "TG_FEED_STORAGE_STATE"

    @field_validator("storage_state_env")
    @classmethod
    def _storage_state_env_must_be_valid(cls, v: str) -> str:
        return _validate_env_var_name(v)


class DebugConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    save_screenshots: bool = False
    screenshot_dir: str = "./screenshots"


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    crawl: CrawlConfig = Field(default_factory=CrawlConfig)
    resources: ResourcesConfig = Field(default_factory=ResourcesConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    debug: DebugConfig = Field(default_factory=DebugConfig)
