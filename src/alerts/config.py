"""Alert engine configuration.

Controls the duplicate-suppression cooldown, the milestone ladder, the
zero-sales time gate and sweep concurrency. All settings can be overridden
via ``ALERTS_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AlertConfig(BaseSettings):
    """Configuration for alert evaluation and suppression."""

    model_config = SettingsConfigDict(
        env_prefix="ALERTS_",
        case_sensitive=False,
        extra="ignore",
    )

    # Frequency cap: at most one alert per (rule, center) per window
    cooldown_minutes: int = Field(
        default=60,
        ge=5,
        le=60,
        description="Minutes to suppress repeat alerts for the same rule + center",
    )

    zero_sales_min_hour: int = Field(
        default=12,
        ge=0,
        le=23,
        description="Local hour from which zero_sales may fire",
    )

    milestone_ladder: list[int] = Field(
        default=[75, 100, 125, 150],
        description="Achievement percentages that count as milestones (ascending)",
    )
    milestone_band: float = Field(
        default=5.0,
        gt=0.0,
        description="Width of the band above each milestone in which it fires",
    )

    top_dq_issues: int = Field(
        default=3,
        ge=1,
        le=10,
        description="DQ categories listed in high_dq messages",
    )

    max_concurrency: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Center x rule pairs evaluated concurrently",
    )
