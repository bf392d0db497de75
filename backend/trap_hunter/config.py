"""
Trap Hunter — Configuration Management

Pydantic Settings: loads from .env, validates all configuration at startup.
Detector defaults can be overridden per deployment with TRAP_* variables.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from trap_hunter.models import TrapParams


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Core ──
    app_env: str = "development"
    app_debug: bool = True

    # ── Scan limits ──
    validate_bars: bool = True          # run the malformed-bar pass on API input
    max_bars_per_scan: int = 50_000

    # ── Detector defaults ──
    trap_resistance_lookback: int = 20
    trap_support_lookback: int = 20
    trap_confirmation_bars: int = 3
    trap_max_trap_bars: int = 5
    trap_volume_ma_period: int = 20
    trap_min_volume_spike: float = 1.3
    trap_min_breakout_factor: float = 0.0007
    trap_min_wick_ratio: float = 0.35
    trap_min_trap_score: float = 0.5
    trap_enable_normal_signal: bool = True
    trap_normal_quiet_bars: int = 5

    # ── CORS ──
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    def default_params(self) -> TrapParams:
        """Detector parameters built from the ``trap_*`` settings."""
        return TrapParams(
            resistance_lookback=self.trap_resistance_lookback,
            support_lookback=self.trap_support_lookback,
            confirmation_bars=self.trap_confirmation_bars,
            max_trap_bars=self.trap_max_trap_bars,
            volume_ma_period=self.trap_volume_ma_period,
            min_volume_spike=self.trap_min_volume_spike,
            min_breakout_factor=self.trap_min_breakout_factor,
            min_wick_ratio=self.trap_min_wick_ratio,
            min_trap_score=self.trap_min_trap_score,
            enable_normal_signal=self.trap_enable_normal_signal,
            normal_quiet_bars=self.trap_normal_quiet_bars,
        )


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance — created once, reused everywhere."""
    return Settings()
