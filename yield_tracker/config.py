from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Runtime
    ENV: str = Field(default="development")
    LOG_LEVEL: str = Field(default="INFO")
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)

    # Comparison
    FAVORED_PROTOCOL: str = Field(default="Saros")
    MAX_APY: float = Field(default=500.0, description="Upper bound (exclusive) for any APY in %")

    # Cache / transport
    CACHE_TTL_SECONDS: int = Field(default=15 * 60)
    HTTP_TIMEOUT_SECONDS: float = Field(default=5.0)

    # Sources, selected at startup
    ENABLED_SOURCES: str = Field(default="saros,defillama,kamino,raydium,meteora")
    DEFILLAMA_POOLS_URL: str = Field(default="https://yields.llama.fi/pools")
    DEFILLAMA_MIN_TVL_USD: float = Field(default=50_000.0)
    KAMINO_STRATEGIES_URL: str = Field(default="https://api.kamino.finance/strategies")
    RAYDIUM_POOLS_URL: str = Field(default="https://api-v3.raydium.io/pools/info/list")
    METEORA_PAIRS_URL: str = Field(default="https://dlmm-api.meteora.ag/pair/all")

    # Telegram bot
    TELEGRAM_BOT_TOKEN: str | None = None
    TELEGRAM_API_BASE: str = Field(default="https://api.telegram.org")
    WEBHOOK_URL: str | None = None
    ENABLE_ALERTS: bool = Field(default=True)
    ALERT_INTERVAL_SECONDS: int = Field(default=15 * 60)

    # Rate limiting
    REDIS_URL: str = Field(default="redis://localhost:6379/0")
    ENABLE_REDIS: bool = Field(default=False)
    RATE_LIMIT_PER_MINUTE: int = Field(default=60)

    # Observability
    LOKI_URL: str | None = None

    def enabled_sources(self) -> List[str]:
        return [s.strip().lower() for s in self.ENABLED_SOURCES.split(",") if s.strip()]

    def alerts_enabled(self) -> bool:
        return bool(self.ENABLE_ALERTS and self.TELEGRAM_BOT_TOKEN)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
