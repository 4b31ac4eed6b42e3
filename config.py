from functools import lru_cache
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./numbers_game.db"

    # 遊戲規則
    min_num: int = 1
    max_num: int = 10
    payout_multiplier: int = 8
    round_interval_ms: int = 60_000
    chart_capacity: int = 1000

    admin_secret: Optional[str] = None
    reveal_seed: Optional[int] = None
    log_level: str = "INFO"

    class Config:
        env_file = ".env"

    @model_validator(mode="after")
    def check_rules(self) -> "Settings":
        if self.min_num > self.max_num:
            raise ValueError(f"min_num ({self.min_num}) must not exceed max_num ({self.max_num})")
        if self.payout_multiplier < 1:
            raise ValueError("payout_multiplier must be at least 1")
        if self.round_interval_ms <= 0:
            raise ValueError("round_interval_ms must be positive")
        if self.chart_capacity < 1:
            raise ValueError("chart_capacity must be at least 1")
        return self

    @property
    def numbers(self) -> range:
        return range(self.min_num, self.max_num + 1)

    @property
    def round_interval_seconds(self) -> float:
        return self.round_interval_ms / 1000


@lru_cache()
def get_settings():
    return Settings()
