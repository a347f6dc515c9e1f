"""Client configuration derived from the game constants and environment."""
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Client settings with game defaults."""

    model_config = ConfigDict(env_prefix="SLOT_")

    # Network
    api_base_url: str = "http://localhost:8080"
    request_timeout_seconds: float = 10.0

    # Client storage (auth token and user record)
    redis_url: str = "redis://localhost:6379/0"
    storage_ttl_seconds: int = 2592000  # 30 days

    # Line game (5x3 paylines)
    line_default_balance: float = 1000
    line_default_bet: float = 10
    line_min_bet: float = 1
    line_max_bet: float = 100

    # Cascade game (7x7 clusters), bets are even integers
    cascade_default_balance: float = 10000
    cascade_default_bet: float = 20
    cascade_min_bet: float = 2
    cascade_max_bet: float = 1000

    # Bonus purchase
    bonus_cost_multiplier: int = 100
    cascade_assumed_bonus_free_spins: int = 10
    offline_bonus_free_spins: int = 10

    # Offline/demo board generation
    offline_scatter_chance: float = 0.02

    # Animation phases in milliseconds (normal / turbo)
    spin_duration_ms: int = 1000
    spin_duration_turbo_ms: int = 100
    drop_animation_ms: int = 3700
    drop_animation_turbo_ms: int = 370
    cascade_lead_in_ms: int = 1000
    cascade_lead_in_turbo_ms: int = 500
    bonus_settle_ms: int = 300
    bonus_settle_turbo_ms: int = 300

    # Decode policy for unknown wire symbols and payline ids
    strict_decode: bool = True


settings = Settings()
