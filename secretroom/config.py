from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """App settings loaded from env/.env (pydantic v2 style)."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Remote services: A = identity/session (CSRF), B = secret rooms + solve.
    api_a: str = "https://api.internos.app/a/v1"
    api_b: str = "https://api.internos.app/b/v1"

    # Lockout countdown period; tests shrink it so a 30s lock does not take 30s.
    lockout_tick_seconds: float = 1.0
    # How long a notice stays up before the view drops it (0 = until dismissed).
    notice_duration_ms: int = 3000

    allowed_origins: str = "http://localhost:3000,http://localhost:5173"
    allowed_origin_regex: str = (
        r"^https?://(localhost|127\.0\.0\.1|[a-zA-Z0-9-]+\.local|192\.168\.\d{1,3}\.\d{1,3}|10\.\d{1,3}\.\d{1,3}\.\d{1,3})(:\d+)?$"
    )

    heartbeat_interval_sec: float = 30
    heartbeat_timeout_sec: float = 60
    ws_receive_timeout_sec: float = 180

    log_file: str = "secretroom.log"


settings = Settings()
