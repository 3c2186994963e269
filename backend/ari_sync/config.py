from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Channel manager (remote ARI source + mutation sink)
    channel_manager_base_url: str = "http://localhost:3000/api/admin/channex"
    channel_manager_api_key: str = ""
    channel_manager_timeout: float = 30.0

    # Redis (unsaved draft persistence)
    redis_url: str = "redis://localhost:6379/0"
    draft_ttl_seconds: int = 7 * 24 * 60 * 60  # 7 days

    # Calendar
    default_window_days: int = 14

    # CORS
    cors_origins: str = "http://localhost:4200"

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",")]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
