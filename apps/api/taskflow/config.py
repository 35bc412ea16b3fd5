from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "postgresql+asyncpg://taskflow:taskflow@db:5432/taskflow"
  storage_backend: str = "database"  # database | memory
  app_secret: str = "dev-secret-change-me"
  app_name: str = "TaskFlow Pro"
  app_version: str = "1.0.0"
  log_level: str = "INFO"

  session_cookie_name: str = "taskflow.sid"
  session_ttl_hours: int = 24
  session_sweep_interval_seconds: int = 0
  auto_create_schema: bool = False
  cookie_secure: bool = False
  cookie_domain: str | None = None
  bcrypt_rounds: int = 12

  rate_limit_login_ip_per_minute: int = 60
  rate_limit_login_email_per_minute: int = 20

  cors_origins: str = "http://localhost:3000,http://localhost:5000"

  openai_api_key: str | None = None
  openai_base_url: str = "https://api.openai.com/v1"
  openai_model: str = "gpt-4o"
  ai_max_tokens: int = 1000

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
