from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional, List, Union


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./vellume.db"

    # Redis (per-user quota lock)
    redis_url: str = "redis://localhost:6379/0"
    redis_password: Optional[str] = None
    quota_lock_enabled: bool = False

    # Auth
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    access_token_expire_days: int = 7

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_price_id_monthly: str = ""
    stripe_price_id_yearly: str = ""
    stripe_api_version: str = "2023-10-16"
    checkout_success_url: str = "vellumeapp://subscription/success"
    checkout_cancel_url: str = "vellumeapp://subscription/cancel"

    # Cloudflare Workers AI
    cloudflare_account_id: str = ""
    cloudflare_api_token: str = ""
    ai_model: str = "@cf/stabilityai/stable-diffusion-xl-base-1.0"
    ai_timeout_seconds: float = 60.0
    ai_max_retries: int = 2

    # Images
    images_dir: str = "./images"
    images_public_base_url: str = "https://images.vellume.app"

    # Usage limits
    free_weekly_image_limit: int = 3
    max_upload_bytes: int = 10 * 1024 * 1024

    # Environment
    environment: str = "development"
    debug: bool = False

    # CORS
    cors_origins: List[str] = ["*"]

    @field_validator('cors_origins', mode='before')
    @classmethod
    def parse_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse CORS origins from environment variable (comma-separated) or use default list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
