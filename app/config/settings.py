from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""  # service_role key; the backend filters rows by clerk_id itself

    # Clerk
    clerk_secret_key: str = ""
    clerk_jwt_key: Optional[str] = None  # PEM public key; skips the JWKS fetch when set
    clerk_jwks_url: str = "https://api.clerk.com/v1/jwks"
    clerk_authorized_parties: str = ""  # comma separated azp allow-list, empty disables the check

    # App
    app_name: str = "vimana-backend"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origin: str = "http://localhost:3000"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"
    host: str = "0.0.0.0"
    port: int = 3001

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_authorized_parties_list(self) -> List[str]:
        return [p.strip() for p in self.clerk_authorized_parties.split(",") if p.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore",
        frozen=True,
    )


settings = Settings()
