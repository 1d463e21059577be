from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    DATABASE_URL: str
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    # Supabase Auth
    SUPABASE_URL: str

    # Comma separated list of allowed origins
    CORS_ORIGINS: str = "http://localhost:3000"

    # Ticket identifiers (HRB-123)
    TICKET_PREFIX: str = "HRB"
    # None = scan every ticket. A limit reads that many recent rows plus the
    # single highest-suffix id.
    TICKET_ID_SCAN_LIMIT: Optional[int] = None
    TICKET_ID_MAX_ATTEMPTS: int = 3

    # GET /tickets caching
    TICKETS_CACHE_MAX_AGE: int = 60
    TICKETS_CACHE_STALE_WHILE_REVALIDATE: int = 300

    # Discord notifications
    DISCORD_WEBHOOK_URL: Optional[str] = None
    DISCORD_BOT_NAME: str = "HarryBotter APP"
    DISCORD_AVATAR_URL: Optional[str] = None
    WEB_APP_URL: str = "https://techtool-app.vercel.app"

    # OpenAI (description rephrasing)
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

settings = Settings()
