import json

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str

    # Hosted auth provider (Supabase-style HS256 access tokens)
    AUTH_JWT_SECRET: str
    AUTH_JWT_ALGORITHM: str = "HS256"
    AUTH_JWT_AUDIENCE: str | None = "authenticated"

    FRONTEND_URL: str = "http://localhost:3000"

    BACKEND_CORS_ORIGINS: str = '["http://localhost:3000","http://localhost:5173"]'

    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "LearnSphere API"
    DEBUG: bool = False

    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_CURRENCY: str = "inr"

    RATE_LIMIT_ENABLED: bool = True

    # Edit lease on a course; clients heartbeat before it lapses
    COURSE_LOCK_SECONDS: int = 30

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @property
    def cors_origins(self) -> list[str]:
        if isinstance(self.BACKEND_CORS_ORIGINS, str):
            try:
                parsed: list[str] = json.loads(self.BACKEND_CORS_ORIGINS)
                return parsed
            except json.JSONDecodeError:
                return ["http://localhost:3000"]
        return self.BACKEND_CORS_ORIGINS


settings = Settings()
