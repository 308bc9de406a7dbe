from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_TITLE: str = "Hostel Outing Service"
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "hostel_outings"
    PRODUCTION_MODE: bool = False
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:5173"
    LOG_LEVEL: str = "INFO"
    NOTIFICATIONS_ENABLED: bool = True

    class Config:
        env_file = ".env"

    @property
    def cors_origins(self) -> list:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()
