from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "local"
    APP_NAME: str = "attractions-api"

    JWT_SECRET: str = "change_me_jwt"
    JWT_TTL_DAYS: int = 30

    CORS_ORIGINS: str = "http://localhost:3000"

    DATABASE_URL: str

    S3_ENDPOINT: str = "http://localhost:9000"
    S3_ACCESS_KEY: str = "minioadmin"
    S3_SECRET_KEY: str = "minioadmin"
    S3_BUCKET: str = "attractions"
    S3_REGION: str = "us-east-1"
    S3_USE_SSL: bool = False
    PHOTO_KEY_PREFIX: str = "photos"
    MAX_FILE_UPLOAD: int = 1_000_000  # bytes

    GEOCODER_URL: str = "https://nominatim.openstreetmap.org/search"
    GEOCODER_USER_AGENT: str = "attractions-api/1.0"
    GEOCODER_TIMEOUT_SECONDS: float = 10.0

    ADVANCED_RESULTS_DEFAULT_LIMIT: int = 1000

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

settings = Settings()
