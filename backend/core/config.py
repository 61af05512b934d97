"""Application configuration from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    APP_NAME: str = "Dynamic Model Platform"
    DEBUG: bool = False
    FRONTEND_URL: str = "http://localhost:5173"
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Database (users, roles, records, audit)
    DATABASE_URL: str = "sqlite:///./platform.db"
    DB_ECHO: bool = False

    # Model definitions: "file" keeps one JSON file per model in MODELS_DIR,
    # "database" keeps them in the model_definitions table.
    MODEL_STORE: str = "file"
    MODELS_DIR: str = "./models"

    # Auth
    JWT_SECRET: str = "super-secret-jwt-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_MINUTES: int = 60 * 24
    # When on, an authenticated ADMIN may pick the role of a new user.
    ALLOW_REGISTER_ROLE: bool = False

    # Pagination for dynamic record listings
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    # Admin seed
    ADMIN_EMAIL: str = "admin@platform.local"
    ADMIN_PASSWORD: str = "changeme123"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


settings = Settings()
