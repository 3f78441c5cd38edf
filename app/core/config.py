from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str

    # If DEV and you hit SSL cert issues on Windows, set DB_SSL_VERIFY=false in .env
    DB_SSL_VERIFY: bool = True

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    ENV: str = "dev"  # "dev" or "prod"
    LOG_LEVEL: str = "INFO"

    # --- CERTIFICATE SETTINGS ---
    PLATFORM_NAME: str = "Techspert"
    CERTIFICATE_ID_PREFIX: str = "TC"
    CERTIFICATE_SUFFIX_LENGTH: int = 5
    VERIFICATION_CODE_LENGTH: int = 8
    CERTIFICATE_ISSUE_ATTEMPTS: int = 3
    DEFAULT_TEMPLATE_URL: str = "/images/certificate.png"

    # --- RATE LIMITING ---
    REDIS_URL: str | None = None
    RATE_LIMIT_ENABLED: bool = True
    VERIFY_RATE_LIMIT: str = "30/minute"

    CORS_ORIGINS: list[str] = ["http://localhost:5173"]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
