from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    database_url: str

    ENVIRONMENT: str = "Production"

    # MVC cookie authentication
    SECRET_KEY: str = "something"
    ALGORITHM: str = "HS256"
    AUTH_COOKIE_NAME: str = ".ERMS.Auth"
    COOKIE_EXPIRE_MINUTES: int = 60

    # API bearer tokens
    JWT_KEY: str | None = None
    JWT_ISSUER: str | None = None
    JWT_AUDIENCE: str | None = None
    JWT_EXPIRE_HOURS: int = 3

    # Base address the MVC pages use to reach the REST API
    API_BASE_URL: str | None = None

    # Credential store
    BCRYPT_ROUNDS: int = 12
    PASSWORD_REQUIRED_LENGTH: int = 8
    LOCKOUT_MAX_FAILED_ACCESS_ATTEMPTS: int = 5
    LOCKOUT_MINUTES: int = 15
    REQUIRE_CONFIRMED_ACCOUNT: bool = False

    USE_DB_PROCEDURES: bool = False

    # Initial administrator created by erms.scripts.seed_data
    SEED_ADMIN_EMAIL: str = "admin@example.com"
    SEED_ADMIN_PASSWORD: str = "Admin@12345"

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "plain"
    LOG_FILE: str | None = None

    CORS_ORIGIN_REGEX: str = "https?://.*"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    @property
    def api_base_url(self) -> str | None:
        return self.API_BASE_URL or self.JWT_ISSUER

    class Config:
        env_file = ".env"

settings = Settings()
