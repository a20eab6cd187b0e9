from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Read from SQLT_* environment variables or a local .env file
    model_config = SettingsConfigDict(
        env_prefix="SQLT_",
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    DEBUG: bool = False

    DB_CONNECT_TIMEOUT: int = 10
    # Seconds; applied when the call's context carries no deadline. 0 disables.
    DB_STATEMENT_TIMEOUT: float = 0

    # Raise ScanError for result columns with no matching destination field
    STRICT_COLUMNS: bool = True
    # Rows pulled per round trip by cursors and iterate()
    FETCH_SIZE: int = 256

    TEMPLATE_DIR: str = "sql"
    TEMPLATE_PATTERNS: list[str] = ["**/*.sql"]


settings = Settings()
