"""Config file."""
from urllib.parse import quote_plus

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # PROJECT
    project_name: str = Field("chain-indexer", alias="PROJECT_NAME")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # DATABASE
    postgres_user: str = Field(..., alias="POSTGRES_USER")
    postgres_password: SecretStr = Field(..., alias="POSTGRES_PASSWORD")
    postgres_server: str = Field(..., alias="POSTGRES_SERVER")
    postgres_port: int = Field(..., alias="POSTGRES_PORT")
    postgres_db: str = Field(..., alias="POSTGRES_DB")
    database_url: str | None = Field(None, alias="DATABASE_URL")
    db_pool_size: int = Field(10, alias="DB_POOL_SIZE", gt=0)
    db_max_overflow: int = Field(5, alias="DB_MAX_OVERFLOW", ge=0)

    # CHAINS
    chains_config_path: str = Field("chains.json", alias="CHAINS_CONFIG_PATH")
    default_chain_id: int | None = Field(None, alias="DEFAULT_CHAIN_ID")
    rpc_request_timeout_seconds: float = Field(30.0, alias="RPC_REQUEST_TIMEOUT_SECONDS", gt=0)

    # INDEXER
    indexer_batch_size: int = Field(100, alias="INDEXER_BATCH_SIZE", gt=0)
    indexer_poll_interval_seconds: float = Field(5.0, alias="INDEXER_POLL_INTERVAL_SECONDS", gt=0)

    @model_validator(mode="after")
    def assemble_db_url(self) -> "Settings":
        if not self.database_url:
            user = quote_plus(self.postgres_user)
            password = quote_plus(self.postgres_password.get_secret_value())
            host = self.postgres_server
            port = self.postgres_port
            db = self.postgres_db

            self.database_url = f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db}"

        return self

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings: Settings = Settings()
