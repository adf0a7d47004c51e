"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

from pagecms.exceptions import ConfigurationError

# Well-known ports for server-based drivers; file-based drivers have none.
DEFAULT_STORE_PORTS: dict[str, int] = {
    "postgresql": 5432,
    "mysql": 3306,
    "mariadb": 3306,
}


class Settings(BaseSettings):
    """PageCMS application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False

    # Document store
    store_driver: str = "sqlite+aiosqlite"
    store_host: str = ""
    store_database: str = "data/db/pagecms.db"
    store_username: str | None = None
    store_password: str | None = None
    store_port: int | None = Field(default=None, ge=1, le=65535)

    # Paths
    seed_dir: Path = Path("./seed")

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=1337, ge=1, le=65535)

    # Response hardening
    security_headers_enabled: bool = True

    @property
    def is_file_store(self) -> bool:
        return self.store_driver.split("+", 1)[0] == "sqlite"

    @property
    def environment(self) -> str:
        return "development" if self.debug else "production"

    def validate_store(self) -> None:
        """Validate the document store connection parameters."""
        if not self.store_database:
            raise ConfigurationError("Document store database is required")
        if not self.is_file_store and not self.store_host:
            raise ConfigurationError("Document store host and database are required")
        if self.store_username and not self.store_password:
            raise ConfigurationError(
                "Document store password is required when a username is provided"
            )

    def resolved_store_port(self) -> int | None:
        """Return the configured port, or the driver's well-known default."""
        if self.store_port is not None:
            return self.store_port
        return DEFAULT_STORE_PORTS.get(self.store_driver.split("+", 1)[0])

    def store_url(self) -> URL:
        """Build the SQLAlchemy URL for the document store."""
        self.validate_store()
        if self.is_file_store:
            return URL.create(self.store_driver, database=self.store_database)
        return URL.create(
            self.store_driver,
            username=self.store_username or None,
            password=self.store_password or None,
            host=self.store_host,
            port=self.resolved_store_port(),
            database=self.store_database,
        )
