from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    # KWDB speaks the PostgreSQL wire protocol
    KWDB_HOST: str = "localhost"
    KWDB_PORT: int = 26257
    KWDB_USER: str = "root"
    KWDB_PASSWORD: str = ""
    KWDB_SSL: bool = False
    KWDB_DRIVER: str = "postgresql+asyncpg"

    # Connection pool, applied to each of the three databases
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 0
    DB_POOL_TIMEOUT: float = 2.0
    DB_POOL_RECYCLE: int = 1800
    DB_CONNECT_TIMEOUT: float = 2.0
    DB_ECHO: bool = False

    HISTORY_CAPACITY: int = 50
    CLIENT_URL: str = "http://localhost:5173"
    LOG_LEVEL: str = "INFO"

    # This tells Pydantic to read from the .env file
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def databases(self) -> List[str]:
        return ["rdb", "tsdb", "defaultdb"]

    @property
    def cors_origins(self) -> List[str]:
        return [
            self.CLIENT_URL,
            "http://127.0.0.1:5173",
            "http://localhost:5174",
            "http://127.0.0.1:5174",
        ]

    def database_url(self, database: str) -> URL:
        return URL.create(
            self.KWDB_DRIVER,
            username=self.KWDB_USER,
            password=self.KWDB_PASSWORD or None,
            host=self.KWDB_HOST,
            port=self.KWDB_PORT,
            database=database,
        )


# Create a single instance of the settings to use everywhere
settings = Settings()
