"""Connection settings for the read and write pools."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from urllib.parse import quote

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 3306
DEFAULT_USER = "root"
DEFAULT_CHARSET = "utf8mb4"
DEFAULT_CONNECTIONS = 4
DEFAULT_LOG_PATH = "./logs/mysqlpool"


@dataclass
class Config:
    """Settings for one MySQL server; empty or zero fields mean "use the default"."""

    host: str = ""
    port: int = 0
    user: str = ""
    password: str = ""
    charset: str = ""
    connection: int = 0

    def with_defaults(self) -> Config:
        """Return a copy with every unset field replaced by its default."""
        return replace(
            self,
            host=self.host or DEFAULT_HOST,
            port=self.port or DEFAULT_PORT,
            user=self.user or DEFAULT_USER,
            charset=self.charset or DEFAULT_CHARSET,
            connection=self.connection or DEFAULT_CONNECTIONS,
        )

    def dsn(self) -> str:
        """Return the settings as a connection URL."""
        credentials = f"{quote(self.user, safe='')}:{quote(self.password, safe='')}"
        return f"mysql://{credentials}@{self.host}:{self.port}/?charset={self.charset}"


@dataclass
class ConfigList:
    """Settings for the read pool, an optional write pool and the log directory."""

    read: Config = field(default_factory=Config)
    write: Config | None = None
    log_path: str = DEFAULT_LOG_PATH