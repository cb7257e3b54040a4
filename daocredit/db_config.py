# daocredit/db_config.py
"""Database configuration and connection string management"""
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from daocredit.config import Settings

SUPPORTED_SCHEMES = ('sqlite', 'postgresql', 'postgresql+psycopg2')

@dataclass
class DatabaseCredentials:
    """Database credentials container with validation"""
    scheme: str
    name: str
    host: Optional[str] = None
    port: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None

    def to_connection_string(self) -> str:
        """Generate database connection string"""
        if self.scheme == 'sqlite':
            return f"sqlite:///{self.name}" if self.name else "sqlite://"

        auth = self.user or ''
        if self.password:
            auth = f"{auth}:{self.password}"
        location = self.host or 'localhost'
        if self.port:
            location = f"{location}:{self.port}"
        return f"{self.scheme}://{auth}@{location}/{self.name}"

    @classmethod
    def from_url(cls, url: str) -> 'DatabaseCredentials':
        """Parse credentials from a database URL"""
        if not cls.validate_url(url):
            raise ValueError(f"Unsupported database URL: {url.split('://')[0]}://...")

        parsed = urlparse(url)
        if parsed.scheme == 'sqlite':
            # sqlite:////abs/path keeps its leading slash
            return cls(scheme='sqlite', name=parsed.path[1:] if parsed.path.startswith('/') else parsed.path)

        return cls(
            scheme=parsed.scheme,
            name=parsed.path.lstrip('/'),
            host=parsed.hostname,
            port=str(parsed.port) if parsed.port else None,
            user=parsed.username,
            password=parsed.password
        )

    @classmethod
    def validate_url(cls, url: str) -> bool:
        """Validate database URL format"""
        try:
            parsed = urlparse(url)
            if parsed.scheme not in SUPPORTED_SCHEMES:
                return False

            # Server databases need a host and a database name
            if parsed.scheme != 'sqlite':
                if not parsed.hostname or not parsed.path.lstrip('/'):
                    return False

            return True
        except ValueError:
            return False

class DatabaseManager:
    """Resolves the database connection string from settings"""

    @staticmethod
    def get_connection_string(url: str) -> str:
        """
        Normalize a database URL into a connection string

        Args:
            url: Database URL from configuration

        Returns:
            Complete database connection string
        """
        return DatabaseCredentials.from_url(url).to_connection_string()

    @classmethod
    def initialize_from_settings(cls, settings: Settings) -> str:
        """
        Initialize database connection string from settings

        Raises:
            ValueError: If the configured URL is missing or unsupported
        """
        if not settings.DATABASE_URL:
            raise ValueError("DATABASE_URL setting is required")

        return cls.get_connection_string(settings.DATABASE_URL)
