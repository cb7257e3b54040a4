"""Application configuration and environment settings"""
from typing import Optional
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class GatewaySettings(BaseModel):
    """FHE relayer gateway specific settings"""
    url: str = Field(..., description="Base URL of the FHE relayer")
    api_key: Optional[str] = Field(None, description="Relayer API key")
    timeout: float = Field(30.0, description="Request timeout in seconds")
    retries: int = Field(3, description="Attempts per request")

class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    # Database settings
    DATABASE_URL: str = Field("sqlite:///daocredit.db", description="SQLAlchemy database URL")
    DB_ECHO: bool = Field(False, description="Echo SQL statements")

    # Ledger identity, used as the encryption context of every input
    LEDGER_ADDRESS: str = Field("0x0000000000000000000000000000000000da0c4e", description="Ledger address")

    # FHE gateway settings. Without a gateway URL the local capability is used.
    FHE_GATEWAY_URL: Optional[str] = Field(None, description="FHE relayer base URL")
    FHE_API_KEY: Optional[str] = Field(None, description="FHE relayer API key")
    FHE_LOCAL_KEY: Optional[str] = Field(None, description="Fernet key of the local FHE capability")
    REQUEST_TIMEOUT: float = Field(30.0, description="Gateway request timeout in seconds")
    REQUEST_RETRIES: int = Field(3, description="Gateway request attempts")

    # Client settings
    HISTORY_SIZE: int = Field(10, description="Number of recent actions kept by the client")
    LEADERBOARD_SIZE: int = Field(10, description="Number of leaderboard entries")

    LOG_LEVEL: str = Field("INFO", description="Logging level")
    OUTPUT_DIR: Optional[str] = Field(None, description="Directory for JSON results, stdout when unset")

    @property
    def gateway_settings(self) -> Optional[GatewaySettings]:
        """Get gateway settings as a separate model"""
        if not self.FHE_GATEWAY_URL:
            return None
        return GatewaySettings(
            url=self.FHE_GATEWAY_URL,
            api_key=self.FHE_API_KEY,
            timeout=self.REQUEST_TIMEOUT,
            retries=self.REQUEST_RETRIES
        )

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True
    )

settings = Settings()
