"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic import Field
from pydantic_settings import BaseSettings
from typing import Optional


class LedgerConfig(BaseSettings):
    """Token ledger configuration"""

    # Storage configuration
    database_url: str = "sqlite:///ledger.db"  # or memory://

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Token metadata
    token_name: str = "MiniUSDT"
    token_symbol: str = "mUSDT"
    token_decimals: int = 6

    # Unsigned integer width for balances, allowances and supply
    integer_bits: int = Field(256, gt=0)

    # Feature flags
    enable_audit_logging: bool = True
    enable_events: bool = True

    class Config:
        env_prefix = "LEDGER_"
        env_file = ".env"
        case_sensitive = False

    @property
    def max_value(self) -> int:
        """Largest representable amount for the configured width"""
        return (1 << self.integer_bits) - 1


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
