"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class SavingsConfig(BaseSettings):
    """Savings vault system configuration"""
    
    # Registry configuration
    admin_identity: str = "admin"  # Fee recipient and provisioning authority
    
    # Storage configuration
    storage_backend: str = "memory"  # memory or sqlite
    sqlite_path: str = "savings.db"
    
    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8095
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout
    
    # Feature flags
    enable_audit_logging: bool = True
    enable_events: bool = True
    
    class Config:
        env_prefix = "SAVINGS_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = SavingsConfig()


def get_config() -> SavingsConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> SavingsConfig:
    """Reload configuration from environment"""
    global config
    config = SavingsConfig()
    return config
