from .config import AppConfig, ConfigurationError, read_env, resolve_database_url
from .logging_config import configure_logging

__all__ = ["AppConfig", "ConfigurationError", "configure_logging", "read_env", "resolve_database_url"]
