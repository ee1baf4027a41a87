"""
Application Configuration
=========================
Uses pydantic-settings to load environment variables into a typed Settings object.

The calculation engine itself never reads these values. Routers pass them to the
services as plain parameters.
"""

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    The .env file is automatically read thanks to the model_config below.
    """

    # Application metadata
    APP_NAME: str = "Body Composition Engine"
    APP_VERSION: str = "1.0.0"

    # Root log level for logging.basicConfig (DEBUG, INFO, WARNING, ...)
    LOG_LEVEL: str = "INFO"

    # Allowed CORS origins. "*" during development; restrict in production.
    CORS_ORIGINS: list[str] = ["*"]

    # Density formula used when the caller does not pick one explicitly
    DEFAULT_FORMULA: Literal["general", "control", "fitness", "athlete", "rapid"] = "general"

    # Pre-scaling deviation (%) of the Kerr model above which a warning is flagged
    KERR_DEVIATION_WARN_PERCENT: float = 5.0

    model_config = {"env_file": ".env", "extra": "ignore"}


# Singleton instance: import this everywhere you need settings
settings = Settings()
