"""
Production environment configuration
"""

from tubely.config.base import Settings


class ProductionSettings(Settings):
    """Production-specific settings"""

    DEBUG: bool = False
    LOG_LEVEL: str = "WARNING"

    # Production services
    METADATA_BACKEND: str = "redis"
    S3_BUCKET: str = "tubely-prod-uploads"

    # Strict timeouts for production
    PROBE_TIMEOUT: int = 30
    REMUX_TIMEOUT: int = 300  # 5 minutes

    # Enhanced security
    SECRET_KEY: str = ""  # Must be set via environment variable
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15

    model_config = {
        "env_file": ".env.production",
        "case_sensitive": True,
        "extra": "ignore"
    }
