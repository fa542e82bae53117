"""
Development environment configuration
"""

from tubely.config.base import Settings


class DevelopmentSettings(Settings):
    """Development-specific settings"""

    DEBUG: bool = True
    LOG_LEVEL: str = "DEBUG"

    # No Redis needed for local work
    METADATA_BACKEND: str = "memory"
    S3_BUCKET: str = "tubely-dev-uploads"

    # Relaxed timeouts for development
    REMUX_TIMEOUT: int = 1200  # 20 minutes

    model_config = {
        "env_file": ".env.development",
        "case_sensitive": True,
        "extra": "ignore"
    }
