"""
Environment-aware settings selection
"""

import os
from typing import Optional

from tubely.config.base import Settings, settings


def get_settings(env: Optional[str] = None) -> Settings:
    """Build settings for APP_ENV (development, production) or the base defaults"""
    env = (env or os.getenv("APP_ENV", "")).lower()

    if env in ("dev", "development"):
        from tubely.config.development import DevelopmentSettings
        return DevelopmentSettings()
    if env in ("prod", "production"):
        from tubely.config.production import ProductionSettings
        return ProductionSettings()
    return settings


__all__ = ["Settings", "settings", "get_settings"]
