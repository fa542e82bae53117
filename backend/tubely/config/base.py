"""
Base configuration settings
"""

import os
from typing import List, Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Base settings configuration"""

    # Application settings
    APP_NAME: str = "Tubely"
    VERSION: str = "1.0.0"
    DEBUG: bool = False

    # API settings
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8091
    ALLOWED_ORIGINS_STR: str = "http://localhost:8091,http://127.0.0.1:8091"

    # Metadata store: "redis" or "memory"
    METADATA_BACKEND: str = "redis"
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: str = ""
    REDIS_DB: int = 0

    # AWS S3 settings
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "us-east-1"
    S3_BUCKET: str = "tubely-uploads"
    AWS_ENDPOINT_URL: Optional[str] = None
    S3_PUBLIC_HOST: Optional[str] = None  # defaults to s3.<region>.amazonaws.com
    S3_CONNECT_TIMEOUT: int = 10
    S3_READ_TIMEOUT: int = 60

    # Upload settings
    MAX_VIDEO_SIZE: int = 1 << 30  # 1GB
    MAX_THUMBNAIL_SIZE: int = 10 << 20  # 10MB
    UPLOAD_ENVELOPE_SLACK: int = 64 * 1024  # multipart boundaries and part headers
    ALLOWED_VIDEO_TYPES_STR: str = "video/mp4"
    ALLOWED_THUMBNAIL_TYPES_STR: str = "image/jpeg,image/png"
    STAGING_DIR: Optional[str] = None  # system temp dir when unset

    # Media tools
    FFPROBE_PATH: str = "ffprobe"
    FFMPEG_PATH: str = "ffmpeg"
    PROBE_TIMEOUT: int = 60
    REMUX_TIMEOUT: int = 600  # 10 minutes

    # Security settings
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = "tubely.log"

    @property
    def ALLOWED_ORIGINS(self) -> List[str]:
        """Parse allowed CORS origins from string"""
        origins_str = os.getenv('ALLOWED_ORIGINS', self.ALLOWED_ORIGINS_STR)
        return [origin.strip() for origin in origins_str.split(',') if origin.strip()]

    @property
    def ALLOWED_VIDEO_TYPES(self) -> List[str]:
        """Parse allowed video media types from string"""
        return [t.strip().lower() for t in self.ALLOWED_VIDEO_TYPES_STR.split(',') if t.strip()]

    @property
    def ALLOWED_THUMBNAIL_TYPES(self) -> List[str]:
        """Parse allowed thumbnail media types from string"""
        return [t.strip().lower() for t in self.ALLOWED_THUMBNAIL_TYPES_STR.split(',') if t.strip()]

    @property
    def S3_OBJECT_HOST(self) -> str:
        """Host part of public object URLs, without the bucket label"""
        return self.S3_PUBLIC_HOST or f"s3.{self.AWS_REGION}.amazonaws.com"

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
        "extra": "ignore"  # Ignore extra fields from .env
    }


# Create settings instance
settings = Settings()
