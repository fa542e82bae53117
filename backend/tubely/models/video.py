"""
Video metadata models
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class VideoCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""


class Video(BaseModel):
    id: UUID
    created_at: datetime
    updated_at: datetime
    title: str
    description: str = ""
    user_id: UUID
    thumbnail_url: Optional[str] = None
    video_url: Optional[str] = None
