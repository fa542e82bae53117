"""
Upload data models
"""

import os
from dataclasses import dataclass
from typing import BinaryIO

from pydantic import BaseModel


@dataclass(frozen=True)
class StagedFile:
    """A request-local file on disk, owned by the staging workspace"""
    path: str
    size: int
    content_type: str

    def open(self) -> BinaryIO:
        """Open a fresh read handle positioned at the start of the file"""
        return open(self.path, "rb")

    def exists(self) -> bool:
        return os.path.exists(self.path)


class ObjectReference(BaseModel):
    bucket: str
    key: str
    url: str
    content_type: str
