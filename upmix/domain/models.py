import uuid
from enum import Enum
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field

class FileStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing..."
    UPMIXED = "Upmixed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (FileStatus.UPMIXED, FileStatus.FAILED, FileStatus.CANCELLED)

class ResourceToken(BaseModel):
    """Durable reference to a user-granted file or directory.

    `bookmark` is opaque to callers; only the resource handle decodes it.
    """
    original_path: Path
    bookmark: str
    writable: bool = False

    def same_resource(self, other: "ResourceToken") -> bool:
        return self.original_path == other.original_path

class AudioFile(BaseModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    token: ResourceToken
    status: FileStatus = FileStatus.PENDING
    error_message: Optional[str] = None
    output_path: Optional[Path] = None

    @property
    def name(self) -> str:
        return self.token.original_path.name
