from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

# Audio codec -> output file extension
CODEC_EXTENSIONS = {
    "flac": "flac",
    "alac": "m4a",
    "aac": "m4a",
    "pcm_s16le": "wav",
    "pcm_s24le": "wav",
    "ac3": "ac3",
    "eac3": "eac3",
}

class GeneralConfig(BaseModel):
    ffmpeg_path: Optional[str] = None
    codec: str = "flac"
    extensions: List[str] = Field(default_factory=lambda: [".wav", ".flac", ".aiff", ".aif", ".mp3", ".m4a"])
    poll_interval_s: float = Field(default=0.1, gt=0)
    kill_timeout_s: float = Field(default=3.0, ge=0)
    log_path: Optional[str] = None
    debug: bool = False

    @field_validator("codec")
    @classmethod
    def validate_codec(cls, v: str) -> str:
        codec = v.strip().lower()
        if codec not in CODEC_EXTENSIONS:
            raise ValueError(f"Unsupported codec: {v}. Use one of {sorted(CODEC_EXTENSIONS)}")
        return codec

    @field_validator("extensions")
    @classmethod
    def normalize_extensions(cls, v: List[str]) -> List[str]:
        normalized = []
        for ext in v:
            ext = ext.strip().lower()
            if not ext:
                continue
            if not ext.startswith("."):
                ext = f".{ext}"
            if ext not in normalized:
                normalized.append(ext)
        return normalized

    @property
    def output_extension(self) -> str:
        return CODEC_EXTENSIONS[self.codec]

class AppConfig(BaseModel):
    general: GeneralConfig = Field(default_factory=GeneralConfig)
