from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field, field_validator

# Outputs above this are returned by path instead of inline
DEFAULT_INLINE_THRESHOLD_BYTES = 50 * 1024 * 1024


class GeneralConfig(BaseModel):
    debug: bool = False
    log_dir: Path = Field(default=Path("logs"))
    default_confidence: float = Field(default=0.8, ge=0.0, le=1.0)


class LLMConfig(BaseModel):
    host: str = "http://127.0.0.1:11434"
    model: str = "mistral:latest"
    timeout: float = Field(default=120.0, gt=0)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)

    @field_validator('host')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class EngineConfig(BaseModel):
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    video_codec: str = "libx264"
    audio_codec: str = "aac"
    preset: str = "fast"
    output_extension: str = "mp4"
    replace_original: bool = False

    @field_validator('output_extension')
    @classmethod
    def validate_extension(cls, v: str) -> str:
        v = v.lstrip(".")
        if not v or "/" in v:
            raise ValueError(f"Invalid output extension: {v!r}")
        return v


class MaterializerConfig(BaseModel):
    inline_threshold_bytes: int = Field(default=DEFAULT_INLINE_THRESHOLD_BYTES, gt=0)


class AppConfig(BaseModel):
    general: GeneralConfig = Field(default_factory=GeneralConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    materializer: MaterializerConfig = Field(default_factory=MaterializerConfig)
