"""
TikSound - Pydantic Request/Response Models
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExtractRequest(BaseModel):
    url: str = ""


class VideoMetadata(BaseModel):
    """The subset of yt-dlp's info dict the classifier and tagger care about."""
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    title: str = ""
    description: Optional[str] = None
    duration: Optional[float] = None
    uploader: Optional[str] = None
    uploader_id: Optional[str] = None
    tags: tuple[str, ...] = ()
    format_note: Optional[str] = None
    webpage_url: Optional[str] = None

    @field_validator("title", mode="before")
    @classmethod
    def _title_not_null(cls, value):
        return value or ""

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, value):
        # yt-dlp gives null, a list, or occasionally a list with nulls in it
        if not value:
            return ()
        return tuple(str(t) for t in value if t)

    @field_validator("description", "uploader", "uploader_id", "format_note", "id", "webpage_url", mode="before")
    @classmethod
    def _stringify(cls, value):
        return None if value is None else str(value)

    @classmethod
    def from_info(cls, info: dict) -> "VideoMetadata":
        """Build from a yt-dlp --dump-json dict, ignoring everything we don't use."""
        return cls(**{k: info.get(k) for k in cls.model_fields if k in info})


class ClassificationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    original_sound: bool
    matched_rule: str
    metadata: VideoMetadata


class PipelineResult(BaseModel):
    """Tagged outcome of one extraction run."""
    outcome: Literal["rejected", "filtered", "succeeded", "failed"]
    message: str
    audio_filename: Optional[str] = None
    title: Optional[str] = None
    stage: Optional[str] = None        # "probe", "fetch" or "extract" when failed
    diagnostic: Optional[str] = None   # Operator-only, never sent to the client


class ExtractResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: Literal["success", "error"]
    message: str
    original_sound: Optional[bool] = Field(default=None, alias="originalSound")
    download_url: Optional[str] = Field(default=None, alias="downloadUrl")
    title: Optional[str] = None
