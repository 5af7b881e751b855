"""
TikSound - Settings Management

Environment variable > default hierarchy. Tool locations are resolved once
into an immutable ToolConfig at startup and passed down to everything that
spawns a process.
"""

import os
import shutil
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict

from constants import (
    AUDIO_BITRATE, AUDIO_CHANNELS, AUDIO_SAMPLE_RATE,
    MAX_VIDEO_HEIGHT, RETENTION_SECONDS, SCRATCH_DIR, SWEEP_INTERVAL_SECONDS,
    TIMEOUT_FFMPEG_CONVERT, TIMEOUT_YTDLP_DOWNLOAD, TIMEOUT_YTDLP_INFO,
)


def get_setting(key: str, default: str = "") -> str:
    """Get a setting value from the environment (uppercase, with underscores)."""
    env_key = key.upper().replace(".", "_")
    env_value = os.getenv(env_key)
    if env_value is not None:
        return env_value
    return default


def get_setting_int(key: str, default: int = 0) -> int:
    """Get an integer setting value."""
    value = get_setting(key, str(default))
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


class ToolConfig(BaseModel):
    """Everything the pipeline needs to know about its environment.

    Frozen: built once, shared read-only between request threads and the sweeper.
    """
    model_config = ConfigDict(frozen=True)

    environment: str = "production"
    ytdlp_path: str = "yt-dlp"
    ffmpeg_path: str = "ffmpeg"
    scratch_dir: Path = SCRATCH_DIR
    cookies_file: Optional[Path] = None
    public_base_url: str = ""
    port: int = 3001

    max_video_height: int = MAX_VIDEO_HEIGHT
    audio_bitrate: str = AUDIO_BITRATE
    audio_channels: int = AUDIO_CHANNELS
    audio_sample_rate: int = AUDIO_SAMPLE_RATE

    probe_timeout: int = TIMEOUT_YTDLP_INFO
    download_timeout: int = TIMEOUT_YTDLP_DOWNLOAD
    convert_timeout: int = TIMEOUT_FFMPEG_CONVERT

    retention_seconds: int = RETENTION_SECONDS
    sweep_interval_seconds: int = SWEEP_INTERVAL_SECONDS

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("dev", "development", "local")

    @property
    def longest_pipeline_seconds(self) -> int:
        """Worst case wall time of one request: every stage hitting its timeout."""
        return self.probe_timeout + self.download_timeout + self.convert_timeout


def resolve_tool(name: str, search_path: str = "") -> str:
    """Resolve an executable against the extra search dirs first, then PATH.

    Returns the bare name if nothing is found; spawning it later raises
    ToolUnavailable with a useful message.
    """
    if os.sep in name:
        return name
    if search_path:
        found = shutil.which(name, path=search_path)
        if found:
            return found
    return shutil.which(name) or name


def load_tool_config() -> ToolConfig:
    """Build a ToolConfig from the environment."""
    search_path = get_setting("tool_search_path", "")
    cookies = get_setting("tiktok_cookies_file", "").strip()
    return ToolConfig(
        environment=get_setting("app_env", "production"),
        ytdlp_path=resolve_tool(get_setting("ytdlp_path", "yt-dlp"), search_path),
        ffmpeg_path=resolve_tool(get_setting("ffmpeg_path", "ffmpeg"), search_path),
        scratch_dir=Path(get_setting("scratch_dir", str(SCRATCH_DIR))).resolve(),
        cookies_file=Path(cookies) if cookies else None,
        public_base_url=get_setting("public_base_url", "").rstrip("/"),
        port=get_setting_int("port", 3001),
        max_video_height=get_setting_int("max_video_height", MAX_VIDEO_HEIGHT),
        probe_timeout=get_setting_int("timeout_ytdlp_info", TIMEOUT_YTDLP_INFO),
        download_timeout=get_setting_int("timeout_ytdlp_download", TIMEOUT_YTDLP_DOWNLOAD),
        convert_timeout=get_setting_int("timeout_ffmpeg_convert", TIMEOUT_FFMPEG_CONVERT),
        retention_seconds=get_setting_int("retention_seconds", RETENTION_SECONDS),
        sweep_interval_seconds=get_setting_int("sweep_interval_seconds", SWEEP_INTERVAL_SECONDS),
    )


@lru_cache(maxsize=1)
def get_tool_config() -> ToolConfig:
    """Process-wide config, resolved on first use and never mutated afterwards."""
    return load_tool_config()
