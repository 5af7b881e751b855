"""
TikSound - Audio Extraction

ffmpeg transcode from the downloaded clip to a fixed-format MP3, plus ID3
tagging so the file isn't an anonymous blob once it leaves the browser.
"""

from pathlib import Path

from mutagen.easyid3 import EasyID3
from mutagen.id3 import ID3NoHeaderError
from mutagen.mp3 import MP3

from constants import AUDIO_EXTENSION, STDERR_LOG_LIMIT
from errors import ExtractionEmpty, ExtractionFailed, ToolFailed
from models import VideoMetadata
from runner import run_tool
from settings import ToolConfig


def build_ffmpeg_cmd(video_path: Path, output_path: Path, config: ToolConfig) -> list[str]:
    return [
        config.ffmpeg_path,
        "-hide_banner",
        "-loglevel", "error",
        "-i", str(video_path),
        "-vn",
        "-acodec", "libmp3lame",
        "-ab", config.audio_bitrate,
        "-ac", str(config.audio_channels),
        "-ar", str(config.audio_sample_rate),
        "-y",  # Overwrite output file
        str(output_path),
    ]


def extract_audio(video_path: Path, scratch_dir: Path, base_name: str, config: ToolConfig) -> Path:
    """Transcode video_path to <scratch_dir>/<base_name>.mp3 and return the MP3 path.

    Raises ExtractionFailed if ffmpeg fails and ExtractionEmpty if it claims
    success but leaves nothing usable behind.
    """
    output_path = scratch_dir / f"{base_name}{AUDIO_EXTENSION}"
    print(f"Extracting audio from: {video_path.name} -> {output_path.name}")

    cmd = build_ffmpeg_cmd(video_path, output_path, config)
    if config.is_development:
        print(f"Running: {' '.join(cmd)}")
    try:
        run_tool(cmd, timeout=config.convert_timeout).check()
    except ToolFailed as e:
        print(f"FFmpeg error: {e.stderr[:STDERR_LOG_LIMIT]}")
        raise ExtractionFailed(f"Audio extraction failed: {e}") from e

    try:
        size = output_path.stat().st_size
    except FileNotFoundError:
        raise ExtractionEmpty(f"ffmpeg exited cleanly but {output_path.name} was never written") from None
    if size <= 0:
        raise ExtractionEmpty(f"Extracted audio file is empty: {output_path.name}")

    print(f"Audio extraction completed: {output_path.name} ({size} bytes)")
    return output_path


def tag_audio_file(file_path: Path, meta: VideoMetadata) -> bool:
    """Write title/artist ID3 tags. Returns False (and logs) on failure - never raises."""
    try:
        try:
            audio = EasyID3(str(file_path))
        except ID3NoHeaderError:
            # Fresh ffmpeg output may have no ID3 header yet
            mp3 = MP3(str(file_path))
            mp3.add_tags()
            mp3.save()
            audio = EasyID3(str(file_path))
        if meta.title:
            audio["title"] = meta.title
        if meta.uploader:
            audio["artist"] = meta.uploader
        if meta.webpage_url:
            audio["website"] = meta.webpage_url
        audio.save()
        return True
    except Exception as e:
        print(f"ID3 tagging failed for {file_path.name}: {e}")
        return False
