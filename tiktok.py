"""
TikSound - TikTok / yt-dlp Operations

URL recognition, metadata probing, the original-sound classifier, and the
video download itself.
"""

import json
import re
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from constants import STDERR_LOG_LIMIT, TIKTOK_URL_PATTERN, VIDEO_EXTENSIONS
from errors import DownloadFailed, MetadataUnparsable, ToolFailed
from models import ClassificationResult, VideoMetadata
from runner import run_tool
from settings import ToolConfig

_TIKTOK_URL_RE = re.compile(TIKTOK_URL_PATTERN, re.IGNORECASE)


def is_valid_tiktok_url(url: str) -> bool:
    """Only tiktok.com and its vm./vt. short-link hosts get anywhere near yt-dlp."""
    return bool(_TIKTOK_URL_RE.match((url or "").strip()))


def _ytdlp_base_args(config: ToolConfig) -> list[str]:
    """Return common yt-dlp arguments. Prepended after the executable in every command."""
    args = []
    cookies = config.cookies_file
    if cookies and cookies.exists() and cookies.stat().st_size > 0:
        args.extend(["--cookies", str(cookies)])
    return args


def _log_command(config: ToolConfig, cmd: list[str]) -> None:
    if config.is_development:
        print(f"Running: {' '.join(cmd)}")


# =============================================================================
# Metadata probe
# =============================================================================

def probe_metadata(url: str, config: ToolConfig) -> VideoMetadata:
    """Ask yt-dlp for the clip's info dict without downloading anything."""
    cmd = [
        config.ytdlp_path,
        *_ytdlp_base_args(config),
        "--dump-json",
        "--no-download",
        "--no-warnings",
        url,
    ]
    _log_command(config, cmd)
    result = run_tool(cmd, timeout=config.probe_timeout)
    if not result.ok:
        print(f"yt-dlp error: {result.stderr[:STDERR_LOG_LIMIT]}")
        result.check()

    try:
        info = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise MetadataUnparsable(f"Failed to parse video metadata: {e}") from e
    if not isinstance(info, dict):
        raise MetadataUnparsable(f"Expected a JSON object, got {type(info).__name__}")
    try:
        return VideoMetadata.from_info(info)
    except ValidationError as e:
        raise MetadataUnparsable(f"Unexpected metadata shape: {e}") from e


# =============================================================================
# Original-sound classifier
#
# Each rule looks at one signal. Rules run in list order and the first one
# that matches decides; if none match the clip is treated as original.
# =============================================================================

def _lower(text: str | None) -> str:
    return (text or "").lower()


def phrase_in_text(meta: VideoMetadata) -> bool:
    """'original sound' in the title or description."""
    return "original sound" in _lower(meta.title) or "original sound" in _lower(meta.description)


def uploader_is_owner(meta: VideoMetadata) -> bool:
    """Display name equals handle - the creator is likely speaking over their own clip."""
    uploader = _lower(meta.uploader)
    uploader_id = _lower(meta.uploader_id)
    return bool(uploader and uploader_id and uploader == uploader_id)


def sound_tag(meta: VideoMetadata) -> bool:
    """Any hashtag mentioning 'original' or 'sound'."""
    return any("original" in _lower(tag) or "sound" in _lower(tag) for tag in meta.tags)


def short_clip(meta: VideoMetadata) -> bool:
    """Clips under 10 seconds rarely carry a licensed track."""
    return bool(meta.duration) and meta.duration < 10


def format_note(meta: VideoMetadata) -> bool:
    return "original" in _lower(meta.format_note)


ORIGINAL_SOUND_RULES: list[tuple[str, Callable[[VideoMetadata], bool]]] = [
    ("phrase_in_text", phrase_in_text),
    ("uploader_is_owner", uploader_is_owner),
    ("sound_tag", sound_tag),
    ("short_clip", short_clip),
    ("format_note", format_note),
]

# Nothing matched. Still lets the user have the MP3 - pending product sign-off
# on whether the fallback should flip to False.
DEFAULT_ORIGINAL_SOUND = True


def classify_original_sound(meta: VideoMetadata) -> ClassificationResult:
    for name, rule in ORIGINAL_SOUND_RULES:
        if rule(meta):
            return ClassificationResult(original_sound=True, matched_rule=name, metadata=meta)
    return ClassificationResult(original_sound=DEFAULT_ORIGINAL_SOUND, matched_rule="default", metadata=meta)


def check_original_sound(url: str, config: ToolConfig) -> ClassificationResult:
    """Probe the clip and decide whether its audio is worth extracting."""
    return classify_original_sound(probe_metadata(url, config))


# =============================================================================
# Video download
# =============================================================================

def find_downloaded_video(scratch_dir: Path, base_name: str) -> Path | None:
    """yt-dlp picks the container, so look for <base_name>.<any video ext>."""
    for ext in VIDEO_EXTENSIONS:
        candidate = scratch_dir / f"{base_name}{ext}"
        if candidate.is_file():
            return candidate
    return None


def fetch_video(url: str, scratch_dir: Path, base_name: str, config: ToolConfig) -> Path:
    """Download the clip into scratch_dir as <base_name>.<ext> and return its path."""
    output_template = str(scratch_dir / f"{base_name}.%(ext)s")
    cmd = [
        config.ytdlp_path,
        *_ytdlp_base_args(config),
        "--output", output_template,
        "--format", f"best[height<={config.max_video_height}]",
        "--no-playlist",
        "--no-mtime",  # mtime must be download time or the sweeper may reap it mid-request
        "--no-warnings",
        url,
    ]
    _log_command(config, cmd)
    try:
        run_tool(cmd, timeout=config.download_timeout).check()
    except ToolFailed as e:
        print(f"yt-dlp download error: {e.stderr[:STDERR_LOG_LIMIT]}")
        raise DownloadFailed(f"Failed to download video: {e}") from e

    video_path = find_downloaded_video(scratch_dir, base_name)
    if video_path is None:
        seen = sorted(p.name for p in scratch_dir.glob(f"{base_name}*"))
        raise DownloadFailed(
            f"Downloaded file not found for {base_name}. "
            f"Found files: {', '.join(seen) if seen else 'none'}"
        )
    print(f"Video downloaded: {video_path.name}")
    return video_path
