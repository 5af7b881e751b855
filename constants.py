"""
TikSound - Application Constants

All shared constants in one place for easy tuning.
"""

import os
from pathlib import Path

VERSION = "1.0.0"

# Timeout values (in seconds)
TIMEOUT_YTDLP_INFO = 30          # Metadata probe (--dump-json)
TIMEOUT_YTDLP_DOWNLOAD = 300     # Downloading the clip (5 minutes)
TIMEOUT_FFMPEG_CONVERT = 120     # Transcoding video to MP3

# Scratch file retention
RETENTION_SECONDS = 600          # Delete scratch files older than 10 minutes
SWEEP_INTERVAL_SECONDS = 600     # Sweep the scratch directory every 10 minutes
DOWNLOAD_CACHE_SECONDS = 600     # Cache-Control max-age on served MP3s

# Download quality ceiling - TikTok clips rarely need more than 720p for audio anyway
MAX_VIDEO_HEIGHT = 720

# Audio output targets
AUDIO_BITRATE = "128k"
AUDIO_CHANNELS = 2
AUDIO_SAMPLE_RATE = 44100

# File handling
VIDEO_EXTENSIONS = ['.mp4', '.webm', '.mkv', '.mov']
AUDIO_EXTENSION = '.mp3'
SCRATCH_KINDS = ("video", "audio")
STDERR_LOG_LIMIT = 500           # Characters of tool stderr worth printing

# Rate limiting - one extraction per client every 10 seconds
RATE_LIMIT_REQUESTS = int(os.getenv("RATE_LIMIT_REQUESTS", "1"))
RATE_LIMIT_WINDOW = int(os.getenv("RATE_LIMIT_WINDOW", "10"))
RATE_LIMITED_PATHS = {"/extract"}

# Hosts we accept. vm./vt. are the share-sheet short links.
TIKTOK_URL_PATTERN = r'^https?://(www\.)?(tiktok\.com|vm\.tiktok\.com|vt\.tiktok\.com)(:\d+)?([/?#]|$)'

# Configuration from environment - structural paths
SCRATCH_DIR = Path(os.getenv("SCRATCH_DIR", "downloads"))

# User-facing messages (diagnostics go to the log, never to the caller)
MSG_INVALID_URL = "Invalid TikTok URL. Please provide a valid TikTok link."
MSG_FILTERED = "This video has overlayed sound and cannot be extracted."
MSG_SUCCESS = "Original sound detected! You can download the MP3."
MSG_FAILED = "Failed to process the video. Please try again."
MSG_RATE_LIMITED = f"Too many requests. Please wait {RATE_LIMIT_WINDOW} seconds before trying again."
