import json
import sys
from pathlib import Path

import pytest

# Ensure tests can import the flat top-level modules regardless of how pytest is invoked.
ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)
if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

from middleware import reset_rate_limits  # noqa: E402
from runner import ToolResult  # noqa: E402
from settings import ToolConfig  # noqa: E402

TIKTOK_URL = "https://www.tiktok.com/@someone/video/7300000000000000000"

SAMPLE_INFO = {
    "id": "7300000000000000000",
    "title": "morning routine",
    "description": "just vibes",
    "duration": 42,
    "uploader": "Some One",
    "uploader_id": "someone",
    "tags": ["fyp", "routine"],
    "format_note": None,
    "webpage_url": TIKTOK_URL,
}


class FakeTools:
    """Stands in for run_tool: answers yt-dlp and ffmpeg commands without spawning anything.

    The download step writes <base>.<ext> where yt-dlp would, and the ffmpeg
    step writes the last argument, so the file-system side of the pipeline is real.
    """

    def __init__(self, info=None):
        self.info = dict(SAMPLE_INFO if info is None else info)
        self.probe_returncode = 0
        self.probe_stdout = None
        self.download_returncode = 0
        self.download_ext = ".mp4"
        self.write_video = True
        self.ffmpeg_returncode = 0
        self.audio_bytes = b"\xff\xfb\x90\x00" * 256
        self.calls = []

    def __call__(self, cmd, timeout=None):
        cmd = list(cmd)
        self.calls.append(cmd)
        if "--dump-json" in cmd:
            stdout = self.probe_stdout if self.probe_stdout is not None else json.dumps(self.info)
            stderr = "" if self.probe_returncode == 0 else "ERROR: Unable to extract video data"
            return ToolResult("yt-dlp", self.probe_returncode, stdout, stderr)

        if "--output" in cmd:
            template = cmd[cmd.index("--output") + 1]
            if self.download_returncode != 0:
                # yt-dlp leaves a partial behind when it dies mid-transfer
                Path(template.replace(".%(ext)s", ".mp4.part")).write_bytes(b"partial")
                return ToolResult("yt-dlp", self.download_returncode, "", "ERROR: HTTP Error 403: Forbidden")
            if self.write_video:
                Path(template.replace(".%(ext)s", self.download_ext)).write_bytes(b"fake video bytes")
            return ToolResult("yt-dlp", 0, "", "")

        output = Path(cmd[-1])
        if self.ffmpeg_returncode != 0:
            return ToolResult("ffmpeg", self.ffmpeg_returncode, "", "Invalid data found when processing input")
        if self.audio_bytes is not None:
            output.write_bytes(self.audio_bytes)
        return ToolResult("ffmpeg", 0, "", "")

    @property
    def commands(self) -> list[str]:
        """Which step each call was: 'probe', 'download' or 'transcode'."""
        kinds = []
        for cmd in self.calls:
            if "--dump-json" in cmd:
                kinds.append("probe")
            elif "--output" in cmd:
                kinds.append("download")
            else:
                kinds.append("transcode")
        return kinds


@pytest.fixture(autouse=True)
def _fresh_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture
def scratch_dir(tmp_path: Path) -> Path:
    return tmp_path / "downloads"


@pytest.fixture
def config(scratch_dir: Path) -> ToolConfig:
    return ToolConfig(scratch_dir=scratch_dir, ytdlp_path="yt-dlp", ffmpeg_path="ffmpeg")


@pytest.fixture
def fake_tools(monkeypatch) -> FakeTools:
    tools = FakeTools()
    monkeypatch.setattr("tiktok.run_tool", tools)
    monkeypatch.setattr("audio.run_tool", tools)
    return tools


def scratch_files(directory: Path, kind: str | None = None) -> list[str]:
    if not directory.exists():
        return []
    names = sorted(p.name for p in directory.iterdir())
    if kind:
        names = [n for n in names if n.startswith(f"{kind}_")]
    return names
