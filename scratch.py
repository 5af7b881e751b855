"""
TikSound - Scratch Directory Management

Scratch file naming, per-request cleanup, and the retention sweeper that
eventually reclaims everything (including the MP3s we hand out).
"""

import re
import threading
import time
import uuid
from pathlib import Path

from constants import AUDIO_EXTENSION, SCRATCH_KINDS

# audio_<epoch millis>_<request token>.mp3 - anything else is not ours to serve
AUDIO_FILENAME_PATTERN = re.compile(r'^audio_\d+_[0-9a-f]{12}\.mp3$')


def new_request_token() -> str:
    """Random per-request token. Embedded in every scratch name the request creates."""
    return uuid.uuid4().hex[:12]


def scratch_name(kind: str, token: str) -> str:
    """Base name (no extension) for a scratch file: <kind>_<millis>_<token>."""
    if kind not in SCRATCH_KINDS:
        raise ValueError(f"Unknown scratch kind: {kind}")
    return f"{kind}_{time.time_ns() // 1_000_000}_{token}"


def is_audio_filename(filename: str) -> bool:
    return bool(AUDIO_FILENAME_PATTERN.match(filename or ""))


def resolve_audio_file(scratch_dir: Path, filename: str) -> Path | None:
    """Map a client-supplied filename to an existing MP3 in the scratch dir, or None."""
    if not is_audio_filename(filename):
        return None
    candidate = scratch_dir / filename
    if candidate.suffix != AUDIO_EXTENSION or not candidate.is_file():
        return None
    return candidate


def discard_request_files(scratch_dir: Path, token: str) -> int:
    """Delete every scratch file carrying this request's token (partials included)."""
    removed = 0
    if not token or not scratch_dir.is_dir():
        return 0
    for path in scratch_dir.glob(f"*_{token}*"):
        try:
            path.unlink()
            removed += 1
            print(f"Discarded scratch file: {path.name}")
        except FileNotFoundError:
            pass
        except OSError as e:
            print(f"Could not discard scratch file {path.name}: {e}")
    return removed


def sweep_scratch_dir(scratch_dir: Path, max_age: float, now: float | None = None) -> int:
    """Delete regular files whose mtime is more than max_age seconds old.

    Returns the number of files removed. Files that disappear mid-scan (a
    request cleaning up after itself) are skipped.
    """
    if now is None:
        now = time.time()
    removed = 0
    try:
        entries = list(scratch_dir.iterdir())
    except FileNotFoundError:
        return 0

    for path in entries:
        try:
            stat = path.stat()
            if not path.is_file():
                continue
            if now - stat.st_mtime > max_age:
                path.unlink()
                removed += 1
                print(f"Cleaned up old file: {path.name}")
        except FileNotFoundError:
            continue
        except OSError as e:
            print(f"Could not clean up {path.name}: {e}")
    return removed


class RetentionSweeper:
    """Background thread that sweeps the scratch directory on a fixed period."""

    def __init__(self, scratch_dir: Path, interval: float, max_age: float):
        self.scratch_dir = scratch_dir
        self.interval = interval
        self.max_age = max_age
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def sweep_once(self) -> int:
        return sweep_scratch_dir(self.scratch_dir, self.max_age)

    def _run(self):
        # Event.wait doubles as the sleep so stop() doesn't wait out a full interval
        while not self._stop.wait(self.interval):
            try:
                self.sweep_once()
            except Exception as e:
                print(f"Retention sweeper error: {e}")

    def start(self) -> None:
        """Sweep once now, then keep sweeping every `interval` seconds."""
        if self.running:
            return
        self._stop.clear()
        self.sweep_once()
        self._thread = threading.Thread(target=self._run, name="retention-sweeper", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
        self._thread = None
