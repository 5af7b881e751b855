"""
TikSound - External Tool Runner

Every yt-dlp and ffmpeg call goes through run_tool() so spawn errors,
timeouts and stream cleanup are handled the same way everywhere.
"""

import subprocess
from pathlib import Path
from typing import NamedTuple

from errors import ToolFailed, ToolTimedOut, ToolUnavailable


class ToolResult(NamedTuple):
    tool: str
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def check(self) -> "ToolResult":
        """Raise ToolFailed on a nonzero exit, otherwise return self."""
        if not self.ok:
            raise ToolFailed(self.tool, self.returncode, self.stderr)
        return self


def _tool_name(cmd: list[str]) -> str:
    return Path(cmd[0]).name if cmd else "<empty>"


def run_tool(cmd: list[str], timeout: float | None = None) -> ToolResult:
    """Run an external command to completion and capture its output.

    A nonzero exit is returned, not raised - callers decide what it means.
    Raises ToolUnavailable if the executable can't be spawned and ToolTimedOut
    if it runs past `timeout` (the child is killed and reaped first).
    """
    tool = _tool_name(cmd)
    try:
        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError as e:
        # FileNotFoundError, PermissionError, exec format errors...
        raise ToolUnavailable(tool, str(e)) from e

    # Popen's context manager closes the pipes and waits on exit; the kill in
    # the except branch makes sure that wait never hangs on a live child.
    with proc:
        try:
            stdout, stderr = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            proc.kill()
            _, stderr = proc.communicate()
            raise ToolTimedOut(tool, timeout, _decode(stderr))
        except BaseException:
            proc.kill()
            raise

    return ToolResult(tool, proc.returncode, _decode(stdout), _decode(stderr))


def _decode(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace")
