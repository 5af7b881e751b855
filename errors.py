"""
TikSound - Error Taxonomy

Everything raised by the pipeline stages derives from TikSoundError so the
orchestrator can turn it into a PipelineResult in one place.
"""


class TikSoundError(Exception):
    """Base class for pipeline errors."""


class InvalidInput(TikSoundError):
    """Missing or unrecognised URL."""


class ToolUnavailable(TikSoundError):
    """The external executable could not be spawned."""

    def __init__(self, tool: str, reason: str = ""):
        self.tool = tool
        message = f"Failed to run {tool}. Make sure it is installed."
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class ToolFailed(TikSoundError):
    """The external executable exited nonzero. Carries its stderr."""

    def __init__(self, tool: str, returncode: int | None, stderr: str = ""):
        self.tool = tool
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"{tool} failed with code {returncode}: {stderr.strip()[:200]}")


class ToolTimedOut(ToolFailed):
    """The external executable outlived its timeout and was killed."""

    def __init__(self, tool: str, timeout: float, stderr: str = ""):
        self.timeout = timeout
        super().__init__(tool, None, stderr)
        self.args = (f"{tool} timed out after {timeout}s",)


class MetadataUnparsable(TikSoundError):
    """The downloader's metadata dump was not a JSON object."""


class DownloadFailed(TikSoundError):
    """The video could not be downloaded, or the file never appeared."""


class ExtractionFailed(TikSoundError):
    """The transcoder could not produce the MP3."""


class ExtractionEmpty(ExtractionFailed):
    """The transcoder exited cleanly but left a missing or zero-byte file."""
