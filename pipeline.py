"""
TikSound - Extraction Pipeline

validate -> probe -> (filter | fetch) -> extract -> clean up -> done

Stages run strictly in order within a request; the classifier gets to say
no before we pay for the download. Every failure is turned into a
PipelineResult here so the HTTP layer only has to pick a status code.
"""

from enum import Enum

from audio import extract_audio, tag_audio_file
from constants import MSG_FAILED, MSG_FILTERED, MSG_INVALID_URL, MSG_SUCCESS
from errors import InvalidInput, TikSoundError, ToolUnavailable
from models import PipelineResult
from scratch import discard_request_files, new_request_token, scratch_name
from settings import ToolConfig
from tiktok import check_original_sound, fetch_video, is_valid_tiktok_url


class PipelineState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    PROBING = "probing"
    FILTERED = "filtered"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    CLEANING_UP = "cleaning_up"
    DONE = "done"
    FAILED = "failed"


# Which stage name a failure is reported under
_FAILURE_STAGES = {
    PipelineState.PROBING: "probe",
    PipelineState.FETCHING: "fetch",
    PipelineState.EXTRACTING: "extract",
}


class ExtractionPipeline:
    """One extraction run. Not reusable - build a new one per request."""

    def __init__(self, url: str, config: ToolConfig):
        self.url = (url or "").strip()
        self.config = config
        self.token = new_request_token()
        self.state = PipelineState.IDLE

    def _enter(self, state: PipelineState) -> None:
        print(f"[{self.token}] {self.state.value} -> {state.value}")
        self.state = state

    def _validate(self) -> None:
        if not self.url:
            raise InvalidInput("No URL provided")
        if not is_valid_tiktok_url(self.url):
            raise InvalidInput(f"Not a TikTok URL: {self.url[:200]}")

    def run(self) -> PipelineResult:
        self._enter(PipelineState.VALIDATING)
        try:
            self._validate()
        except InvalidInput as e:
            print(f"[{self.token}] Rejected: {e}")
            return PipelineResult(outcome="rejected", message=MSG_INVALID_URL, diagnostic=str(e))

        print(f"[{self.token}] Processing TikTok URL: {self.url}")
        try:
            return self._run_stages()
        except TikSoundError as e:
            return self._fail(e)
        except Exception as e:
            # Filesystem or tagging surprises still must not leave files behind
            return self._fail(e)

    def _run_stages(self) -> PipelineResult:
        scratch_dir = self.config.scratch_dir

        self._enter(PipelineState.PROBING)
        classification = check_original_sound(self.url, self.config)
        print(f"[{self.token}] Classifier: original_sound={classification.original_sound} "
              f"(rule: {classification.matched_rule})")
        if not classification.original_sound:
            self._enter(PipelineState.FILTERED)
            return PipelineResult(outcome="filtered", message=MSG_FILTERED,
                                  title=classification.metadata.title)

        scratch_dir.mkdir(parents=True, exist_ok=True)

        self._enter(PipelineState.FETCHING)
        video_path = fetch_video(self.url, scratch_dir, scratch_name("video", self.token), self.config)

        self._enter(PipelineState.EXTRACTING)
        audio_path = extract_audio(video_path, scratch_dir, scratch_name("audio", self.token), self.config)
        tag_audio_file(audio_path, classification.metadata)

        self._enter(PipelineState.CLEANING_UP)
        try:
            video_path.unlink(missing_ok=True)
        except OSError as e:
            # The MP3 is fine; the sweeper will get the video eventually
            print(f"[{self.token}] Could not remove intermediate video {video_path.name}: {e}")

        self._enter(PipelineState.DONE)
        return PipelineResult(
            outcome="succeeded",
            message=MSG_SUCCESS,
            audio_filename=audio_path.name,
            title=classification.metadata.title,
        )

    def _fail(self, error: Exception) -> PipelineResult:
        stage = _FAILURE_STAGES.get(self.state, self.state.value)
        if isinstance(error, ToolUnavailable):
            print(f"[{self.token}] {error} - check YTDLP_PATH / FFMPEG_PATH / TOOL_SEARCH_PATH")
        print(f"[{self.token}] Extraction error during {stage}: {type(error).__name__}: {error}")
        self._enter(PipelineState.FAILED)
        discard_request_files(self.config.scratch_dir, self.token)
        return PipelineResult(outcome="failed", message=MSG_FAILED, stage=stage, diagnostic=str(error))


def process_extraction(url: str, config: ToolConfig) -> PipelineResult:
    """Run the whole pipeline for one URL."""
    return ExtractionPipeline(url, config).run()
