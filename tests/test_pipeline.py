import pytest

import tiktok
from conftest import TIKTOK_URL, scratch_files
from errors import ToolUnavailable
from pipeline import ExtractionPipeline, PipelineState, process_extraction


@pytest.mark.parametrize("url", ["", None, "not-a-url", "https://example.com/video/1"])
def test_rejected_urls_never_touch_tools_or_disk(fake_tools, config, scratch_dir, url) -> None:
    result = process_extraction(url, config)

    assert result.outcome == "rejected"
    assert result.diagnostic
    assert fake_tools.calls == []
    assert scratch_files(scratch_dir) == []


def test_filtered_clip_stops_after_probe_with_no_files(fake_tools, config, scratch_dir, monkeypatch) -> None:
    monkeypatch.setattr(tiktok, "DEFAULT_ORIGINAL_SOUND", False)

    result = process_extraction(TIKTOK_URL, config)

    assert result.outcome == "filtered"
    assert fake_tools.commands == ["probe"]
    assert scratch_files(scratch_dir) == []


def test_success_leaves_one_audio_file_and_no_video(fake_tools, config, scratch_dir) -> None:
    result = process_extraction(TIKTOK_URL, config)

    assert result.outcome == "succeeded"
    assert fake_tools.commands == ["probe", "download", "transcode"]
    assert scratch_files(scratch_dir, "video") == []
    assert scratch_files(scratch_dir, "audio") == [result.audio_filename]
    assert result.title == "morning routine"
    assert result.diagnostic is None


def test_success_walks_every_state_in_order(fake_tools, config, monkeypatch) -> None:
    seen = []
    original_enter = ExtractionPipeline._enter

    def _record(self, state):
        seen.append(state)
        original_enter(self, state)

    monkeypatch.setattr(ExtractionPipeline, "_enter", _record)

    process_extraction(TIKTOK_URL, config)

    assert seen == [
        PipelineState.VALIDATING,
        PipelineState.PROBING,
        PipelineState.FETCHING,
        PipelineState.EXTRACTING,
        PipelineState.CLEANING_UP,
        PipelineState.DONE,
    ]


def test_download_failure_leaves_nothing_behind(fake_tools, config, scratch_dir) -> None:
    fake_tools.download_returncode = 1

    result = process_extraction(TIKTOK_URL, config)

    assert result.outcome == "failed"
    assert result.stage == "fetch"
    assert "403" in result.diagnostic
    assert fake_tools.commands == ["probe", "download"]
    assert scratch_files(scratch_dir) == []


def test_empty_transcode_fails_and_cleans_up(fake_tools, config, scratch_dir) -> None:
    fake_tools.audio_bytes = b""

    result = process_extraction(TIKTOK_URL, config)

    assert result.outcome == "failed"
    assert result.stage == "extract"
    assert scratch_files(scratch_dir) == []


def test_transcoder_error_fails_at_extract(fake_tools, config, scratch_dir) -> None:
    fake_tools.ffmpeg_returncode = 1

    result = process_extraction(TIKTOK_URL, config)

    assert result.stage == "extract"
    assert scratch_files(scratch_dir) == []


def test_unparsable_metadata_fails_at_probe(fake_tools, config, scratch_dir) -> None:
    fake_tools.probe_stdout = "not json"

    result = process_extraction(TIKTOK_URL, config)

    assert result.outcome == "failed"
    assert result.stage == "probe"
    assert fake_tools.commands == ["probe"]


def test_probe_tool_failure_fails_at_probe(fake_tools, config) -> None:
    fake_tools.probe_returncode = 1

    result = process_extraction(TIKTOK_URL, config)

    assert result.outcome == "failed"
    assert result.stage == "probe"


def test_missing_tool_is_a_generic_failure(monkeypatch, config, scratch_dir) -> None:
    def _unavailable(cmd, timeout=None):
        raise ToolUnavailable("yt-dlp", "No such file or directory")

    monkeypatch.setattr("tiktok.run_tool", _unavailable)

    result = process_extraction(TIKTOK_URL, config)

    assert result.outcome == "failed"
    assert result.stage == "probe"
    assert "yt-dlp" not in result.message
    assert "installed" in result.diagnostic


def test_repeated_submissions_never_reuse_scratch_names(fake_tools, config, scratch_dir) -> None:
    names = [process_extraction(TIKTOK_URL, config).audio_filename for _ in range(5)]

    assert len(set(names)) == 5
    assert scratch_files(scratch_dir, "audio") == sorted(names)
    assert scratch_files(scratch_dir, "video") == []


def test_video_and_audio_share_the_request_token(fake_tools, config) -> None:
    pipeline = ExtractionPipeline(TIKTOK_URL, config)
    result = pipeline.run()

    download_cmd = fake_tools.calls[1]
    output_template = download_cmd[download_cmd.index("--output") + 1]
    assert pipeline.token in output_template
    assert result.audio_filename.endswith(f"_{pipeline.token}.mp3")


def test_unexpected_error_still_fails_and_cleans_up(fake_tools, config, scratch_dir, monkeypatch) -> None:
    def _denied(path, meta):
        raise PermissionError("denied")

    monkeypatch.setattr("pipeline.tag_audio_file", _denied)

    result = process_extraction(TIKTOK_URL, config)

    assert result.outcome == "failed"
    assert result.stage == "extract"
    assert result.diagnostic == "denied"
    assert scratch_files(scratch_dir) == []
