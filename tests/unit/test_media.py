"""Unit tests for ffmpeg wrappers and transcript helpers."""

import subprocess
from pathlib import Path

import pytest

from qa_extractor.llm.client import TranscriptionSegment
from qa_extractor.media import ffmpeg
from qa_extractor.media.transcript import (
    clean_transcript_hallucinations,
    format_timestamp,
    segments_to_clean_text,
)


class FakeRunner:
    """Stands in for subprocess.run; ffmpeg calls write their output path."""

    def __init__(self, duration: str = "1500.0", fail_first_ffmpeg: bool = False, missing: bool = False):
        self.duration = duration
        self.fail_first_ffmpeg = fail_first_ffmpeg
        self.missing = missing
        self.calls: list[list[str]] = []

    def __call__(self, args, **kwargs):
        self.calls.append(args)
        if self.missing:
            raise FileNotFoundError(args[0])
        if args[0] == ffmpeg.FFPROBE:
            return subprocess.CompletedProcess(args, 0, stdout=f"{self.duration}\n", stderr="")
        if "-version" in args:
            return subprocess.CompletedProcess(args, 0, stdout="ffmpeg version", stderr="")
        ffmpeg_calls = [call for call in self.calls if call[0] == ffmpeg.FFMPEG]
        if self.fail_first_ffmpeg and len(ffmpeg_calls) == 1:
            return subprocess.CompletedProcess(args, 1, stdout="", stderr="seek failed")
        Path(args[-1]).write_bytes(b"ID3")
        return subprocess.CompletedProcess(args, 0, stdout="", stderr="")


@pytest.fixture
def runner(monkeypatch):
    fake = FakeRunner()
    monkeypatch.setattr(subprocess, "run", fake)
    return fake


class TestFfmpegChecks:
    """Tests for installation and probing."""

    def test_installed(self, runner):
        assert ffmpeg.check_ffmpeg_installed() is True

    def test_missing_binary(self, monkeypatch):
        monkeypatch.setattr(subprocess, "run", FakeRunner(missing=True))
        assert ffmpeg.check_ffmpeg_installed() is False
        assert ffmpeg.get_media_duration(Path("x.mp4")) is None

    def test_duration(self, runner, tmp_path):
        assert ffmpeg.get_media_duration(tmp_path / "a.mp3") == 1500.0

    def test_unparseable_duration(self, monkeypatch, tmp_path):
        monkeypatch.setattr(subprocess, "run", FakeRunner(duration="N/A"))
        assert ffmpeg.get_media_duration(tmp_path / "a.mp3") is None


class TestValidateVideo:
    """Tests for validate_video_file."""

    def test_missing_file(self, runner, tmp_path):
        result = ffmpeg.validate_video_file(tmp_path / "none.mp4")
        assert not result.ok
        assert result.reason == "File not found"

    def test_too_small(self, runner, tmp_path):
        video = tmp_path / "small.mp4"
        video.write_bytes(b"x" * 10)
        result = ffmpeg.validate_video_file(video, min_size_bytes=100)
        assert not result.ok
        assert result.reason.startswith("File too small")

    def test_unprobeable(self, monkeypatch, tmp_path):
        monkeypatch.setattr(subprocess, "run", FakeRunner(duration="0"))
        video = tmp_path / "v.mp4"
        video.write_bytes(b"x" * 200)
        assert not ffmpeg.validate_video_file(video, min_size_bytes=100).ok

    def test_valid(self, runner, tmp_path):
        video = tmp_path / "v.mp4"
        video.write_bytes(b"x" * 200)
        assert ffmpeg.validate_video_file(video, min_size_bytes=100).ok


class TestAudioExtraction:
    """Tests for segment extraction and chunking."""

    def test_invalid_window(self, runner, tmp_path):
        with pytest.raises(ffmpeg.MediaError, match="Invalid segment window"):
            ffmpeg.extract_audio_segment(tmp_path / "v.mp4", tmp_path / "a.mp3", 30, 10)

    def test_falls_back_to_output_seeking(self, monkeypatch, tmp_path):
        fake = FakeRunner(fail_first_ffmpeg=True)
        monkeypatch.setattr(subprocess, "run", fake)
        audio = tmp_path / "a.mp3"

        ffmpeg.extract_audio_segment(tmp_path / "v.mp4", audio, 10, 70)

        assert audio.exists()
        assert len(fake.calls) == 2
        assert fake.calls[0].index("-ss") < fake.calls[0].index("-i")
        assert "-to" in fake.calls[1]

    def test_split_long_audio(self, runner, tmp_path):
        audio = tmp_path / "long.mp3"
        audio.write_bytes(b"ID3")

        chunks = ffmpeg.split_audio_into_chunks(audio, chunk_seconds=600, output_dir=tmp_path / "chunks")

        assert [chunk.name for chunk in chunks] == ["long_part_0.mp3", "long_part_1.mp3", "long_part_2.mp3"]

    def test_short_audio_not_split(self, monkeypatch, tmp_path):
        monkeypatch.setattr(subprocess, "run", FakeRunner(duration="300"))
        audio = tmp_path / "short.mp3"
        assert ffmpeg.split_audio_into_chunks(audio, chunk_seconds=600) == [audio]


class TestTranscriptHelpers:
    """Tests for transcript formatting and cleanup."""

    @pytest.mark.parametrize(
        "seconds,expected",
        [(0, "00:00:00"), (61.9, "00:01:01"), (3725, "01:02:05"), (-5, "00:00:00")],
    )
    def test_format_timestamp(self, seconds, expected):
        assert format_timestamp(seconds) == expected

    def test_segments_shifted_by_offset(self):
        segments = [TranscriptionSegment(0, 4, " Hello "), TranscriptionSegment(5, 9, "World")]
        text = segments_to_clean_text(segments, offset=600)
        assert text == "[00:10:00]  Hello\n[00:10:05]  World"

    def test_repeated_lines_capped(self):
        transcript = "\n".join([
            "[00:00:01]  Thank you.",
            "[00:00:02]  thank you",
            "[00:00:03]  Thank you!",
            "[00:00:04]  Thank you.",
            "[00:00:05]  Next question",
        ])
        cleaned = clean_transcript_hallucinations(transcript).split("\n")

        assert cleaned == ["[00:00:01]  Thank you.", "[00:00:02]  thank you", "[00:00:05]  Next question"]

    def test_blank_and_punctuation_only_lines_dropped(self):
        transcript = "[00:00:01]  ...\n\n[00:00:02]  Real words\nplain line"
        assert clean_transcript_hallucinations(transcript) == "[00:00:02]  Real words\nplain line"
