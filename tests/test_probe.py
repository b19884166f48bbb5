import json
import subprocess
import sys
import time
from unittest.mock import patch

import pytest

from frame_worker.errors import ProbeFailure, ProbeParseFailure
from frame_worker.pipeline.probe import parse_frame_rate, parse_probe_output, probe_video


def probe_report(**stream_overrides):
    stream = {
        'codec_type': 'video',
        'width': 1920,
        'height': 1080,
        'r_frame_rate': '30000/1001',
        'duration': '10.010000',
        'nb_frames': '300',
    }
    stream.update(stream_overrides)
    return {
        'streams': [{'codec_type': 'audio'}, stream],
        'format': {'duration': '10.5'},
    }


@pytest.mark.parametrize("rate,expected", [
    ("30000/1001", 30),
    ("25/1", 25),
    ("24", 24),
    ("25/2", 13),
])
def test_parse_frame_rate(rate, expected):
    assert parse_frame_rate(rate) == expected


@pytest.mark.parametrize("rate", ["30/0", "", None, "abc/1", "0/1"])
def test_parse_frame_rate_failures(rate):
    with pytest.raises(ProbeParseFailure):
        parse_frame_rate(rate)


def test_parse_probe_output():
    metadata = parse_probe_output(probe_report())

    assert metadata.width == 1920
    assert metadata.height == 1080
    assert metadata.fps == 30
    assert metadata.duration_sec == pytest.approx(10.01)
    assert metadata.frame_count == 300


def test_missing_optional_fields_default_to_zero():
    report = probe_report()
    stream = report['streams'][1]
    del stream['nb_frames']
    del stream['duration']
    del report['format']

    metadata = parse_probe_output(report)
    assert metadata.duration_sec == 0
    assert metadata.frame_count == 0


def test_duration_falls_back_to_container():
    report = probe_report()
    del report['streams'][1]['duration']
    assert parse_probe_output(report).duration_sec == pytest.approx(10.5)


def test_avg_frame_rate_used_when_r_frame_rate_missing():
    report = probe_report(r_frame_rate='0/0', avg_frame_rate='24/1')
    assert parse_probe_output(report).fps == 24


@pytest.mark.parametrize("report", [
    {'streams': [{'codec_type': 'audio'}]},
    {'streams': [{'codec_type': 'video', 'width': 10, 'r_frame_rate': '25/1'}]},
    [],
])
def test_required_fields(report):
    with pytest.raises(ProbeParseFailure):
        parse_probe_output(report)


def completed(stdout="", returncode=0, stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def fake_ffprobe(tmp_path, report=None, delay=0):
    """Executable stand-in for ffprobe that records its argv"""
    argv_file = tmp_path / "argv.txt"
    report_file = tmp_path / "report.json"
    report_file.write_text(json.dumps(report or probe_report()))
    script = tmp_path / "ffprobe"
    script.write_text(
        "#!/bin/sh\n"
        f'printf "%s\\n" "$@" > "{argv_file}"\n'
        f"sleep {delay}\n"
        f'cat "{report_file}"\n'
    )
    script.chmod(0o755)
    return str(script), argv_file


def test_read_metadata_uses_configured_tool(config):
    config.FFPROBE_PATH = "/opt/bin/ffprobe"
    with patch("frame_worker.pipeline.probe.subprocess.run",
               return_value=completed(json.dumps(probe_report()))) as mock_run:
        metadata = probe_video("in.mp4", config)

    assert metadata.fps == 30
    args, kwargs = mock_run.call_args
    assert args[0] == ["/opt/bin/ffprobe", "-show_format", "-show_streams", "-of", "json", "in.mp4"]
    assert kwargs["timeout"] == config.PROBE_TIMEOUT_SEC


@pytest.mark.parametrize("outcome,expected", [
    (completed(returncode=1, stderr="Invalid data found"), ProbeFailure),
    (FileNotFoundError("ffprobe"), ProbeFailure),
    (subprocess.TimeoutExpired("ffprobe", 30), ProbeFailure),
    (completed("not json"), ProbeParseFailure),
    (completed(json.dumps({'streams': []})), ProbeParseFailure),
])
def test_read_metadata_failures(config, outcome, expected):
    kwargs = {"side_effect": outcome} if isinstance(outcome, Exception) else {"return_value": outcome}
    with patch("frame_worker.pipeline.probe.subprocess.run", **kwargs):
        with pytest.raises(expected):
            probe_video("in.mp4", config)


@pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")
def test_read_metadata_runs_real_executable(tmp_path, config):
    config.FFPROBE_PATH, argv_file = fake_ffprobe(tmp_path)
    source = str(tmp_path / "my clip -timeout.mp4")

    metadata = probe_video(source, config)

    assert metadata.width == 1920
    assert argv_file.read_text().splitlines() == ["-show_format", "-show_streams", "-of", "json", source]


@pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")
def test_slow_metadata_read_times_out(tmp_path, config):
    config.FFPROBE_PATH, _ = fake_ffprobe(tmp_path, delay=5)
    config.PROBE_TIMEOUT_SEC = 0.5

    start = time.monotonic()
    with pytest.raises(ProbeFailure) as exc_info:
        probe_video("clip.mp4", config)

    assert time.monotonic() - start < 4
    assert "timed out" in str(exc_info.value)
