import json
import math
import logging
import subprocess
from typing import Dict, Any, List, Optional

from ..config import WorkerConfig
from ..errors import ProbeFailure, ProbeParseFailure
from ..models import VideoMetadata

logger = logging.getLogger("frame_worker")


def parse_frame_rate(rate: Optional[str]) -> int:
    """
    Convert an ffprobe rational such as "30000/1001" to a whole frame rate.

    Rounds half up. A missing value or zero denominator is a parse failure.
    """
    if not rate:
        raise ProbeParseFailure("Frame rate missing from probe output")

    numerator, _, denominator = str(rate).partition('/')
    try:
        num = float(numerator)
        den = float(denominator) if denominator else 1.0
    except ValueError:
        raise ProbeParseFailure(f"Unparseable frame rate: {rate!r}")

    if den == 0:
        raise ProbeParseFailure(f"Frame rate has zero denominator: {rate!r}")

    value = num / den
    if not math.isfinite(value) or value <= 0:
        raise ProbeParseFailure(f"Frame rate out of range: {rate!r}")

    return int(math.floor(value + 0.5))


def _optional_float(value: Any) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    return result if math.isfinite(result) and result >= 0 else 0.0


def _optional_int(value: Any) -> int:
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return 0


def parse_probe_output(probe: Dict[str, Any]) -> VideoMetadata:
    """Build VideoMetadata from an ffprobe JSON report"""
    if not isinstance(probe, dict):
        raise ProbeParseFailure("Probe output is not a JSON object")

    streams = probe.get('streams') or []
    video_stream = next(
        (stream for stream in streams if isinstance(stream, dict) and stream.get('codec_type') == 'video'),
        None
    )
    if video_stream is None:
        raise ProbeParseFailure("No video stream found in probe output")

    try:
        width = int(video_stream['width'])
        height = int(video_stream['height'])
    except (KeyError, TypeError, ValueError):
        raise ProbeParseFailure("Video stream is missing width/height")

    rate = video_stream.get('r_frame_rate')
    if not rate or str(rate).startswith('0/'):
        rate = video_stream.get('avg_frame_rate')
    fps = parse_frame_rate(rate)

    # Duration and frame count are best-effort
    duration = _optional_float(video_stream.get('duration'))
    if not duration:
        duration = _optional_float((probe.get('format') or {}).get('duration'))
    frame_count = _optional_int(video_stream.get('nb_frames'))

    return VideoMetadata(
        width=width,
        height=height,
        fps=fps,
        duration_sec=duration,
        frame_count=frame_count
    )


def probe_command(video_path: str, ffprobe_path: str = "ffprobe") -> List[str]:
    """ffprobe argv producing a JSON report of format and streams"""
    return [ffprobe_path, '-show_format', '-show_streams', '-of', 'json', video_path]


def probe_video(video_path: str, config: WorkerConfig) -> VideoMetadata:
    """
    Probe a video with ffprobe and return its metadata

    Raises:
        ProbeFailure: ffprobe missing, timed out, or exited non-zero
        ProbeParseFailure: output unstructured or missing required fields
    """
    logger.info(f"PROBE: Probing {video_path}")

    try:
        result = subprocess.run(
            probe_command(video_path, config.FFPROBE_PATH),
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            errors='replace',
            timeout=config.PROBE_TIMEOUT_SEC
        )
    except subprocess.TimeoutExpired:
        raise ProbeFailure(f"ffprobe timed out after {config.PROBE_TIMEOUT_SEC}s for {video_path}")
    except OSError as e:
        raise ProbeFailure(f"Could not run ffprobe ({config.FFPROBE_PATH}): {e}")

    if result.returncode != 0:
        raise ProbeFailure(f"ffprobe failed for {video_path}: {result.stderr.strip()}")

    try:
        probe = json.loads(result.stdout)
    except ValueError as e:
        raise ProbeParseFailure(f"ffprobe output is not valid JSON: {e}")

    metadata = parse_probe_output(probe)

    logger.info(
        f"PROBE: {metadata.width}x{metadata.height} @ {metadata.fps}fps, "
        f"{metadata.duration_sec:.2f}s, {metadata.frame_count} frames"
    )
    return metadata
