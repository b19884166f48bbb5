import os
import logging
import subprocess
from typing import List

from ..errors import ExtractionFailure, EmptyExtraction
from ..models import ExtractionCommand, FrameFile
from .util import list_frame_files, frame_index

logger = logging.getLogger("frame_worker")

# Keep the tail of ffmpeg's stderr for diagnostics
STDERR_TAIL_CHARS = 4000


def _tail(text: str) -> str:
    return text[-STDERR_TAIL_CHARS:] if text else ""


def collect_frames(output_dir: str) -> List[FrameFile]:
    """List extracted frames in extraction order"""
    return [
        FrameFile(index=frame_index(name), path=os.path.join(output_dir, name))
        for name in list_frame_files(output_dir)
    ]


def extract_frames(command: ExtractionCommand, output_dir: str, timeout: float) -> List[FrameFile]:
    """
    Run the planned ffmpeg command and return the resulting frames

    The caller owns cleanup of output_dir when this raises.

    Raises:
        ExtractionFailure: spawn failure, timeout, or non-zero exit
        EmptyExtraction: ffmpeg succeeded but wrote no frames
    """
    logger.info(f"EXTRACT: Running {command.program} into {output_dir}")

    try:
        result = subprocess.run(
            command.args,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            errors='replace',
            timeout=timeout
        )
    except subprocess.TimeoutExpired as e:
        stderr = e.stderr.decode(errors='replace') if isinstance(e.stderr, bytes) else (e.stderr or "")
        raise ExtractionFailure(f"ffmpeg timed out after {timeout}s", stderr=_tail(stderr))
    except OSError as e:
        raise ExtractionFailure(f"Could not start ffmpeg ({command.program}): {e}")

    if result.returncode != 0:
        logger.error(f"ffmpeg exited with code {result.returncode}: {_tail(result.stderr)}")
        raise ExtractionFailure(
            f"ffmpeg exited with code {result.returncode}",
            stderr=_tail(result.stderr)
        )

    frames = collect_frames(output_dir)
    if not frames:
        raise EmptyExtraction("No frames could be extracted from the video")

    logger.info(f"EXTRACT: {len(frames)} frames written to {output_dir}")
    return frames
